"""Tool registry and runner that turns tool invocations into session events."""

from __future__ import annotations

import asyncio
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable, Optional

from riptools.events import (
    CheckpointAction,
    CheckpointCreated,
    CheckpointFailed,
    CheckpointRewound,
    Event,
    Sequence,
    ToolEnded,
    ToolFailed,
    ToolStarted,
    ToolStderr,
    ToolStdout,
    new_event,
)


@dataclass
class ToolInvocation:
    """A request to run a named tool with JSON-like arguments."""

    name: str
    args: Any
    timeout_ms: Optional[int] = None


@dataclass
class ToolOutput:
    """What a tool produced: output lines, an exit code and optional artifacts."""

    stdout: list[str] = field(default_factory=list)
    stderr: list[str] = field(default_factory=list)
    exit_code: int = 0
    artifacts: Any = None

    @classmethod
    def success(cls, stdout: list[str]) -> "ToolOutput":
        return cls(stdout=list(stdout), stderr=[], exit_code=0)

    @classmethod
    def failure(cls, stderr: list[str]) -> "ToolOutput":
        return cls(stdout=[], stderr=list(stderr), exit_code=1)

    @classmethod
    def invalid_args(cls, message: str) -> "ToolOutput":
        return cls(stdout=[], stderr=[str(message)], exit_code=2)


@dataclass
class CheckpointRequest:
    session_id: str
    label: str
    files: list[Path]
    auto: bool
    tool_name: Optional[str] = None


@dataclass
class CheckpointRecord:
    id: str
    label: str
    created_at_ms: int
    files: list[str]


@dataclass
class CheckpointRewindRecord:
    id: str
    label: str
    files: list[str]


class CheckpointError(Exception):
    """Raised by a checkpoint hook, or when a checkpoint cannot be prepared."""


class CheckpointHook(ABC):
    """Creates and restores workspace checkpoints on behalf of the runner."""

    @abstractmethod
    def create(self, request: CheckpointRequest) -> CheckpointRecord:
        """Create a checkpoint; raise CheckpointError on failure."""

    @abstractmethod
    def rewind(self, session_id: str, checkpoint_id: str) -> CheckpointRewindRecord:
        """Restore a checkpoint; raise CheckpointError on failure."""


ToolHandler = Callable[[ToolInvocation], Awaitable[ToolOutput]]


class ToolRegistry:
    """Thread-safe mapping from tool names (and aliases) to async handlers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tools: dict[str, ToolHandler] = {}
        self._aliases: dict[str, str] = {}

    def register(self, name: str, handler: ToolHandler) -> None:
        with self._lock:
            self._tools[name] = handler

    def register_alias(self, alias: str, target: str) -> None:
        with self._lock:
            self._aliases[alias] = target

    def get(self, name: str) -> Optional[ToolHandler]:
        """Return the handler for ``name`` or its alias target, or None."""
        with self._lock:
            handler = self._tools.get(name)
            if handler is not None:
                return handler
            target = self._aliases.get(name)
            if target is None:
                return None
            return self._tools.get(target)


def _files_for_invocation(invocation: ToolInvocation) -> Optional[list[Path]]:
    if invocation.name != "write":
        return None
    args = invocation.args
    if not isinstance(args, dict):
        raise CheckpointError(
            f"checkpoint args invalid: invalid type: {type(args).__name__}, expected an object"
        )
    if "path" not in args:
        raise CheckpointError("checkpoint args invalid: missing field `path`")
    path = args["path"]
    if not isinstance(path, str):
        raise CheckpointError(
            "checkpoint args invalid: invalid type for field `path`: expected a string"
        )
    return [Path(path)]


_HOOK_MISSING = "checkpoint hook not configured"


class ToolRunner:
    """Runs registered tools with bounded concurrency and emits their events."""

    def __init__(
        self,
        registry: ToolRegistry,
        max_concurrency: int = 1,
        checkpoint_hook: Optional[CheckpointHook] = None,
    ) -> None:
        self._registry = registry
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))
        self._checkpoint_hook = checkpoint_hook

    async def run(
        self, session_id: str, seq: Sequence, invocation: ToolInvocation
    ) -> list[Event]:
        """Run one invocation and return the events it produced, in order."""
        async with self._semaphore:
            tool_id = str(uuid.uuid4())
            started_at = time.monotonic()

            events = self._auto_checkpoint_events(session_id, seq, invocation)
            events.append(
                new_event(
                    session_id,
                    seq,
                    ToolStarted(
                        tool_id=tool_id,
                        name=invocation.name,
                        args=invocation.args,
                        timeout_ms=invocation.timeout_ms,
                    ),
                )
            )

            handler = self._registry.get(invocation.name)
            if handler is None:
                events.append(
                    new_event(session_id, seq, ToolFailed(tool_id=tool_id, error="unknown tool"))
                )
                return events

            try:
                if invocation.timeout_ms is None:
                    output = await handler(invocation)
                else:
                    output = await asyncio.wait_for(
                        handler(invocation), invocation.timeout_ms / 1000
                    )
            except asyncio.TimeoutError:
                events.append(new_event(session_id, seq, ToolFailed(tool_id=tool_id, error="timeout")))
                return events

            events.extend(
                new_event(session_id, seq, ToolStdout(tool_id=tool_id, chunk=chunk))
                for chunk in output.stdout
            )
            events.extend(
                new_event(session_id, seq, ToolStderr(tool_id=tool_id, chunk=chunk))
                for chunk in output.stderr
            )
            events.append(
                new_event(
                    session_id,
                    seq,
                    ToolEnded(
                        tool_id=tool_id,
                        exit_code=output.exit_code,
                        duration_ms=int((time.monotonic() - started_at) * 1000),
                        artifacts=output.artifacts,
                    ),
                )
            )
            return events

    def rewind_checkpoint(
        self, session_id: str, seq: Sequence, checkpoint_id: str
    ) -> list[Event]:
        """Ask the hook to restore a checkpoint and report the outcome."""
        hook = self._checkpoint_hook
        if hook is None:
            kind = CheckpointFailed(action=CheckpointAction.REWIND, error=_HOOK_MISSING)
            return [new_event(session_id, seq, kind)]
        try:
            record = hook.rewind(session_id, checkpoint_id)
        except CheckpointError as exc:
            kind = CheckpointFailed(action=CheckpointAction.REWIND, error=str(exc))
        else:
            kind = CheckpointRewound(
                checkpoint_id=record.id, label=record.label, files=list(record.files)
            )
        return [new_event(session_id, seq, kind)]

    def create_checkpoint(
        self, session_id: str, seq: Sequence, label: str, files: Iterable[Path | str]
    ) -> list[Event]:
        """Ask the hook for a manual checkpoint of ``files`` and report the outcome."""
        hook = self._checkpoint_hook
        if hook is None:
            kind = CheckpointFailed(action=CheckpointAction.CREATE, error=_HOOK_MISSING)
            return [new_event(session_id, seq, kind)]
        request = CheckpointRequest(
            session_id=session_id,
            label=label,
            files=[Path(path) for path in files],
            auto=False,
            tool_name=None,
        )
        return [new_event(session_id, seq, self._create_kind(hook, request))]

    def _auto_checkpoint_events(
        self, session_id: str, seq: Sequence, invocation: ToolInvocation
    ) -> list[Event]:
        hook = self._checkpoint_hook
        if hook is None:
            return []
        try:
            files = _files_for_invocation(invocation)
        except CheckpointError as exc:
            kind = CheckpointFailed(action=CheckpointAction.CREATE, error=str(exc))
            return [new_event(session_id, seq, kind)]
        if files is None:
            return []
        request = CheckpointRequest(
            session_id=session_id,
            label=f"auto:{invocation.name}",
            files=files,
            auto=True,
            tool_name=invocation.name,
        )
        return [new_event(session_id, seq, self._create_kind(hook, request))]

    @staticmethod
    def _create_kind(
        hook: CheckpointHook, request: CheckpointRequest
    ) -> CheckpointCreated | CheckpointFailed:
        try:
            record = hook.create(request)
        except CheckpointError as exc:
            return CheckpointFailed(action=CheckpointAction.CREATE, error=str(exc))
        return CheckpointCreated(
            checkpoint_id=record.id,
            label=record.label,
            created_at_ms=record.created_at_ms,
            files=list(record.files),
            auto=request.auto,
            tool_name=request.tool_name,
        )