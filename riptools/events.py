"""Session events emitted while tools run and checkpoints are taken."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union


class CheckpointAction(Enum):
    """The checkpoint operation that an event refers to."""

    CREATE = "create"
    REWIND = "rewind"


@dataclass(frozen=True)
class ToolStarted:
    tool_id: str
    name: str
    args: Any
    timeout_ms: Optional[int] = None


@dataclass(frozen=True)
class ToolStdout:
    tool_id: str
    chunk: str


@dataclass(frozen=True)
class ToolStderr:
    tool_id: str
    chunk: str


@dataclass(frozen=True)
class ToolEnded:
    tool_id: str
    exit_code: int
    duration_ms: int
    artifacts: Any = None


@dataclass(frozen=True)
class ToolFailed:
    tool_id: str
    error: str


@dataclass(frozen=True)
class CheckpointCreated:
    checkpoint_id: str
    label: str
    created_at_ms: int
    files: list[str]
    auto: bool
    tool_name: Optional[str] = None


@dataclass(frozen=True)
class CheckpointRewound:
    checkpoint_id: str
    label: str
    files: list[str]


@dataclass(frozen=True)
class CheckpointFailed:
    action: CheckpointAction
    error: str


EventKind = Union[
    ToolStarted,
    ToolStdout,
    ToolStderr,
    ToolEnded,
    ToolFailed,
    CheckpointCreated,
    CheckpointRewound,
    CheckpointFailed,
]


@dataclass(frozen=True)
class Event:
    """One numbered frame in a session's event stream."""

    id: str
    session_id: str
    timestamp_ms: int
    seq: int
    kind: EventKind


@dataclass
class Sequence:
    """A per-session counter handing out consecutive sequence numbers."""

    value: int = 0

    def next(self) -> int:
        """Return the current number and advance the counter."""
        current = self.value
        self.value += 1
        return current


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def new_event(session_id: str, seq: Sequence, kind: EventKind) -> Event:
    """Build an event for ``session_id``, taking the next number from ``seq``."""
    return Event(
        id=str(uuid.uuid4()),
        session_id=session_id,
        timestamp_ms=_now_ms(),
        seq=seq.next(),
        kind=kind,
    )