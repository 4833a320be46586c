"""Registration of the built-in tools in a tool registry."""

from __future__ import annotations

import asyncio
import dataclasses
from typing import Callable

from riptools.builtins.common import BuiltinToolConfig
from riptools.builtins.grep import run_grep
from riptools.builtins.ls import run_ls
from riptools.builtins.read import run_read
from riptools.builtins.shell import run_bash
from riptools.builtins.write import run_write
from riptools.runtime import ToolHandler, ToolInvocation, ToolOutput, ToolRegistry

_BlockingTool = Callable[[ToolInvocation, BuiltinToolConfig], ToolOutput]


def _threaded(name: str, run: _BlockingTool, config: BuiltinToolConfig) -> ToolHandler:
    async def handler(invocation: ToolInvocation) -> ToolOutput:
        try:
            return await asyncio.to_thread(run, invocation, config)
        except Exception:
            return ToolOutput.failure([f"{name} panicked"])

    return handler


def _bash(config: BuiltinToolConfig) -> ToolHandler:
    async def handler(invocation: ToolInvocation) -> ToolOutput:
        return await run_bash(invocation, config)

    return handler


def register_builtin_tools(registry: ToolRegistry, config: BuiltinToolConfig) -> None:
    """Register read, write, ls, grep and bash, plus ``shell`` as an alias of bash."""
    for name, run in (
        ("read", run_read),
        ("write", run_write),
        ("ls", run_ls),
        ("grep", run_grep),
    ):
        registry.register(name, _threaded(name, run, dataclasses.replace(config)))
    registry.register("bash", _bash(dataclasses.replace(config)))
    registry.register_alias("shell", "bash")