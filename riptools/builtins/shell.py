"""The ``bash`` tool: run a command through bash, or the default shell."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Optional

from riptools.builtins.common import (
    BuiltinToolConfig,
    InvalidArgs,
    default_shell_program,
    parse_args,
    resolve_path,
    split_output,
)
from riptools.runtime import ToolInvocation, ToolOutput

_FIELDS = {"command": str, "cwd": str, "env": dict, "max_bytes": int}


async def _execute(
    program: str,
    argv: list[str],
    cwd: Optional[Path],
    env: Optional[dict[str, str]],
    max_bytes: int,
) -> ToolOutput:
    process = await asyncio.create_subprocess_exec(
        program,
        *argv,
        cwd=cwd,
        env=env,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await process.communicate()
    except asyncio.CancelledError:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        raise
    code = process.returncode
    return ToolOutput(
        stdout=split_output(stdout, max_bytes),
        stderr=split_output(stderr, max_bytes),
        exit_code=code if code is not None and code >= 0 else 1,
    )


async def run_bash(invocation: ToolInvocation, config: BuiltinToolConfig) -> ToolOutput:
    """Run ``command`` with ``bash -c``; fall back to the platform shell if bash is absent."""
    try:
        args = parse_args(invocation.args, _FIELDS, required=("command",))
    except InvalidArgs as exc:
        return ToolOutput.invalid_args(str(exc))

    max_bytes = config.max_bytes if args["max_bytes"] is None else args["max_bytes"]
    cwd: Optional[Path] = None
    if args["cwd"] is not None:
        try:
            cwd = resolve_path(config.workspace_root, args["cwd"])
        except ValueError as exc:
            return ToolOutput.failure([str(exc)])
    env = None if args["env"] is None else {**os.environ, **args["env"]}
    command = args["command"]

    try:
        return await _execute("bash", ["-c", command], cwd, env, max_bytes)
    except FileNotFoundError:
        pass
    except OSError as exc:
        return ToolOutput.failure([f"bash failed: {exc}"])

    program, program_args = default_shell_program()
    try:
        return await _execute(program, [*program_args, command], cwd, env, max_bytes)
    except OSError as exc:
        return ToolOutput.failure([f"shell failed: {exc}"])