"""The ``write`` tool: create, overwrite or append to a workspace file."""

from __future__ import annotations

import os
import uuid
from pathlib import Path

from riptools.builtins.common import (
    BuiltinToolConfig,
    InvalidArgs,
    normalize_rel_path,
    parse_args,
    resolve_path,
)
from riptools.runtime import ToolInvocation, ToolOutput

_FIELDS = {"path": str, "content": str, "append": bool, "create": bool, "atomic": bool}


def _append(path: Path, data: bytes, create: bool) -> None:
    flags = os.O_WRONLY | os.O_APPEND | getattr(os, "O_BINARY", 0)
    if create:
        flags |= os.O_CREAT
    fd = os.open(path, flags, 0o666)
    with os.fdopen(fd, "wb") as handle:
        handle.write(data)


def _replace_atomically(path: Path, data: bytes) -> None:
    tmp_path = path.with_name(f"{path.stem}.tmp-{uuid.uuid4()}")
    tmp_path.write_bytes(data)
    if path.exists():
        path.unlink()
    tmp_path.rename(path)


def run_write(invocation: ToolInvocation, config: BuiltinToolConfig) -> ToolOutput:
    """Write ``content`` to a workspace path, by default through a temporary file."""
    try:
        args = parse_args(invocation.args, _FIELDS, required=("path", "content"))
    except InvalidArgs as exc:
        return ToolOutput.invalid_args(str(exc))

    try:
        path = resolve_path(config.workspace_root, args["path"])
    except ValueError as exc:
        return ToolOutput.failure([str(exc)])

    create = True if args["create"] is None else args["create"]
    append = False if args["append"] is None else args["append"]
    atomic = True if args["atomic"] is None else args["atomic"]
    data = args["content"].encode("utf-8")

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if append:
            _append(path, data, create)
        elif atomic:
            _replace_atomically(path, data)
        else:
            path.write_bytes(data)
    except (OSError, ValueError) as exc:
        return ToolOutput.failure([f"write failed: {exc}"])

    return ToolOutput(
        stdout=[f"wrote {len(data)} bytes"],
        stderr=[],
        exit_code=0,
        artifacts={
            "path": normalize_rel_path(config.workspace_root, path),
            "bytes_written": len(data),
        },
    )