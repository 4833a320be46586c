"""The ``read`` tool: return a file's text, optionally a range of its lines."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from riptools.builtins.common import (
    BuiltinToolConfig,
    InvalidArgs,
    normalize_rel_path,
    parse_args,
    resolve_path,
    truncate_utf8,
)
from riptools.runtime import ToolInvocation, ToolOutput

_FIELDS = {"path": str, "start_line": int, "end_line": int, "max_bytes": int}


def _read_lines(
    path: Path, start: Optional[int], end: Optional[int], max_bytes: int
) -> tuple[bytes, bool]:
    output = bytearray()
    with path.open("rb") as handle:
        for line_no, raw in enumerate(handle, start=1):
            raw.decode("utf-8")
            if start is not None and line_no < start:
                continue
            if end is not None and line_no > end:
                break
            output += raw
            if len(output) >= max_bytes:
                del output[max_bytes:]
                return bytes(output), True
    return bytes(output), False


def run_read(invocation: ToolInvocation, config: BuiltinToolConfig) -> ToolOutput:
    """Read a workspace file, limited to a 1-based line range and a byte budget."""
    try:
        args = parse_args(invocation.args, _FIELDS, required=("path",))
    except InvalidArgs as exc:
        return ToolOutput.invalid_args(str(exc))

    start, end = args["start_line"], args["end_line"]
    if start == 0 or end == 0:
        return ToolOutput.invalid_args("line numbers are 1-based")
    if start is not None and end is not None and start > end:
        return ToolOutput.invalid_args("start_line must be <= end_line")

    try:
        path = resolve_path(config.workspace_root, args["path"])
    except ValueError as exc:
        return ToolOutput.failure([str(exc)])

    max_bytes = config.max_bytes if args["max_bytes"] is None else args["max_bytes"]
    try:
        data, truncated = _read_lines(path, start, end, max_bytes)
    except UnicodeDecodeError:
        return ToolOutput.failure(["read failed: stream did not contain valid UTF-8"])
    except OSError as exc:
        return ToolOutput.failure([f"read failed: {exc}"])

    content, _, used_bytes = truncate_utf8(data, max_bytes)
    return ToolOutput(
        stdout=[content],
        stderr=[],
        exit_code=0,
        artifacts={
            "path": normalize_rel_path(config.workspace_root, path),
            "bytes": used_bytes,
            "truncated": truncated,
            "start_line": start,
            "end_line": end,
        },
    )