"""The ``grep`` tool: search workspace files line by line for a pattern."""

from __future__ import annotations

import re
from itertools import islice
from pathlib import Path
from typing import Iterator, Optional

from riptools.builtins.common import (
    BuiltinToolConfig,
    GlobSet,
    InvalidArgs,
    build_globset,
    globsets_match,
    normalize_rel_path,
    parse_args,
    resolve_path,
    walk,
)
from riptools.runtime import ToolInvocation, ToolOutput

_FIELDS = {
    "pattern": str,
    "path": str,
    "regex": bool,
    "case_sensitive": bool,
    "include": list,
    "exclude": list,
    "max_results": int,
    "max_bytes": int,
    "max_depth": int,
    "include_hidden": bool,
    "follow_symlinks": bool,
}


def _pick(value, default):
    return default if value is None else value


def _file_matches(
    path: Path, rel: str, regex: re.Pattern[str], max_bytes: int, stderr: list[str]
) -> Iterator[str]:
    try:
        handle = path.open("rb")
    except OSError as exc:
        stderr.append(f"{rel}: {exc}")
        return
    with handle:
        bytes_read = 0
        try:
            for line_no, raw in enumerate(handle, start=1):
                try:
                    text = raw.decode("utf-8")
                except UnicodeDecodeError:
                    stderr.append(f"{rel}: stream did not contain valid UTF-8")
                    return
                bytes_read += len(raw)
                if bytes_read > max_bytes:
                    return
                if "\0" in text:
                    return
                line = text.rstrip("\r\n")
                if regex.search(line):
                    yield f"{rel}:{line_no}:{line}"
        except OSError as exc:
            stderr.append(f"{rel}: {exc}")


def _all_matches(
    root_path: Path,
    config: BuiltinToolConfig,
    regex: re.Pattern[str],
    include: Optional[GlobSet],
    exclude: Optional[GlobSet],
    max_bytes: int,
    max_depth: int,
    include_hidden: bool,
    follow_symlinks: bool,
    stderr: list[str],
) -> Iterator[str]:
    for entry in walk(root_path, max_depth, include_hidden, follow_symlinks):
        if isinstance(entry, OSError):
            stderr.append(str(entry))
            continue
        if not entry.is_file:
            continue
        rel = normalize_rel_path(config.workspace_root, entry.path)
        if not globsets_match(include, exclude, rel):
            continue
        yield from _file_matches(entry.path, rel, regex, max_bytes, stderr)


def run_grep(invocation: ToolInvocation, config: BuiltinToolConfig) -> ToolOutput:
    """Report ``path:line:text`` for every matching line under a workspace path."""
    try:
        args = parse_args(invocation.args, _FIELDS, required=("pattern",))
    except InvalidArgs as exc:
        return ToolOutput.invalid_args(str(exc))

    try:
        root_path = resolve_path(config.workspace_root, _pick(args["path"], "."))
    except ValueError as exc:
        return ToolOutput.failure([str(exc)])

    regex_enabled = _pick(args["regex"], True)
    case_sensitive = _pick(args["case_sensitive"], True)
    max_results = _pick(args["max_results"], config.max_results)
    max_bytes = _pick(args["max_bytes"], config.max_bytes)
    max_depth = _pick(args["max_depth"], config.max_depth)
    include_hidden = _pick(args["include_hidden"], config.include_hidden)
    follow_symlinks = _pick(args["follow_symlinks"], config.follow_symlinks)

    try:
        include = build_globset(args["include"])
        exclude = build_globset(args["exclude"])
    except InvalidArgs as exc:
        return ToolOutput.invalid_args(str(exc))

    pattern = args["pattern"] if regex_enabled else re.escape(args["pattern"])
    try:
        regex = re.compile(pattern, 0 if case_sensitive else re.IGNORECASE)
    except re.error as exc:
        return ToolOutput.invalid_args(f"invalid regex: {exc}")

    stderr: list[str] = []
    matches = _all_matches(
        root_path,
        config,
        regex,
        include,
        exclude,
        max_bytes,
        max_depth,
        include_hidden,
        follow_symlinks,
        stderr,
    )
    try:
        # A match is always recorded before the limit is checked.
        stdout = list(islice(matches, max(max_results, 1)))
    finally:
        matches.close()

    return ToolOutput(
        stdout=stdout,
        stderr=stderr,
        exit_code=0,
        artifacts={
            "root": normalize_rel_path(config.workspace_root, root_path),
            "matches": len(stdout),
        },
    )