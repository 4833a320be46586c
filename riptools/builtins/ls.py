"""The ``ls`` tool: list entries under a workspace directory."""

from __future__ import annotations

from riptools.builtins.common import (
    BuiltinToolConfig,
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
    "path": str,
    "recursive": bool,
    "max_depth": int,
    "include": list,
    "exclude": list,
    "include_hidden": bool,
    "follow_symlinks": bool,
}


def _pick(value, default):
    return default if value is None else value


def run_ls(invocation: ToolInvocation, config: BuiltinToolConfig) -> ToolOutput:
    """List paths under a workspace directory, one level deep unless recursive."""
    try:
        args = parse_args(invocation.args, _FIELDS)
    except InvalidArgs as exc:
        return ToolOutput.invalid_args(str(exc))

    try:
        root_path = resolve_path(config.workspace_root, _pick(args["path"], "."))
    except ValueError as exc:
        return ToolOutput.failure([str(exc)])

    include_hidden = _pick(args["include_hidden"], config.include_hidden)
    follow_symlinks = _pick(args["follow_symlinks"], config.follow_symlinks)
    recursive = _pick(args["recursive"], False)
    max_depth = _pick(args["max_depth"], config.max_depth) if recursive else 1

    try:
        include = build_globset(args["include"])
        exclude = build_globset(args["exclude"])
    except InvalidArgs as exc:
        return ToolOutput.invalid_args(str(exc))

    stdout: list[str] = []
    errors: list[str] = []
    for entry in walk(root_path, max_depth, include_hidden, follow_symlinks):
        if isinstance(entry, OSError):
            errors.append(str(entry))
            continue
        if entry.depth == 0:
            continue
        rel = normalize_rel_path(config.workspace_root, entry.path)
        if globsets_match(include, exclude, rel):
            stdout.append(rel)

    return ToolOutput(
        stdout=stdout,
        stderr=errors,
        exit_code=0,
        artifacts={"root": normalize_rel_path(config.workspace_root, root_path)},
    )