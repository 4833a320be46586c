"""Shared helpers for the built-in tools: configuration, argument parsing,
path handling, output truncation, glob matching and directory walking."""

from __future__ import annotations

import errno
import os
import re
import stat
from dataclasses import dataclass, field
from pathlib import Path, PurePath
from typing import Any, Collection, Iterable, Iterator, Mapping, Optional, Union

_IS_WINDOWS = os.name == "nt"


def _current_dir() -> Path:
    try:
        return Path.cwd()
    except OSError:
        return Path(".")


@dataclass
class BuiltinToolConfig:
    """Limits and the workspace root shared by the built-in tools."""

    workspace_root: Path = field(default_factory=_current_dir)
    max_bytes: int = 512 * 1024
    max_results: int = 1000
    max_depth: int = 64
    follow_symlinks: bool = False
    include_hidden: bool = False

    def __post_init__(self) -> None:
        self.workspace_root = Path(self.workspace_root)


class InvalidArgs(ValueError):
    """Tool arguments that cannot be used; reported with exit code 2."""


_TYPE_NAMES = {
    str: "a string",
    bool: "a boolean",
    int: "a non-negative integer",
    list: "a sequence of strings",
    dict: "a map of strings to strings",
}


def _json_kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return f"boolean `{str(value).lower()}`"
    if isinstance(value, int):
        return f"integer `{value}`"
    if isinstance(value, float):
        return f"floating point `{value}`"
    if isinstance(value, str):
        return f'string "{value}"'
    if isinstance(value, list):
        return "sequence"
    if isinstance(value, dict):
        return "map"
    return type(value).__name__


def _matches_kind(value: Any, kind: type) -> bool:
    if kind is bool:
        return isinstance(value, bool)
    if kind is int:
        return isinstance(value, int) and not isinstance(value, bool) and value >= 0
    if kind is str:
        return isinstance(value, str)
    if kind is list:
        return isinstance(value, list) and all(isinstance(item, str) for item in value)
    if kind is dict:
        return isinstance(value, dict) and all(
            isinstance(key, str) and isinstance(item, str) for key, item in value.items()
        )
    raise TypeError(f"unsupported argument type {kind!r}")


def parse_args(
    args: Any, fields: Mapping[str, type], required: Collection[str] = ()
) -> dict[str, Any]:
    """Check JSON-like tool arguments against ``fields``.

    Returns a dict holding every field name; absent or null optional fields
    are None. Unknown keys are ignored. Raises InvalidArgs on a mismatch.
    """
    if not isinstance(args, dict):
        raise InvalidArgs(
            f"invalid args: invalid type: {_json_kind(args)}, expected an object"
        )
    parsed: dict[str, Any] = {}
    for name, kind in fields.items():
        value = args.get(name)
        if value is None:
            if name in required:
                if name in args:
                    raise InvalidArgs(
                        f"invalid args: invalid type: null, expected {_TYPE_NAMES[kind]}"
                    )
                raise InvalidArgs(f"invalid args: missing field `{name}`")
            parsed[name] = None
            continue
        if not _matches_kind(value, kind):
            raise InvalidArgs(
                f"invalid args: invalid type for field `{name}`: "
                f"{_json_kind(value)}, expected {_TYPE_NAMES[kind]}"
            )
        if kind is list:
            value = list(value)
        elif kind is dict:
            value = dict(value)
        parsed[name] = value
    return parsed


def resolve_path(root: Union[str, Path], raw: str) -> Path:
    """Join a relative path onto the workspace root.

    Raises ValueError for absolute paths and paths containing ``..``.
    """
    path = PurePath(raw)
    if path.is_absolute():
        raise ValueError("absolute paths are not allowed")
    if ".." in path.parts:
        raise ValueError("path escapes workspace root")
    return Path(root) / path


def normalize_rel_path(root: Union[str, Path], path: Union[str, Path]) -> str:
    """Render ``path`` relative to ``root`` with forward slashes."""
    try:
        rel = PurePath(path).relative_to(root)
    except ValueError:
        text = str(PurePath(path))
    else:
        text = "" if not rel.parts else str(rel)
    return text.replace("\\", "/")


def truncate_utf8(data: bytes, max_bytes: int) -> tuple[str, bool, int]:
    """Cut ``data`` to at most ``max_bytes`` without splitting a UTF-8 sequence.

    Returns the text, whether it was cut, and how many bytes were kept.
    """
    if len(data) <= max_bytes:
        return data.decode("utf-8", errors="replace"), False, len(data)
    head = data[:max_bytes]
    try:
        head.decode("utf-8")
        end = max_bytes
    except UnicodeDecodeError as exc:
        end = exc.start
    return data[:end].decode("utf-8", errors="replace"), True, end


def split_output(data: bytes, max_bytes: int) -> list[str]:
    """Truncate process output and split it into lines without line endings."""
    text, _, _ = truncate_utf8(data, max_bytes)
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line.rstrip("\r") for line in lines]


def find_program(name: str) -> Optional[str]:
    """Look ``name`` up on PATH, trying PATHEXT extensions; None if absent."""
    if os.sep in name:
        return name
    search_path = os.environ.get("PATH")
    if search_path is None:
        return None
    extensions = os.environ.get("PATHEXT")
    for directory in search_path.split(os.pathsep):
        candidate = Path(directory) / name
        if candidate.exists():
            return str(candidate)
        if extensions is not None:
            for ext in filter(None, extensions.split(";")):
                candidate = Path(directory) / f"{name}{ext}"
                if candidate.exists():
                    return str(candidate)
    return None


def default_shell_program() -> tuple[str, list[str]]:
    """Return the platform shell and the flag that makes it run one command."""
    if _IS_WINDOWS:
        for candidate in ("pwsh", "powershell"):
            program = find_program(candidate)
            if program is not None:
                return program, ["-Command"]
        return os.environ.get("COMSPEC", "cmd"), ["/C"]
    return os.environ.get("SHELL", "sh"), ["-c"]


def _escape_class_char(ch: str) -> str:
    return "\\" + ch if ch in "\\]^[-" else ch


def _parse_class(pattern: str, start: int) -> tuple[int, str]:
    """Parse ``[...]`` starting at ``start``; return the next index and regex."""
    i = start + 1
    negate = False
    if i < len(pattern) and pattern[i] in "!^":
        negate = True
        i += 1
    members: list[str] = []
    while i < len(pattern):
        ch = pattern[i]
        if ch == "]" and members:
            break
        members.append(ch)
        i += 1
    else:
        raise ValueError("unclosed character class; missing ']'")
    last = len(members) - 1
    body = "".join(
        "-" if ch == "-" and 0 < pos < last else _escape_class_char(ch)
        for pos, ch in enumerate(members)
    )
    regex = f"[{'^' if negate else ''}{body}]"
    try:
        re.compile(regex)
    except re.error as exc:
        raise ValueError(f"invalid range: {exc}") from None
    return i + 1, regex


def _translate_glob(pattern: str) -> str:
    parts: list[str] = []
    in_alternate = False
    n = len(pattern)
    i = 0
    while i < n:
        ch = pattern[i]
        if ch == "*":
            j = i
            while j < n and pattern[j] == "*":
                j += 1
            recursive = (
                j - i >= 2
                and (i == 0 or pattern[i - 1] == "/")
                and (j == n or pattern[j] == "/")
            )
            if recursive and j == n:
                parts.append(".*")
                i = j
            elif recursive:
                parts.append("(?:.*/)?")
                i = j + 1
            else:
                parts.append("[^/]*")
                i = j
        elif ch == "?":
            parts.append("[^/]")
            i += 1
        elif ch == "[":
            i, regex = _parse_class(pattern, i)
            parts.append(regex)
        elif ch == "{":
            if in_alternate:
                raise ValueError("nested alternate groups are not allowed")
            in_alternate = True
            parts.append("(?:")
            i += 1
        elif ch == "}" and in_alternate:
            in_alternate = False
            parts.append(")")
            i += 1
        elif ch == "," and in_alternate:
            parts.append("|")
            i += 1
        elif ch == "\\" and not _IS_WINDOWS:
            if i + 1 >= n:
                raise ValueError("dangling '\\'")
            parts.append(re.escape(pattern[i + 1]))
            i += 2
        else:
            parts.append(re.escape(ch))
            i += 1
    if in_alternate:
        raise ValueError("unclosed alternate group; missing '}'")
    return "".join(parts)


class GlobSet:
    """A set of globs where ``*`` and ``?`` never cross a ``/``."""

    def __init__(self, patterns: Iterable[str]) -> None:
        flags = re.DOTALL | (re.IGNORECASE if _IS_WINDOWS else 0)
        self._patterns: list[re.Pattern[str]] = []
        for pattern in patterns:
            try:
                self._patterns.append(re.compile(_translate_glob(pattern), flags))
            except ValueError as exc:
                raise InvalidArgs(f"invalid glob '{pattern}': {exc}") from None

    def is_match(self, path: str) -> bool:
        """True if any glob in the set matches the whole of ``path``."""
        return any(regex.fullmatch(path) for regex in self._patterns)


def build_globset(patterns: Optional[Iterable[str]]) -> Optional[GlobSet]:
    """Compile ``patterns``; None when there are none. Raises InvalidArgs."""
    patterns = list(patterns or [])
    if not patterns:
        return None
    return GlobSet(patterns)


def globsets_match(include: Optional[GlobSet], exclude: Optional[GlobSet], path: str) -> bool:
    """True if ``path`` passes the include set (if any) and not the exclude set."""
    if include is not None and not include.is_match(path):
        return False
    if exclude is not None and exclude.is_match(path):
        return False
    return True


@dataclass(frozen=True)
class _WalkEntry:
    path: Path
    depth: int
    is_file: bool
    is_dir: bool


def walk(
    root: Union[str, Path],
    max_depth: int,
    include_hidden: bool = False,
    follow_symlinks: bool = False,
) -> Iterator[Union[_WalkEntry, OSError]]:
    """Walk ``root`` depth-first in name order.

    Yields entries carrying ``path``, ``depth``, ``is_file`` and ``is_dir``;
    the root itself comes first at depth 0. Problems met on the way are
    yielded as OSError instances and the walk goes on.
    """
    root = Path(root)
    try:
        info = root.stat()
    except OSError as exc:
        yield exc
        return
    is_dir = stat.S_ISDIR(info.st_mode)
    yield _WalkEntry(root, 0, stat.S_ISREG(info.st_mode), is_dir)
    if is_dir and max_depth > 0:
        yield from _walk_dir(
            root,
            1,
            max_depth,
            include_hidden,
            follow_symlinks,
            frozenset({(info.st_dev, info.st_ino)}),
        )


def _walk_dir(
    directory: Path,
    depth: int,
    max_depth: int,
    include_hidden: bool,
    follow_symlinks: bool,
    ancestors: frozenset[tuple[int, int]],
) -> Iterator[Union[_WalkEntry, OSError]]:
    try:
        with os.scandir(directory) as entries:
            children = sorted(entries, key=lambda entry: entry.name)
    except OSError as exc:
        yield exc
        return
    for child in children:
        if not include_hidden and child.name.startswith("."):
            continue
        path = Path(child.path)
        try:
            is_dir = child.is_dir(follow_symlinks=follow_symlinks)
            is_file = child.is_file(follow_symlinks=follow_symlinks)
        except OSError as exc:
            yield exc
            continue
        yield _WalkEntry(path, depth, is_file, is_dir)
        if not is_dir or depth >= max_depth:
            continue
        lineage = ancestors
        if follow_symlinks:
            try:
                info = path.stat()
            except OSError as exc:
                yield exc
                continue
            key = (info.st_dev, info.st_ino)
            if key in ancestors:
                yield OSError(
                    errno.ELOOP, f"File system loop found: {path} points to an ancestor"
                )
                continue
            lineage = ancestors | {key}
        yield from _walk_dir(path, depth + 1, max_depth, include_hidden, follow_symlinks, lineage)