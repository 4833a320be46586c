import os
from pathlib import Path
from unittest import mock

from riptools.builtins.common import BuiltinToolConfig
from riptools.builtins.grep import run_grep
from riptools.runtime import ToolInvocation


def _config(root):
    return BuiltinToolConfig(
        workspace_root=root,
        max_bytes=1024 * 1024,
        max_results=100,
        max_depth=16,
        follow_symlinks=False,
        include_hidden=False,
    )


def _grep(root, args):
    return run_grep(ToolInvocation(name="grep", args=args), _config(root))


def test_grep_finds_matches(tmp_path):
    (tmp_path / "log.txt").write_text("alpha\nbeta\nalpha\n")
    output = _grep(tmp_path, {"pattern": "alpha", "path": ".", "regex": False})
    joined = "\n".join(output.stdout)
    assert "log.txt:1:alpha" in joined
    assert "log.txt:3:alpha" in joined
    assert output.artifacts["matches"] == 2


def test_grep_finds_matches_direct(tmp_path):
    (tmp_path / "notes.txt").write_text("hello\n")
    output = _grep(tmp_path, {"pattern": "hello", "path": "."})
    assert output.exit_code == 0
    assert any("notes.txt:1:hello" in line for line in output.stdout)


def test_grep_respects_max_results(tmp_path):
    (tmp_path / "log.txt").write_text("foo\nfoo\nfoo\n")
    output = _grep(
        tmp_path, {"pattern": "foo", "path": ".", "regex": False, "max_results": 1}
    )
    assert len(output.stdout) == 1


def test_grep_regex_enabled(tmp_path):
    (tmp_path / "regex.txt").write_text("alpha\n")
    output = _grep(tmp_path, {"pattern": "al.*a", "path": ".", "regex": True})
    assert "regex.txt:1:alpha" in "\n".join(output.stdout)


def test_grep_literal_pattern_is_escaped(tmp_path):
    (tmp_path / "x.txt").write_text("abc\na.c\n")
    output = _grep(tmp_path, {"pattern": "a.c", "regex": False})
    assert output.stdout == ["x.txt:2:a.c"]


def test_grep_case_insensitive(tmp_path):
    (tmp_path / "x.txt").write_text("Hello\n")
    assert _grep(tmp_path, {"pattern": "hello"}).stdout == []
    output = _grep(tmp_path, {"pattern": "hello", "case_sensitive": False})
    assert output.stdout == ["x.txt:1:Hello"]


def test_grep_skips_binary(tmp_path):
    (tmp_path / "bin.dat").write_bytes(b"foo\0bar")
    output = _grep(tmp_path, {"pattern": "foo", "path": ".", "regex": False})
    assert output.stdout == []


def test_grep_respects_max_bytes(tmp_path):
    (tmp_path / "limit.txt").write_text("skip\nmatch\n")
    output = _grep(
        tmp_path, {"pattern": "match", "path": ".", "regex": False, "max_bytes": 4}
    )
    assert output.stdout == []


def test_grep_rejects_invalid_regex(tmp_path):
    (tmp_path / "bad.txt").write_text("hello")
    output = _grep(tmp_path, {"pattern": "[", "path": ".", "regex": True})
    assert output.exit_code == 2
    assert output.stderr[0].startswith("invalid regex")


def test_grep_respects_include_exclude(tmp_path):
    (tmp_path / "a.txt").write_text("match")
    (tmp_path / "b.log").write_text("match")
    output = _grep(
        tmp_path,
        {
            "pattern": "match",
            "path": ".",
            "regex": False,
            "include": ["**/*.txt"],
            "exclude": ["**/*.log"],
        },
    )
    joined = "\n".join(output.stdout)
    assert "a.txt:1:match" in joined
    assert "b.log:1:match" not in joined


def test_grep_invalid_args(tmp_path):
    output = _grep(tmp_path, "nope")
    assert output.exit_code == 2


def test_grep_rejects_parent_path(tmp_path):
    output = _grep(tmp_path, {"pattern": "a", "path": "../", "regex": False})
    assert output.exit_code == 1


def test_grep_rejects_invalid_include_glob(tmp_path):
    output = _grep(tmp_path, {"pattern": "a", "path": ".", "regex": False, "include": ["["]})
    assert output.exit_code == 2


def test_grep_rejects_invalid_exclude_glob(tmp_path):
    output = _grep(tmp_path, {"pattern": "a", "path": ".", "regex": False, "exclude": ["["]})
    assert output.exit_code == 2


def test_grep_invalid_utf8_reports_failure(tmp_path):
    (tmp_path / "bad.bin").write_bytes(bytes([0xFF]))
    output = _grep(tmp_path, {"pattern": "a", "path": ".", "regex": False})
    assert output.stdout == []
    assert output.stderr != []
    assert output.stderr[0].startswith("bad.bin: ")


def test_grep_reports_unreadable_file(tmp_path):
    (tmp_path / "locked.txt").write_text("match")
    real_open = Path.open

    def guarded_open(self, *args, **kwargs):
        if self.name == "locked.txt":
            raise PermissionError(13, "Permission denied", str(self))
        return real_open(self, *args, **kwargs)

    with mock.patch.object(Path, "open", guarded_open):
        output = _grep(tmp_path, {"pattern": "match", "path": ".", "regex": False})

    assert output.stdout == []
    assert len(output.stderr) == 1
    assert output.stderr[0].startswith("locked.txt: ")


def test_grep_reports_unreadable_entries(tmp_path):
    locked = tmp_path / "locked"
    locked.mkdir()
    (locked / "file.txt").write_text("match")
    real_scandir = os.scandir

    def guarded_scandir(path="."):
        if Path(path).name == "locked":
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    with mock.patch("os.scandir", guarded_scandir):
        output = _grep(tmp_path, {"pattern": "match", "path": ".", "regex": False})

    assert output.stdout == []
    assert output.stderr != []
    assert "Permission denied" in output.stderr[0]


def test_grep_searches_subdirectories(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "deep.txt").write_text("needle\n")
    output = _grep(tmp_path, {"pattern": "needle"})
    assert output.stdout == ["sub/deep.txt:1:needle"]