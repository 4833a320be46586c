from pathlib import Path

import pytest

from riptools.builtins.common import BuiltinToolConfig
from riptools.builtins.write import run_write
from riptools.runtime import ToolInvocation


@pytest.fixture
def config(tmp_path):
    return BuiltinToolConfig(
        workspace_root=tmp_path,
        max_bytes=1024,
        max_results=10,
        max_depth=4,
    )


def write(config, args):
    return run_write(ToolInvocation(name="write", args=args), config)


def test_write_overwrites_and_appends(tmp_path, config):
    output = write(config, {"path": "out.txt", "content": "hello"})
    assert output.exit_code == 0
    output = write(config, {"path": "out.txt", "content": " world", "append": True})
    assert output.exit_code == 0
    assert (tmp_path / "out.txt").read_text() == "hello world"


def test_write_non_atomic(tmp_path, config):
    output = write(config, {"path": "plain.txt", "content": "hi", "atomic": False})
    assert output.exit_code == 0
    assert (tmp_path / "plain.txt").read_text() == "hi"


def test_write_invalid_args(config):
    output = write(config, "nope")
    assert output.exit_code == 2


def test_write_requires_content(config):
    output = write(config, {"path": "a.txt"})
    assert output.exit_code == 2
    assert "missing field `content`" in output.stderr[0]


def test_write_append_requires_existing_file_when_create_false(tmp_path, config):
    output = write(
        config, {"path": "missing.txt", "content": "hi", "append": True, "create": False}
    )
    assert output.exit_code == 1
    assert not (tmp_path / "missing.txt").exists()


def test_write_append_without_create_to_existing_file(tmp_path, config):
    (tmp_path / "log.txt").write_text("a")
    output = write(config, {"path": "log.txt", "content": "b", "append": True, "create": False})
    assert output.exit_code == 0
    assert (tmp_path / "log.txt").read_text() == "ab"


def test_write_atomic_overwrites_existing_file(tmp_path, config):
    write(config, {"path": "atomic.txt", "content": "first"})
    output = write(config, {"path": "atomic.txt", "content": "second"})
    assert output.exit_code == 0
    assert (tmp_path / "atomic.txt").read_text() == "second"
    assert sorted(entry.name for entry in tmp_path.iterdir()) == ["atomic.txt"]


def test_write_non_atomic_directory_fails(tmp_path, config):
    (tmp_path / "dir").mkdir()
    output = write(config, {"path": "dir", "content": "hi", "atomic": False})
    assert output.exit_code == 1


def test_write_rejects_absolute_path(config):
    output = write(config, {"path": str(Path.cwd()), "content": "nope"})
    assert output.exit_code == 1


def test_write_rejects_parent_path(tmp_path, config):
    output = write(config, {"path": "../nope.txt", "content": "nope"})
    assert output.exit_code == 1
    assert not (tmp_path.parent / "nope.txt").exists()


def test_write_fails_when_parent_is_file(tmp_path, config):
    (tmp_path / "blocked").write_text("nope")
    output = write(config, {"path": "blocked/child.txt", "content": "hi"})
    assert output.exit_code == 1
    assert "write failed" in "\n".join(output.stderr)


def test_write_fails_when_target_is_directory(tmp_path, config):
    (tmp_path / "target").mkdir()
    output = write(config, {"path": "target", "content": "hi", "atomic": True})
    assert output.exit_code == 1
    assert "write failed" in "\n".join(output.stderr)


def test_write_creates_parent_directories_and_reports(tmp_path, config):
    output = write(config, {"path": "nested/dir/f.txt", "content": "hello"})
    assert output.exit_code == 0
    assert output.stdout == ["wrote 5 bytes"]
    assert output.artifacts == {"path": "nested/dir/f.txt", "bytes_written": 5}
    assert (tmp_path / "nested" / "dir" / "f.txt").read_text() == "hello"


def test_write_counts_utf8_bytes(tmp_path, config):
    output = write(config, {"path": "u.txt", "content": "é"})
    assert output.artifacts["bytes_written"] == 2
    assert (tmp_path / "u.txt").read_bytes() == "é".encode()