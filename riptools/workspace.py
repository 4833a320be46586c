"""Workspace checkpoints: snapshot files under a root and restore them later."""

from __future__ import annotations

import hashlib
import json
import time
import uuid
from dataclasses import asdict, dataclass, field
from pathlib import Path, PurePath
from typing import Any, Iterable, Optional, Union

_METADATA = "checkpoint.json"


class InvalidCheckpointData(ValueError):
    """Checkpoint metadata on disk that cannot be read back."""


@dataclass
class CheckpointFile:
    """One file recorded in a checkpoint, relative to the workspace root."""

    path: str
    exists: bool
    sha256: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "CheckpointFile":
        if not isinstance(data, dict):
            raise InvalidCheckpointData("checkpoint file entry must be an object")
        path = data.get("path")
        exists = data.get("exists")
        digest = data.get("sha256")
        if not isinstance(path, str):
            raise InvalidCheckpointData("checkpoint file entry needs a string `path`")
        if not isinstance(exists, bool):
            raise InvalidCheckpointData("checkpoint file entry needs a boolean `exists`")
        if digest is not None and not isinstance(digest, str):
            raise InvalidCheckpointData("checkpoint file `sha256` must be a string or null")
        return cls(path=path, exists=exists, sha256=digest)


@dataclass
class Checkpoint:
    """Metadata of a saved checkpoint."""

    id: str
    session_id: str
    label: str
    created_at_ms: int
    files: list[CheckpointFile] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "Checkpoint":
        if not isinstance(data, dict):
            raise InvalidCheckpointData("checkpoint metadata must be an object")
        for name in ("id", "session_id", "label"):
            if not isinstance(data.get(name), str):
                raise InvalidCheckpointData(f"checkpoint metadata needs a string `{name}`")
        created = data.get("created_at_ms")
        if not isinstance(created, int) or isinstance(created, bool) or created < 0:
            raise InvalidCheckpointData(
                "checkpoint metadata needs a non-negative integer `created_at_ms`"
            )
        files = data.get("files")
        if not isinstance(files, list):
            raise InvalidCheckpointData("checkpoint metadata needs a list `files`")
        return cls(
            id=data["id"],
            session_id=data["session_id"],
            label=data["label"],
            created_at_ms=created,
            files=[CheckpointFile.from_dict(entry) for entry in files],
        )

    @classmethod
    def load(cls, path: Path) -> "Checkpoint":
        """Read checkpoint metadata from ``path``."""
        payload = path.read_bytes()
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidCheckpointData(f"invalid checkpoint metadata: {exc}") from None
        return cls.from_dict(data)


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class Workspace:
    """A directory whose files can be checkpointed under ``.rip/checkpoints``."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)
        self.checkpoints_dir = self.root / ".rip" / "checkpoints"
        self.checkpoints_dir.mkdir(parents=True, exist_ok=True)

    def create_checkpoint(
        self,
        session_id: str,
        label: str,
        files: Iterable[Union[str, Path]],
    ) -> Checkpoint:
        """Copy ``files`` into a new checkpoint and return its metadata.

        Files that do not exist are recorded as absent. Raises ValueError for
        a path outside the workspace.
        """
        checkpoint_id = str(uuid.uuid4())
        created_at_ms = _now_ms()
        checkpoint_root = self.checkpoints_dir / session_id / checkpoint_id
        files_root = checkpoint_root / "files"
        files_root.mkdir(parents=True, exist_ok=True)

        entries: list[CheckpointFile] = []
        for raw in files:
            rel = self._to_relative(raw)
            source = self.root / rel
            if source.exists():
                data = source.read_bytes()
                dest = files_root / rel
                dest.parent.mkdir(parents=True, exist_ok=True)
                dest.write_bytes(data)
                entries.append(
                    CheckpointFile(
                        path=str(rel), exists=True, sha256=hashlib.sha256(data).hexdigest()
                    )
                )
            else:
                entries.append(CheckpointFile(path=str(rel), exists=False, sha256=None))

        checkpoint = Checkpoint(
            id=checkpoint_id,
            session_id=session_id,
            label=str(label),
            created_at_ms=created_at_ms,
            files=entries,
        )
        (checkpoint_root / _METADATA).write_text(
            json.dumps(checkpoint.to_dict(), indent=2), encoding="utf-8"
        )
        return checkpoint

    def list_checkpoints(self, session_id: str) -> list[Checkpoint]:
        """Return a session's checkpoints, oldest first."""
        session_dir = self.checkpoints_dir / session_id
        if not session_dir.exists():
            return []
        checkpoints = [
            Checkpoint.load(entry / _METADATA)
            for entry in sorted(session_dir.iterdir())
            if (entry / _METADATA).exists()
        ]
        checkpoints.sort(key=lambda checkpoint: checkpoint.created_at_ms)
        return checkpoints

    def rewind_to_checkpoint(self, session_id: str, checkpoint_id: str) -> None:
        """Restore the files of a checkpoint.

        If restoring fails part way, the files touched are put back as they
        were and the error is raised.
        """
        checkpoint_root = self.checkpoints_dir / session_id / checkpoint_id
        checkpoint = Checkpoint.load(checkpoint_root / _METADATA)

        undo: dict[str, Optional[bytes]] = {}
        for entry in checkpoint.files:
            target = self.root / entry.path
            undo[entry.path] = target.read_bytes() if target.exists() else None

        try:
            for entry in checkpoint.files:
                target = self.root / entry.path
                if entry.exists:
                    data = (checkpoint_root / "files" / entry.path).read_bytes()
                    target.parent.mkdir(parents=True, exist_ok=True)
                    target.write_bytes(data)
                elif target.exists():
                    target.unlink()
        except OSError:
            self._restore(undo)
            raise

    def _restore(self, undo: dict[str, Optional[bytes]]) -> None:
        for rel, previous in sorted(undo.items()):
            path = self.root / rel
            try:
                if previous is None:
                    path.unlink()
                else:
                    path.parent.mkdir(parents=True, exist_ok=True)
                    path.write_bytes(previous)
            except OSError:
                pass

    def _to_relative(self, path: Union[str, Path]) -> PurePath:
        candidate = PurePath(path)
        absolute = candidate if candidate.is_absolute() else PurePath(self.root) / candidate
        try:
            return absolute.relative_to(self.root)
        except ValueError:
            raise ValueError("path outside workspace") from None