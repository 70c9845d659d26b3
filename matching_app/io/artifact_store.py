"""
Storage for the artifacts each pipeline stage persists.

A stage treats the presence of its artifact as "already done", so the store
is the only state shared between runs.
"""

from __future__ import annotations

import os
import tempfile
from collections import Counter
from pathlib import Path
from typing import Dict, Optional


class ArtifactStore:
    """Named blobs with whole-file replace semantics."""

    def exists(self, name: str) -> bool:
        raise NotImplementedError

    def read_bytes(self, name: str) -> bytes:
        raise NotImplementedError

    def write_bytes(self, name: str, data: bytes) -> None:
        raise NotImplementedError

    def path_for(self, name: str) -> Optional[Path]:
        """Filesystem location of an artifact, or None for non-file stores."""
        return None

    def read_text(self, name: str) -> str:
        return self.read_bytes(name).decode("utf-8")

    def write_text(self, name: str, text: str) -> None:
        self.write_bytes(name, text.encode("utf-8"))


class FileArtifactStore(ArtifactStore):
    """Artifacts stored as files under a root directory."""

    def __init__(self, root: str | os.PathLike) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        return self.root / name

    def exists(self, name: str) -> bool:
        return self.path_for(name).is_file()

    def read_bytes(self, name: str) -> bytes:
        return self.path_for(name).read_bytes()

    def write_bytes(self, name: str, data: bytes) -> None:
        # Write to a sibling temp file then rename over the target, so readers
        # see either the old or the new artifact, never a partial one.
        target = self.path_for(name)
        fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, target)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class MemoryArtifactStore(ArtifactStore):
    """In-memory store; counts writes per artifact."""

    def __init__(self, initial: Optional[Dict[str, bytes]] = None) -> None:
        self.blobs: Dict[str, bytes] = dict(initial or {})
        self.writes: Counter = Counter()

    def exists(self, name: str) -> bool:
        return name in self.blobs

    def read_bytes(self, name: str) -> bytes:
        try:
            return self.blobs[name]
        except KeyError:
            raise FileNotFoundError(name) from None

    def write_bytes(self, name: str, data: bytes) -> None:
        self.blobs[name] = bytes(data)
        self.writes[name] += 1


__all__ = ["ArtifactStore", "FileArtifactStore", "MemoryArtifactStore"]
