from __future__ import annotations

from pathlib import Path
from typing import Protocol

from mediashelf.errors import StorageError


class BlobStore(Protocol):
    """Where originals, thumbnails and the collection file live.

    Paths are "/"-separated and relative to the store root.
    """

    def write(self, path: str, data: bytes) -> None: ...

    def read(self, path: str) -> bytes: ...

    def exists(self, path: str) -> bool: ...

    def mkdir(self, path: str) -> None:
        """Create a directory; must succeed if it already exists."""
        ...


def join_path(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts if p and p.strip("/"))


class FileSystemBlobStore:
    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir).expanduser().resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _safe_path(self, path: str) -> Path:
        target = (self.base_dir / path).resolve()
        if target != self.base_dir and self.base_dir not in target.parents:
            raise StorageError("Path escapes the storage directory.", f"path={path}")
        return target

    def write(self, path: str, data: bytes) -> None:
        target = self._safe_path(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError("Failed to write file.", f"path={target}: {exc}") from exc

    def read(self, path: str) -> bytes:
        target = self._safe_path(path)
        try:
            return target.read_bytes()
        except FileNotFoundError:
            raise
        except OSError as exc:
            raise StorageError("Failed to read file.", f"path={target}: {exc}") from exc

    def exists(self, path: str) -> bool:
        return self._safe_path(path).exists()

    def mkdir(self, path: str) -> None:
        target = self._safe_path(path)
        try:
            target.mkdir(mode=0o750, parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError("Couldn't create directory.", f"path={target}: {exc}") from exc


class MemoryBlobStore:
    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.dirs: set[str] = set()

    def write(self, path: str, data: bytes) -> None:
        key = join_path(path)
        parent = key.rpartition("/")[0]
        if parent:
            self.mkdir(parent)
        self.files[key] = bytes(data)

    def read(self, path: str) -> bytes:
        key = join_path(path)
        if key not in self.files:
            raise FileNotFoundError(f"File not found: {path}")
        return self.files[key]

    def exists(self, path: str) -> bool:
        key = join_path(path)
        return key in self.files or key in self.dirs

    def mkdir(self, path: str) -> None:
        parts = join_path(path).split("/")
        for i in range(1, len(parts) + 1):
            self.dirs.add("/".join(parts[:i]))
