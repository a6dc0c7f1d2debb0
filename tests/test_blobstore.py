from __future__ import annotations

from pathlib import Path

import pytest

from mediashelf.blobstore import FileSystemBlobStore, MemoryBlobStore, join_path
from mediashelf.errors import StorageError


def test_join_path_drops_empty_parts() -> None:
    assert join_path("uploaded", "123/000001.jpg") == "uploaded/123/000001.jpg"
    assert join_path("", "/320x240/", "a.jpg") == "320x240/a.jpg"


def test_filesystem_store_writes_and_creates_parents(tmp_path: Path) -> None:
    store = FileSystemBlobStore(tmp_path / "media")
    store.write("320x240/u1/000001.jpg", b"abc")
    assert (tmp_path / "media" / "320x240" / "u1" / "000001.jpg").read_bytes() == b"abc"
    assert store.exists("320x240/u1/000001.jpg")
    assert store.read("320x240/u1/000001.jpg") == b"abc"


def test_filesystem_mkdir_is_idempotent(tmp_path: Path) -> None:
    store = FileSystemBlobStore(tmp_path)
    store.mkdir("uploaded")
    store.mkdir("uploaded")
    assert (tmp_path / "uploaded").is_dir()


def test_filesystem_store_rejects_traversal(tmp_path: Path) -> None:
    store = FileSystemBlobStore(tmp_path / "media")
    with pytest.raises(StorageError):
        store.write("../escape.jpg", b"x")


def test_filesystem_read_missing_raises(tmp_path: Path) -> None:
    store = FileSystemBlobStore(tmp_path)
    with pytest.raises(FileNotFoundError):
        store.read("nope.json")


def test_memory_store_tracks_files_and_dirs() -> None:
    store = MemoryBlobStore()
    store.write("uploaded/000001.jpg", b"x")
    assert store.exists("uploaded")
    assert store.exists("uploaded/000001.jpg")
    assert not store.exists("uploaded/000002.jpg")
    store.mkdir("320x240")
    store.mkdir("320x240")
    assert store.exists("320x240")
    with pytest.raises(FileNotFoundError):
        store.read("missing")
