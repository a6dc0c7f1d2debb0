from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import make_config
from mediashelf.blobstore import FileSystemBlobStore
from mediashelf.errors import UnknownKeyError
from mediashelf.locks import OwnerLocks
from mediashelf.service import MediaShelfService


def _service(tmp_path: Path, fake_codec, **cfg) -> MediaShelfService:
    config = make_config(tmp_path, **cfg)
    return MediaShelfService(config, codec=fake_codec, clock=lambda: 0.0)


def _source(tmp_path: Path, name: str = "photo.jpg", data: bytes = b"fake:800x600") -> Path:
    path = tmp_path / "incoming" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


def test_ingest_persists_collection_and_files(tmp_path: Path, fake_codec) -> None:
    svc = _service(tmp_path, fake_codec)
    out = svc.ingest(_source(tmp_path))

    assert out["action"] == "ingest"
    assert out["position"] == 0
    key = out["storage_key"]
    media = tmp_path / "media"
    assert (media / "uploaded" / f"{key}.jpg").read_bytes() == b"fake:800x600"
    assert (media / "320x240" / f"{key}.jpg").read_bytes() == b"image/jpeg:320x240"

    raw = json.loads((media / "media.json").read_text())
    assert list(raw) == ["0"]
    assert raw["0"]["storage_key"] == key
    assert raw["0"]["tags"] == ["hidden"]


def test_list_entries_reflect_persisted_changes(tmp_path: Path, fake_codec) -> None:
    svc = _service(tmp_path, fake_codec)
    first = svc.ingest(_source(tmp_path, "a.jpg"))["storage_key"]
    second = svc.ingest(_source(tmp_path, "b.png"))["storage_key"]

    svc.show(first)
    svc.update_data(second, caption={"en": "Boat"}, tag="+sea")
    svc.reorder([second, first])

    rows = MediaShelfService(svc.config, codec=fake_codec).list_entries()
    assert [r["storage_key"] for r in rows] == [second, first]
    assert rows[0]["source_mime_type"] == "image/png"
    assert rows[0]["caption"] == {"en": "Boat"}
    assert rows[0]["tags"] == ["hidden", "sea"]
    assert rows[0]["received_at"] == "1970-01-01T00:00:00+00:00"
    assert rows[1]["hidden"] is False
    assert rows[1]["caption"] == ""


def test_delete_keeps_files_and_gap(tmp_path: Path, fake_codec) -> None:
    svc = _service(tmp_path, fake_codec)
    keys = [svc.ingest(_source(tmp_path, f"{n}.jpg"))["storage_key"] for n in range(3)]

    out = svc.delete(keys[1])

    assert out["position"] == 1
    assert [r["position"] for r in svc.list_entries()] == [0, 2]
    assert (tmp_path / "media" / "uploaded" / f"{keys[1]}.jpg").exists()


def test_failed_action_does_not_rewrite_collection(tmp_path: Path, fake_codec) -> None:
    svc = _service(tmp_path, fake_codec)
    svc.ingest(_source(tmp_path))
    before = (tmp_path / "media" / "media.json").read_text()

    with pytest.raises(UnknownKeyError):
        svc.hide("missing")
    assert (tmp_path / "media" / "media.json").read_text() == before


def test_mime_type_is_guessed_from_name(tmp_path: Path, fake_codec) -> None:
    svc = _service(tmp_path, fake_codec)
    svc.ingest(_source(tmp_path, "scan.pdf", b"%PDF-1.4"))
    row = svc.list_entries()[0]
    assert row["source_mime_type"] == "application/pdf"
    assert ("render_document", (320, 240)) in fake_codec.calls


def test_default_store_is_rooted_at_media_directory(tmp_path: Path, fake_codec) -> None:
    svc = _service(tmp_path, fake_codec)
    assert isinstance(svc.store, FileSystemBlobStore)
    assert svc.owner_id == str(tmp_path / "media")
    assert svc.list_entries() == []


def test_owner_locks_are_shared_per_owner() -> None:
    locks = OwnerLocks()
    assert locks.lock_for("a") is locks.lock_for("a")
    assert locks.lock_for("a") is not locks.lock_for("b")
    with locks.hold("a"):
        assert locks.lock_for("a").locked()
        assert not locks.lock_for("b").locked()
    assert not locks.lock_for("a").locked()
