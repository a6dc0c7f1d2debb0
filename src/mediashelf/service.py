from __future__ import annotations

import json
import logging
import mimetypes
from pathlib import Path
from typing import Any, Callable

from mediashelf.blobstore import BlobStore, FileSystemBlobStore
from mediashelf.config import AppConfig
from mediashelf.engine import ActionRequest, ActionResult, AssetMutationEngine
from mediashelf.locks import OwnerLocks
from mediashelf.media.codec import ImageCodec, PillowCodec
from mediashelf.models import AssetCollection, AssetEntry, UploadedFile, caption_to_raw
from mediashelf.output_models import ActionResultOutput, EntryOutput
from mediashelf.util.time import ts_to_iso

logger = logging.getLogger(__name__)


def entry_output(position: int, entry: AssetEntry) -> EntryOutput:
    return EntryOutput(
        position=position,
        storage_key=entry.storage_key,
        mime_type=entry.mime_type,
        source_mime_type=entry.source_mime_type,
        derived_sizes=list(entry.derived_sizes),
        caption=caption_to_raw(entry.caption),
        tags=list(entry.tags),
        hidden=entry.hidden,
        received_at=ts_to_iso(entry.received_at),
        received_size=entry.received_size,
        received_name=entry.received_name,
    )


def result_output(result: ActionResult) -> ActionResultOutput:
    return ActionResultOutput(
        action=result.action.value,
        position=result.position,
        storage_key=result.storage_key,
        derived_sizes=list(result.derived_sizes),
    )


class MediaShelfService:
    """Owns persistence of one media directory's collection file around the engine."""

    def __init__(
        self,
        config: AppConfig,
        store: BlobStore | None = None,
        codec: ImageCodec | None = None,
        locks: OwnerLocks | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.config = config
        self.store = store or FileSystemBlobStore(config.directory)
        self.locks = locks or OwnerLocks()
        self.engine = AssetMutationEngine(
            config,
            self.store,
            codec or PillowCodec(),
            clock=clock,
            on_delete=self._on_delete,
        )

    @property
    def owner_id(self) -> str:
        return str(self.config.directory)

    def _on_delete(self, entry: AssetEntry) -> None:
        logger.info("removed %s from the collection; its files are kept", entry.storage_key)

    def load_collection(self) -> AssetCollection:
        if not self.store.exists(self.config.collection_file):
            return AssetCollection()
        raw = json.loads(self.store.read(self.config.collection_file).decode("utf-8"))
        return AssetCollection.from_raw(raw)

    def save_collection(self, collection: AssetCollection) -> None:
        payload = json.dumps(collection.to_raw(), indent=2, ensure_ascii=False)
        self.store.write(self.config.collection_file, payload.encode("utf-8"))

    def run(self, request: ActionRequest) -> ActionResult:
        with self.locks.hold(self.owner_id):
            collection = self.load_collection()
            updated, result = self.engine.apply(collection, request)
            self.save_collection(updated)
        return result

    def ingest(self, path: Path, mime_type: str | None = None) -> dict[str, Any]:
        data = path.read_bytes()
        guessed = mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        upload = UploadedFile(filename=path.name, mime_type=guessed, data=data)
        result = self.run(ActionRequest(action="ingest", files=[upload]))
        return result_output(result).model_dump()

    def reorder(self, order: list[str]) -> dict[str, Any]:
        return result_output(self.run(ActionRequest(action="reorder", order=order))).model_dump()

    def show(self, storage_key: str) -> dict[str, Any]:
        return result_output(self.run(ActionRequest(action="show", storage_key=storage_key))).model_dump()

    def hide(self, storage_key: str) -> dict[str, Any]:
        return result_output(self.run(ActionRequest(action="hide", storage_key=storage_key))).model_dump()

    def delete(self, storage_key: str) -> dict[str, Any]:
        return result_output(self.run(ActionRequest(action="delete", storage_key=storage_key))).model_dump()

    def update_data(
        self,
        storage_key: str,
        caption: str | dict[str, str] | None = None,
        tag: str | list[str] | None = None,
    ) -> dict[str, Any]:
        request = ActionRequest(action="data", storage_key=storage_key, caption=caption, tag=tag)
        return result_output(self.run(request)).model_dump()

    def list_entries(self) -> list[dict[str, Any]]:
        collection = self.load_collection()
        return [entry_output(pos, entry).model_dump() for pos, entry in collection.ordered()]
