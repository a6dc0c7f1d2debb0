from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any, Callable, Mapping, Sequence

from mediashelf.blobstore import BlobStore, join_path
from mediashelf.config import AppConfig
from mediashelf.errors import (
    ActionError,
    InvalidUploadError,
    SizeMismatchError,
    UnsupportedActionError,
    UnsupportedMediaTypeError,
)
from mediashelf.ids import FilenameAllocator
from mediashelf.media.codec import ImageCodec, output_mime_type
from mediashelf.media.thumbnails import ThumbnailPipeline, parse_size_label
from mediashelf.models import (
    HIDDEN_TAG,
    AssetCollection,
    AssetEntry,
    MissingCaption,
    UploadedFile,
    caption_from_raw,
)
from mediashelf.util.time import now_ts

logger = logging.getLogger(__name__)

UPLOAD_DIR = "uploaded"
PDF_MIME_TYPE = "application/pdf"

SOURCE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/bmp": ".bmp",
    "image/webp": ".webp",
    "application/pdf": ".pdf",
    "application/x-pdf": ".pdf",
}

# Upload transport status codes: 1-2 over a size limit, 3 partial, 4 no file,
# anything else non-zero is a server-side failure (temp dir, disk, extension).
TOO_LARGE_CODES = frozenset({1, 2})
INCOMPLETE_CODES = frozenset({3, 4})


class Action(str, Enum):
    INGEST = "ingest"
    REORDER = "reorder"
    SHOW = "show"
    HIDE = "hide"
    DELETE = "delete"
    DATA = "data"


@dataclass(slots=True)
class ActionRequest:
    action: str | None = None
    storage_key: str | None = None
    order: list[str] | None = None
    # None means "not given"; "" is a real (missing) caption.
    caption: Any = None
    tag: str | list[str] | None = None
    files: list[UploadedFile] = field(default_factory=list)

    @classmethod
    def from_fields(cls, fields: Mapping[str, Any], files: Sequence[UploadedFile] = ()) -> ActionRequest:
        order = fields.get("order")
        if isinstance(order, str):
            order = [order]
        return cls(
            action=fields.get("action") or None,
            storage_key=fields.get("storage_key"),
            order=[str(k) for k in order] if order is not None else None,
            caption=fields.get("caption"),
            tag=fields.get("tag"),
            files=list(files),
        )


@dataclass(slots=True)
class ActionResult:
    action: Action
    position: int | None = None
    storage_key: str | None = None
    derived_sizes: list[str] = field(default_factory=list)


def parse_actions(names: Sequence[str]) -> frozenset[Action]:
    out: set[Action] = set()
    for name in names:
        try:
            out.add(Action(name))
        except ValueError as exc:
            raise ValueError(f"supported_actions lists an action this engine does not implement: {name}") from exc
    return frozenset(out)


class AssetMutationEngine:
    """Applies one action to an asset collection.

    ``apply`` never touches the collection it is given: it works on a copy and returns
    it, so a failed action leaves the caller's collection as it was. The engine takes
    no locks. Callers must serialise mutations of the same owner's collection (see
    ``mediashelf.locks.OwnerLocks``) or concurrent reorder/delete calls can lose updates.
    Entries are always addressed by storage key, never by position.
    """

    def __init__(
        self,
        config: AppConfig,
        store: BlobStore,
        codec: ImageCodec,
        *,
        allocator: FilenameAllocator | None = None,
        clock: Callable[[], float] | None = None,
        on_delete: Callable[[AssetEntry], None] | None = None,
    ):
        self.config = config
        self.store = store
        self.allocator = allocator or FilenameAllocator(store)
        self.pipeline = ThumbnailPipeline(
            codec,
            store,
            config.thumbnails.encode_options(),
            auto_rotate=config.thumbnails.auto_rotate,
        )
        self.clock = clock or now_ts
        # Blobs are not removed on delete; this hook lets the caller archive them.
        self.on_delete = on_delete
        self.supported = parse_actions(config.supported_actions)
        # Fail on a bad size label here, not halfway through an ingest.
        for label in config.thumbnails.sizes:
            parse_size_label(label)

    def apply(self, collection: AssetCollection, request: ActionRequest) -> tuple[AssetCollection, ActionResult]:
        action = self._resolve_action(request.action)
        updated = collection.copy()
        handler = {
            Action.INGEST: self._ingest,
            Action.REORDER: self._reorder,
            Action.SHOW: self._show,
            Action.HIDE: self._hide,
            Action.DELETE: self._delete,
            Action.DATA: self._data,
        }[action]
        result = handler(updated, request)
        logger.info("applied %s (storage_key=%s, position=%s)", action.value, result.storage_key, result.position)
        return updated, result

    def _resolve_action(self, name: str | None) -> Action:
        name = name or Action.INGEST.value
        try:
            action = Action(name)
        except ValueError:
            action = None
        if action is None or action not in self.supported:
            allowed = ", ".join(a.value for a in Action if a in self.supported)
            raise UnsupportedActionError(f"Unknown action. Must be one of: {allowed}", f"action={name}")
        return action

    def _now(self) -> float:
        if self.config.now is not None:
            return self.config.now
        return self.clock()

    def _ingest(self, collection: AssetCollection, request: ActionRequest) -> ActionResult:
        upload = self._single_upload(request.files)
        mime_type = self._source_mime_type(upload)
        ext = SOURCE_EXTENSIONS[mime_type]

        self.store.mkdir(UPLOAD_DIR)
        key = self.allocator.allocate(
            UPLOAD_DIR,
            self.config.filename_prefix,
            SOURCE_EXTENSIONS.values(),
            taken=set(collection.keys()),
        )
        self.store.write(join_path(UPLOAD_DIR, f"{key}{ext}"), upload.data)
        sizes = self.pipeline.derive(upload.data, mime_type, key, self.config.thumbnails.sizes)

        entry = AssetEntry(
            storage_key=key,
            mime_type=output_mime_type(self.config.thumbnails.mime_type),
            source_mime_type=mime_type,
            derived_sizes=sizes,
            caption=MissingCaption(),
            tags=[HIDDEN_TAG],
            received_at=self._now(),
            received_size=int(upload.size or 0),
            received_name=upload.filename,
        )
        # Positions can have gaps, so the count of entries is not the next slot.
        position = collection.next_position()
        collection.entries[position] = entry
        return ActionResult(Action.INGEST, position=position, storage_key=key, derived_sizes=sizes)

    def _single_upload(self, files: Sequence[UploadedFile]) -> UploadedFile:
        if len(files) != 1:
            raise InvalidUploadError(
                "Zero or multiple files uploaded. Only exactly one allowed.",
                InvalidUploadError.COUNT,
                f"count={len(files)}",
            )
        upload = files[0]
        code = upload.transport_error
        if code in TOO_LARGE_CODES:
            raise InvalidUploadError("Uploaded file is too big.", InvalidUploadError.TOO_LARGE, f"error code={code}")
        if code in INCOMPLETE_CODES:
            raise InvalidUploadError(
                "Some problem with uploaded file.", InvalidUploadError.TRANSPORT, f"error code={code}"
            )
        if code:
            raise InvalidUploadError("Upload failed on the server.", InvalidUploadError.FATAL, f"error code={code}")
        return upload

    def _source_mime_type(self, upload: UploadedFile) -> str:
        mime_type = upload.mime_type
        # Browsers sometimes misreport the type of PDFs.
        if upload.filename.lower().endswith(".pdf"):
            mime_type = PDF_MIME_TYPE
        if mime_type not in self.config.accept:
            raise UnsupportedMediaTypeError(
                "Unsupported media type.",
                f"mime_type={mime_type} (add it to 'accept' if it should be supported)",
            )
        if mime_type not in SOURCE_EXTENSIONS:
            raise UnsupportedMediaTypeError(
                "Unsupported media type.",
                f"mime_type={mime_type} is accepted but has no known file extension",
            )
        return mime_type

    def _reorder(self, collection: AssetCollection, request: ActionRequest) -> ActionResult:
        order = request.order
        if order is None:
            raise ActionError("A new order is required.", "order missing")
        if len(order) != len(collection):
            raise SizeMismatchError(
                "Order has the wrong number of entries.",
                f"order size={len(order)}, expected {len(collection)}",
            )
        if len(set(order)) != len(order):
            raise ActionError("Order lists the same entry more than once.", f"order={order}")
        collection.entries = {new_pos: collection[collection.find(key)] for new_pos, key in enumerate(order)}
        return ActionResult(Action.REORDER)

    def _show(self, collection: AssetCollection, request: ActionRequest) -> ActionResult:
        pos = collection.find(request.storage_key)
        collection[pos].remove_tag(HIDDEN_TAG)
        return ActionResult(Action.SHOW, position=pos, storage_key=request.storage_key)

    def _hide(self, collection: AssetCollection, request: ActionRequest) -> ActionResult:
        pos = collection.find(request.storage_key)
        collection[pos].add_tag(HIDDEN_TAG)
        return ActionResult(Action.HIDE, position=pos, storage_key=request.storage_key)

    def _delete(self, collection: AssetCollection, request: ActionRequest) -> ActionResult:
        pos = collection.find(request.storage_key)
        entry = collection.entries.pop(pos)
        if self.on_delete is not None:
            self.on_delete(entry)
        return ActionResult(Action.DELETE, position=pos, storage_key=entry.storage_key)

    def _data(self, collection: AssetCollection, request: ActionRequest) -> ActionResult:
        pos = collection.find(request.storage_key)
        entry = collection[pos]
        if request.caption is not None:
            try:
                entry.caption = caption_from_raw(request.caption)
            except TypeError as exc:
                raise ActionError("Caption must be a string or a map of language code to string.", str(exc)) from exc
        if request.tag is not None:
            apply_tag_command(entry, request.tag)
        return ActionResult(Action.DATA, position=pos, storage_key=entry.storage_key)


def apply_tag_command(entry: AssetEntry, tag: str | Sequence[str]) -> None:
    """A list replaces the tags; a string is "-tag" (remove), "+tag" or "tag" (add)."""
    if not isinstance(tag, str):
        entry.tags = list(dict.fromkeys(str(t) for t in tag))
        return
    if tag.startswith("-"):
        name = tag[1:]
        if name:
            entry.remove_tag(name)
        return
    name = tag[1:] if tag.startswith("+") else tag
    if name:
        entry.add_tag(name)
