from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from mediashelf.errors import UnknownKeyError

BLANK_MARKER = "_"
HIDDEN_TAG = "hidden"


@dataclass(slots=True, frozen=True)
class MissingCaption:
    """No caption yet; consumers may prompt for one."""


@dataclass(slots=True, frozen=True)
class BlankCaption:
    """Deliberately left blank; do not prompt for a (translated) caption."""


@dataclass(slots=True, frozen=True)
class TextCaption:
    text: str


@dataclass(slots=True, frozen=True)
class LocalizedCaption:
    # Two-letter language code -> text. Values are kept verbatim, "_" included.
    texts: dict[str, Any]


Caption = MissingCaption | BlankCaption | TextCaption | LocalizedCaption


def caption_from_raw(value: Any) -> Caption:
    if isinstance(value, (MissingCaption, BlankCaption, TextCaption, LocalizedCaption)):
        return value
    if value is None or value == "":
        return MissingCaption()
    if value == BLANK_MARKER:
        return BlankCaption()
    if isinstance(value, str):
        return TextCaption(value)
    if isinstance(value, Mapping):
        return LocalizedCaption({str(k): v for k, v in value.items()})
    raise TypeError(f"unsupported caption value: {value!r}")


def caption_to_raw(caption: Caption) -> str | dict[str, Any]:
    if isinstance(caption, BlankCaption):
        return BLANK_MARKER
    if isinstance(caption, TextCaption):
        return caption.text
    if isinstance(caption, LocalizedCaption):
        return dict(caption.texts)
    return ""


@dataclass(slots=True)
class AssetEntry:
    storage_key: str
    mime_type: str
    source_mime_type: str
    derived_sizes: list[str] = field(default_factory=list)
    caption: Caption = field(default_factory=MissingCaption)
    tags: list[str] = field(default_factory=list)
    received_at: float = 0.0
    received_size: int = 0
    # Client-supplied and untrusted; display only.
    received_name: str = ""

    @property
    def hidden(self) -> bool:
        return HIDDEN_TAG in self.tags

    def add_tag(self, tag: str) -> bool:
        if tag in self.tags:
            return False
        self.tags.append(tag)
        return True

    def remove_tag(self, tag: str) -> bool:
        if tag not in self.tags:
            return False
        self.tags = [t for t in self.tags if t != tag]
        return True

    def to_raw(self) -> dict[str, Any]:
        return {
            "storage_key": self.storage_key,
            "mime_type": self.mime_type,
            "source_mime_type": self.source_mime_type,
            "derived_sizes": list(self.derived_sizes),
            "caption": caption_to_raw(self.caption),
            "tags": list(self.tags),
            "received_at": self.received_at,
            "received_size": self.received_size,
            "received_name": self.received_name,
        }

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> AssetEntry:
        return cls(
            storage_key=str(raw["storage_key"]),
            mime_type=str(raw.get("mime_type") or "image/jpeg"),
            source_mime_type=str(raw.get("source_mime_type") or raw.get("mime_type") or ""),
            derived_sizes=[str(s) for s in raw.get("derived_sizes") or []],
            caption=caption_from_raw(raw.get("caption")),
            tags=[str(t) for t in raw.get("tags") or []],
            received_at=float(raw.get("received_at") or 0.0),
            received_size=int(raw.get("received_size") or 0),
            received_name=str(raw.get("received_name") or ""),
        )


@dataclass(slots=True)
class AssetCollection:
    """Display position -> entry. Positions may have gaps; storage keys are unique."""

    entries: dict[int, AssetEntry] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[AssetEntry]:
        for _, entry in self.ordered():
            yield entry

    def __getitem__(self, position: int) -> AssetEntry:
        return self.entries[position]

    def positions(self) -> list[int]:
        return sorted(self.entries)

    def ordered(self) -> list[tuple[int, AssetEntry]]:
        return [(pos, self.entries[pos]) for pos in self.positions()]

    def keys(self) -> list[str]:
        return [entry.storage_key for _, entry in self.ordered()]

    def find(self, storage_key: str | None) -> int:
        for pos, entry in self.ordered():
            if entry.storage_key == storage_key:
                return pos
        raise UnknownKeyError("Bad/unknown storage key.", f"storage_key={storage_key}")

    def next_position(self) -> int:
        if not self.entries:
            return 0
        return max(self.entries) + 1

    def copy(self) -> AssetCollection:
        return AssetCollection(deepcopy(self.entries))

    def to_raw(self) -> dict[str, dict[str, Any]]:
        return {str(pos): entry.to_raw() for pos, entry in self.ordered()}

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any] | None) -> AssetCollection:
        entries: dict[int, AssetEntry] = {}
        seen: set[str] = set()
        for pos, item in (raw or {}).items():
            entry = AssetEntry.from_raw(item)
            if entry.storage_key in seen:
                raise ValueError(f"duplicate storage key in collection: {entry.storage_key}")
            seen.add(entry.storage_key)
            entries[int(pos)] = entry
        return cls(entries)


@dataclass(slots=True)
class UploadedFile:
    filename: str
    mime_type: str
    data: bytes
    size: int | None = None
    # Code reported by the upload transport; 0 means the payload arrived intact.
    transport_error: int = 0

    def __post_init__(self) -> None:
        if self.size is None:
            self.size = len(self.data)
