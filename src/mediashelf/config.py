from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from mediashelf.media.codec import EncodeOptions
from mediashelf.paths import config_root, default_media_dir

ALL_ACTIONS = ("ingest", "reorder", "show", "hide", "delete", "data")


@dataclass(slots=True)
class ThumbnailConfig:
    # Only the first size is always made; later ones need a big enough source.
    sizes: list[str] = field(default_factory=lambda: ["320x240"])
    mime_type: str = "image/jpeg"
    jpeg_quality: int = 75
    jpeg_interlace: bool = False
    png_compress_level: int | None = None
    png_filter: int | None = None
    auto_rotate: bool = True

    def encode_options(self) -> EncodeOptions:
        return EncodeOptions(
            mime_type=self.mime_type,
            jpeg_quality=self.jpeg_quality,
            jpeg_interlace=self.jpeg_interlace,
            png_compress_level=self.png_compress_level,
            png_filter=self.png_filter,
        )


@dataclass(slots=True)
class AppConfig:
    directory: Path = field(default_factory=default_media_dir)
    collection_file: str = "media.json"
    accept: list[str] = field(default_factory=lambda: ["image/jpeg"])
    supported_actions: list[str] = field(default_factory=lambda: list(ALL_ACTIONS))
    filename_prefix: str = ""
    # Fixed "received at" timestamp; None means use the clock.
    now: float | None = None
    thumbnails: ThumbnailConfig = field(default_factory=ThumbnailConfig)


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def _to_config(data: dict[str, Any]) -> AppConfig:
    thumbnails = ThumbnailConfig(**data.get("thumbnails", {}))
    now = data.get("now")
    return AppConfig(
        directory=Path(data.get("directory", str(default_media_dir()))).expanduser(),
        collection_file=str(data.get("collection_file", "media.json")),
        accept=[str(x) for x in data.get("accept", ["image/jpeg"])],
        supported_actions=[str(x) for x in data.get("supported_actions", list(ALL_ACTIONS))],
        filename_prefix=str(data.get("filename_prefix") or ""),
        now=float(now) if now is not None else None,
        thumbnails=thumbnails,
    )


def default_config_path() -> Path:
    return config_root() / "config.yaml"


def load_config(config_path: Path | None = None, overrides: dict[str, Any] | None = None) -> AppConfig:
    path = config_path or default_config_path()
    base: dict[str, Any] = {}
    if path.exists():
        loaded = yaml.safe_load(path.read_text())
        if isinstance(loaded, dict):
            base = loaded
    if overrides:
        base = _merge(base, overrides)
    cfg = _to_config(base)
    cfg.directory.mkdir(parents=True, exist_ok=True)
    return cfg


def write_default_config(path: Path | None = None) -> Path:
    target = path or default_config_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    if target.exists():
        return target
    target.write_text(
        yaml.safe_dump(
            {
                "directory": str(default_media_dir()),
                "collection_file": "media.json",
                "accept": ["image/jpeg", "image/png", "image/gif", "image/webp", "application/pdf"],
                "supported_actions": list(ALL_ACTIONS),
                "filename_prefix": "",
                "thumbnails": {
                    "sizes": ["320x240"],
                    "mime_type": "image/jpeg",
                    "jpeg_quality": 75,
                    "jpeg_interlace": False,
                    "png_compress_level": None,
                    "png_filter": None,
                    "auto_rotate": True,
                },
            },
            sort_keys=False,
        )
    )
    return target
