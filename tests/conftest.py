from __future__ import annotations

from dataclasses import dataclass, field
import io
from pathlib import Path

from PIL import Image
import pytest

from mediashelf.config import AppConfig, ThumbnailConfig
from mediashelf.errors import DecodeError
from mediashelf.media.codec import EncodeOptions, output_mime_type


@pytest.fixture(autouse=True)
def _isolated_dirs(tmp_path: Path, monkeypatch) -> None:
    # Keep default config/data paths out of the real home directory.
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))


@dataclass
class FakeRaster:
    width: int
    height: int
    ops: list[tuple] = field(default_factory=list)


class FakeCodec:
    """Understands payloads like b"fake:640x480" or b"fake:640x480:6" (EXIF orientation)."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def _parse(self, data: bytes) -> tuple[int, int, int | None]:
        text = data.decode("ascii", errors="replace")
        if not text.startswith("fake:"):
            raise DecodeError("Could not decode image.", text[:20])
        parts = text[5:].split(":")
        w, h = (int(x) for x in parts[0].split("x"))
        orientation = int(parts[1]) if len(parts) > 1 else None
        return w, h, orientation

    def decode(self, data: bytes, mime_type: str) -> FakeRaster:
        w, h, _ = self._parse(data)
        self.calls.append(("decode", mime_type))
        return FakeRaster(w, h)

    def orientation(self, data: bytes) -> int | None:
        return self._parse(data)[2]

    def size(self, raster: FakeRaster) -> tuple[int, int]:
        return raster.width, raster.height

    def rotate(self, raster: FakeRaster, degrees: int) -> FakeRaster:
        self.calls.append(("rotate", degrees))
        if degrees % 180:
            return FakeRaster(raster.height, raster.width, raster.ops + [("rotate", degrees)])
        return FakeRaster(raster.width, raster.height, raster.ops + [("rotate", degrees)])

    def crop_resize(self, raster: FakeRaster, box, size) -> FakeRaster:
        self.calls.append(("crop_resize", tuple(box), tuple(size)))
        return FakeRaster(size[0], size[1], raster.ops + [("crop", tuple(box))])

    def encode(self, raster: FakeRaster, options: EncodeOptions) -> bytes:
        self.calls.append(("encode", output_mime_type(options.mime_type)))
        return f"{output_mime_type(options.mime_type)}:{raster.width}x{raster.height}".encode()

    def render_document(self, data: bytes, size) -> FakeRaster:
        self.calls.append(("render_document", tuple(size)))
        return FakeRaster(size[0], size[1], [("render",)])


@pytest.fixture
def fake_codec() -> FakeCodec:
    return FakeCodec()


def make_config(tmp_path: Path, **overrides) -> AppConfig:
    thumbnails = overrides.pop("thumbnails", None) or ThumbnailConfig()
    return AppConfig(
        directory=tmp_path / "media",
        accept=overrides.pop("accept", ["image/jpeg", "image/png", "application/pdf"]),
        thumbnails=thumbnails,
        **overrides,
    )


def split_color_jpeg(size: tuple[int, int] = (40, 30), orientation: int | None = None) -> bytes:
    """Left half red, right half blue; optionally tagged with an EXIF orientation."""
    w, h = size
    img = Image.new("RGB", size, (0, 0, 255))
    img.paste((255, 0, 0), (0, 0, w // 2, h))
    buf = io.BytesIO()
    if orientation is None:
        img.save(buf, "JPEG", quality=95)
    else:
        exif = Image.Exif()
        exif[0x0112] = orientation
        img.save(buf, "JPEG", quality=95, exif=exif)
    return buf.getvalue()
