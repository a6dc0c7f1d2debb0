from __future__ import annotations

from dataclasses import dataclass
import io
from typing import Any, Protocol

import fitz  # PyMuPDF
from PIL import Image, ImageOps, UnidentifiedImageError

from mediashelf.errors import DecodeError
from mediashelf.media.exif import read_orientation

JPEG = "image/jpeg"
PNG = "image/png"
GIF = "image/gif"

# mime type -> (Pillow format, file extension)
OUTPUT_FORMATS = {
    JPEG: ("JPEG", ".jpg"),
    PNG: ("PNG", ".png"),
    GIF: ("GIF", ".gif"),
}

RASTER_MIME_TYPES = frozenset({JPEG, PNG, GIF, "image/bmp", "image/webp"})
DOCUMENT_MIME_TYPES = frozenset({"application/pdf", "application/x-pdf"})

PAD_COLOR = (255, 255, 255)

Box = tuple[int, int, int, int]
Size = tuple[int, int]


def output_mime_type(mime_type: str) -> str:
    """Thumbnail type actually written; anything unrecognised becomes jpeg."""
    return mime_type if mime_type in OUTPUT_FORMATS else JPEG


def output_extension(mime_type: str) -> str:
    return OUTPUT_FORMATS[output_mime_type(mime_type)][1]


@dataclass(slots=True, frozen=True)
class EncodeOptions:
    mime_type: str = JPEG
    jpeg_quality: int = 75
    jpeg_interlace: bool = False
    png_compress_level: int | None = None
    # zlib strategy handed to the PNG encoder (e.g. zlib.Z_FILTERED)
    png_filter: int | None = None


class ImageCodec(Protocol):
    """Raster decode/crop/resize/encode plus document rasterisation.

    Rasters are opaque to callers; only the codec that produced one may use it.
    """

    def decode(self, data: bytes, mime_type: str) -> Any: ...

    def orientation(self, data: bytes) -> int | None: ...

    def size(self, raster: Any) -> Size: ...

    def rotate(self, raster: Any, degrees: int) -> Any:
        """Rotate counter-clockwise by ``degrees``."""
        ...

    def crop_resize(self, raster: Any, box: Box, size: Size) -> Any: ...

    def encode(self, raster: Any, options: EncodeOptions) -> bytes: ...

    def render_document(self, data: bytes, size: Size) -> Any:
        """First page only, scaled to fit ``size`` and padded to exactly ``size``."""
        ...


class PillowCodec:
    _TRANSPOSE = {
        90: Image.Transpose.ROTATE_90,
        180: Image.Transpose.ROTATE_180,
        270: Image.Transpose.ROTATE_270,
    }

    def decode(self, data: bytes, mime_type: str) -> Image.Image:
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as exc:
            raise DecodeError("Could not decode image.", f"mime_type={mime_type}: {exc}") from exc
        if img.mode not in ("RGB", "L"):
            img = img.convert("RGB")
        return img

    def orientation(self, data: bytes) -> int | None:
        return read_orientation(data)

    def size(self, raster: Image.Image) -> Size:
        return raster.size

    def rotate(self, raster: Image.Image, degrees: int) -> Image.Image:
        method = self._TRANSPOSE.get(degrees % 360)
        if method is None:
            return raster.rotate(degrees, expand=True)
        return raster.transpose(method)

    def crop_resize(self, raster: Image.Image, box: Box, size: Size) -> Image.Image:
        return raster.crop(box).resize(size, Image.Resampling.LANCZOS)

    def encode(self, raster: Image.Image, options: EncodeOptions) -> bytes:
        mime_type = output_mime_type(options.mime_type)
        fmt = OUTPUT_FORMATS[mime_type][0]
        params: dict[str, Any] = {}
        if mime_type == JPEG:
            params["quality"] = max(0, min(100, int(options.jpeg_quality)))
            if options.jpeg_interlace:
                params["progressive"] = True
        elif mime_type == PNG:
            if options.png_compress_level is not None:
                params["compress_level"] = max(0, min(9, int(options.png_compress_level)))
            if options.png_filter is not None:
                params["compress_type"] = int(options.png_filter)

        buf = io.BytesIO()
        raster.save(buf, fmt, **params)
        return buf.getvalue()

    def render_document(self, data: bytes, size: Size) -> Image.Image:
        width, height = size
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                page_count = doc.page_count
                if page_count:
                    page = doc.load_page(0)
                    scale = min(width / page.rect.width, height / page.rect.height)
                    pix = page.get_pixmap(matrix=fitz.Matrix(scale, scale), alpha=False)
                    frame = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
        except Exception as exc:
            raise DecodeError("Could not render document.", str(exc)) from exc
        if not page_count:
            raise DecodeError("Document has no pages.")
        return ImageOps.pad(frame, (width, height), color=PAD_COLOR)
