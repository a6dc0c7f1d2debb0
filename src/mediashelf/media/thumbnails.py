from __future__ import annotations

import logging
import re
from typing import Any, Sequence

from mediashelf.blobstore import BlobStore, join_path
from mediashelf.media.codec import (
    DOCUMENT_MIME_TYPES,
    JPEG,
    RASTER_MIME_TYPES,
    Box,
    EncodeOptions,
    ImageCodec,
    Size,
    output_extension,
)

logger = logging.getLogger(__name__)

# EXIF orientation -> counter-clockwise rotation. The mirrored orientations
# (2, 4, 5, 7) are left as they are.
ORIENTATION_ROTATIONS = {3: 180, 6: -90, 8: 90}

_SIZE_LABEL = re.compile(r"^(\d+)x(\d+)$")


def parse_size_label(label: str) -> Size:
    m = _SIZE_LABEL.match(label.strip())
    if not m or int(m.group(1)) <= 0 or int(m.group(2)) <= 0:
        raise ValueError(f"invalid thumbnail size: {label!r} (expected e.g. '320x240')")
    return int(m.group(1)), int(m.group(2))


def crop_box_4x3(width: int, height: int) -> Box:
    """Centred 4:3 region of a width x height image.

    Always 4:3, whatever the target size; other aspect ratios are not supported.
    """
    width43 = int(height / 3 * 4)
    height43 = int(width / 4 * 3)
    if width43 < width:
        x = int((width - width43) / 2)
        return (x, 0, x + width43, height)
    y = int((height - height43) / 2)
    return (0, y, width, y + height43)


class ThumbnailPipeline:
    def __init__(
        self,
        codec: ImageCodec,
        store: BlobStore,
        options: EncodeOptions | None = None,
        auto_rotate: bool = True,
    ):
        self.codec = codec
        self.store = store
        self.options = options or EncodeOptions()
        self.auto_rotate = auto_rotate

    def derive(
        self,
        source: bytes,
        source_mime_type: str,
        storage_key: str,
        sizes: Sequence[str],
    ) -> list[str]:
        """Write derived images for ``storage_key`` and return the size labels made.

        An empty list means "no derived versions, use the original upload"; that is
        the outcome for unsupported source types and is not an error.
        """
        if not sizes:
            return []
        if source_mime_type in DOCUMENT_MIME_TYPES:
            return self._derive_document(source, storage_key, sizes[0])
        if source_mime_type not in RASTER_MIME_TYPES:
            logger.debug("no thumbnails for %s (%s)", storage_key, source_mime_type)
            return []

        raster = self.codec.decode(source, source_mime_type)
        if self.auto_rotate and source_mime_type == JPEG:
            raster = self._orient(raster, source)

        src_w, src_h = self.codec.size(raster)
        box = crop_box_4x3(src_w, src_h)
        made: list[str] = []
        for idx, label in enumerate(sizes):
            target = parse_size_label(label)
            # Only the first size may upscale; the rest need a big enough source.
            if idx > 0 and (src_w < target[0] or src_h < target[1]):
                logger.debug("skipping %s for %s: source is %dx%d", label, storage_key, src_w, src_h)
                continue
            thumb = self.codec.crop_resize(raster, box, target)
            self._persist(thumb, label, storage_key)
            made.append(label)
        return made

    def _orient(self, raster: Any, source: bytes) -> Any:
        degrees = ORIENTATION_ROTATIONS.get(self.codec.orientation(source) or 1)
        if degrees is None:
            return raster
        return self.codec.rotate(raster, degrees)

    def _derive_document(self, source: bytes, storage_key: str, label: str) -> list[str]:
        frame = self.codec.render_document(source, parse_size_label(label))
        self._persist(frame, label, storage_key)
        return [label]

    def _persist(self, raster: Any, label: str, storage_key: str) -> None:
        self.store.mkdir(label)
        data = self.codec.encode(raster, self.options)
        path = join_path(label, f"{storage_key}{output_extension(self.options.mime_type)}")
        self.store.write(path, data)
        logger.debug("wrote %s (%d bytes)", path, len(data))
