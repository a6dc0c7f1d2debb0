from __future__ import annotations

import io

from PIL import ExifTags, Image, UnidentifiedImageError

ORIENTATION_TAG = int(ExifTags.Base.Orientation)


def read_orientation(data: bytes) -> int | None:
    try:
        with Image.open(io.BytesIO(data)) as img:
            exif = img.getexif()
    except (UnidentifiedImageError, OSError, ValueError):
        return None

    if not exif:
        return None
    value = exif.get(ORIENTATION_TAG)
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
