"""JPEG re-encoding and thumbnail derivation."""

import io

from PIL import Image

THUMBNAIL_MAX_DIMENSION = 300
FULL_QUALITY = 95
THUMBNAIL_QUALITY = 70
UPLOAD_QUALITY = 80


def reencode_jpeg(data: bytes, quality: int) -> bytes:
    """Decode image bytes and encode them again as JPEG.

    Raises ``PIL.UnidentifiedImageError`` when the bytes are not an image.
    """
    with Image.open(io.BytesIO(data)) as image:
        return _encode(image.convert("RGB"), quality)


def derive_thumbnail(
    data: bytes,
    max_dimension: int = THUMBNAIL_MAX_DIMENSION,
    quality: int = THUMBNAIL_QUALITY,
) -> bytes:
    """Downscale so the longest side is at most ``max_dimension``.

    Smaller images keep their size and are only re-encoded.
    """
    with Image.open(io.BytesIO(data)) as image:
        thumb = image.convert("RGB")
        thumb.thumbnail((max_dimension, max_dimension), Image.LANCZOS)
        return _encode(thumb, quality)


def prepare_upload(data: bytes) -> bytes:
    """Compress outbound photo bytes."""
    return reencode_jpeg(data, UPLOAD_QUALITY)


def _encode(image: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()
