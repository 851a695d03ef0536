"""
Image format detection and WebP transcoding.

Formats are identified from their leading magic bytes rather than from file
names or declared content types. Decoding is resolved through a lookup table of
Pillow format names, so supporting another format means adding one entry to
each table below.

All transcoding writes lossless WebP. The ``quality`` argument is accepted for
callers that pass one but has no effect in lossless mode.
"""

import io
import logging
import struct
from enum import Enum
from typing import Dict, Optional

from PIL import Image, UnidentifiedImageError, features

from aur.im.accounts.errors import ImageError

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = 0.8

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8"
GIF_SIGNATURES = (b"GIF87a", b"GIF89a")
BMP_SIGNATURE = b"BM"


class ImageFormat(str, Enum):
    WEBP = "webp"
    PNG = "png"
    JPEG = "jpeg"
    GIF = "gif"
    BMP = "bmp"

    @property
    def media_type(self) -> str:
        return MEDIA_TYPES[self]


MEDIA_TYPES: Dict[ImageFormat, str] = {
    ImageFormat.WEBP: "image/webp",
    ImageFormat.PNG: "image/png",
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.GIF: "image/gif",
    ImageFormat.BMP: "image/bmp",
}

PILLOW_FORMATS: Dict[ImageFormat, str] = {
    ImageFormat.WEBP: "WEBP",
    ImageFormat.PNG: "PNG",
    ImageFormat.JPEG: "JPEG",
    ImageFormat.GIF: "GIF",
    ImageFormat.BMP: "BMP",
}


def detect_format(data: bytes) -> Optional[ImageFormat]:
    """Identify an image format from its leading bytes.

    Signatures are checked in a fixed order: WEBP, PNG, JPEG, GIF, BMP.

    Args:
        data: Raw image bytes

    Returns:
        The detected format, or None if no signature matches
    """
    if not data:
        return None

    if len(data) >= 12 and data[0:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ImageFormat.WEBP
    if data[:8] == PNG_SIGNATURE:
        return ImageFormat.PNG
    if data[:2] == JPEG_SIGNATURE:
        return ImageFormat.JPEG
    if data[:6] in GIF_SIGNATURES:
        return ImageFormat.GIF
    if data[:2] == BMP_SIGNATURE:
        return ImageFormat.BMP
    return None


def webp_supported() -> bool:
    return bool(features.check("webp"))


def decoder_available(fmt: ImageFormat) -> bool:
    pillow_format = PILLOW_FORMATS.get(fmt)
    if pillow_format is None:
        return False
    if fmt is ImageFormat.WEBP:
        return webp_supported()
    Image.init()
    return pillow_format in Image.OPEN


def decode(data: bytes, fmt: ImageFormat) -> Image.Image:
    """Decode image bytes of a known format into a Pillow image.

    Raises:
        ImageError: ``unsupported_format`` when no decoder is registered for
            the format, ``decode_error`` when the bytes cannot be decoded
    """
    if not decoder_available(fmt):
        raise ImageError.unsupported_format(fmt.value)

    try:
        image = Image.open(io.BytesIO(data), formats=[PILLOW_FORMATS[fmt]])
        image.load()
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        EOFError,
        struct.error,
        ValueError,
    ) as e:
        raise ImageError.decode_error(str(e))
    return image


def encode_webp(image: Image.Image, quality: float = DEFAULT_QUALITY) -> bytes:
    """Encode a Pillow image as lossless WebP.

    Raises:
        ImageError: ``writer_unavailable`` when Pillow was built without WebP,
            ``encode_error`` when encoding fails
    """
    if not webp_supported():
        raise ImageError.writer_unavailable()

    logger.debug("encode_webp: lossless mode, ignoring quality %s", quality)

    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA" if image.has_transparency_data else "RGB")

    buffer = io.BytesIO()
    try:
        image.save(buffer, format="WEBP", lossless=True)
    except (OSError, ValueError) as e:
        raise ImageError.encode_error(str(e))
    return buffer.getvalue()


def transcode_to_webp(
    data: bytes, fmt: ImageFormat, quality: float = DEFAULT_QUALITY
) -> bytes:
    """Decode image bytes and re-encode them as lossless WebP."""
    return encode_webp(decode(data, fmt), quality)
