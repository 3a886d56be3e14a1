from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, ImageOps, UnidentifiedImageError

from geostamp.constants import HEIF_EXTENSIONS, STANDARD_EXTENSIONS
from geostamp.errors import DecodeError

LOGGER = logging.getLogger(__name__)

_HEIF_REGISTERED = False


def _register_heif_opener() -> bool:
    global _HEIF_REGISTERED
    if _HEIF_REGISTERED:
        return True
    try:
        from pillow_heif import register_heif_opener
    except ImportError:
        return False
    register_heif_opener()
    _HEIF_REGISTERED = True
    return True


def _decode_standard(path: Path) -> Image.Image:
    try:
        with Image.open(path) as image:
            decoded = ImageOps.exif_transpose(image).convert("RGB").copy()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise DecodeError(f"cannot decode {path.name}: {exc}") from exc
    LOGGER.debug("decoded %s (%dx%d)", path.name, decoded.width, decoded.height)
    return decoded


def decode_image(path: Path) -> Image.Image:
    """Open a photo upright (EXIF orientation applied) in RGB."""
    ext = path.suffix.lower()
    if ext in STANDARD_EXTENSIONS:
        return _decode_standard(path)
    if ext in HEIF_EXTENSIONS:
        if not _register_heif_opener():
            raise DecodeError("pillow-heif is required to decode HEIF/HEIC/HIF (pip install geostamp[heif])")
        return _decode_standard(path)
    raise DecodeError(f"unsupported image format: {path.suffix}")
