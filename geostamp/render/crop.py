from __future__ import annotations

from PIL import Image

from geostamp.constants import LANDSCAPE_RATIO, PORTRAIT_RATIO
from geostamp.errors import PreconditionViolation
from geostamp.models import CropRect, Rect


def target_ratio(src_w: float, src_h: float) -> float:
    return LANDSCAPE_RATIO if src_w >= src_h else PORTRAIT_RATIO


def compute_crop(src_w: float, src_h: float) -> CropRect:
    """Center-crop window enforcing 4:3 (landscape) or 3:4 (portrait).

    Destination size equals the cropped source size and sits at (0, 0).
    """
    if src_w <= 0 or src_h <= 0:
        raise PreconditionViolation(f"source dimensions must be positive, got {src_w}x{src_h}")

    ratio = target_ratio(src_w, src_h)
    src_ratio = src_w / float(src_h)
    sx, sy, sw, sh = 0.0, 0.0, float(src_w), float(src_h)
    if src_ratio > ratio:
        sw = src_h * ratio
        sx = (src_w - sw) / 2.0
    elif src_ratio < ratio:
        sh = src_w / ratio
        sy = (src_h - sh) / 2.0

    return CropRect(
        source=Rect(sx, sy, sw, sh),
        destination=Rect(0.0, 0.0, sw, sh),
    )


def crop_image(image: Image.Image) -> Image.Image:
    width, height = image.size
    crop = compute_crop(width, height)
    left, top, right, bottom = crop.source.box()
    left = max(0, left)
    top = max(0, top)
    right = min(width, max(left + 1, right))
    bottom = min(height, max(top + 1, bottom))
    if left <= 0 and top <= 0 and right >= width and bottom >= height:
        return image
    return image.crop((left, top, right, bottom))


def resize_to_width(image: Image.Image, width: int) -> Image.Image:
    if width <= 0 or image.width <= width:
        return image
    scale = width / float(image.width)
    new_size = (max(1, int(round(image.width * scale))), max(1, int(round(image.height * scale))))
    return image.resize(new_size, Image.Resampling.LANCZOS)


def resize_by_scale(image: Image.Image, scale: float) -> Image.Image:
    if scale >= 1.0 or scale <= 0:
        return image
    new_size = (max(1, int(round(image.width * scale))), max(1, int(round(image.height * scale))))
    return image.resize(new_size, Image.Resampling.LANCZOS)
