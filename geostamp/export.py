"""Encoding of rendered frames, with an optional byte budget."""
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Awaitable, Callable, Union

from PIL import Image

from geostamp.constants import DEFAULT_BUDGET_BYTES

LOGGER = logging.getLogger(__name__)

# 质量与缩放都以 0.1 为步长，用整数十分位计数避免浮点漂移
START_QUALITY_TENTHS = 8
MIN_QUALITY_TENTHS = 3
START_SCALE_TENTHS = 10
MIN_SCALE_TENTHS = 3

RenderFn = Callable[[float], Union[Image.Image, Awaitable[Image.Image]]]

_FORMATS = {"jpeg": "JPEG", "jpg": "JPEG", "png": "PNG"}


@dataclass(slots=True)
class ExportResult:
    data: bytes
    quality: float
    scale: float
    attempts: int
    budget_met: bool

    @property
    def size(self) -> int:
        return len(self.data)


def pil_format(fmt: str) -> str:
    try:
        return _FORMATS[fmt.strip().lower()]
    except KeyError as exc:
        raise ValueError(f"unsupported output format: {fmt}") from exc


def encode(image: Image.Image, fmt: str = "jpeg", quality: float = 0.92) -> bytes:
    """Encode once. ``quality`` is in [0, 1] and only used for JPEG."""
    target = pil_format(fmt)
    buffer = BytesIO()
    if target == "JPEG":
        jpeg_quality = max(1, min(100, int(round(quality * 100))))
        image.convert("RGB").save(buffer, format="JPEG", quality=jpeg_quality, optimize=True, progressive=True)
    else:
        image.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


async def _render(render: RenderFn, scale: float) -> Image.Image:
    result = render(scale)
    if inspect.isawaitable(result):
        result = await result
    return result


async def encode_under_budget(
    render: RenderFn,
    budget_bytes: int = DEFAULT_BUDGET_BYTES,
    fmt: str = "jpeg",
) -> ExportResult:
    """Re-render and re-encode until the output fits ``budget_bytes``.

    Quality falls first (0.8 to 0.3), then the render scale (1.0 to 0.3).
    Every attempt is a full re-render at the current scale. When both floors
    are reached the last encoding is returned with ``budget_met=False``.
    """
    quality_tenths = START_QUALITY_TENTHS
    scale_tenths = START_SCALE_TENTHS
    attempts = 0
    while True:
        quality = quality_tenths / 10
        scale = scale_tenths / 10
        image = await _render(render, scale)
        data = encode(image, fmt, quality)
        attempts += 1
        LOGGER.debug(
            "budget attempt %d: quality=%.1f scale=%.1f size=%d budget=%d",
            attempts,
            quality,
            scale,
            len(data),
            budget_bytes,
        )
        if len(data) <= budget_bytes:
            return ExportResult(data, quality, scale, attempts, True)
        if quality_tenths > MIN_QUALITY_TENTHS:
            quality_tenths -= 1
        elif scale_tenths > MIN_SCALE_TENTHS:
            scale_tenths -= 1
        else:
            LOGGER.warning(
                "could not fit export into %d bytes; returning %d bytes at quality %.1f scale %.1f",
                budget_bytes,
                len(data),
                quality,
                scale,
            )
            return ExportResult(data, quality, scale, attempts, False)
