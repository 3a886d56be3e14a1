from __future__ import annotations

import platform
from functools import lru_cache
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

FontType = ImageFont.FreeTypeFont | ImageFont.ImageFont


def _system_font_candidates(bold: bool = False) -> list[Path]:
    system = platform.system().lower()
    if "windows" in system:
        if bold:
            return [Path(r"C:\Windows\Fonts\arialbd.ttf"), Path(r"C:\Windows\Fonts\segoeuib.ttf")]
        return [Path(r"C:\Windows\Fonts\arial.ttf"), Path(r"C:\Windows\Fonts\segoeui.ttf")]
    if "darwin" in system:
        if bold:
            return [Path("/System/Library/Fonts/Supplemental/Arial Bold.ttf")]
        return [
            Path("/System/Library/Fonts/Supplemental/Arial.ttf"),
            Path("/Library/Fonts/Arial Unicode.ttf"),
        ]
    if bold:
        return [
            Path("/usr/share/fonts/truetype/roboto/unhinted/RobotoTTF/Roboto-Medium.ttf"),
            Path("/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"),
            Path("/usr/share/fonts/TTF/DejaVuSans-Bold.ttf"),
        ]
    return [
        Path("/usr/share/fonts/truetype/roboto/unhinted/RobotoTTF/Roboto-Regular.ttf"),
        Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
        Path("/usr/share/fonts/TTF/DejaVuSans.ttf"),
    ]


@lru_cache(maxsize=512)
def load_font(font_path: Path | None, size: int, bold: bool = False) -> FontType:
    size = max(1, int(size))
    candidates: list[Path] = []
    if font_path:
        candidates.append(font_path)
    candidates.extend(_system_font_candidates(bold=bold))
    if bold:
        candidates.extend(_system_font_candidates(bold=False))
    for candidate in candidates:
        if candidate.exists():
            try:
                return ImageFont.truetype(str(candidate), size=size)
            except OSError:
                continue
    return ImageFont.load_default(size=size)


def iter_font_sizes(base_size: int, minimum: int = 8) -> list[int]:
    """Shrinking size ladder used when a single label must fit a fixed box."""
    start = max(minimum, int(base_size))
    sizes = [start]
    if start <= minimum:
        return sizes
    step = max(1, int(round(start * 0.12)))
    current = start - step
    while current > minimum:
        sizes.append(current)
        current -= step
    if sizes[-1] != minimum:
        sizes.append(minimum)
    return sizes


def fit_font(
    draw: ImageDraw.ImageDraw,
    text: str,
    *,
    font_path: Path | None,
    base_size: int,
    max_width: int,
    bold: bool = False,
    minimum: int = 8,
) -> FontType:
    font = load_font(font_path, max(minimum, base_size), bold)
    for size in iter_font_sizes(base_size, minimum=minimum):
        font = load_font(font_path, size, bold)
        if draw.textlength(text, font=font) <= max_width:
            return font
    return font


class PillowMeasurer:
    """Measures advance widths with the same fonts the compositor draws with."""

    def __init__(self, font_path: Path | None = None) -> None:
        self.font_path = font_path
        self._draw = ImageDraw.Draw(Image.new("RGB", (1, 1)))

    def font(self, font_size: int, weight: str = "regular") -> FontType:
        return load_font(self.font_path, font_size, weight == "bold")

    def __call__(self, text: str, font_size: int, weight: str = "regular") -> float:
        if not text:
            return 0.0
        return float(self._draw.textlength(text, font=self.font(font_size, weight)))
