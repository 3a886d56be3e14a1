"""Auto-fit text layout for the info panel.

The block is scanned from the largest allowed scale downwards in fixed steps;
the first scale at which every segment wraps within its line limit and the
summed height fits the box wins. When nothing fits, the floor scale is used
and the result is flagged as overflowing.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from geostamp.models import LayoutResult, TextSegment

LOGGER = logging.getLogger(__name__)

Measure = Callable[[str, int, str], float]


@dataclass(slots=True)
class LayoutConfig:
    max_scale: float = 2.5
    min_scale: float = 0.5
    step: float = 0.01
    line_height: float = 1.2
    segment_gap: float = 0.0
    max_lines: int = 3
    max_title_lines: int = 2
    flag_reserve_em: float = 1.4


@dataclass(slots=True)
class _Trial:
    scale: float
    lines: list[list[str]]
    font_sizes: list[int]
    height: float
    width: float
    forced_shrink: bool


def scaled_font_size(nominal: float, scale: float) -> int:
    return max(1, int(round(nominal * scale)))


def flag_reserve_width(font_size: int, config: LayoutConfig) -> float:
    return font_size * config.flag_reserve_em


def wrap_words(text: str, max_width: float, measure_line: Callable[[str], float]) -> list[str]:
    """Greedy word wrap; a word wider than the box stays whole on its own line."""
    words = text.split()
    lines: list[str] = []
    current = ""
    for word in words:
        candidate = f"{current} {word}" if current else word
        if current and measure_line(candidate) > max_width:
            lines.append(current)
            current = word
        else:
            current = candidate
    if current:
        lines.append(current)
    return lines


def _scale_ladder(config: LayoutConfig) -> list[float]:
    start = max(config.max_scale, config.min_scale)
    step = config.step if config.step > 0 else 0.01
    count = int(round((start - config.min_scale) / step))
    ladder = [round(start - index * step, 6) for index in range(count + 1)]
    if not ladder or ladder[-1] > config.min_scale:
        ladder.append(config.min_scale)
    return ladder


def _run_trial(
    segments: Sequence[TextSegment],
    max_width: float,
    config: LayoutConfig,
    measure: Measure,
    scale: float,
) -> _Trial:
    lines: list[list[str]] = []
    font_sizes: list[int] = []
    height = 0.0
    width = 0.0
    forced_shrink = False
    drawn_segments = 0
    for index, segment in enumerate(segments):
        size = scaled_font_size(segment.font_size, scale)
        available = max_width
        if segment.reserve_flag:
            available -= flag_reserve_width(size, config)

        def measure_line(line: str, _size: int = size, _weight: str = segment.weight) -> float:
            return measure(line, _size, _weight)

        wrapped = wrap_words(segment.text, available, measure_line)
        lines.append(wrapped)
        font_sizes.append(size)
        if not wrapped:
            continue
        drawn_segments += 1
        height += len(wrapped) * size * config.line_height
        for line in wrapped:
            width = max(width, measure_line(line))
        limit = config.max_title_lines if index == 0 else config.max_lines
        if len(wrapped) > limit:
            forced_shrink = True
    if drawn_segments > 1:
        height += config.segment_gap
    return _Trial(scale, lines, font_sizes, height, width, forced_shrink)


def layout(
    segments: Sequence[TextSegment],
    max_width: float,
    max_height: float,
    config: LayoutConfig | None = None,
    measure: Measure | None = None,
) -> LayoutResult:
    """Choose a font scale and line wrapping that packs ``segments`` into the box.

    The first segment is the title: it may wrap to at most ``max_title_lines``
    lines, every other segment to ``max_lines``.
    """
    config = config or LayoutConfig()
    if measure is None:
        from geostamp.render.typography import PillowMeasurer

        measure = PillowMeasurer()

    if not any(segment.text.strip() for segment in segments):
        return LayoutResult(
            lines=[[] for _ in segments],
            font_sizes=[scaled_font_size(segment.font_size, 1.0) for segment in segments],
            scale=1.0,
            block_height=0.0,
            block_width=0.0,
        )

    trial: _Trial | None = None
    for scale in _scale_ladder(config):
        trial = _run_trial(segments, max_width, config, measure, scale)
        if trial.height <= max_height and not trial.forced_shrink:
            return LayoutResult(
                lines=trial.lines,
                font_sizes=trial.font_sizes,
                scale=trial.scale,
                block_height=trial.height,
                block_width=trial.width,
            )

    assert trial is not None
    LOGGER.warning(
        "text block does not fit %.0fx%.0f even at scale %.2f (height %.1f)",
        max_width,
        max_height,
        trial.scale,
        trial.height,
    )
    return LayoutResult(
        lines=trial.lines,
        font_sizes=trial.font_sizes,
        scale=trial.scale,
        block_height=trial.height,
        block_width=trial.width,
        overflow=True,
    )
