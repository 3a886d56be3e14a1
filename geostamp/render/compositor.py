from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageDraw, ImageOps

from geostamp.assets.loader import AssetLoader, get_default_loader
from geostamp.assets.providers import (
    GoogleStaticMapProvider,
    StaticMapProvider,
    flag_url,
    static_map_pixel_size,
    weather_condition_label,
)
from geostamp.constants import MAP_STYLE_SATELLITE, VARIANT_BAR, VARIANT_CARD
from geostamp.errors import AssetLoadError, PreconditionViolation
from geostamp.formatting import format_coordinates, format_datetime, format_temperature
from geostamp.models import (
    DateTimeData,
    LayoutResult,
    LocationData,
    Rect,
    StyleSettings,
    TextSegment,
    WeatherData,
)
from geostamp.render.crop import crop_image, resize_by_scale, resize_to_width
from geostamp.render.layout import LayoutConfig, flag_reserve_width, layout
from geostamp.render.typography import PillowMeasurer, fit_font, load_font

LOGGER = logging.getLogger(__name__)

REFERENCE_WIDTH = 1080.0
PANEL_RGB = (128, 128, 128)
MAP_PLACEHOLDER_FILL = "#e8e4d8"
MAP_PLACEHOLDER_TEXT = "#999999"
ICON_PLACEHOLDER_FILL = (255, 255, 255, 90)
TEXT_COLOR = (255, 255, 255, 255)
TEXT_MUTED_COLOR = (235, 235, 235, 255)
WORDMARK_COLORS = ("#4285F4", "#EA4335", "#FBBC05", "#4285F4", "#34A853", "#EA4335")
WEATHER_COLUMN_RATIO = 0.1
BADGE_HEIGHT_RATIO = 0.2


@dataclass(frozen=True, slots=True)
class VariantSpec:
    name: str
    full_width: bool
    panel_radius: float
    map_radius: float
    badge_radius: float
    map_zoom: int
    map_zoom_factor: float
    text_align: str


# 同一套绘制流程，变体只调整几何参数
VARIANTS: dict[str, VariantSpec] = {
    VARIANT_BAR: VariantSpec(
        name=VARIANT_BAR,
        full_width=True,
        panel_radius=0.0,
        map_radius=0.0,
        badge_radius=0.0,
        map_zoom=13,
        map_zoom_factor=1.15,
        text_align="center",
    ),
    VARIANT_CARD: VariantSpec(
        name=VARIANT_CARD,
        full_width=False,
        panel_radius=0.08,
        map_radius=0.06,
        badge_radius=0.5,
        map_zoom=15,
        map_zoom_factor=1.3,
        text_align="left",
    ),
}


@dataclass(frozen=True, slots=True)
class OverlayGeometry:
    width: int
    height: int
    scale: float
    variant: VariantSpec
    panel: Rect
    map: Rect
    text_column: Rect
    text: Rect
    weather: Rect
    padding: int
    gap: int

    @property
    def panel_radius(self) -> int:
        return int(round(self.panel.h * self.variant.panel_radius))

    @property
    def map_radius(self) -> int:
        return int(round(self.map.h * self.variant.map_radius))


def render_scale_for_canvas(width: int, preview: bool) -> float:
    return max(width / REFERENCE_WIDTH, 0.5 if preview else 0.8)


def compute_overlay_geometry(
    width: int,
    height: int,
    style: StyleSettings,
    has_weather: bool,
    preview: bool = False,
) -> OverlayGeometry:
    if width <= 0 or height <= 0:
        raise PreconditionViolation(f"canvas dimensions must be positive, got {width}x{height}")
    settings = style.layout
    variant = VARIANTS.get(style.variant, VARIANTS[VARIANT_BAR])
    scale = render_scale_for_canvas(width, preview)
    padding = int(round(settings.padding * scale))
    gap = int(round(10 * scale))

    panel_h = max(1, int(round(min(width, height) * settings.info_box_height_ratio)))
    margin = 0 if variant.full_width else int(round(settings.margin * scale))
    panel = Rect(margin, height - margin - panel_h, max(1, width - 2 * margin), panel_h)

    # card 变体的地图与天气列在面板内缩进 padding
    inset = 0 if variant.full_width else padding
    map_h = max(1, panel_h - 2 * inset)
    map_w = max(1, int(round(map_h * settings.mini_map_width_multiplier)))
    map_rect = Rect(panel.x + inset, panel.y + inset, map_w, map_h)

    weather_w = int(round(panel.w * WEATHER_COLUMN_RATIO)) if has_weather else 0
    gaps = gap * (2 if has_weather else 1)
    column_w = max(1, panel.w - 2 * inset - map_w - weather_w - gaps)
    text_column = Rect(map_rect.right + gap, panel.y, column_w, panel_h)
    text = Rect(
        text_column.x + padding,
        panel.y + padding,
        max(1, column_w - 2 * padding),
        max(1, panel_h - 2 * padding),
    )
    weather = Rect(panel.right - inset - weather_w, panel.y + inset, weather_w, map_h)

    return OverlayGeometry(
        width=width,
        height=height,
        scale=scale,
        variant=variant,
        panel=panel,
        map=map_rect,
        text_column=text_column,
        text=text,
        weather=weather,
        padding=padding,
        gap=gap,
    )


def build_text_segments(
    location: LocationData,
    date_time: DateTimeData,
    style: StyleSettings,
    scale: float,
    reserve_flag: bool = False,
) -> list[TextSegment]:
    """Title, optional address and coordinate lines, then the timestamp."""
    settings = style.layout
    title_size = settings.font_size_title * scale
    body_size = settings.font_size_body * scale
    segments = [
        TextSegment(location.title_text(), title_size, "bold", reserve_flag=reserve_flag, role="title")
    ]
    if style.show_full_address and location.full_address.strip():
        segments.append(TextSegment(location.full_address.strip(), body_size * 0.8, role="address"))
    if style.show_lat_long:
        segments.append(
            TextSegment(format_coordinates(location.lat, location.lng), body_size * 0.8, role="coordinates")
        )
    timestamp = format_datetime(date_time.moment, date_time.utc_offset, style.resolved_use_24h(date_time))
    segments.append(TextSegment(timestamp, body_size, role="timestamp"))
    return segments


def _rounded_mask(size: tuple[int, int], radius: int) -> Image.Image:
    mask = Image.new("L", size, 0)
    ImageDraw.Draw(mask).rounded_rectangle((0, 0, size[0] - 1, size[1] - 1), radius=max(0, radius), fill=255)
    return mask


def _fill_translucent(canvas: Image.Image, rect: Rect, radius: int, fill: tuple[int, int, int, int]) -> None:
    left, top, right, bottom = rect.box()
    if right - left < 1 or bottom - top < 1:
        return
    layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    ImageDraw.Draw(layer).rounded_rectangle((left, top, right - 1, bottom - 1), radius=max(0, radius), fill=fill)
    canvas.alpha_composite(layer)


def weather_icon_rect(geometry: OverlayGeometry) -> Rect:
    """Square slot at the top right of the weather column."""
    padding = geometry.padding
    usable_w = max(1, int(geometry.weather.w - padding))
    icon_size = max(1, min(int(round(geometry.panel.h * 0.38)), usable_w))
    right = geometry.weather.right - padding
    return Rect(right - icon_size, int(round(geometry.panel.y + padding)), icon_size, icon_size)


def badge_icon_rect(badge: Rect) -> Rect:
    left, top, _, bottom = badge.box()
    badge_h = bottom - top
    inner = int(round(badge_h * 0.18))
    icon_size = max(1, badge_h - 2 * inner)
    return Rect(left + inner * 2, top + inner, icon_size, icon_size)


def _settle(label: str, outcome: object) -> Image.Image | None:
    if isinstance(outcome, AssetLoadError):
        LOGGER.info("%s unavailable, drawing placeholder: %s", label, outcome)
        return None
    if isinstance(outcome, BaseException):
        raise outcome
    return outcome  # type: ignore[return-value]


class OverlayCompositor:
    """Draws the cropped photo and the geotag overlay onto one raster."""

    def __init__(
        self,
        loader: AssetLoader | None = None,
        map_provider: StaticMapProvider | None = None,
        *,
        flags_base: str | None = None,
        font_path: Path | None = None,
    ) -> None:
        self.loader = loader or get_default_loader()
        self.map_provider = map_provider or GoogleStaticMapProvider()
        self.flags_base = flags_base
        self.font_path = font_path
        self.measurer = PillowMeasurer(font_path)

    async def composite(
        self,
        image: Image.Image | None,
        location: LocationData | None,
        date_time: DateTimeData,
        style: StyleSettings,
        weather: WeatherData | None = None,
        *,
        preview_width: int | None = None,
        render_scale: float = 1.0,
    ) -> Image.Image:
        if image is None:
            raise PreconditionViolation("an image is required to render an overlay")
        if location is None:
            raise PreconditionViolation("a resolved location is required to render an overlay")
        if image.width <= 0 or image.height <= 0:
            raise PreconditionViolation(f"image dimensions must be positive, got {image.size}")

        preview = preview_width is not None
        photo = crop_image(image)
        if preview:
            photo = resize_to_width(photo, int(preview_width))
        photo = resize_by_scale(photo, render_scale)
        canvas = photo.convert("RGBA")

        geometry = compute_overlay_geometry(canvas.width, canvas.height, style, weather is not None, preview)
        LOGGER.debug(
            "composite %dx%d variant=%s scale=%.3f preview=%s",
            canvas.width,
            canvas.height,
            geometry.variant.name,
            geometry.scale,
            preview,
        )

        flag_source = flag_url(location.country_code, self.flags_base)
        requests = (
            ("map tile", self._map_url(location, style, geometry)),
            ("flag", flag_source),
            ("watermark icon", style.watermark_icon_url),
            ("weather icon", weather.icon_url if weather else None),
        )
        outcomes = await asyncio.gather(
            *(self._fetch(url) for _, url in requests),
            return_exceptions=True,
        )
        map_image, flag_image, badge_icon, weather_icon = (
            _settle(label, outcome) for (label, _), outcome in zip(requests, outcomes)
        )

        segments = build_text_segments(location, date_time, style, geometry.scale, flag_source is not None)
        config = LayoutConfig(
            max_scale=style.layout.max_auto_scale,
            min_scale=style.layout.min_auto_scale,
            line_height=style.layout.line_height,
            segment_gap=style.layout.title_body_gap * geometry.scale,
        )
        text_layout = layout(segments, geometry.text.w, geometry.text.h, config, self.measurer)

        draw = ImageDraw.Draw(canvas)
        badge_rect = self._badge_rect(draw, geometry, style, bool(style.watermark_icon_url))

        alpha = style.background_alpha()
        _fill_translucent(canvas, geometry.panel, geometry.panel_radius, (*PANEL_RGB, alpha))
        _fill_translucent(
            canvas,
            badge_rect,
            int(round(badge_rect.h * geometry.variant.badge_radius)),
            (*PANEL_RGB, alpha),
        )
        self._draw_map(canvas, geometry, map_image, style.map_style)
        self._draw_text_block(canvas, geometry, segments, text_layout, config, flag_source, flag_image, location)
        self._draw_badge(canvas, geometry, badge_rect, style, badge_icon)
        if weather is not None:
            self._draw_weather(canvas, geometry, weather, weather_icon)
        return canvas.convert("RGB")

    def _map_url(self, location: LocationData, style: StyleSettings, geometry: OverlayGeometry) -> str | None:
        size = static_map_pixel_size(geometry.map.w, geometry.map.h, geometry.scale)
        try:
            return self.map_provider.tile_url(
                (location.lat, location.lng),
                geometry.variant.map_zoom,
                size,
                style.map_style,
            )
        except AssetLoadError as exc:
            LOGGER.info("map tile unavailable, drawing placeholder: %s", exc)
            return ""

    async def _fetch(self, url: str | None) -> Image.Image | None:
        if not url:
            return None
        return await self.loader.load_image(url)

    def _draw_map(
        self,
        canvas: Image.Image,
        geometry: OverlayGeometry,
        tile: Image.Image | None,
        map_style: str,
    ) -> None:
        rect = geometry.map
        left, top, right, bottom = rect.box()
        size = (max(1, right - left), max(1, bottom - top))
        mask = _rounded_mask(size, geometry.map_radius)
        scale = geometry.scale

        if tile is None:
            placeholder = Image.new("RGB", size, MAP_PLACEHOLDER_FILL)
            canvas.paste(placeholder, (left, top), mask)
            draw = ImageDraw.Draw(canvas)
            font = load_font(self.font_path, int(round(12 * scale)))
            draw.text(
                (left + size[0] / 2, top + size[1] / 2),
                "Map",
                font=font,
                fill=MAP_PLACEHOLDER_TEXT,
                anchor="mm",
            )
            return

        # 放大后居中裁切，隐藏服务商底部的版权条
        zoom = geometry.variant.map_zoom_factor
        zoomed_size = (max(size[0], int(round(size[0] * zoom))), max(size[1], int(round(size[1] * zoom))))
        base = Image.new("RGB", zoomed_size, "#ffffff")
        fitted = ImageOps.fit(tile.convert("RGBA"), zoomed_size, Image.Resampling.LANCZOS)
        base.paste(fitted, (0, 0), fitted)
        offset_x = (zoomed_size[0] - size[0]) // 2
        offset_y = (zoomed_size[1] - size[1]) // 2
        inset = base.crop((offset_x, offset_y, offset_x + size[0], offset_y + size[1]))
        canvas.paste(inset, (left, top), mask)
        self._draw_wordmark(canvas, geometry, map_style)

    def _draw_wordmark(self, canvas: Image.Image, geometry: OverlayGeometry, map_style: str) -> None:
        wordmark = getattr(self.map_provider, "wordmark", "") or ""
        if not wordmark:
            return
        scale = geometry.scale
        draw = ImageDraw.Draw(canvas)
        font = load_font(self.font_path, max(6, int(round(10 * scale))), bold=True)
        x = geometry.map.x + 8 * scale
        y = geometry.map.bottom - 6 * scale
        if map_style == MAP_STYLE_SATELLITE:
            draw.text(
                (x, y),
                wordmark,
                font=font,
                fill="#ffffff",
                anchor="ls",
                stroke_width=max(1, int(round(1.5 * scale))),
                stroke_fill="#1a1a1a",
            )
            return
        for index, char in enumerate(wordmark):
            draw.text(
                (x, y),
                char,
                font=font,
                fill=WORDMARK_COLORS[index % len(WORDMARK_COLORS)],
                anchor="ls",
                stroke_width=max(1, int(round(scale))),
                stroke_fill="#ffffff",
            )
            x += draw.textlength(char, font=font)

    def _draw_text_block(
        self,
        canvas: Image.Image,
        geometry: OverlayGeometry,
        segments: list[TextSegment],
        result: LayoutResult,
        config: LayoutConfig,
        flag_source: str | None,
        flag_image: Image.Image | None,
        location: LocationData,
    ) -> None:
        if result.is_empty:
            return
        box = geometry.text
        draw = ImageDraw.Draw(canvas)
        y = box.y + max(0.0, (box.h - result.block_height) / 2.0)
        drawn = 0
        for index, (segment, lines, size) in enumerate(zip(segments, result.lines, result.font_sizes)):
            if not lines:
                continue
            if drawn == 1:
                y += config.segment_gap
            drawn += 1
            font = self.measurer.font(size, segment.weight)
            color = TEXT_COLOR if segment.role != "timestamp" else TEXT_MUTED_COLOR
            line_advance = size * config.line_height
            reserve = flag_reserve_width(size, config) if segment.reserve_flag else 0.0
            for line_index, line in enumerate(lines):
                line_width = self.measurer(line, size, segment.weight)
                is_flag_line = index == 0 and segment.reserve_flag and line_index == len(lines) - 1
                occupied = line_width + (reserve if is_flag_line else 0.0)
                if geometry.variant.text_align == "center":
                    x = box.x + (box.w - occupied) / 2.0
                else:
                    x = box.x
                draw.text((x, y), line, font=font, fill=color)
                if is_flag_line and flag_source:
                    self._draw_flag(canvas, x + line_width, y, size, reserve, flag_image, location)
                y += line_advance

    def _draw_flag(
        self,
        canvas: Image.Image,
        x: float,
        y: float,
        font_size: int,
        reserve: float,
        flag_image: Image.Image | None,
        location: LocationData,
    ) -> None:
        gap = int(round(font_size * 0.3))
        flag_h = max(1, int(round(font_size * 0.8)))
        max_w = max(1, int(reserve) - gap)
        left = int(round(x)) + gap
        top = int(round(y + (font_size - flag_h) / 2.0))
        if flag_image is None:
            flag_w = min(max_w, int(round(flag_h * 4 / 3)))
            _fill_translucent(canvas, Rect(left, top, flag_w, flag_h), 2, ICON_PLACEHOLDER_FILL)
            font = load_font(self.font_path, max(6, int(flag_h * 0.5)), bold=True)
            ImageDraw.Draw(canvas).text(
                (left + flag_w / 2, top + flag_h / 2),
                location.country_code.upper()[:2],
                font=font,
                fill=TEXT_COLOR,
                anchor="mm",
            )
            return
        ratio = flag_image.width / float(max(1, flag_image.height))
        flag_w = min(max_w, max(1, int(round(flag_h * ratio))))
        icon = flag_image.convert("RGBA").resize((flag_w, flag_h), Image.Resampling.LANCZOS)
        canvas.alpha_composite(icon, (max(0, left), max(0, top)))

    def _badge_rect(
        self,
        draw: ImageDraw.ImageDraw,
        geometry: OverlayGeometry,
        style: StyleSettings,
        with_icon: bool,
    ) -> Rect:
        badge_h = max(1, int(round(geometry.panel.h * BADGE_HEIGHT_RATIO)))
        inner = int(round(badge_h * 0.18))
        font_size = max(6, int(round((badge_h - 2 * inner) * 0.7)))
        max_w = geometry.panel.w / 2.0
        icon_w = (badge_h - 2 * inner + inner) if with_icon else 0
        font = fit_font(
            draw,
            style.resolved_watermark_text(),
            font_path=self.font_path,
            base_size=font_size,
            max_width=int(max(1, max_w - icon_w - 2 * inner * 2)),
        )
        text_w = draw.textlength(style.resolved_watermark_text(), font=font)
        badge_w = min(max_w, icon_w + text_w + 2 * inner * 2)
        if geometry.variant.full_width:
            right = geometry.width - geometry.padding
        else:
            right = geometry.panel.right
        return Rect(right - badge_w, geometry.panel.y - geometry.gap - badge_h, badge_w, badge_h)

    def _draw_badge(
        self,
        canvas: Image.Image,
        geometry: OverlayGeometry,
        rect: Rect,
        style: StyleSettings,
        icon: Image.Image | None,
    ) -> None:
        draw = ImageDraw.Draw(canvas)
        left, top, right, bottom = rect.box()
        badge_h = bottom - top
        inner = int(round(badge_h * 0.18))
        x = left + inner * 2
        text = style.resolved_watermark_text()
        if style.watermark_icon_url:
            slot = badge_icon_rect(rect)
            icon_size = int(slot.w)
            if icon is None:
                _fill_translucent(canvas, slot, icon_size // 2, ICON_PLACEHOLDER_FILL)
                label_font = load_font(self.font_path, max(6, int(icon_size * 0.6)), bold=True)
                draw.text(
                    (slot.x + icon_size / 2, slot.y + icon_size / 2),
                    text[:1].upper(),
                    font=label_font,
                    fill=TEXT_COLOR,
                    anchor="mm",
                )
            else:
                fitted = ImageOps.contain(icon, (icon_size, icon_size), Image.Resampling.LANCZOS)
                canvas.alpha_composite(
                    fitted.convert("RGBA"),
                    (max(0, int(slot.x)), max(0, int(slot.y) + (icon_size - fitted.height) // 2)),
                )
            x += icon_size + inner
        font_size = max(6, int(round((badge_h - 2 * inner) * 0.7)))
        font = fit_font(
            draw,
            text,
            font_path=self.font_path,
            base_size=font_size,
            max_width=max(1, right - x - inner * 2),
        )
        draw.text((x, top + badge_h / 2), text, font=font, fill=TEXT_COLOR, anchor="lm")

    def _draw_weather(
        self,
        canvas: Image.Image,
        geometry: OverlayGeometry,
        weather: WeatherData,
        icon: Image.Image | None,
    ) -> None:
        column = geometry.weather
        if column.w <= 0:
            return
        draw = ImageDraw.Draw(canvas)
        padding = geometry.padding
        anchor_x = column.right - padding
        usable_w = max(1, int(column.w - padding))
        slot = weather_icon_rect(geometry)
        icon_size = int(slot.w)
        icon_top = int(slot.y)

        if icon is None:
            label = weather_condition_label(weather.condition_code)
            _fill_translucent(canvas, slot, icon_size // 5, ICON_PLACEHOLDER_FILL)
            font = fit_font(
                draw,
                label,
                font_path=self.font_path,
                base_size=max(6, icon_size // 4),
                max_width=max(1, icon_size - 4),
            )
            draw.text(
                (anchor_x - icon_size / 2, icon_top + icon_size / 2),
                label,
                font=font,
                fill=TEXT_COLOR,
                anchor="mm",
            )
        else:
            fitted = ImageOps.contain(icon, (icon_size, icon_size), Image.Resampling.LANCZOS)
            canvas.alpha_composite(fitted.convert("RGBA"), (max(0, int(anchor_x - fitted.width)), max(0, icon_top)))

        celsius = format_temperature(weather.temperature_c, "C")
        fahrenheit = format_temperature(weather.temperature_f, "F")
        base_size = min(int(round(50 * geometry.scale)), max(6, int(geometry.panel.h * 0.2)))
        widest = celsius if len(celsius) >= len(fahrenheit) else fahrenheit
        font = fit_font(draw, widest, font_path=self.font_path, base_size=base_size, max_width=usable_w)
        temp_gap = int(round(4 * geometry.scale))
        f_bottom = geometry.panel.bottom - padding
        draw.text((anchor_x, f_bottom), fahrenheit, font=font, fill=TEXT_MUTED_COLOR, anchor="rd")
        f_top = draw.textbbox((anchor_x, f_bottom), fahrenheit, font=font, anchor="rd")[1]
        draw.text((anchor_x, f_top - temp_gap), celsius, font=font, fill=TEXT_COLOR, anchor="rd")
