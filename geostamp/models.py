from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from geostamp.constants import DEFAULT_WATERMARK_TEXT, MAP_STYLE_SATELLITE, VARIANT_BAR


@dataclass(frozen=True, slots=True)
class LocationData:
    lat: float
    lng: float
    district: str = ""
    city: str = ""
    province: str = ""
    country: str = ""
    country_code: str = ""
    full_address: str = ""

    def title_text(self) -> str:
        parts = [self.district or self.city, self.province, self.country]
        return ", ".join(part.strip() for part in parts if part and part.strip())


@dataclass(frozen=True, slots=True)
class DateTimeData:
    moment: datetime
    timezone: str = "Asia/Jakarta"
    utc_offset: str = "+07:00"
    use_24h: bool = False

    @classmethod
    def from_zone(cls, moment: datetime, zone_name: str, use_24h: bool = False) -> "DateTimeData":
        """Build from an IANA zone name; the wall-clock of ``moment`` is kept as given."""
        from zoneinfo import ZoneInfo

        from geostamp.formatting import format_utc_offset

        offset = moment.replace(tzinfo=ZoneInfo(zone_name)).utcoffset()
        return cls(
            moment=moment,
            timezone=zone_name,
            utc_offset=format_utc_offset(offset),
            use_24h=use_24h,
        )


@dataclass(slots=True)
class LayoutSettings:
    info_box_height_ratio: float = 0.30
    mini_map_width_multiplier: float = 1.01
    font_size_title: int = 35
    font_size_body: int = 24
    line_height: float = 1.2
    title_body_gap: int = 6
    padding: int = 16
    margin: int = 24
    max_auto_scale: float = 2.5
    min_auto_scale: float = 0.5


@dataclass(slots=True)
class StyleSettings:
    show_lat_long: bool = True
    show_full_address: bool = True
    overlay_opacity: int = 70
    use_24h_format: bool | None = None
    watermark_text: str = ""
    map_style: str = MAP_STYLE_SATELLITE
    variant: str = VARIANT_BAR
    watermark_icon_url: str | None = None
    layout: LayoutSettings = field(default_factory=LayoutSettings)

    def resolved_watermark_text(self) -> str:
        return self.watermark_text.strip() or DEFAULT_WATERMARK_TEXT

    def resolved_use_24h(self, date_time: DateTimeData) -> bool:
        if self.use_24h_format is None:
            return date_time.use_24h
        return self.use_24h_format

    def background_alpha(self) -> int:
        opacity = max(0, min(100, int(self.overlay_opacity)))
        return int(round(opacity * 2.55))


@dataclass(frozen=True, slots=True)
class WeatherData:
    temperature_c: int
    temperature_f: int
    condition_code: int = 800
    description: str = ""
    icon_url: str | None = None

    @classmethod
    def from_celsius(
        cls,
        temperature_c: float,
        condition_code: int = 800,
        description: str = "",
        icon_url: str | None = None,
    ) -> "WeatherData":
        celsius = int(round(temperature_c))
        return cls(
            temperature_c=celsius,
            temperature_f=int(round(celsius * 9 / 5 + 32)),
            condition_code=condition_code,
            description=description,
            icon_url=icon_url,
        )


@dataclass(frozen=True, slots=True)
class TextSegment:
    text: str
    font_size: float
    weight: str = "regular"
    reserve_flag: bool = False
    role: str = "body"


@dataclass(frozen=True, slots=True)
class Rect:
    x: float
    y: float
    w: float
    h: float

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    def box(self) -> tuple[int, int, int, int]:
        return (
            int(round(self.x)),
            int(round(self.y)),
            int(round(self.x + self.w)),
            int(round(self.y + self.h)),
        )


@dataclass(frozen=True, slots=True)
class CropRect:
    source: Rect
    destination: Rect


@dataclass(slots=True)
class LayoutResult:
    lines: list[list[str]]
    font_sizes: list[int]
    scale: float
    block_height: float
    block_width: float
    overflow: bool = False

    @property
    def is_empty(self) -> bool:
        return not any(self.lines)
