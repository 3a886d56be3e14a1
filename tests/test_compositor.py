import asyncio
from datetime import datetime
from pathlib import Path

import pytest
from PIL import Image, ImageChops, ImageDraw

from geostamp.assets.loader import AssetLoader
from geostamp.assets.providers import GoogleStaticMapProvider
from geostamp.errors import AssetLoadError, PreconditionViolation
from geostamp.models import DateTimeData, LocationData, StyleSettings, WeatherData
from geostamp.render.compositor import (
    OverlayCompositor,
    badge_icon_rect,
    build_text_segments,
    compute_overlay_geometry,
    weather_icon_rect,
)

LOCATION = LocationData(
    lat=-6.4025,
    lng=106.7942,
    district="Depok",
    city="Depok",
    province="Jawa Barat",
    country="Indonesia",
    country_code="ID",
    full_address="Jl. Margonda Raya No. 100, Depok",
)
DATE_TIME = DateTimeData(datetime(2024, 3, 15, 14, 30))
WEATHER = WeatherData.from_celsius(29.6, condition_code=500, icon_url="icons/10d.png")


class _FakeLoader:
    """Serves assets from a dict; anything else fails like a broken download."""

    def __init__(self, images: dict[str, Image.Image] | None = None) -> None:
        self.images = images or {}
        self.requested: list[str] = []

    async def load_image(self, url: str) -> Image.Image:
        self.requested.append(url)
        if url in self.images:
            return self.images[url]
        raise AssetLoadError(url, "offline")


def _photo(size=(1600, 900), color=(0, 0, 255)) -> Image.Image:
    return Image.new("RGB", size, color=color)


def _compositor(loader: _FakeLoader, api_key: str = "key") -> OverlayCompositor:
    return OverlayCompositor(loader, GoogleStaticMapProvider(api_key=api_key), flags_base="flags")


def test_bar_geometry_without_weather_gives_text_all_remaining_width() -> None:
    geometry = compute_overlay_geometry(1080, 810, StyleSettings(), has_weather=False)

    assert geometry.scale == 1.0
    assert geometry.panel.box() == (0, 810 - 243, 1080, 810)
    assert geometry.map.w == 245
    assert geometry.weather.w == 0
    assert geometry.text_column.w == 1080 - 245 - 10


def test_weather_column_takes_a_tenth_of_the_panel() -> None:
    geometry = compute_overlay_geometry(1080, 810, StyleSettings(), has_weather=True)

    assert geometry.weather.w == 108
    assert geometry.text_column.w == 1080 - 245 - 108 - 20
    assert geometry.weather.right == geometry.panel.right


def test_card_variant_is_inset_and_rounded() -> None:
    geometry = compute_overlay_geometry(1080, 810, StyleSettings(variant="card"), has_weather=False)

    assert geometry.panel.x == 24
    assert geometry.panel.bottom == 810 - 24
    assert geometry.panel_radius > 0
    assert geometry.map_radius > 0
    assert geometry.map.x == geometry.panel.x + geometry.padding


def test_preview_scale_floor_is_lower_than_export() -> None:
    style = StyleSettings()

    assert compute_overlay_geometry(400, 300, style, False, preview=True).scale == 0.5
    assert compute_overlay_geometry(400, 300, style, False, preview=False).scale == 0.8


def test_hidden_rows_leave_title_and_timestamp() -> None:
    style = StyleSettings(show_lat_long=False, show_full_address=False)

    segments = build_text_segments(LOCATION, DATE_TIME, style, 1.0)

    assert [segment.role for segment in segments] == ["title", "timestamp"]
    assert segments[0].text == "Depok, Jawa Barat, Indonesia"
    assert segments[1].text == "Jumat, 15/03/2024 02:30 PM GMT +07:00"


def test_all_rows_in_order() -> None:
    segments = build_text_segments(LOCATION, DATE_TIME, StyleSettings(use_24h_format=True), 1.0, reserve_flag=True)

    assert [segment.role for segment in segments] == ["title", "address", "coordinates", "timestamp"]
    assert segments[0].reserve_flag
    assert segments[2].text == "Lat -6.402500° Long 106.794200°"
    assert segments[3].text.endswith("14:30 GMT +07:00")


def test_composite_output_is_cropped_rgb() -> None:
    loader = _FakeLoader()

    result = asyncio.run(_compositor(loader).composite(_photo(), LOCATION, DATE_TIME, StyleSettings()))

    assert result.mode == "RGB"
    assert result.size == (1200, 900)
    # photo above the overlay is untouched
    assert result.getpixel((5, 5)) == (0, 0, 255)


def test_preview_downsamples_before_drawing() -> None:
    result = asyncio.run(
        _compositor(_FakeLoader()).composite(_photo(), LOCATION, DATE_TIME, StyleSettings(), preview_width=600)
    )

    assert result.size == (600, 450)


def test_render_scale_shrinks_output() -> None:
    result = asyncio.run(
        _compositor(_FakeLoader()).composite(_photo(), LOCATION, DATE_TIME, StyleSettings(), render_scale=0.5)
    )

    assert result.size == (600, 450)


def test_same_inputs_render_identical_pixels() -> None:
    tile = Image.new("RGBA", (256, 256), (40, 120, 40, 255))
    flag = Image.new("RGBA", (64, 48), (200, 0, 0, 255))
    loader = _FakeLoader({"flags/u1f1ee_1f1e9.png": flag})
    compositor = _compositor(loader)
    compositor.map_provider = _StubMapProvider("tile://map")
    loader.images["tile://map"] = tile
    photo = _photo()

    first = asyncio.run(compositor.composite(photo, LOCATION, DATE_TIME, StyleSettings(), WEATHER))
    second = asyncio.run(compositor.composite(photo, LOCATION, DATE_TIME, StyleSettings(), WEATHER))

    assert first.tobytes() == second.tobytes()


class _StubMapProvider:
    wordmark = "Google"

    def __init__(self, url: str) -> None:
        self.url = url

    def tile_url(self, center, zoom, size, style) -> str:
        return self.url


def test_failed_assets_become_placeholders() -> None:
    loader = _FakeLoader()
    style = StyleSettings(watermark_icon_url="icons/badge.png")

    result = asyncio.run(_compositor(loader).composite(_photo(), LOCATION, DATE_TIME, style, WEATHER))

    geometry = compute_overlay_geometry(1200, 900, style, has_weather=True)
    x, y, _, _ = geometry.map.box()
    assert result.getpixel((x + 3, y + 3)) == (0xE8, 0xE4, 0xD8)
    assert "flags/u1f1ee_1f1e9.png" in loader.requested
    assert "icons/10d.png" in loader.requested
    assert "icons/badge.png" in loader.requested


def test_failed_weather_icon_leaves_a_labelled_slot() -> None:
    loader = _FakeLoader()

    result = asyncio.run(_compositor(loader).composite(_photo(), LOCATION, DATE_TIME, StyleSettings(), WEATHER))

    geometry = compute_overlay_geometry(1200, 900, StyleSettings(), has_weather=True)
    slot = weather_icon_rect(geometry)
    # 面板本身压在蓝图上 R 约 89，占位块更亮
    r, _, _ = result.getpixel((int(slot.x + slot.w / 2), int(slot.y) + 3))
    assert r > 120


def test_failed_badge_icon_gets_placeholder_and_initial() -> None:
    loader = _FakeLoader()
    style = StyleSettings(watermark_icon_url="icons/badge.png")
    compositor = _compositor(loader)

    result = asyncio.run(compositor.composite(_photo(), LOCATION, DATE_TIME, style))

    geometry = compute_overlay_geometry(1200, 900, style, has_weather=False)
    scratch = ImageDraw.Draw(Image.new("RGBA", (1200, 900)))
    slot = badge_icon_rect(compositor._badge_rect(scratch, geometry, style, True))
    r, _, _ = result.getpixel((int(slot.x + slot.w / 2), int(slot.y) + 2))
    assert r > 120
    region = result.crop((int(slot.x), int(slot.y), int(slot.x + slot.w), int(slot.y + slot.h)))
    # 首字母用白色绘制
    assert max(min(pixel) for pixel in region.getdata()) > 200


def test_failed_flag_draws_placeholder_inside_text_column() -> None:
    clear_flag = Image.new("RGBA", (40, 30), (0, 0, 0, 0))
    loaded = asyncio.run(
        _compositor(_FakeLoader({"flags/u1f1ee_1f1e9.png": clear_flag})).composite(
            _photo(), LOCATION, DATE_TIME, StyleSettings()
        )
    )
    failed = asyncio.run(_compositor(_FakeLoader()).composite(_photo(), LOCATION, DATE_TIME, StyleSettings()))

    bbox = ImageChops.difference(loaded, failed).getbbox()
    assert bbox is not None
    geometry = compute_overlay_geometry(1200, 900, StyleSettings(), has_weather=False)
    left, top, right, bottom = geometry.text_column.box()
    assert left <= bbox[0] and bbox[2] <= right + 1
    assert top <= bbox[1] and bbox[3] <= bottom + 1


def test_unreadable_local_icon_path_does_not_abort_composite(tmp_path: Path) -> None:
    compositor = OverlayCompositor(AssetLoader(base_dir=tmp_path), GoogleStaticMapProvider(api_key=""))
    style = StyleSettings(watermark_icon_url="icons/bad\x00name.png")

    result = asyncio.run(compositor.composite(_photo(), LOCATION, DATE_TIME, style))

    assert result.mode == "RGB"
    assert result.size == (1200, 900)


def test_loaded_map_tile_fills_the_inset() -> None:
    loader = _FakeLoader({"tile://map": Image.new("RGBA", (300, 300), (255, 0, 0, 255))})
    compositor = _compositor(loader)
    compositor.map_provider = _StubMapProvider("tile://map")

    result = asyncio.run(compositor.composite(_photo(), LOCATION, DATE_TIME, StyleSettings()))

    geometry = compute_overlay_geometry(1200, 900, StyleSettings(), has_weather=False)
    x, y, _, _ = geometry.map.box()
    r, g, b = result.getpixel((x + 3, y + 3))
    assert r > 245 and g < 10 and b < 10


def test_optional_assets_are_not_requested_when_absent() -> None:
    loader = _FakeLoader()
    location = LocationData(lat=1.0, lng=2.0, city="Somewhere")

    asyncio.run(_compositor(loader, api_key="").composite(_photo(), location, DATE_TIME, StyleSettings()))

    assert loader.requested == []


def test_missing_required_inputs_fail_fast() -> None:
    compositor = _compositor(_FakeLoader())

    with pytest.raises(PreconditionViolation):
        asyncio.run(compositor.composite(None, LOCATION, DATE_TIME, StyleSettings()))
    with pytest.raises(PreconditionViolation):
        asyncio.run(compositor.composite(_photo(), None, DATE_TIME, StyleSettings()))
