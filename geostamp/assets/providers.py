"""Asset address derivation and the collaborator interfaces around the compositor."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urlencode

from geostamp.constants import MAP_STYLE_ROADMAP, MAP_STYLE_SATELLITE
from geostamp.errors import AssetLoadError
from geostamp.models import LocationData, WeatherData

GOOGLE_STATIC_MAPS_URL = "https://maps.googleapis.com/maps/api/staticmap"
MIN_STATIC_MAP_PX = 100

# Regional indicator symbol letter A
_REGIONAL_INDICATOR_A = 0x1F1E6


class StaticMapProvider(Protocol):
    wordmark: str

    def tile_url(self, center: tuple[float, float], zoom: int, size: tuple[int, int], style: str) -> str:
        ...


class GeocodingProvider(Protocol):
    def reverse_geocode(self, lat: float, lng: float) -> LocationData:
        ...


class PlaceSearchProvider(Protocol):
    def search(self, query: str) -> list[LocationData]:
        ...


@dataclass(slots=True)
class GoogleStaticMapProvider:
    api_key: str = ""
    wordmark: str = "Google"
    base_url: str = GOOGLE_STATIC_MAPS_URL

    def tile_url(self, center: tuple[float, float], zoom: int, size: tuple[int, int], style: str) -> str:
        if not self.api_key:
            raise AssetLoadError(self.base_url, "no static map API key configured")
        lat, lng = center
        maptype = MAP_STYLE_ROADMAP if style == MAP_STYLE_ROADMAP else MAP_STYLE_SATELLITE
        params = {
            "center": f"{lat},{lng}",
            "zoom": str(int(zoom)),
            "size": f"{int(size[0])}x{int(size[1])}",
            "scale": "2",
            "maptype": maptype,
            "markers": f"{lat},{lng}",
            "key": self.api_key,
        }
        return f"{self.base_url}?{urlencode(params, safe=',')}"


def static_map_pixel_size(width: float, height: float, device_scale: float) -> tuple[int, int]:
    """Requested tile size: content box divided by the render scale, at least 100px."""
    scale = device_scale if device_scale > 0 else 1.0
    return (
        max(int(round(width / scale)), MIN_STATIC_MAP_PX),
        max(int(round(height / scale)), MIN_STATIC_MAP_PX),
    )


def flag_filename(country_code: str | None) -> str | None:
    """``ID`` -> ``u1f1ee_1f1e9`` (hex code points of the regional indicators)."""
    code = (country_code or "").strip().upper()
    if len(code) != 2 or not code.isascii() or not code.isalpha():
        return None
    points = [format(_REGIONAL_INDICATOR_A + ord(ch) - ord("A"), "x") for ch in code]
    return "u" + "_".join(points)


def flag_emoji(country_code: str | None) -> str:
    name = flag_filename(country_code)
    if name is None:
        return ""
    code = (country_code or "").strip().upper()
    return "".join(chr(_REGIONAL_INDICATOR_A + ord(ch) - ord("A")) for ch in code)


def flag_url(country_code: str | None, base: str | None) -> str | None:
    name = flag_filename(country_code)
    if name is None or not base:
        return None
    return f"{base.rstrip('/')}/{name}.png"


def openweather_icon_url(icon_code: str, base: str | None) -> str | None:
    if not icon_code or not base:
        return None
    return f"{base.rstrip('/')}/{icon_code}.png"


def weather_condition_label(code: int) -> str:
    """Short label drawn in place of a weather icon that failed to load."""
    if code == 0:
        return "Clear"
    if code <= 2:
        return "Partly cloudy"
    if code == 3:
        return "Cloudy"
    if code <= 48:
        return "Fog"
    if code <= 67:
        return "Rain"
    if code <= 77:
        return "Snow"
    if code <= 82:
        return "Showers"
    if code <= 86:
        return "Snow"
    # OpenWeather condition groups
    if 200 <= code < 300:
        return "Storm"
    if 300 <= code < 600:
        return "Rain"
    if 600 <= code < 700:
        return "Snow"
    if 700 <= code < 800:
        return "Fog"
    if code == 800:
        return "Clear"
    if 800 < code < 900:
        return "Cloudy"
    return "Storm"


def weather_from_openweather(payload: dict[str, Any], icon_base: str | None = None) -> WeatherData:
    """Map an OpenWeather "current weather" document onto ``WeatherData``."""
    try:
        temperature = float(payload["main"]["temp"])
        condition = payload["weather"][0]
    except (KeyError, IndexError, TypeError, ValueError) as exc:
        raise ValueError(f"unexpected weather payload: {exc}") from exc
    return WeatherData.from_celsius(
        temperature,
        condition_code=int(condition.get("id") or 800),
        description=str(condition.get("description") or ""),
        icon_url=openweather_icon_url(str(condition.get("icon") or ""), icon_base),
    )
