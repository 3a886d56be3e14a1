from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfoNotFoundError

import httpx
import typer

from geostamp.assets.loader import AssetLoader
from geostamp.assets.providers import (
    GoogleStaticMapProvider,
    flag_emoji,
    flag_filename,
    openweather_icon_url,
    weather_from_openweather,
)
from geostamp.config import load_config, write_default_config
from geostamp.decoders.image_decoder import decode_image
from geostamp.errors import GeostampError
from geostamp.export import encode, encode_under_budget
from geostamp.models import DateTimeData, LocationData, StyleSettings, WeatherData
from geostamp.naming import build_output_name
from geostamp.render.compositor import OverlayCompositor
from geostamp.style_loader import load_mapping, load_style, normalize_style_dict, parse_bool_value

app = typer.Typer(add_completion=False, no_args_is_help=True, help="GPS map camera style geotag overlay CLI.")
LOGGER = logging.getLogger("geostamp")

_LOCATION_KEYS = ("lat", "lng", "district", "city", "province", "country", "country_code", "full_address")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _resolve_output_format(fmt: str) -> tuple[str, str]:
    f = fmt.lower()
    if f in {"jpeg", "jpg"}:
        return "jpg", "jpeg"
    if f == "png":
        return "png", "png"
    raise ValueError(f"output format must be jpeg/jpg or png, got: {fmt!r}")


def _build_location(location_file: Path | None, overrides: dict[str, Any]) -> LocationData:
    data: dict[str, Any] = load_mapping(location_file) if location_file else {}
    for key, value in overrides.items():
        if value is not None:
            data[key] = value
    if data.get("lat") is None or data.get("lng") is None:
        raise ValueError("latitude and longitude are required (--lat/--lng or --location file)")
    fields = {key: data[key] for key in _LOCATION_KEYS if data.get(key) is not None}
    fields["lat"] = float(fields["lat"])
    fields["lng"] = float(fields["lng"])
    for key in _LOCATION_KEYS[2:]:
        if key in fields:
            fields[key] = str(fields[key])
    return LocationData(**fields)


def _parse_moment(value: str | None) -> datetime:
    if not value:
        return datetime.now().replace(second=0, microsecond=0)
    try:
        return datetime.fromisoformat(value.strip().replace("T", " "))
    except ValueError as exc:
        raise ValueError(f"time must look like 'YYYY-MM-DD HH:MM', got: {value!r}") from exc


def _build_weather(
    weather_file: Path | None,
    temp_c: float | None,
    condition_code: int,
    icon_code: str | None,
    icon_base: str | None,
) -> WeatherData | None:
    if weather_file is not None:
        return weather_from_openweather(load_mapping(weather_file), icon_base=icon_base)
    if temp_c is None:
        return None
    return WeatherData.from_celsius(
        temp_c,
        condition_code=condition_code,
        icon_url=openweather_icon_url(icon_code or "", icon_base),
    )


def _resolve_style(cfg: dict[str, Any], style_file: Path | None) -> StyleSettings:
    base = cfg.get("style") or {}
    if style_file is not None:
        return load_style(style_file, base=base)
    return normalize_style_dict(base)


async def _render_bytes(
    image,
    location: LocationData,
    date_time: DateTimeData,
    style: StyleSettings,
    weather: WeatherData | None,
    cfg: dict[str, Any],
    *,
    fmt: str,
    quality: int,
    budget_bytes: int,
    preview_width: int | None,
) -> bytes:
    timeout = float(cfg.get("asset_timeout") or 10.0)
    font_path = cfg.get("font_path")
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        compositor = OverlayCompositor(
            AssetLoader(client, base_dir=Path.cwd(), timeout=timeout),
            GoogleStaticMapProvider(api_key=str(cfg.get("maps_api_key") or "")),
            flags_base=cfg.get("flags_dir") or None,
            font_path=Path(font_path) if font_path else None,
        )
        if preview_width:
            frame = await compositor.composite(
                image, location, date_time, style, weather, preview_width=preview_width
            )
            return encode(frame, fmt, quality / 100)
        if fmt == "jpeg" and budget_bytes > 0:
            result = await encode_under_budget(
                lambda scale: compositor.composite(
                    image, location, date_time, style, weather, render_scale=scale
                ),
                budget_bytes=budget_bytes,
                fmt=fmt,
            )
            LOGGER.info(
                "Budget %s after %d attempt(s): %d bytes, quality=%.1f scale=%.1f",
                "met" if result.budget_met else "NOT met",
                result.attempts,
                result.size,
                result.quality,
                result.scale,
            )
            return result.data
        frame = await compositor.composite(image, location, date_time, style, weather)
        return encode(frame, fmt, quality / 100)


@app.command()
def render(
    input_path: Path = typer.Argument(..., exists=True, resolve_path=True, dir_okay=False),
    out: Path | None = typer.Option(None, "--out", help="Output directory."),
    location_file: Path | None = typer.Option(
        None, "--location", exists=True, dir_okay=False, help="YAML/JSON file with resolved location fields."
    ),
    lat: float | None = typer.Option(None, "--lat"),
    lng: float | None = typer.Option(None, "--lng"),
    district: str | None = typer.Option(None, "--district"),
    city: str | None = typer.Option(None, "--city"),
    province: str | None = typer.Option(None, "--province"),
    country: str | None = typer.Option(None, "--country"),
    country_code: str | None = typer.Option(None, "--country-code", help="ISO-3166 alpha-2, e.g. ID"),
    address: str | None = typer.Option(None, "--address", help="Full street address line."),
    when: str | None = typer.Option(None, "--time", help='Capture time "YYYY-MM-DD HH:MM" (default: now).'),
    timezone: str | None = typer.Option(None, "--timezone", help="IANA zone, e.g. Asia/Jakarta."),
    use_24h: str | None = typer.Option(None, "--use-24h", help="true|false, overrides the style setting."),
    style_file: Path | None = typer.Option(None, "--style", exists=True, dir_okay=False, help="YAML/JSON style file."),
    weather_file: Path | None = typer.Option(
        None, "--weather", exists=True, dir_okay=False, help="OpenWeather current-weather JSON document."
    ),
    temp_c: float | None = typer.Option(None, "--temp-c", help="Temperature in Celsius (enables weather column)."),
    weather_code: int = typer.Option(800, "--weather-code", help="Weather condition code."),
    weather_icon: str | None = typer.Option(None, "--weather-icon", help="Weather icon code, e.g. 01d."),
    output_format: str | None = typer.Option(None, "--format", help="Output format: jpeg|png"),
    quality: int | None = typer.Option(None, "--quality", min=1, max=100),
    budget_kb: int | None = typer.Option(None, "--budget-kb", min=0, help="JPEG size budget in KB (0=off)."),
    preview_width: int | None = typer.Option(None, "--preview-width", min=1, help="Render a downscaled preview."),
    name_template: str | None = typer.Option(None, "--name", help='Output filename template, e.g. "{stem}_{date}.{ext}"'),
    log_level: str = typer.Option("info", "--log-level"),
) -> None:
    """Composite the geotag overlay onto one photo and write the export file."""
    _setup_logging(log_level)
    cfg = load_config()
    t0 = time.perf_counter()

    fmt_str = output_format or str(cfg.get("output_format", "jpeg"))
    try:
        out_ext, fmt = _resolve_output_format(fmt_str)
    except ValueError as exc:
        typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(1)

    quality_val = int(quality if quality is not None else cfg.get("quality", 92))
    budget_val = int(budget_kb if budget_kb is not None else cfg.get("budget_kb", 0)) * 1024
    name_tmpl = name_template or str(cfg.get("name_template"))

    try:
        location = _build_location(
            location_file,
            {
                "lat": lat,
                "lng": lng,
                "district": district,
                "city": city,
                "province": province,
                "country": country,
                "country_code": country_code,
                "full_address": address,
            },
        )
        style = _resolve_style(cfg, style_file)
        if use_24h is not None:
            style.use_24h_format = parse_bool_value(use_24h, False)
        moment = _parse_moment(when)
        date_time = DateTimeData.from_zone(moment, timezone or str(cfg.get("timezone") or "Asia/Jakarta"))
        weather = _build_weather(weather_file, temp_c, weather_code, weather_icon, cfg.get("weather_icons_dir"))
        image = decode_image(input_path)
        data = asyncio.run(
            _render_bytes(
                image,
                location,
                date_time,
                style,
                weather,
                cfg,
                fmt=fmt,
                quality=quality_val,
                budget_bytes=budget_val,
                preview_width=preview_width,
            )
        )
        place = location.city or location.district
        output_name = build_output_name(name_tmpl, moment, extension=out_ext, source=input_path, place=place)
    except (GeostampError, ValueError, OSError, ZoneInfoNotFoundError) as exc:
        typer.secho(f"Render failed: {exc}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)

    out_dir = out or input_path.parent
    out_dir.mkdir(parents=True, exist_ok=True)
    output_file = out_dir / output_name
    output_file.write_bytes(data)
    LOGGER.info("OK   %s -> %s  (%d bytes, %.2fs)", input_path.name, output_file.name, len(data), time.perf_counter() - t0)
    typer.echo(str(output_file))


@app.command("flag-name")
def flag_name(code: str = typer.Argument(..., help="ISO-3166 alpha-2 country code.")) -> None:
    """Print the flag asset name for a country code."""
    name = flag_filename(code)
    if name is None:
        typer.secho(f"not a two-letter country code: {code!r}", err=True, fg=typer.colors.RED)
        raise typer.Exit(1)
    typer.echo(f"{name}.png {flag_emoji(code)}")


@app.command("init-config")
def init_config(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config file."),
) -> None:
    path = write_default_config(force=force)
    typer.echo(f"Config initialized: {path}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
