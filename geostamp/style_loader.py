from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from geostamp.constants import MAP_STYLE_SATELLITE, VALID_MAP_STYLES, VALID_VARIANTS, VARIANT_BAR
from geostamp.models import LayoutSettings, StyleSettings


def _clamp_int(value: Any, minimum: int, maximum: int, fallback: int) -> int:
    try:
        parsed = int(float(value))
    except Exception:
        parsed = fallback
    return max(minimum, min(maximum, parsed))


def _clamp_float(value: Any, minimum: float, maximum: float, fallback: float) -> float:
    try:
        parsed = float(value)
    except Exception:
        parsed = fallback
    return max(minimum, min(maximum, parsed))


def parse_bool_value(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    return default


def normalize_layout_dict(data: dict[str, Any] | None) -> LayoutSettings:
    data = data or {}
    defaults = LayoutSettings()
    return LayoutSettings(
        info_box_height_ratio=round(
            _clamp_float(data.get("info_box_height_ratio"), 0.1, 0.5, defaults.info_box_height_ratio), 3
        ),
        mini_map_width_multiplier=round(
            _clamp_float(data.get("mini_map_width_multiplier"), 0.5, 2.0, defaults.mini_map_width_multiplier), 3
        ),
        font_size_title=_clamp_int(data.get("font_size_title"), 10, 80, defaults.font_size_title),
        font_size_body=_clamp_int(data.get("font_size_body"), 10, 60, defaults.font_size_body),
        line_height=round(_clamp_float(data.get("line_height"), 1.0, 2.0, defaults.line_height), 2),
        title_body_gap=_clamp_int(data.get("title_body_gap"), -20, 20, defaults.title_body_gap),
        padding=_clamp_int(data.get("padding"), 0, 40, defaults.padding),
        margin=_clamp_int(data.get("margin"), 0, 100, defaults.margin),
        max_auto_scale=round(_clamp_float(data.get("max_auto_scale"), 1.0, 4.0, defaults.max_auto_scale), 2),
    )


def normalize_style_dict(data: dict[str, Any] | None) -> StyleSettings:
    data = data or {}
    map_style = str(data.get("map_style") or MAP_STYLE_SATELLITE).strip().lower()
    if map_style not in VALID_MAP_STYLES:
        map_style = MAP_STYLE_SATELLITE
    variant = str(data.get("variant") or VARIANT_BAR).strip().lower()
    if variant not in VALID_VARIANTS:
        variant = VARIANT_BAR
    use_24h = data.get("use_24h_format")
    icon_url = data.get("watermark_icon_url")

    return StyleSettings(
        show_lat_long=parse_bool_value(data.get("show_lat_long"), True),
        show_full_address=parse_bool_value(data.get("show_full_address"), True),
        overlay_opacity=_clamp_int(data.get("overlay_opacity"), 0, 100, 70),
        use_24h_format=None if use_24h is None else parse_bool_value(use_24h, False),
        watermark_text=str(data.get("watermark_text") or ""),
        map_style=map_style,
        variant=variant,
        watermark_icon_url=str(icon_url) if icon_url else None,
        layout=normalize_layout_dict(data.get("layout")),
    )


def load_mapping(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError(f"expected a mapping in {path}")
    return data


def load_style(path: Path, base: dict[str, Any] | None = None) -> StyleSettings:
    """Load a YAML/JSON style file; keys it omits fall back to ``base``."""
    merged = dict(base or {})
    loaded = load_mapping(path)
    if isinstance(merged.get("layout"), dict) and isinstance(loaded.get("layout"), dict):
        loaded["layout"] = {**merged["layout"], **loaded["layout"]}
    merged.update(loaded)
    return normalize_style_dict(merged)
