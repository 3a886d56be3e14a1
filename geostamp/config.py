from __future__ import annotations

import copy
import os
import platform
from pathlib import Path
from typing import Any

import yaml

from geostamp.constants import DEFAULT_PREVIEW_WIDTH
from geostamp.naming import DEFAULT_NAME_TEMPLATE

MAPS_API_KEY_ENV = "GEOSTAMP_MAPS_API_KEY"

DEFAULT_CONFIG: dict[str, Any] = {
    "style": {
        "show_lat_long": True,
        "show_full_address": True,
        "overlay_opacity": 70,
        "use_24h_format": None,
        "watermark_text": "",
        "map_style": "satellite",
        "variant": "bar",
        "watermark_icon_url": None,
        "layout": {},
    },
    "timezone": "Asia/Jakarta",
    "maps_api_key": "",
    "flags_dir": None,
    "weather_icons_dir": None,
    "font_path": None,
    "output_format": "jpeg",
    "quality": 92,
    # 0 = 关闭体积预算，按 quality 直接编码
    "budget_kb": 0,
    "preview_width": DEFAULT_PREVIEW_WIDTH,
    "name_template": DEFAULT_NAME_TEMPLATE,
    "asset_timeout": 10.0,
}


def get_user_data_dir() -> Path:
    """返回用户可写的数据目录（Windows APPDATA、macOS Application Support、其他平台 XDG）。"""
    system_name = platform.system().lower()
    if system_name == "windows":
        base = (
            os.environ.get("APPDATA")
            or os.environ.get("LOCALAPPDATA")
            or str(Path.home() / "AppData" / "Roaming")
        )
        return Path(base) / "GeoStamp"
    if system_name == "darwin":
        return Path.home() / "Library" / "Application Support" / "GeoStamp"

    xdg_config_home = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config_home:
        return Path(xdg_config_home) / "GeoStamp"
    return Path.home() / ".config" / "GeoStamp"


def get_config_path() -> Path:
    return get_user_data_dir() / "Config" / "config.yaml"


def _deep_merge(base: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in incoming.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict[str, Any]:
    cfg_path = path or get_config_path()
    if not cfg_path.exists():
        cfg = copy.deepcopy(DEFAULT_CONFIG)
    else:
        text = cfg_path.read_text(encoding="utf-8")
        loaded = yaml.safe_load(text) or {}
        if not isinstance(loaded, dict):
            loaded = {}
        cfg = _deep_merge(DEFAULT_CONFIG, loaded)
    env_key = os.environ.get(MAPS_API_KEY_ENV)
    if env_key:
        cfg["maps_api_key"] = env_key
    return cfg


def write_default_config(path: Path | None = None, force: bool = False) -> Path:
    cfg_path = path or get_config_path()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    if cfg_path.exists() and not force:
        return cfg_path
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg_path.write_text(yaml.safe_dump(cfg, sort_keys=False, allow_unicode=True), encoding="utf-8")
    return cfg_path
