import json
from pathlib import Path

import pytest

from geostamp.models import StyleSettings
from geostamp.style_loader import load_mapping, load_style, normalize_layout_dict, normalize_style_dict


def test_layout_values_are_clamped_to_slider_ranges() -> None:
    layout = normalize_layout_dict(
        {"info_box_height_ratio": 0.9, "font_size_title": "5", "max_auto_scale": 9, "padding": "oops"}
    )

    assert layout.info_box_height_ratio == 0.5
    assert layout.font_size_title == 10
    assert layout.max_auto_scale == 4.0
    assert layout.padding == 16
    assert layout.min_auto_scale == 0.5


def test_style_values_are_normalized() -> None:
    style = normalize_style_dict(
        {"map_style": "terrain", "variant": "CARD", "overlay_opacity": 150, "use_24h_format": "yes"}
    )

    assert style.map_style == "satellite"
    assert style.variant == "card"
    assert style.overlay_opacity == 100
    assert style.use_24h_format is True
    assert normalize_style_dict({}).use_24h_format is None


def test_load_style_merges_over_base(tmp_path: Path) -> None:
    path = tmp_path / "style.json"
    path.write_text(json.dumps({"show_lat_long": False, "layout": {"margin": 40}}), encoding="utf-8")

    style = load_style(path, base={"watermark_text": "Survey", "layout": {"padding": 8}})

    assert style.show_lat_long is False
    assert style.watermark_text == "Survey"
    assert style.layout.padding == 8
    assert style.layout.margin == 40


def test_watermark_and_opacity_resolution() -> None:
    assert StyleSettings().resolved_watermark_text() == "GPS Map Camera"
    assert StyleSettings(watermark_text="  Site A ").resolved_watermark_text() == "Site A"
    assert StyleSettings(overlay_opacity=100).background_alpha() == 255
    assert StyleSettings(overlay_opacity=0).background_alpha() == 0


def test_load_mapping_reads_json_and_yaml(tmp_path: Path) -> None:
    json_path = tmp_path / "location.json"
    json_path.write_text(json.dumps({"lat": 1.5}), encoding="utf-8")
    yaml_path = tmp_path / "location.yaml"
    yaml_path.write_text("lng: 2.5\n", encoding="utf-8")
    list_path = tmp_path / "list.yaml"
    list_path.write_text("- 1\n- 2\n", encoding="utf-8")

    assert load_mapping(json_path) == {"lat": 1.5}
    assert load_mapping(yaml_path) == {"lng": 2.5}
    with pytest.raises(ValueError, match="expected a mapping"):
        load_mapping(list_path)
