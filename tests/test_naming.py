from datetime import datetime
from pathlib import Path

import pytest

from geostamp.naming import build_output_name, export_filename, sanitize_token


def test_export_filename_is_zero_padded_24h() -> None:
    assert export_filename(datetime(2024, 3, 5, 9, 7)) == "20240305_0907ByGPSMapCamera.jpg"
    assert export_filename(datetime(2024, 12, 31, 23, 59), ext="png") == "20241231_2359ByGPSMapCamera.png"


def test_build_output_name_with_tokens() -> None:
    name = build_output_name(
        "{stem}_{place}.{ext}",
        datetime(2024, 3, 15, 14, 30),
        extension="PNG",
        source=Path("IMG 001.jpg"),
        place="Depok City",
    )

    assert name == "IMG_001_Depok_City.png"


def test_build_output_name_rejects_unknown_key() -> None:
    with pytest.raises(ValueError):
        build_output_name("{camera}.{ext}", datetime(2024, 3, 15), extension="jpg")


def test_sanitize_token_falls_back() -> None:
    assert sanitize_token(None) == "NA"
    assert sanitize_token('a:b/c') == "a_b_c"
