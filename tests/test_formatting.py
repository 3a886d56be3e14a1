from datetime import datetime, timedelta

from geostamp.formatting import (
    TIMEZONE_OFFSETS,
    day_name,
    format_coordinates,
    format_datetime,
    format_temperature,
    format_utc_offset,
)
from geostamp.models import DateTimeData, StyleSettings


def test_timestamp_in_24h_and_12h_form() -> None:
    moment = datetime(2024, 3, 15, 14, 30)

    assert format_datetime(moment, "+07:00", True) == "Jumat, 15/03/2024 14:30 GMT +07:00"
    assert format_datetime(moment, "+07:00", False) == "Jumat, 15/03/2024 02:30 PM GMT +07:00"


def test_midnight_and_noon_in_12h_form() -> None:
    assert format_datetime(datetime(2024, 3, 17, 0, 5), "+00:00", False) == "Minggu, 17/03/2024 12:05 AM GMT +00:00"
    assert format_datetime(datetime(2024, 3, 18, 12, 0), "+00:00", False) == "Senin, 18/03/2024 12:00 PM GMT +00:00"


def test_day_table_starts_on_sunday() -> None:
    assert day_name(datetime(2024, 3, 17)) == "Minggu"
    assert day_name(datetime(2024, 3, 23)) == "Sabtu"


def test_utc_offset_formatting() -> None:
    assert format_utc_offset(timedelta(hours=7)) == "+07:00"
    assert format_utc_offset(timedelta(hours=5, minutes=30)) == "+05:30"
    assert format_utc_offset(timedelta(hours=-3, minutes=-30)) == "-03:30"
    assert format_utc_offset(None) == "+00:00"
    assert "+07:00" in TIMEZONE_OFFSETS


def test_coordinates_and_temperature() -> None:
    assert format_coordinates(-7.59711, 110.949835) == "Lat -7.597110° Long 110.949835°"
    assert format_temperature(30, "c") == "30°C"


def test_date_time_from_zone_resolves_offset() -> None:
    data = DateTimeData.from_zone(datetime(2024, 3, 15, 14, 30), "Asia/Jakarta")

    assert data.utc_offset == "+07:00"
    assert data.timezone == "Asia/Jakarta"


def test_style_24h_setting_overrides_date_time_default() -> None:
    date_time = DateTimeData(datetime(2024, 3, 15, 14, 30), use_24h=True)

    assert StyleSettings().resolved_use_24h(date_time) is True
    assert StyleSettings(use_24h_format=False).resolved_use_24h(date_time) is False
