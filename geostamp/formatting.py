from __future__ import annotations

from datetime import datetime, timedelta

# Sunday first, indexed by (weekday() + 1) % 7
DAY_NAMES = ("Minggu", "Senin", "Selasa", "Rabu", "Kamis", "Jumat", "Sabtu")

TIMEZONE_OFFSETS = (
    "-12:00", "-11:00", "-10:00", "-09:00", "-08:00", "-07:00", "-06:00",
    "-05:00", "-04:00", "-03:00", "-02:00", "-01:00", "+00:00", "+01:00",
    "+02:00", "+03:00", "+04:00", "+05:00", "+05:30", "+06:00", "+07:00",
    "+08:00", "+09:00", "+10:00", "+11:00", "+12:00",
)


def day_name(moment: datetime) -> str:
    return DAY_NAMES[(moment.weekday() + 1) % 7]


def format_datetime(moment: datetime, utc_offset: str, use_24h: bool) -> str:
    """Render the timestamp line drawn under the address.

    24h: ``Jumat, 15/03/2024 14:30 GMT +07:00``
    12h: ``Jumat, 15/03/2024 02:30 PM GMT +07:00``
    """
    date_part = f"{day_name(moment)}, {moment.day:02d}/{moment.month:02d}/{moment.year:04d}"
    if use_24h:
        return f"{date_part} {moment.hour:02d}:{moment.minute:02d} GMT {utc_offset}"
    suffix = "PM" if moment.hour >= 12 else "AM"
    hour = moment.hour % 12 or 12
    return f"{date_part} {hour:02d}:{moment.minute:02d} {suffix} GMT {utc_offset}"


def format_utc_offset(offset: timedelta | None) -> str:
    if offset is None:
        return "+00:00"
    total_minutes = int(offset.total_seconds() // 60)
    sign = "-" if total_minutes < 0 else "+"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def format_coordinates(lat: float, lng: float) -> str:
    return f"Lat {lat:.6f}° Long {lng:.6f}°"


def format_temperature(value: int, unit: str) -> str:
    return f"{int(value)}°{unit.upper()}"
