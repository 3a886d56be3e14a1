from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path

from geostamp.constants import EXPORT_NAME_SUFFIX

INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1F]')
DEFAULT_NAME_TEMPLATE = "{date}_{time}" + EXPORT_NAME_SUFFIX + ".{ext}"


def sanitize_token(value: str | None, fallback: str = "NA") -> str:
    text = (value or "").strip()
    if not text:
        text = fallback
    text = INVALID_FILENAME_CHARS.sub("_", text)
    text = re.sub(r"\s+", "_", text)
    text = text.strip(" ._")
    return text or fallback


def sanitize_filename(value: str, fallback: str = "output") -> str:
    text = INVALID_FILENAME_CHARS.sub("_", value).strip()
    text = text.replace("/", "_").replace("\\", "_")
    text = text.strip(" .")
    return text or fallback


def export_filename(moment: datetime, ext: str = "jpg") -> str:
    """``YYYYMMDD_HHMMByGPSMapCamera.jpg`` with a zero-padded 24h clock."""
    return build_output_name(DEFAULT_NAME_TEMPLATE, moment, extension=ext)


def build_output_name(
    name_template: str,
    moment: datetime,
    extension: str,
    source: Path | None = None,
    place: str | None = None,
) -> str:
    ext = extension.lower().lstrip(".")
    values = {
        "date": moment.strftime("%Y%m%d"),
        "time": moment.strftime("%H%M"),
        "stem": sanitize_token(source.stem if source else None, fallback="image"),
        "place": sanitize_token(place),
        "ext": ext,
    }
    try:
        rendered = name_template.format(**values)
    except KeyError as exc:
        missing = str(exc).strip("'")
        raise ValueError(f"name template contains unknown key: {missing}") from exc

    fallback = f"{values['date']}_{values['time']}{EXPORT_NAME_SUFFIX}.{ext}"
    rendered = sanitize_filename(rendered, fallback=fallback)
    if not Path(rendered).suffix:
        rendered = f"{rendered}.{ext}"
    return rendered
