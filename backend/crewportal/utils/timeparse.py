"""Clock-time parsing, crew hour arithmetic and Zoho datetime formatting."""

import re
from datetime import datetime
from typing import Optional

_TIME_24H = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?$")
_TIME_12H = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*([AaPp])\.?\s*[Mm]\.?$")


def normalize_time(value: Optional[str]) -> str:
    """
    Normalize a clock time to 24-hour "HH:MM".

    Accepts "9:05", "09:05", "09:05:00", "9:05 PM", "9pm". Empty input returns "".
    Raises ValueError for anything else.
    """
    if value is None:
        return ""
    text = value.strip()
    if not text:
        return ""

    match = _TIME_12H.match(text)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        if not 1 <= hour <= 12 or minute > 59:
            raise ValueError(f"Invalid time: {value!r}")
        is_pm = match.group(3).lower() == "p"
        hour = hour % 12 + (12 if is_pm else 0)
        return f"{hour:02d}:{minute:02d}"

    match = _TIME_24H.match(text)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ValueError(f"Invalid time: {value!r}")
        return f"{hour:02d}:{minute:02d}"

    raise ValueError(f"Invalid time: {value!r}")


def to_minutes(value: str) -> int:
    """Minutes since midnight for a time accepted by normalize_time."""
    hh, mm = normalize_time(value).split(":")
    return int(hh) * 60 + int(mm)


def compute_hours(start: str, end: str, lunch_start: str = "", lunch_end: str = "") -> float:
    """
    Worked hours for one crew row, rounded to 2 decimals and never negative.

    The lunch span is only deducted when both lunch times are present and the
    lunch end is after the lunch start.
    """
    worked = to_minutes(end) - to_minutes(start)
    if lunch_start and lunch_end:
        lunch = to_minutes(lunch_end) - to_minutes(lunch_start)
        if lunch > 0:
            worked -= lunch
    return round(max(0, worked) / 60, 2)


def local_utc_offset() -> str:
    """Current local UTC offset as "+HH:MM"; evaluated per call so DST changes apply."""
    raw = datetime.now().astimezone().strftime("%z")  # e.g. -0700
    return f"{raw[:3]}:{raw[3:5]}"


def format_crm_datetime(entry_date: str, clock_time: str) -> str:
    """
    Build a Zoho DateTime value, e.g. "2026-01-21T05:06:00-07:00".

    AM/PM inputs are normalized to 24h first.
    """
    hhmm = normalize_time(clock_time)
    if not hhmm:
        raise ValueError("A clock time is required to build a Zoho DateTime")
    return f"{entry_date}T{hhmm}:00{local_utc_offset()}"
