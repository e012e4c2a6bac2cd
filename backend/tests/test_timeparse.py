import re
from datetime import date

import pytest

from crewportal.utils.timeparse import compute_hours, format_crm_datetime, normalize_time


def test_compute_hours_with_lunch():
    assert compute_hours("09:00", "17:00", "12:00", "12:30") == 7.5


def test_compute_hours_without_lunch():
    assert compute_hours("09:00", "17:00", "", "") == 8.0


def test_compute_hours_never_negative():
    assert compute_hours("10:00", "09:00", "", "") == 0


def test_compute_hours_ignores_partial_or_inverted_lunch():
    assert compute_hours("09:00", "17:00", "12:00", "") == 8.0
    assert compute_hours("09:00", "17:00", "12:30", "12:00") == 8.0


def test_compute_hours_rounds_to_two_decimals():
    assert compute_hours("09:00", "09:20") == 0.33


@pytest.mark.parametrize("raw,expected", [
    ("9:05", "09:05"),
    ("09:05:00", "09:05"),
    ("5:06 AM", "05:06"),
    ("12:00 AM", "00:00"),
    ("12:15 pm", "12:15"),
    ("9pm", "21:00"),
    ("", ""),
    (None, ""),
])
def test_normalize_time(raw, expected):
    assert normalize_time(raw) == expected


@pytest.mark.parametrize("raw", ["25:00", "9:75", "noon", "13:00 PM"])
def test_normalize_time_rejects_garbage(raw):
    with pytest.raises(ValueError):
        normalize_time(raw)


def test_format_crm_datetime_shape():
    value = format_crm_datetime("2026-01-21", "5:06 AM")
    assert value.startswith("2026-01-21T05:06:00")
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[+-]\d{2}:\d{2}", value)


def test_format_crm_datetime_uses_local_offset(monkeypatch):
    monkeypatch.setattr("crewportal.utils.timeparse.local_utc_offset", lambda: "-07:00")
    assert format_crm_datetime(date(2026, 1, 21).isoformat(), "17:30") == "2026-01-21T17:30:00-07:00"


def test_format_crm_datetime_requires_time():
    with pytest.raises(ValueError):
        format_crm_datetime("2026-01-21", "")
