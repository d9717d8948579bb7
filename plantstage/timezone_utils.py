"""
Timezone Utilities for plant staging

Validates plant timezones against the tz database and renders installation
dates the way the plant API expects them (UTC ISO-8601 with a ``Z`` suffix).
"""

import pytz
from datetime import date, datetime, time
from typing import Optional

UTC = pytz.UTC


def is_valid_timezone(name: Optional[str]) -> bool:
    if not name:
        return False
    try:
        pytz.timezone(name)
        return True
    except pytz.UnknownTimeZoneError:
        return False


def validate_timezone(name: str) -> str:
    """Return ``name`` unchanged if it is a known tz database zone, else raise ValueError."""
    if not is_valid_timezone(name):
        raise ValueError(f"Unknown timezone: {name!r}")
    return name


def to_utc_iso(value) -> str:
    """
    Render a date or datetime as UTC ISO-8601 with millisecond precision.

    Plain dates are taken as midnight UTC; naive datetimes are assumed to be
    UTC already; aware datetimes are converted.
    """
    if isinstance(value, datetime):
        dt = UTC.localize(value) if value.tzinfo is None else value.astimezone(UTC)
    elif isinstance(value, date):
        dt = UTC.localize(datetime.combine(value, time()))
    else:
        raise TypeError(f"Expected date or datetime, got {type(value).__name__}")
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"
