"""Time helpers.

Keep all timestamps consistent and timezone-aware.
Python 3.13 deprecates naive UTC helpers like datetime.utcnow(); use this module instead.
"""

from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Return the current time as a timezone-aware datetime in UTC (+00:00)."""

    return datetime.now(timezone.utc)


def utcnow_sa_default() -> datetime:
    """SQLAlchemy default callable for audit timestamps."""

    return utcnow()


def parse_tracking_date(value: str | None, *, placeholder: str | None = "1900-01-01") -> datetime | None:
    """Parse a date cell from the tracking sheet.

    Accepts YYYY-MM-DD and ISO datetimes ("2024-03-01 10:00:00",
    "2024-03-01T10:00:00"). Blank cells and the placeholder date mean
    "not set" and return None.

    Raises:
        ValueError: if `value` is neither blank, the placeholder, nor a valid date.
    """

    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None

    if placeholder and s[:10] == placeholder.strip()[:10]:
        return None

    if len(s) == 10:
        d = date.fromisoformat(s)
        return datetime(d.year, d.month, d.day)
    return datetime.fromisoformat(s)
