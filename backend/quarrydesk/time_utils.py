from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Iterator, Optional

DATE_STAMP_FORMAT = "%Y%m%d"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today() -> date:
    return utcnow().date()


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an ISO-8601 date (or datetime) string into a calendar date.

    - None / "" -> None
    - "YYYY-MM-DD" -> that date
    - "YYYY-MM-DDTHH:MM[...]" -> the date part, after normalizing to UTC
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    if len(s) == 10:
        return date.fromisoformat(s)

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.date()


def to_date_stamp(value: date | datetime) -> str:
    """YYYYMMDD key used for string-sortable range filtering."""
    return value.strftime(DATE_STAMP_FORMAT)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every calendar day in [start, end], inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def month_start(value: date) -> date:
    return value.replace(day=1)


def add_months(value: date, months: int) -> date:
    """Shift a first-of-month date by whole months."""
    index = value.year * 12 + (value.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_end(value: date) -> date:
    return add_months(month_start(value), 1) - timedelta(days=1)


def shift_months(value: date, months: int) -> date:
    """Same day-of-month `months` later, clamped to the target month's last day."""
    first = add_months(month_start(value), months)
    return first.replace(day=min(value.day, month_end(first).day))


def to_iso_date(value: date | None) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
