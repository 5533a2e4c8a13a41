from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Protocol

from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    try:
        return datetime.strptime((value or "").strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"invalid date {value!r}, expected YYYY-MM-DD")


def parse_hhmm(value: str) -> time:
    """Parse HH:MM (or HH:MM:SS) into time."""
    v = (value or "").strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(v, fmt).time()
        except ValueError:
            continue
    raise ValidationError(f"invalid time {value!r}, expected HH:MM")


def parse_optional_hhmm(value: str | None) -> time | None:
    if value is None or not str(value).strip():
        return None
    return parse_hhmm(str(value))


def iso_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def week_bounds(reference: date) -> tuple[date, date]:
    """ISO week containing ``reference``: [Monday, next Monday)."""
    start = reference - timedelta(days=reference.weekday())
    return start, start + timedelta(days=7)


def month_bounds(reference: date) -> tuple[date, date]:
    """Calendar month containing ``reference``: [1st, 1st of next month)."""
    start = reference.replace(day=1)
    if start.month == 12:
        return start, start.replace(year=start.year + 1, month=1)
    return start, start.replace(month=start.month + 1)


def iso_week_key(value: date) -> str:
    iso_year, iso_week, _ = value.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def month_key(value: date) -> str:
    return f"{value.year}-{value.month:02d}"


class Clock(Protocol):
    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock:
    """Current local time, truncated to the second.

    Note: Services take a Clock so tests can supply fixed timestamps.
    """

    def now(self) -> datetime:
        return datetime.now().replace(microsecond=0)
