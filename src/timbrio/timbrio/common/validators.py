from __future__ import annotations

from datetime import date

from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def optional_text(value: str | None) -> str | None:
    return (value or "").strip() or None


def require_date_range(start: date, end: date) -> None:
    if start is None or end is None:
        raise ValidationError("start and end dates are required")
    if end < start:
        raise ValidationError("end date must not be before start date")
