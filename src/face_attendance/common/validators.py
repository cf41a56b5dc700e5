from __future__ import annotations

from datetime import date

from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not str(value).strip():
        raise ValidationError(f"{field_name} must not be empty")
    return str(value).strip()


def require_date_range(start: date, end: date) -> None:
    if start > end:
        raise ValidationError(f"start date {start:%Y-%m-%d} is after end date {end:%Y-%m-%d}")
