"""Calendar-month helpers for forecast labels."""

from __future__ import annotations

from datetime import date


def month_start(value: date) -> date:
    return value.replace(day=1)


def month_label(value: date) -> str:
    return value.strftime("%Y-%m")


def shift_months(anchor: date, offset: int) -> date:
    """First day of the month `offset` months away from `anchor` (may be negative)."""
    year, month_index = divmod(anchor.year * 12 + anchor.month - 1 + offset, 12)
    return date(year, month_index + 1, 1)
