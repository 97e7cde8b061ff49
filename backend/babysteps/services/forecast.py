"""Projected growth of a goal balance under its equity/debt split."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from .dates import month_label, month_start, shift_months
from .errors import ValidationError

ANNUAL_EQUITY_RATE = Decimal("0.12")
ANNUAL_DEBT_RATE = Decimal("0.07")
MAX_FORECAST_MONTHS = 600


@dataclass(frozen=True)
class ForecastPoint:
    month_label: str
    total_value: int
    equity_value: int
    debt_value: int


def _whole_units(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _fraction(percentage: Any) -> Decimal:
    return Decimal(str(percentage)) / Decimal("100")


def forecast(
    goal: dict[str, Any],
    investment: dict[str, Any],
    monthly_contribution: Decimal,
    months: int,
    *,
    start: date | None = None,
) -> list[ForecastPoint]:
    """
    Compound the goal balance month by month.

    Each month the balance grows by the split-weighted monthly rate, then the
    contribution is added. Nothing is persisted.
    """
    if months < 1 or months > MAX_FORECAST_MONTHS:
        raise ValidationError(f"months must be between 1 and {MAX_FORECAST_MONTHS}")
    if monthly_contribution < 0:
        raise ValidationError("monthly_contribution must be >= 0")

    equity_fraction = _fraction(investment["percentage_equity"])
    debt_fraction = _fraction(investment["percentage_debt"])
    monthly_return = (
        equity_fraction * (ANNUAL_EQUITY_RATE / 12)
        + debt_fraction * (ANNUAL_DEBT_RATE / 12)
    )

    anchor = month_start(start or date.today())
    value = Decimal(str(goal["current_amount"]))
    points: list[ForecastPoint] = []

    for step in range(1, months + 1):
        growth = value * monthly_return
        value = value + growth + monthly_contribution
        points.append(
            ForecastPoint(
                month_label=month_label(shift_months(anchor, step)),
                total_value=_whole_units(value),
                equity_value=_whole_units(value * equity_fraction),
                debt_value=_whole_units(value * debt_fraction),
            )
        )

    return points
