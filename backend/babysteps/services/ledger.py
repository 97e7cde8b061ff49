"""Pure cash-flow aggregation: inflow/outflow totals and discretionary surplus."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

MONEY_QUANT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize_amount(value: Decimal) -> Decimal:
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def _as_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


@dataclass(frozen=True)
class LedgerSummary:
    total_inflow: Decimal
    total_outflow: Decimal
    net: Decimal
    count: int


def summarize(transactions: Iterable[Mapping[str, Any]]) -> LedgerSummary:
    """
    Fold raw transaction rows into totals.

    Positive amounts are inflow, negative amounts are outflow. Outflow is
    reported as a positive magnitude.
    """
    inflow = ZERO
    outflow = ZERO
    count = 0

    for row in transactions:
        amount = _as_decimal(row["amount"])
        count += 1
        if amount > 0:
            inflow += amount
        elif amount < 0:
            outflow += amount

    total_inflow = quantize_amount(inflow)
    total_outflow = quantize_amount(abs(outflow))
    return LedgerSummary(
        total_inflow=total_inflow,
        total_outflow=total_outflow,
        net=quantize_amount(total_inflow - total_outflow),
        count=count,
    )


def total_budgeted(categories: Iterable[Mapping[str, Any]]) -> Decimal:
    return quantize_amount(sum((_as_decimal(row["size"]) for row in categories), ZERO))


def compute_surplus(summary: LedgerSummary, categories: Iterable[Mapping[str, Any]]) -> Decimal:
    """Money left after spending and budgets; a deficit is reported as zero."""
    remaining = summary.total_inflow - summary.total_outflow - total_budgeted(categories)
    return quantize_amount(max(ZERO, remaining))
