"""Service layer for the equity/debt split held against each goal."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any
from uuid import UUID

from psycopg.errors import UniqueViolation

from .errors import ConflictError, NotFoundError, ValidationError
from .goals_service import get_goal

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

INVESTMENT_COLUMNS = "id, user_id, goal_id, percentage_debt, percentage_equity, created_at, updated_at"
SUM_TOLERANCE = 0.01


def _check_percentage(label: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{label} must be a number between 0 and 100")
    number = float(value)
    if not math.isfinite(number) or number < 0 or number > 100:
        raise ValidationError(f"{label} must be a number between 0 and 100")
    return number


def _check_sum(percentage_debt: float, percentage_equity: float) -> None:
    if abs(percentage_debt + percentage_equity - 100) > SUM_TOLERANCE:
        raise ValidationError("Percentage debt and equity must sum to 100")


async def _fetch_investment_row(
    connection: AsyncConnection,
    user_id: UUID,
    investment_id: UUID,
) -> dict[str, Any] | None:
    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            SELECT {INVESTMENT_COLUMNS}
            FROM investments
            WHERE id = %s
              AND user_id = %s
            """,
            (investment_id, user_id),
        )
        return await cursor.fetchone()


async def list_investments(connection: AsyncConnection, user_id: UUID) -> list[dict[str, Any]]:
    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            SELECT {INVESTMENT_COLUMNS}
            FROM investments
            WHERE user_id = %s
            ORDER BY created_at DESC
            """,
            (user_id,),
        )
        return await cursor.fetchall()


async def find_investment_for_goal(
    connection: AsyncConnection,
    user_id: UUID,
    goal_id: UUID,
) -> dict[str, Any] | None:
    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            SELECT {INVESTMENT_COLUMNS}
            FROM investments
            WHERE goal_id = %s
              AND user_id = %s
            """,
            (goal_id, user_id),
        )
        return await cursor.fetchone()


async def get_investment_for_goal(
    connection: AsyncConnection,
    user_id: UUID,
    goal_id: UUID,
) -> dict[str, Any]:
    row = await find_investment_for_goal(connection, user_id, goal_id)
    if row is None:
        raise NotFoundError("Investment not found")
    return row


async def create_investment(
    connection: AsyncConnection,
    user_id: UUID,
    *,
    goal_id: UUID,
    percentage_debt: Any,
    percentage_equity: Any,
) -> dict[str, Any]:
    """
    Create the single investment record for one of the caller's goals.

    Rules:
    - both percentages in [0, 100] and summing to 100 (+/- 0.01)
    - the goal must exist and belong to the caller
    - a goal holds at most one investment
    """
    debt = _check_percentage("Percentage debt", percentage_debt)
    equity = _check_percentage("Percentage equity", percentage_equity)
    _check_sum(debt, equity)

    await get_goal(connection, user_id, goal_id)

    if await find_investment_for_goal(connection, user_id, goal_id) is not None:
        raise ConflictError("An investment already exists for this goal")

    async with connection.cursor() as cursor:
        try:
            await cursor.execute(
                f"""
                INSERT INTO investments (user_id, goal_id, percentage_debt, percentage_equity)
                VALUES (%s, %s, %s, %s)
                RETURNING {INVESTMENT_COLUMNS}
                """,
                (user_id, goal_id, debt, equity),
            )
        except UniqueViolation as exc:
            raise ConflictError("An investment already exists for this goal") from exc

        return await cursor.fetchone()


async def update_investment(
    connection: AsyncConnection,
    user_id: UUID,
    investment_id: UUID,
    patch: dict[str, Any],
) -> dict[str, Any]:
    """
    Update the split; a single supplied side implies the other as `100 - side`.
    """
    has_debt = patch.get("percentage_debt") is not None
    has_equity = patch.get("percentage_equity") is not None

    if not has_debt and not has_equity:
        raise ValidationError("Provide percentage_debt and/or percentage_equity")

    if has_debt and has_equity:
        debt = _check_percentage("Percentage debt", patch["percentage_debt"])
        equity = _check_percentage("Percentage equity", patch["percentage_equity"])
        _check_sum(debt, equity)
    else:
        if has_debt:
            debt = _check_percentage("Percentage debt", patch["percentage_debt"])
            equity = 100 - debt
        else:
            equity = _check_percentage("Percentage equity", patch["percentage_equity"])
            debt = 100 - equity

        if await _fetch_investment_row(connection, user_id, investment_id) is None:
            raise NotFoundError("Investment not found")

    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            UPDATE investments
            SET percentage_debt = %s,
                percentage_equity = %s,
                updated_at = now()
            WHERE id = %s
              AND user_id = %s
            RETURNING {INVESTMENT_COLUMNS}
            """,
            (debt, equity, investment_id, user_id),
        )
        row = await cursor.fetchone()

    if row is None:
        raise NotFoundError("Investment not found")

    return row


async def delete_investment(
    connection: AsyncConnection,
    user_id: UUID,
    investment_id: UUID,
) -> None:
    async with connection.cursor() as cursor:
        await cursor.execute(
            """
            DELETE FROM investments
            WHERE id = %s
              AND user_id = %s
            RETURNING id
            """,
            (investment_id, user_id),
        )
        row = await cursor.fetchone()

    if row is None:
        raise NotFoundError("Investment not found")
