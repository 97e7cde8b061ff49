"""Surplus allocation: add money to one or many of the caller's goals."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from .errors import NotFoundError, ValidationError
from .goals_service import GOAL_COLUMNS
from .ledger import quantize_amount

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Allocation:
    goal_id: UUID
    amount: Decimal


class PartialAllocationError(NotFoundError):
    """A goal vanished mid-batch; allocations before it stay committed."""

    def __init__(self, message: str, applied: list[dict[str, Any]]):
        super().__init__(message)
        self.applied = applied


def _validate_allocations(allocations: list[Allocation]) -> list[Allocation]:
    if not allocations:
        raise ValidationError("At least one allocation is required")

    cleaned: list[Allocation] = []
    for allocation in allocations:
        if allocation.goal_id is None:
            raise ValidationError("All allocations must have a valid goal_id")
        if allocation.amount is None or allocation.amount <= 0:
            raise ValidationError("All allocation amounts must be positive numbers")
        amount = quantize_amount(allocation.amount)
        if amount <= 0:
            raise ValidationError("All allocation amounts must be positive numbers")
        cleaned.append(Allocation(goal_id=allocation.goal_id, amount=amount))

    return cleaned


async def _count_owned_goals(
    connection: AsyncConnection,
    user_id: UUID,
    goal_ids: list[UUID],
) -> int:
    async with connection.cursor() as cursor:
        await cursor.execute(
            """
            SELECT id
            FROM goals
            WHERE user_id = %s
              AND id = ANY(%s)
            """,
            (user_id, goal_ids),
        )
        rows = await cursor.fetchall()

    return len(rows)


async def _increment_goal(
    connection: AsyncConnection,
    user_id: UUID,
    allocation: Allocation,
) -> dict[str, Any] | None:
    # Increment against the persisted balance in one statement.
    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            UPDATE goals
            SET current_amount = current_amount + %s,
                updated_at = now()
            WHERE id = %s
              AND user_id = %s
            RETURNING {GOAL_COLUMNS}
            """,
            (allocation.amount, allocation.goal_id, user_id),
        )
        return await cursor.fetchone()


async def allocate_many(
    connection: AsyncConnection,
    user_id: UUID,
    allocations: list[Allocation],
) -> list[dict[str, Any]]:
    """
    Apply allocations sequentially, in input order.

    Ownership of every referenced goal is checked in one query before any
    write; a mismatch rejects the whole batch. The owned count is compared
    against the distinct goal ids, so a goal may appear more than once in a
    batch and its amounts accumulate in order. After that, writes are not
    wrapped in a transaction: if one fails, the allocations already applied
    stay committed and the failure is raised.
    """
    cleaned = _validate_allocations(allocations)

    distinct_ids = list(dict.fromkeys(allocation.goal_id for allocation in cleaned))
    owned = await _count_owned_goals(connection, user_id, distinct_ids)
    if owned != len(distinct_ids):
        raise NotFoundError("One or more goals not found or you don't have permission to update them")

    updated: list[dict[str, Any]] = []
    for allocation in cleaned:
        try:
            row = await _increment_goal(connection, user_id, allocation)
        except Exception:
            logger.error(
                "Allocation to goal %s failed after %s of %s applied",
                allocation.goal_id,
                len(updated),
                len(cleaned),
            )
            raise

        if row is None:
            logger.error(
                "Goal %s disappeared mid-batch after %s of %s allocations applied",
                allocation.goal_id,
                len(updated),
                len(cleaned),
            )
            raise PartialAllocationError(f"Failed to allocate to goal {allocation.goal_id}", updated)

        updated.append(row)

    logger.info("Allocated %s surplus entries for user %s", len(updated), user_id)
    return updated


async def allocate(
    connection: AsyncConnection,
    user_id: UUID,
    goal_id: UUID,
    amount: Decimal,
) -> dict[str, Any]:
    """Single-goal form; identical to a one-element batch."""
    rows = await allocate_many(connection, user_id, [Allocation(goal_id=goal_id, amount=amount)])
    return rows[0]
