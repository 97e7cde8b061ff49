"""Service layer for savings goal CRUD."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from .errors import NotFoundError, ValidationError
from .ledger import quantize_amount

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

logger = logging.getLogger(__name__)

GOAL_COLUMNS = "id, user_id, name, description, target_amount, current_amount, created_at, updated_at"


def _clean_name(name: Any) -> str:
    cleaned = str(name or "").strip()
    if not cleaned:
        raise ValidationError("Goal name is required")
    return cleaned


def _clean_description(description: Any) -> str | None:
    if description is None:
        return None
    cleaned = str(description).strip()
    return cleaned or None


def _clean_target_amount(value: Decimal | None) -> Decimal:
    if value is None or value <= 0:
        raise ValidationError("Target amount must be a positive number")
    return quantize_amount(value)


def _clean_current_amount(value: Decimal | None) -> Decimal:
    if value is None or value < 0:
        raise ValidationError("Current amount must be a non-negative number")
    return quantize_amount(value)


async def _fetch_goal_row(
    connection: AsyncConnection,
    user_id: UUID,
    goal_id: UUID,
) -> dict[str, Any] | None:
    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            SELECT {GOAL_COLUMNS}
            FROM goals
            WHERE id = %s
              AND user_id = %s
            """,
            (goal_id, user_id),
        )
        return await cursor.fetchone()


def clean_goal_input(data: dict[str, Any]) -> dict[str, Any]:
    """Validated fields of a goal that is about to be created."""
    return {
        "name": _clean_name(data.get("name")),
        "description": _clean_description(data.get("description")),
        "target_amount": _clean_target_amount(data.get("target_amount")),
    }


async def create_goal(
    connection: AsyncConnection,
    user_id: UUID,
    data: dict[str, Any],
) -> dict[str, Any]:
    """Create one goal; the balance always starts at zero whatever the target."""
    fields = clean_goal_input(data)

    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            INSERT INTO goals (user_id, name, description, target_amount, current_amount)
            VALUES (%s, %s, %s, %s, %s)
            RETURNING {GOAL_COLUMNS}
            """,
            (user_id, fields["name"], fields["description"], fields["target_amount"], Decimal("0.00")),
        )
        return await cursor.fetchone()


async def list_goals(connection: AsyncConnection, user_id: UUID) -> list[dict[str, Any]]:
    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            SELECT {GOAL_COLUMNS}
            FROM goals
            WHERE user_id = %s
            ORDER BY created_at DESC
            """,
            (user_id,),
        )
        return await cursor.fetchall()


async def get_goal(
    connection: AsyncConnection,
    user_id: UUID,
    goal_id: UUID,
) -> dict[str, Any]:
    row = await _fetch_goal_row(connection, user_id, goal_id)
    if row is None:
        raise NotFoundError("Goal not found")
    return row


async def update_goal(
    connection: AsyncConnection,
    user_id: UUID,
    goal_id: UUID,
    patch: dict[str, Any],
) -> dict[str, Any]:
    """Apply a partial update; `current_amount` may be set directly but never below 0."""
    updates: list[str] = []
    params: list[Any] = []

    if "name" in patch:
        updates.append("name = %s")
        params.append(_clean_name(patch["name"]))

    if "description" in patch:
        updates.append("description = %s")
        params.append(_clean_description(patch["description"]))

    if "target_amount" in patch:
        updates.append("target_amount = %s")
        params.append(_clean_target_amount(patch["target_amount"]))

    if "current_amount" in patch:
        updates.append("current_amount = %s")
        params.append(_clean_current_amount(patch["current_amount"]))

    if not updates:
        raise ValidationError("At least one field must be provided")

    updates.append("updated_at = now()")
    params.extend([goal_id, user_id])

    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            UPDATE goals
            SET {', '.join(updates)}
            WHERE id = %s
              AND user_id = %s
            RETURNING {GOAL_COLUMNS}
            """,
            tuple(params),
        )
        row = await cursor.fetchone()

    if row is None:
        raise NotFoundError("Goal not found")

    return row


async def delete_goal(
    connection: AsyncConnection,
    user_id: UUID,
    goal_id: UUID,
) -> None:
    """Hard-delete one goal together with its investment record."""
    async with connection.cursor() as cursor:
        await cursor.execute(
            """
            DELETE FROM investments
            WHERE goal_id = %s
              AND user_id = %s
            """,
            (goal_id, user_id),
        )
        await cursor.execute(
            """
            DELETE FROM goals
            WHERE id = %s
              AND user_id = %s
            RETURNING id
            """,
            (goal_id, user_id),
        )
        row = await cursor.fetchone()

    if row is None:
        raise NotFoundError("Goal not found")

    logger.info("Deleted goal %s and its investment for user %s", goal_id, user_id)
