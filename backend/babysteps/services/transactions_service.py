"""Service layer for cash-flow transactions keyed by (user_id, timestamp)."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Literal
from uuid import UUID

from .errors import NotFoundError, ValidationError
from .ledger import quantize_amount

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

FlowFilter = Literal["inflow", "outflow"]

TRANSACTION_COLUMNS = "user_id, timestamp, category, amount"


def _now() -> datetime:
    """Wrapper for deterministic tests."""
    return datetime.now(timezone.utc)


def _clean_category(category: str | None) -> str:
    cleaned = (category or "").strip()
    if not cleaned:
        raise ValidationError("Category is required")
    return cleaned


def _clean_amount(amount: Decimal) -> Decimal:
    normalized = quantize_amount(amount)
    if normalized == Decimal("0.00"):
        raise ValidationError("Amount must be a non-zero number")
    return normalized


async def list_transactions(
    connection: AsyncConnection,
    user_id: UUID,
    *,
    flow: FlowFilter | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[dict[str, Any]]:
    """List the caller's transactions newest first, optionally by direction and range."""
    if start is not None and end is not None and start > end:
        raise ValidationError("start must be on or before end")

    sql = f"SELECT {TRANSACTION_COLUMNS} FROM transactions WHERE user_id = %s"
    params: list[Any] = [user_id]

    if flow == "inflow":
        sql += " AND amount > 0"
    elif flow == "outflow":
        sql += " AND amount < 0"

    if start is not None:
        sql += " AND timestamp >= %s"
        params.append(start)

    if end is not None:
        sql += " AND timestamp <= %s"
        params.append(end)

    sql += " ORDER BY timestamp DESC"

    async with connection.cursor() as cursor:
        await cursor.execute(sql, tuple(params))
        return await cursor.fetchall()


async def create_transaction(
    connection: AsyncConnection,
    user_id: UUID,
    *,
    category: str,
    amount: Decimal,
    timestamp: datetime | None = None,
) -> dict[str, Any]:
    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            INSERT INTO transactions (user_id, timestamp, category, amount)
            VALUES (%s, %s, %s, %s)
            RETURNING {TRANSACTION_COLUMNS}
            """,
            (user_id, timestamp or _now(), _clean_category(category), _clean_amount(amount)),
        )
        return await cursor.fetchone()


async def update_transaction(
    connection: AsyncConnection,
    user_id: UUID,
    timestamp: datetime,
    patch: dict[str, Any],
) -> dict[str, Any]:
    """
    Edit category and/or amount of one transaction.

    The timestamp is part of the row identity; moving a transaction in time
    means deleting and recreating it.
    """
    new_timestamp = patch.get("new_timestamp")
    if new_timestamp is not None and new_timestamp != timestamp:
        raise ValidationError("Cannot update timestamp. Please delete and recreate the transaction.")

    updates: list[str] = []
    params: list[Any] = []

    if "category" in patch:
        updates.append("category = %s")
        params.append(_clean_category(patch["category"]))

    if "amount" in patch:
        if patch["amount"] is None:
            raise ValidationError("Amount must be a non-zero number")
        updates.append("amount = %s")
        params.append(_clean_amount(patch["amount"]))

    if not updates:
        raise ValidationError("At least one field must be provided")

    params.extend([user_id, timestamp])

    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            UPDATE transactions
            SET {', '.join(updates)}
            WHERE user_id = %s
              AND timestamp = %s
            RETURNING {TRANSACTION_COLUMNS}
            """,
            tuple(params),
        )
        row = await cursor.fetchone()

    if row is None:
        raise NotFoundError("Transaction not found")

    return row


async def delete_transaction(
    connection: AsyncConnection,
    user_id: UUID,
    timestamp: datetime,
) -> None:
    async with connection.cursor() as cursor:
        await cursor.execute(
            """
            DELETE FROM transactions
            WHERE user_id = %s
              AND timestamp = %s
            RETURNING timestamp
            """,
            (user_id, timestamp),
        )
        row = await cursor.fetchone()

    if row is None:
        raise NotFoundError("Transaction not found")
