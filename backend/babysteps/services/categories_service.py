"""Service layer for budget categories (name + budgeted size per user)."""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from psycopg.errors import UniqueViolation

from .errors import NotFoundError, ValidationError
from .ledger import quantize_amount

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

CATEGORY_COLUMNS = "id, user_id, name, size, created_at, updated_at"


def _clean_name(name: str | None) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Category name is required")
    return cleaned


def _clean_size(size: Decimal | None) -> Decimal:
    if size is None or size < 0:
        raise ValidationError("Size must be a non-negative number")
    return quantize_amount(size)


async def _name_taken(
    connection: AsyncConnection,
    user_id: UUID,
    name: str,
    exclude_id: UUID | None = None,
) -> bool:
    async with connection.cursor() as cursor:
        await cursor.execute(
            """
            SELECT id
            FROM categories
            WHERE user_id = %s
              AND LOWER(name) = LOWER(%s)
            """,
            (user_id, name),
        )
        rows = await cursor.fetchall()

    return any(row["id"] != exclude_id for row in rows)


async def list_categories(connection: AsyncConnection, user_id: UUID) -> list[dict[str, Any]]:
    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            SELECT {CATEGORY_COLUMNS}
            FROM categories
            WHERE user_id = %s
            ORDER BY name ASC
            """,
            (user_id,),
        )
        return await cursor.fetchall()


async def create_category(
    connection: AsyncConnection,
    user_id: UUID,
    *,
    name: str,
    size: Decimal,
) -> dict[str, Any]:
    """Create one category; names are unique per user ignoring case."""
    cleaned_name = _clean_name(name)
    cleaned_size = _clean_size(size)

    if await _name_taken(connection, user_id, cleaned_name):
        raise ValidationError("Category with the same name already exists")

    async with connection.cursor() as cursor:
        try:
            await cursor.execute(
                f"""
                INSERT INTO categories (user_id, name, size)
                VALUES (%s, %s, %s)
                RETURNING {CATEGORY_COLUMNS}
                """,
                (user_id, cleaned_name, cleaned_size),
            )
        except UniqueViolation as exc:
            raise ValidationError("Category with the same name already exists") from exc

        return await cursor.fetchone()


async def update_category(
    connection: AsyncConnection,
    user_id: UUID,
    category_id: UUID,
    patch: dict[str, Any],
) -> dict[str, Any]:
    updates: list[str] = []
    params: list[Any] = []

    if "name" in patch:
        cleaned_name = _clean_name(patch["name"])
        if await _name_taken(connection, user_id, cleaned_name, exclude_id=category_id):
            raise ValidationError("Category with the same name already exists")
        updates.append("name = %s")
        params.append(cleaned_name)

    if "size" in patch:
        updates.append("size = %s")
        params.append(_clean_size(patch["size"]))

    if not updates:
        raise ValidationError("At least one field must be provided")

    updates.append("updated_at = now()")
    params.extend([category_id, user_id])

    async with connection.cursor() as cursor:
        try:
            await cursor.execute(
                f"""
                UPDATE categories
                SET {', '.join(updates)}
                WHERE id = %s
                  AND user_id = %s
                RETURNING {CATEGORY_COLUMNS}
                """,
                tuple(params),
            )
        except UniqueViolation as exc:
            raise ValidationError("Category with the same name already exists") from exc

        row = await cursor.fetchone()

    if row is None:
        raise NotFoundError("Category not found")

    return row


async def delete_category(
    connection: AsyncConnection,
    user_id: UUID,
    category_id: UUID,
) -> None:
    async with connection.cursor() as cursor:
        await cursor.execute(
            """
            DELETE FROM categories
            WHERE id = %s
              AND user_id = %s
            RETURNING id
            """,
            (category_id, user_id),
        )
        row = await cursor.fetchone()

    if row is None:
        raise NotFoundError("Category not found")
