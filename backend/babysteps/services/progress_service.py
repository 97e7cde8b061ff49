"""Service layer for the caller's position in the baby-steps plan."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import UUID

from psycopg.errors import UniqueViolation

from .errors import ConflictError, ValidationError

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

PROGRESS_COLUMNS = "id, user_id, current_step, created_at, updated_at"


@dataclass(frozen=True)
class BabyStep:
    number: int
    title: str


BABY_STEPS: tuple[BabyStep, ...] = (
    BabyStep(1, "Save $1,000 for your starter emergency fund"),
    BabyStep(2, "Pay off all debt (except the house) using the debt snowball"),
    BabyStep(3, "Save 3-6 months of expenses in a fully-funded emergency fund"),
    BabyStep(4, "Invest 15% of your household income in retirement"),
    BabyStep(5, "Save for your children's college fund"),
    BabyStep(6, "Pay off your home early"),
    BabyStep(7, "Build wealth and give"),
)


def _validate_step(current_step: Any) -> int:
    if isinstance(current_step, bool) or not isinstance(current_step, int) or current_step < 1:
        raise ValidationError("current_step must be a number greater than or equal to 1")
    if current_step > len(BABY_STEPS):
        raise ValidationError(f"current_step must be at most {len(BABY_STEPS)}")
    return current_step


async def get_progress(connection: AsyncConnection, user_id: UUID) -> dict[str, Any] | None:
    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            SELECT {PROGRESS_COLUMNS}
            FROM progress
            WHERE user_id = %s
            """,
            (user_id,),
        )
        return await cursor.fetchone()


async def create_progress(
    connection: AsyncConnection,
    user_id: UUID,
    current_step: int,
) -> dict[str, Any]:
    """Create the caller's single progress row; a second create is a conflict."""
    step = _validate_step(current_step)

    if await get_progress(connection, user_id) is not None:
        raise ConflictError("Progress already exists for this user. Use PUT to update.")

    async with connection.cursor() as cursor:
        try:
            await cursor.execute(
                f"""
                INSERT INTO progress (user_id, current_step)
                VALUES (%s, %s)
                RETURNING {PROGRESS_COLUMNS}
                """,
                (user_id, step),
            )
        except UniqueViolation as exc:
            raise ConflictError("Progress already exists for this user. Use PUT to update.") from exc

        return await cursor.fetchone()


async def upsert_progress(
    connection: AsyncConnection,
    user_id: UUID,
    current_step: int,
) -> dict[str, Any]:
    """Set the caller's step, creating the row on first write."""
    step = _validate_step(current_step)

    async with connection.cursor() as cursor:
        await cursor.execute(
            f"""
            INSERT INTO progress (user_id, current_step)
            VALUES (%s, %s)
            ON CONFLICT (user_id) DO UPDATE
            SET current_step = EXCLUDED.current_step,
                updated_at = now()
            RETURNING {PROGRESS_COLUMNS}
            """,
            (user_id, step),
        )
        return await cursor.fetchone()
