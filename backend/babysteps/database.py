"""Request-scoped Postgres connections for routers and services."""

import logging
from collections.abc import AsyncIterator

from fastapi import HTTPException
from psycopg import AsyncConnection
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from .config import settings

logger = logging.getLogger(__name__)

pool: AsyncConnectionPool | None = None


async def init_db_pool() -> None:
    global pool

    # The app still boots without a DSN so health checks and docs stay reachable.
    if not settings.database_url:
        logger.warning("DATABASE_URL is empty; persistence-backed routes will answer 500")
        return

    pool = AsyncConnectionPool(
        conninfo=settings.database_url,
        open=False,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
        kwargs={"autocommit": True, "row_factory": dict_row},
    )
    await pool.open()
    logger.info(
        "Database pool opened (min=%s, max=%s)",
        settings.db_pool_min_size,
        settings.db_pool_max_size,
    )


async def close_db_pool() -> None:
    global pool

    if pool is None:
        return

    await pool.close()
    pool = None


def database_status() -> str:
    return "connected" if pool is not None else "not_configured"


async def get_db_connection() -> AsyncIterator[AsyncConnection]:
    """Yield one pooled connection; services never hold a module-level client."""
    if pool is None:
        raise HTTPException(status_code=500, detail="DATABASE_URL is not configured")

    async with pool.connection() as connection:
        yield connection
