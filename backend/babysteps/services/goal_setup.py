"""New-goal orchestration: propose a split, then insert the goal and its investment together."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
from uuid import UUID

from babysteps.ai.gemini_client import GeminiClient

from .goals_service import clean_goal_input, create_goal
from .investments_service import create_investment
from .split_advisor import propose_split

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

logger = logging.getLogger(__name__)


async def create_goal_with_split(
    connection: AsyncConnection,
    user_id: UUID,
    data: dict[str, Any],
    questionnaire_answers: Any | None,
    client: GeminiClient | None,
) -> tuple[dict[str, Any], dict[str, Any]]:
    """
    Create a goal and exactly one investment record for it.

    The split is proposed from the validated fields before any write so the
    model call never holds a transaction open. Both inserts then commit or
    roll back as one unit.
    """
    fields = clean_goal_input(data)
    split = await propose_split(fields, questionnaire_answers, client)

    async with connection.transaction():
        goal = await create_goal(connection, user_id, fields)
        investment = await create_investment(
            connection,
            user_id,
            goal_id=goal["id"],
            percentage_debt=split.percentage_debt,
            percentage_equity=split.percentage_equity,
        )

    logger.info(
        "Created goal %s with %s%% equity / %s%% debt",
        goal["id"],
        split.percentage_equity,
        split.percentage_debt,
    )
    return goal, investment
