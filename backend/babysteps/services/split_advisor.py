"""Equity/debt split proposals from the reasoning model, normalized and defaulted."""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import TYPE_CHECKING, Any
from uuid import UUID

from babysteps.ai.gemini_client import GeminiClient, GeminiError, GenerationConfig
from babysteps.ai.prompts import build_split_prompt

from .goals_service import get_goal

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

logger = logging.getLogger(__name__)

DEFAULT_EQUITY = 60
DEFAULT_DEBT = 40
SUM_TOLERANCE = 0.01

# Low temperature and a tiny budget: only a two-field JSON object is wanted back.
SPLIT_GENERATION = GenerationConfig(temperature=0.3, max_output_tokens=256)


@dataclass(frozen=True)
class SplitProposal:
    percentage_equity: int
    percentage_debt: int

    def as_dict(self) -> dict[str, int]:
        return {
            "percentage_equity": self.percentage_equity,
            "percentage_debt": self.percentage_debt,
        }


DEFAULT_SPLIT = SplitProposal(percentage_equity=DEFAULT_EQUITY, percentage_debt=DEFAULT_DEBT)


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Decode the first `{...}` object embedded in free text, or return None."""
    start = text.find("{")
    if start < 0:
        return None

    try:
        parsed, _ = json.JSONDecoder().raw_decode(text, start)
    except ValueError:
        return None

    return parsed if isinstance(parsed, dict) else None


def _coerce_percentage(value: Any, default: float) -> float:
    if isinstance(value, bool) or value is None:
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return min(100.0, max(0.0, number))


def normalize_split(raw: dict[str, Any]) -> SplitProposal:
    """
    Turn an untrusted `{percentage_equity, percentage_debt}` mapping into a valid pair.

    Each side is clamped to [0, 100]; a missing or non-numeric side takes its
    default. If the pair is off 100 by more than the tolerance it is rescaled
    proportionally. The result is always two integers summing to exactly 100.
    """
    equity = _coerce_percentage(raw.get("percentage_equity"), DEFAULT_EQUITY)
    debt = _coerce_percentage(raw.get("percentage_debt"), DEFAULT_DEBT)
    total = equity + debt

    if total <= 0:
        return DEFAULT_SPLIT

    if abs(total - 100) > SUM_TOLERANCE:
        equity = equity / total * 100

    rounded_equity = _round_half_up(equity)
    return SplitProposal(percentage_equity=rounded_equity, percentage_debt=100 - rounded_equity)


async def propose_split(
    goal: dict[str, Any],
    questionnaire_answers: Any | None,
    client: GeminiClient | None,
) -> SplitProposal:
    """
    Ask the reasoning model for a risk-appropriate split for one goal.

    Never raises for upstream trouble: no client, transport/HTTP failure,
    missing candidate text or unparseable JSON all yield the 60/40 default.
    """
    if client is None:
        logger.warning("No reasoning client configured; using default split for goal %r", goal.get("name"))
        return DEFAULT_SPLIT

    prompt = build_split_prompt(goal, questionnaire_answers)

    try:
        text = await client.generate_text([{"role": "user", "content": prompt}], SPLIT_GENERATION)
    except GeminiError as exc:
        logger.warning("Split request failed for goal %r (%s); using default split", goal.get("name"), exc)
        return DEFAULT_SPLIT

    parsed = extract_json_object(text)
    if parsed is None:
        logger.warning("Could not parse split for goal %r from %r; using default split", goal.get("name"), text[:200])
        return DEFAULT_SPLIT

    return normalize_split(parsed)


async def calculate_split_for_goal(
    connection: AsyncConnection,
    user_id: UUID,
    goal_id: UUID,
    questionnaire_answers: Any | None,
    client: GeminiClient | None,
) -> SplitProposal:
    """Resolve the caller's goal first (NotFoundError if absent) and propose a split."""
    goal = await get_goal(connection, user_id, goal_id)
    return await propose_split(goal, questionnaire_answers, client)
