"""Conversational coaching grounded in the caller's budget and plan position."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from babysteps.ai.gemini_client import GeminiClient, GenerationConfig
from babysteps.ai.prompts import build_chat_system_prompt

from .categories_service import list_categories
from .progress_service import get_progress

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

CHAT_GENERATION = GenerationConfig(temperature=0.7, max_output_tokens=1024)
MAX_HISTORY_MESSAGES = 10


def build_chat_messages(
    system_prompt: str,
    message: str,
    history: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """
    Assemble the turn list sent upstream.

    Only the last few history turns are forwarded. The system prompt rides on
    the user's message when the conversation has no history yet.
    """
    recent = history[-MAX_HISTORY_MESSAGES:]
    messages = [
        {"role": "user" if turn.get("role") == "user" else "assistant", "content": turn.get("content", "")}
        for turn in recent
    ]

    current = f"{system_prompt}\n\nUser question: {message}" if not recent else message
    messages.append({"role": "user", "content": current})
    return messages


async def reply_to_message(
    connection: AsyncConnection,
    user_id: UUID,
    message: str,
    history: list[dict[str, Any]],
    client: GeminiClient,
) -> str:
    """Return the model's reply; GeminiError propagates since chat has no fallback text."""
    categories = await list_categories(connection, user_id)
    progress = await get_progress(connection, user_id)
    system_prompt = build_chat_system_prompt(categories, progress)

    return await client.generate_text(
        build_chat_messages(system_prompt, message, history),
        CHAT_GENERATION,
    )
