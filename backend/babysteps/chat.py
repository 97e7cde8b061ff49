"""Coaching chat endpoint (`POST /chat`)."""

from __future__ import annotations

import logging
from typing import Any, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from .ai.gemini_client import GeminiError, GeminiRequestError, gemini_client_from_settings
from .auth import get_current_user_id
from .config import settings
from .database import get_db_connection
from .services.chat_service import reply_to_message

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


class ChatTurn(BaseModel):
    # Anything other than "user" is replayed as a model turn.
    role: Literal["user", "assistant", "model"]
    content: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(max_length=4000)
    conversation_history: list[ChatTurn] = Field(default_factory=list, alias="conversationHistory")


class ChatResponse(BaseModel):
    message: str


@router.post("/chat", response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    user_id: UUID = Depends(get_current_user_id),
    connection: Any = Depends(get_db_connection),
) -> ChatResponse:
    """
    Answer one coaching question.

    History is supplied by the client on every call; nothing is stored server-side.
    """
    message_text = payload.message.strip()
    if not message_text:
        raise HTTPException(status_code=400, detail="Message is required")

    if not settings.gemini_api_key:
        raise HTTPException(status_code=503, detail="Chat assistant is not configured")

    history = [turn.model_dump() for turn in payload.conversation_history]
    try:
        reply = await reply_to_message(connection, user_id, message_text, history, gemini_client_from_settings())
    except GeminiRequestError as exc:
        logger.warning("Chat upstream request failed with status %s", exc.status_code)
        if exc.status_code == 429:
            raise HTTPException(status_code=503, detail="Chat assistant is rate-limited right now. Try again shortly.") from exc
        raise HTTPException(status_code=502, detail="Chat assistant request failed. Please try again.") from exc
    except GeminiError as exc:
        logger.warning("Chat upstream response unusable: %s", exc)
        raise HTTPException(status_code=502, detail="Chat assistant response could not be processed.") from exc

    return ChatResponse(message=reply)
