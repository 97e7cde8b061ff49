"""Minimal Gemini `generateContent` wrapper with retry handling."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import settings

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


class GeminiError(Exception):
    """Base exception for Gemini client errors."""


class GeminiRequestError(GeminiError):
    """Raised when the Gemini API request fails."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class GeminiResponseError(GeminiError):
    """Raised when the Gemini response carries no usable candidate text."""


@dataclass
class GenerationConfig:
    temperature: float
    max_output_tokens: int
    top_k: int = 40
    top_p: float = 0.95

    def to_payload(self) -> dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topK": self.top_k,
            "topP": self.top_p,
            "maxOutputTokens": self.max_output_tokens,
        }


class GeminiClient:
    """Thin async client: structured prompt in, free text out."""

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_seconds: int = 25,
        max_retries: int = 2,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self._transport = transport

    async def generate_text(
        self,
        messages: list[dict[str, Any]],
        config: GenerationConfig,
    ) -> str:
        """Send a conversation and return the first candidate's text."""
        body = {
            "contents": self._build_contents(messages),
            "generationConfig": config.to_payload(),
        }
        url = f"{GEMINI_BASE_URL}/{self.model}:generateContent"
        params = {"key": self.api_key}

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout_seconds,
                    transport=self._transport,
                ) as client:
                    response = await client.post(url, params=params, json=body)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                last_error = exc
                if attempt < self.max_retries:
                    await asyncio.sleep(0.5 * (2**attempt))
                    continue
                raise GeminiRequestError(503, "Gemini request failed") from exc

            if response.status_code in RETRYABLE_STATUSES and attempt < self.max_retries:
                logger.info("Gemini answered %s; retrying (attempt %s)", response.status_code, attempt + 1)
                await asyncio.sleep(0.5 * (2**attempt))
                continue

            if response.status_code >= 400:
                raise GeminiRequestError(response.status_code, response.text)

            try:
                payload = response.json()
            except ValueError as exc:
                raise GeminiResponseError("Invalid JSON from Gemini") from exc

            return self._extract_text(payload)

        raise GeminiRequestError(503, f"Gemini request failed: {last_error or 'unknown error'}")

    def _build_contents(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        contents: list[dict[str, Any]] = []

        for message in messages:
            content = str(message.get("content") or "").strip()
            if not content:
                continue

            role = "model" if message.get("role") in {"assistant", "model"} else "user"
            contents.append({
                "role": role,
                "parts": [{"text": content}],
            })

        if not contents:
            raise GeminiResponseError("Nothing to send to Gemini")

        return contents

    def _extract_text(self, payload: Any) -> str:
        if not isinstance(payload, dict):
            raise GeminiResponseError("Gemini response is not an object")

        candidates = payload.get("candidates") or []
        if not candidates:
            raise GeminiResponseError("Gemini response missing candidates")

        candidate = candidates[0] or {}
        parts = ((candidate.get("content") or {}).get("parts")) or []

        text_parts = [
            part["text"]
            for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str) and part["text"].strip()
        ]
        if not text_parts:
            raise GeminiResponseError("Gemini response missing candidate text")

        return "\n".join(text_parts).strip()


def gemini_client_from_settings() -> GeminiClient | None:
    """Client built from the GEMINI_* settings, or None when no API key is configured."""
    if not settings.gemini_api_key:
        return None
    return GeminiClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        timeout_seconds=settings.gemini_timeout_seconds,
        max_retries=settings.gemini_max_retries,
    )
