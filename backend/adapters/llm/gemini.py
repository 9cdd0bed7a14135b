"""Gemini generateContent adapter (REST)."""

from __future__ import annotations

import time
from typing import Any

import httpx

from adapters.llm.base import GenerationError, TextGenerator
from constants import GENERATION_ENDPOINT_TEMPLATE, GENERATION_MODEL_DEFAULT
from observability.logger import log_event


def build_generate_request(prompt: str) -> dict[str, Any]:
    return {"contents": [{"parts": [{"text": prompt}]}]}


def parse_generate_response(data: Any) -> str:
    """Extract candidates[0].content.parts[0].text; blank text is an error."""
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise GenerationError(
            f"Unexpected Gemini response format: {type(exc).__name__}: {exc}"
        ) from exc

    if not isinstance(text, str) or not text.strip():
        raise GenerationError("Gemini returned an empty answer")
    return text


class GeminiTextGenerator(TextGenerator):
    """
    Single-turn generation against the Gemini REST API.

    The shared httpx.AsyncClient is owned by the app; this adapter never
    closes it.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        api_key: str,
        connection_id: str,
        model: str = GENERATION_MODEL_DEFAULT,
        timeout_s: float | None = None,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._connection_id = connection_id
        self._model = model
        self._timeout_s = timeout_s
        self._url = GENERATION_ENDPOINT_TEMPLATE.format(model=model)

    async def generate(self, prompt: str) -> str:
        started_ns = time.monotonic_ns()

        response = await self._client.post(
            self._url,
            params={"key": self._api_key},
            json=build_generate_request(prompt),
            timeout=self._timeout_s,
        )

        log_event({
            "ts_ms": time.time_ns() // 1_000_000,
            "event_type": "llm_response",
            "connection_id": self._connection_id,
            "model": self._model,
            "status_code": response.status_code,
            "latency_ms": (time.monotonic_ns() - started_ns) // 1_000_000,
        })

        if not response.is_success:
            raise GenerationError(f"Gemini API request failed: {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise GenerationError(f"Unexpected Gemini response format: {exc}") from exc

        return parse_generate_response(data)
