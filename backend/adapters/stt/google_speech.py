"""Google Cloud Speech-to-Text (v1 REST, synchronous recognize)."""

from __future__ import annotations

import base64
import time
from typing import Any

import httpx

from adapters.stt.base import SpeechToTextAdapter, SpeechToTextError
from constants import (
    AUDIO_ENCODING,
    AUDIO_SAMPLE_RATE_HZ,
    STT_ENDPOINT,
    STT_LANGUAGE_CODE_DEFAULT,
    STT_MODEL,
)
from observability.logger import log_event


def build_recognize_request(
    audio: bytes,
    *,
    language_code: str = STT_LANGUAGE_CODE_DEFAULT,
    sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ,
) -> dict[str, Any]:
    """Request body for speech:recognize with inline base64 audio."""
    return {
        "config": {
            "encoding": AUDIO_ENCODING,
            "sampleRateHertz": sample_rate_hz,
            "languageCode": language_code,
            "model": STT_MODEL,
        },
        "audio": {
            "content": base64.b64encode(audio).decode("ascii"),
        },
    }


def parse_recognize_response(data: Any) -> str | None:
    """
    Extract results[0].alternatives[0].transcript.

    Missing or empty `results` means no speech was recognized (None).
    A result entry without a usable transcript is malformed.
    """
    if not isinstance(data, dict):
        raise SpeechToTextError("Malformed Speech-to-Text response: expected an object")

    results = data.get("results")
    if not results:
        return None

    try:
        transcript = results[0]["alternatives"][0]["transcript"]
    except (KeyError, IndexError, TypeError) as exc:
        raise SpeechToTextError(
            f"Malformed Speech-to-Text response: {type(exc).__name__}: {exc}"
        ) from exc

    if not isinstance(transcript, str):
        raise SpeechToTextError("Malformed Speech-to-Text response: transcript is not text")
    return transcript


class GoogleSpeechToText(SpeechToTextAdapter):
    """
    Posts the whole recording to speech:recognize.

    The shared httpx.AsyncClient is owned by the app; this adapter never
    closes it.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        api_key: str,
        connection_id: str,
        language_code: str = STT_LANGUAGE_CODE_DEFAULT,
        timeout_s: float | None = None,
        endpoint: str = STT_ENDPOINT,
    ) -> None:
        self._client = client
        self._api_key = api_key
        self._connection_id = connection_id
        self._language_code = language_code
        self._timeout_s = timeout_s
        self._endpoint = endpoint

    async def transcribe(self, audio: bytes) -> str | None:
        body = build_recognize_request(audio, language_code=self._language_code)

        response = await self._client.post(
            self._endpoint,
            params={"key": self._api_key},
            json=body,
            timeout=self._timeout_s,
        )

        log_event({
            "ts_ms": time.time_ns() // 1_000_000,
            "event_type": "stt_response",
            "connection_id": self._connection_id,
            "status_code": response.status_code,
            "audio_bytes": len(audio),
        })

        if not response.is_success:
            raise SpeechToTextError(f"Speech-to-Text API error: {response.status_code}")

        try:
            data = response.json()
        except ValueError as exc:
            raise SpeechToTextError(f"Malformed Speech-to-Text response: {exc}") from exc

        return parse_recognize_response(data)
