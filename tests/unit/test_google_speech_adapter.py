# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio
import base64
import json
from typing import Any

import httpx
import pytest

from adapters.stt.base import SpeechToTextError
from adapters.stt.google_speech import (
    GoogleSpeechToText,
    build_recognize_request,
    parse_recognize_response,
)


def transcribe_with(handler: Any, audio: bytes = b"RIFFdata") -> str | None:
    async def scenario() -> str | None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            adapter = GoogleSpeechToText(
                client=client,
                api_key="test-key",
                connection_id="conn_test",
            )
            return await adapter.transcribe(audio)

    return asyncio.run(scenario())


def test_request_body_matches_recognize_contract() -> None:
    body = build_recognize_request(b"\x00\x01", language_code="en-US")

    assert body == {
        "config": {
            "encoding": "LINEAR16",
            "sampleRateHertz": 16000,
            "languageCode": "en-US",
            "model": "default",
        },
        "audio": {"content": base64.b64encode(b"\x00\x01").decode("ascii")},
    }


def test_transcribe_posts_audio_with_api_key() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"results": [{"alternatives": [{"transcript": "I am happy"}]}]},
        )

    assert transcribe_with(handler, b"wav-bytes") == "I am happy"

    (request,) = seen
    assert request.method == "POST"
    assert request.url.host == "speech.googleapis.com"
    assert request.url.path == "/v1/speech:recognize"
    assert request.url.params["key"] == "test-key"

    payload = json.loads(request.content)
    assert base64.b64decode(payload["audio"]["content"]) == b"wav-bytes"


@pytest.mark.parametrize("data", [{}, {"results": []}])
def test_missing_results_means_no_speech(data: dict[str, Any]) -> None:
    assert transcribe_with(lambda request: httpx.Response(200, json=data)) is None


def test_non_2xx_raises_with_status() -> None:
    with pytest.raises(SpeechToTextError, match="Speech-to-Text API error: 403"):
        transcribe_with(lambda request: httpx.Response(403, json={"error": {}}))


def test_non_json_body_raises() -> None:
    with pytest.raises(SpeechToTextError, match="Malformed"):
        transcribe_with(lambda request: httpx.Response(200, text="<html>"))


@pytest.mark.parametrize(
    "data",
    [
        {"results": [{}]},
        {"results": [{"alternatives": []}]},
        {"results": [{"alternatives": [{"confidence": 0.4}]}]},
        {"results": [{"alternatives": [{"transcript": 42}]}]},
        {"results": "nope"},
    ],
)
def test_malformed_result_entries_raise(data: Any) -> None:
    with pytest.raises(SpeechToTextError):
        parse_recognize_response(data)
