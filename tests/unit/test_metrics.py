# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio
from typing import Any

import pytest

import observability.metrics as metrics_mod
from observability.metrics import timed


@pytest.fixture
def emitted(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = []
    monkeypatch.setattr(metrics_mod, "log_event", events.append)
    return events


def test_timed_reports_ok(emitted: list[dict[str, Any]]) -> None:
    with timed("transcription", session_id=3, connection_id="conn_x"):
        pass

    (event,) = emitted
    assert event["event_type"] == "METRIC_TIMER"
    assert event["metric"] == "transcription"
    assert event["outcome"] == "ok"
    assert event["session_id"] == 3
    assert event["connection_id"] == "conn_x"
    assert event["value_ms"] >= 0


def test_timed_reports_error_and_reraises(emitted: list[dict[str, Any]]) -> None:
    with pytest.raises(ValueError):
        with timed("generation"):
            raise ValueError("boom")

    assert emitted[0]["outcome"] == "error"


def test_timed_reports_cancelled(emitted: list[dict[str, Any]]) -> None:
    async def work() -> None:
        with timed("speech"):
            await asyncio.sleep(10)

    async def scenario() -> None:
        task = asyncio.create_task(work())
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert emitted[0]["outcome"] == "cancelled"
