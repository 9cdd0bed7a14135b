"""
Stage latency metrics.

Responsibilities:
- Measure stage durations using monotonic time (immune to clock changes)
- Emit one METRIC_TIMER JSONL event per measurement via observability.logger
- Never aggregate

Prefer the `timed()` context manager; it cannot leak a running timer even
when the measured block raises or is cancelled.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability.logger import log_event


def emit_timer_metric(
    name: str,
    duration_ms: int,
    *,
    session_id: int | None = None,
    connection_id: str | None = None,
    outcome: str = "ok",
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a single duration metric."""
    log_event({
        "ts_ms": int(time.time() * 1000),
        "event_type": "METRIC_TIMER",
        "metric": name,
        "value_ms": duration_ms,
        "session_id": session_id,
        "connection_id": connection_id,
        "outcome": outcome,
        "details": details or {},
    })


@contextmanager
def timed(
    name: str,
    *,
    session_id: int | None = None,
    connection_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[None]:
    """
    Measure the enclosed block.

    The emitted outcome is "ok", "error" or "cancelled". Exceptions
    (including asyncio.CancelledError) are re-raised unchanged.

    Usage:
        with timed("transcription", session_id=session_id):
            text = await stt.transcribe(audio)
    """
    start_ns = time.monotonic_ns()
    outcome = "ok"
    try:
        yield
    except BaseException as exc:
        outcome = "cancelled" if isinstance(exc, asyncio.CancelledError) else "error"
        raise
    finally:
        emit_timer_metric(
            name,
            (time.monotonic_ns() - start_ns) // 1_000_000,
            session_id=session_id,
            connection_id=connection_id,
            outcome=outcome,
            details=details,
        )
