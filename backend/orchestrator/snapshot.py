"""
Presentation snapshots of orchestrator state.

Pure functions only. The reducer embeds the result in PublishUpdate
commands; the gateway forwards it to the client unchanged.
"""

from __future__ import annotations

from typing import Any

from orchestrator.enums.state import State
from orchestrator.state_dataclass import OrchestratorState

_PROCESSING_STATES = frozenset({State.TRANSCRIBING, State.GENERATING})


def toggle_enabled(state: OrchestratorState) -> bool:
    """
    Whether the begin/end toggle accepts a press.

    Disabled while a network stage or speech is running, and while the
    recording has been requested but is not live yet.
    """
    if state.state in (State.IDLE, State.ERROR, State.REQUESTING_PERMISSION):
        return True
    if state.state is State.RECORDING:
        return state.capture_live and state.in_flight is None
    return False


def replay_enabled(state: OrchestratorState) -> bool:
    """Replay needs a finished answer and nothing else running."""
    return (
        state.state is State.IDLE
        and state.in_flight is None
        and bool(state.answer)
    )


def toggle_label(state: OrchestratorState) -> str:
    if state.state in _PROCESSING_STATES:
        return "Processing..."
    if state.state is State.RECORDING:
        return "Stop Recording"
    return "Start Recording"


def build_snapshot(state: OrchestratorState) -> dict[str, Any]:
    """Serialize the user-visible part of the state to a JSON-able dict."""
    error: dict[str, str] | None = None
    if state.last_error is not None:
        error = {
            "kind": state.last_error.kind.value,
            "message": state.last_error.message,
        }

    return {
        "type": "STATE_UPDATE",
        "session_id": state.session_id or None,
        "state": state.state.value,
        "transcript": state.transcript,
        "answer": state.answer,
        "error": error,
        "actions": {
            "toggle": toggle_enabled(state),
            "replay": replay_enabled(state),
        },
        "toggle_label": toggle_label(state),
    }
