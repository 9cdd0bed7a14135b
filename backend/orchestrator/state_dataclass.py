"""
Authoritative orchestrator state container.

Rules:
- This dataclass is a pure data model.
- It contains ALL state the reducer may ever need.
- No behavior, no helpers, no derived logic.
"""
from __future__ import annotations

from dataclasses import dataclass

from constants import LLM_TIMEOUT_MS, STT_TIMEOUT_MS
from orchestrator.enums.error_kind import ErrorKind
from orchestrator.enums.stage import Stage
from orchestrator.enums.state import State


# =============================================================================
# Errors
# =============================================================================

@dataclass(frozen=True)
class StageError:
    """Structured, displayable failure of one stage."""
    kind: ErrorKind
    message: str


# =============================================================================
# Orchestrator State
# =============================================================================

@dataclass(frozen=True)
class OrchestratorState:
    """Immutable snapshot of all orchestrator-owned state."""

    # ------------------------------------------------------------------
    # Control state
    # ------------------------------------------------------------------
    state: State = State.IDLE

    # ------------------------------------------------------------------
    # Session identity
    # ------------------------------------------------------------------
    # Active session; 0 means "no session".
    session_id: int = 0

    # Last minted session id. Monotonic, never reused, survives teardown.
    last_session_id: int = 0

    # ------------------------------------------------------------------
    # Stage tracking
    # ------------------------------------------------------------------
    # The single outstanding external call, if any.
    in_flight: Stage | None = None

    # True while the runtime holds a started recording for this session.
    capture_live: bool = False

    # ------------------------------------------------------------------
    # Results (each set once per session)
    # ------------------------------------------------------------------
    transcript: str | None = None
    answer: str | None = None

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------
    last_error: StageError | None = None

    # ------------------------------------------------------------------
    # Timeouts (from configuration, injected at construction)
    # ------------------------------------------------------------------
    stt_timeout_ms: int = STT_TIMEOUT_MS
    llm_timeout_ms: int = LLM_TIMEOUT_MS
