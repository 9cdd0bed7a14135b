"""
Unified event definitions for the orchestrator reducer.

Rules:
- Events describe facts that have occurred.
- Events carry data only (no behavior).
- All reducer decisions are based on these events.
- No clocks, no timers, no async, no side effects.

Stage results and timeouts carry the session_id that issued the call so the
reducer can discard stale results.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from orchestrator.enums.stage import Stage


# =============================================================================
# Event Type Enumeration
# =============================================================================

class EventType(str, Enum):
    """
    Canonical event types understood by the reducer.

    Every (state, event_type) pair must be explicitly handled
    or explicitly ignored by the reducer.
    """

    # ------------------------------------------------------------------
    # User actions / lifecycle
    # ------------------------------------------------------------------
    BEGIN = "BEGIN"
    END = "END"
    REPLAY = "REPLAY"
    TEARDOWN = "TEARDOWN"

    # ------------------------------------------------------------------
    # Permission
    # ------------------------------------------------------------------
    PERMISSION_RESULT = "PERMISSION_RESULT"

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------
    CAPTURE_STARTED = "CAPTURE_STARTED"
    AUDIO_CAPTURED = "AUDIO_CAPTURED"
    CAPTURE_ERROR = "CAPTURE_ERROR"

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------
    TRANSCRIPT_READY = "TRANSCRIPT_READY"
    TRANSCRIPTION_ERROR = "TRANSCRIPTION_ERROR"
    TRANSCRIPTION_TIMEOUT = "TRANSCRIPTION_TIMEOUT"

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    ANSWER_READY = "ANSWER_READY"
    GENERATION_ERROR = "GENERATION_ERROR"
    GENERATION_TIMEOUT = "GENERATION_TIMEOUT"

    # ------------------------------------------------------------------
    # Synthesis
    # ------------------------------------------------------------------
    SYNTHESIS_DONE = "SYNTHESIS_DONE"
    SYNTHESIS_ERROR = "SYNTHESIS_ERROR"


# =============================================================================
# Base Event
# =============================================================================

@dataclass(frozen=True)
class Event:
    """
    Base event type.

    All events must specify:
    - event_type: discriminant
    - ts_ms: timestamp provided by the source (or fake in tests)
    """

    event_type: EventType
    ts_ms: int


# =============================================================================
# Stage-Scoped Events
# =============================================================================

@dataclass(frozen=True)
class StageEvent(Event):
    """
    Base class for results of a session-scoped external call.

    The reducer MUST ignore events whose session_id does not match the
    active session, or whose stage is not the one in flight.
    """

    stage: Stage
    session_id: int


@dataclass(frozen=True)
class StageFailure(StageEvent):
    """Base class for stage errors; reason is human-readable."""
    reason: str


# =============================================================================
# User Actions / Lifecycle
# =============================================================================

@dataclass(frozen=True)
class Begin(Event):
    """User asked to start a new interaction."""


@dataclass(frozen=True)
class End(Event):
    """User pressed the toggle while an interaction is running."""


@dataclass(frozen=True)
class Replay(Event):
    """User asked to hear the last answer again."""


@dataclass(frozen=True)
class Teardown(Event):
    """The owning component is being discarded."""
    reason: str | None = None


# =============================================================================
# Permission
# =============================================================================

@dataclass(frozen=True)
class PermissionResult(StageEvent):
    """Microphone permission decision."""
    granted: bool
    reason: str | None = None


# =============================================================================
# Capture
# =============================================================================

@dataclass(frozen=True)
class CaptureStarted(StageEvent):
    """The microphone is recording; the audio handle is live."""


@dataclass(frozen=True)
class AudioCaptured(StageEvent):
    """
    Recording stopped and the buffer was read into memory.

    The temporary file behind the recording has already been released.
    """
    audio: bytes


@dataclass(frozen=True)
class CaptureError(StageFailure):
    """Starting or stopping the recording failed."""


# =============================================================================
# Transcription
# =============================================================================

@dataclass(frozen=True)
class TranscriptReady(StageEvent):
    """
    Transcription finished.

    text is None when the service reported no results.
    """
    text: str | None


@dataclass(frozen=True)
class TranscriptionError(StageFailure):
    """Transport failure, non-2xx status or malformed response."""


@dataclass(frozen=True)
class TranscriptionTimeout(StageEvent):
    """No transcription result within the configured bound."""


# =============================================================================
# Generation
# =============================================================================

@dataclass(frozen=True)
class AnswerReady(StageEvent):
    """Generated answer text."""
    text: str


@dataclass(frozen=True)
class GenerationError(StageFailure):
    """Transport failure, non-2xx status or malformed response."""


@dataclass(frozen=True)
class GenerationTimeout(StageEvent):
    """No generation result within the configured bound."""


# =============================================================================
# Synthesis
# =============================================================================

@dataclass(frozen=True)
class SynthesisDone(StageEvent):
    """The utterance finished playing."""


@dataclass(frozen=True)
class SynthesisError(StageFailure):
    """The speech engine reported an error."""
