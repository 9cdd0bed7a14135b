"""
Side-effect command definitions for the orchestrator.

Rules:
- Commands are declarative requests for side effects.
- Commands are emitted by the reducer and executed by the runtime.
- No behavior, no async, no I/O, no clocks.
- Reducer logic remains pure and deterministic.
Invariant:
    - All concrete Command subclasses MUST be frozen dataclasses.
    - Commands are immutable value objects emitted by the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from constants import CaptureConfig, SpeechParams
from orchestrator.enums.stage import Stage
from orchestrator.events import EventType

# =============================================================================
# Command Type Enumeration
# =============================================================================

class CommandType(str, Enum):
    """
    Canonical command types emitted by the reducer.

    These are stable discriminants used for logging and runtime dispatch.
    """

    # Permission / capture
    REQUEST_PERMISSION = "REQUEST_PERMISSION"
    START_CAPTURE = "START_CAPTURE"
    STOP_CAPTURE = "STOP_CAPTURE"
    DISCARD_CAPTURE = "DISCARD_CAPTURE"

    # Network stages
    START_TRANSCRIPTION = "START_TRANSCRIPTION"
    START_GENERATION = "START_GENERATION"

    # Speech
    START_SYNTHESIS = "START_SYNTHESIS"
    STOP_SPEECH = "STOP_SPEECH"

    # Cancellation
    CANCEL_STAGE = "CANCEL_STAGE"

    # Presentation
    PUBLISH_UPDATE = "PUBLISH_UPDATE"

    # Timers
    START_TIMER = "START_TIMER"
    CANCEL_TIMER = "CANCEL_TIMER"

    # Observability
    LOG_EVENT = "LOG_EVENT"


# =============================================================================
# Base Command
# =============================================================================

class Command:
    """
    Base command type.

    command_type is an explicit discriminant and must never be inferred
    from Python type identity.
    """

    command_type: CommandType


# =============================================================================
# Permission / Capture Commands
# =============================================================================

@dataclass(frozen=True)
class RequestPermission(Command):
    """Ask the permission gate for microphone access."""
    session_id: int
    command_type: CommandType = CommandType.REQUEST_PERMISSION


@dataclass(frozen=True)
class StartCapture(Command):
    """Start recording with the given configuration."""
    session_id: int
    config: CaptureConfig
    command_type: CommandType = CommandType.START_CAPTURE


@dataclass(frozen=True)
class StopCapture(Command):
    """
    Stop recording, read the buffer into memory and release the recording.

    The runtime must delete the recording on every path, including errors.
    """
    session_id: int
    command_type: CommandType = CommandType.STOP_CAPTURE


@dataclass(frozen=True)
class DiscardCapture(Command):
    """Stop any active recording and delete it without reading it."""
    session_id: int
    command_type: CommandType = CommandType.DISCARD_CAPTURE


# =============================================================================
# Network Stage Commands
# =============================================================================

@dataclass(frozen=True)
class StartTranscription(Command):
    """Send the captured audio to the speech-to-text service."""
    session_id: int
    audio: bytes
    command_type: CommandType = CommandType.START_TRANSCRIPTION


@dataclass(frozen=True)
class StartGeneration(Command):
    """
    Send a fully rendered prompt to the text-generation service.

    prompt_version identifies the template used (for logs only).
    """
    session_id: int
    prompt: str
    prompt_version: str
    command_type: CommandType = CommandType.START_GENERATION


# =============================================================================
# Speech Commands
# =============================================================================

@dataclass(frozen=True)
class StartSynthesis(Command):
    """
    Speak text aloud.

    The runtime must emit exactly one SynthesisDone or SynthesisError for
    the session unless the stage is canceled first.
    """
    session_id: int
    text: str
    params: SpeechParams
    command_type: CommandType = CommandType.START_SYNTHESIS


@dataclass(frozen=True)
class StopSpeech(Command):
    """Silence the speech output regardless of who started it."""
    command_type: CommandType = CommandType.STOP_SPEECH


# =============================================================================
# Cancellation
# =============================================================================

@dataclass(frozen=True)
class CancelStage(Command):
    """
    Cancel the outstanding call for a stage.

    The runtime cancels without awaiting completion; any late result is
    discarded by the reducer's session gate.
    """
    stage: Stage
    session_id: int
    command_type: CommandType = CommandType.CANCEL_STAGE


# =============================================================================
# Presentation
# =============================================================================

@dataclass(frozen=True)
class PublishUpdate(Command):
    """Send a state snapshot to the presentation layer."""
    update: dict[str, Any]
    command_type: CommandType = CommandType.PUBLISH_UPDATE


# =============================================================================
# Timer Commands
# =============================================================================

@dataclass(frozen=True)
class StartTimer(Command):
    """
    Request to start a named timer.

    On expiration, the runtime must inject the specified timeout event
    tagged with session_id.
    """
    timer_id: str
    duration_ms: int
    timeout_event_type: EventType
    session_id: int
    command_type: CommandType = CommandType.START_TIMER


@dataclass(frozen=True)
class CancelTimer(Command):
    """Request to cancel a previously scheduled timer."""
    timer_id: str
    command_type: CommandType = CommandType.CANCEL_TIMER


# =============================================================================
# Observability Commands
# =============================================================================

@dataclass(frozen=True)
class LogEvent(Command):
    """Request to emit a structured observability event."""
    event: dict[str, Any]
    command_type: CommandType = CommandType.LOG_EVENT
