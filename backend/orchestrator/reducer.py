"""
Pure orchestrator reducer.

(state, event) -> (new_state, commands)

Rules:
- Pure: no side effects, no IO, no clocks.
- Deterministic: output depends only on inputs.
- Total: every (state, event) pair is handled or explicitly ignored (logged).
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from adapters.llm.prompts import PROMPT_VERSION, render_prompt
from constants import CAPTURE_CONFIG_V1, NO_SPEECH_DETECTED, SPEECH_PARAMS_V1
from orchestrator.commands import (
    CancelStage,
    CancelTimer,
    Command,
    DiscardCapture,
    LogEvent,
    PublishUpdate,
    RequestPermission,
    StartCapture,
    StartGeneration,
    StartSynthesis,
    StartTimer,
    StartTranscription,
    StopCapture,
    StopSpeech,
)
from orchestrator.enums.error_kind import ErrorKind
from orchestrator.enums.stage import Stage
from orchestrator.enums.state import State
from orchestrator.events import (
    AnswerReady,
    AudioCaptured,
    Begin,
    CaptureError,
    CaptureStarted,
    End,
    Event,
    EventType,
    GenerationError,
    GenerationTimeout,
    PermissionResult,
    Replay,
    StageEvent,
    SynthesisDone,
    SynthesisError,
    Teardown,
    TranscriptionError,
    TranscriptionTimeout,
    TranscriptReady,
)
from orchestrator.snapshot import build_snapshot, toggle_enabled
from orchestrator.state_dataclass import OrchestratorState, StageError


# =============================================================================
# Session invariants
# =============================================================================
# - Session ids are minted ONLY on Begin and never reused
# - Stage results are applied only when session_id matches AND the stage is
#   the one in flight; everything else is a stale result
# - At most one stage is in flight; no start command is emitted while one is
# - Teardown never publishes an update

# =============================================================================
# Timer IDs
# =============================================================================

TIMER_STT = "stt_timeout"
TIMER_LLM = "llm_timeout"

_STAGE_TIMERS: dict[Stage, str] = {
    Stage.STT: TIMER_STT,
    Stage.LLM: TIMER_LLM,
}

# Shown when the gate denies without a reason
_PERMISSION_DENIED_MESSAGE = "Microphone permission not granted"


# =============================================================================
# Small helpers
# =============================================================================

def _log(
    state: OrchestratorState,
    event: Event,
    decision: str,
    details: dict[str, Any] | None = None,
) -> LogEvent:
    return LogEvent(
        event={
            "ts_ms": event.ts_ms,
            "state": state.state.value,
            "event_type": event.event_type.value,
            "decision": decision,
            "session_id": state.session_id,
            "in_flight": state.in_flight.value if state.in_flight else None,
            "capture_live": state.capture_live,
            "details": details or {},
        }
    )


def _logs_last(commands: tuple[Command, ...]) -> tuple[Command, ...]:
    non_logs: list[Command] = []
    logs: list[Command] = []
    state_change_logs: list[Command] = []

    for command in commands:
        if isinstance(command, LogEvent):
            if command.event.get("decision") == "state_changed":
                state_change_logs.append(command)
            else:
                logs.append(command)
        else:
            non_logs.append(command)

    return tuple(non_logs + logs + state_change_logs)


def _ignore(
    state: OrchestratorState, event: Event, reason: str
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    return state, (_log(state, event, "ignore", {"reason": reason}),)


def _transition(
    prev: OrchestratorState,
    new_state: OrchestratorState,
    event: Event,
    source: str,
    commands: tuple[Command, ...] = (),
    *,
    publish: bool = True,
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    """
    Package a transition: side effects first, then the update for the
    presentation layer, then logs (state change last).
    """
    cmds: tuple[Command, ...] = commands
    if publish:
        cmds = cmds + (PublishUpdate(update=build_snapshot(new_state)),)
    if prev.state is not new_state.state:
        cmds = cmds + (
            _log(
                new_state,
                event,
                "state_changed",
                {
                    "from_state": prev.state.value,
                    "to_state": new_state.state.value,
                    "source": source,
                },
            ),
        )
    return new_state, _logs_last(cmds)


def _cancel_stage_commands(
    state: OrchestratorState, stage: Stage
) -> tuple[Command, ...]:
    cmds: tuple[Command, ...] = (CancelStage(stage=stage, session_id=state.session_id),)
    timer_id = _STAGE_TIMERS.get(stage)
    if timer_id is not None:
        cmds = cmds + (CancelTimer(timer_id=timer_id),)
    return cmds


def _enter_error(
    state: OrchestratorState,
    event: Event,
    kind: ErrorKind,
    message: str,
    commands: tuple[Command, ...] = (),
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    """
    Terminal failure of the current session.

    Transcript and answer already obtained stay visible; the session id is
    retired so any late result is discarded.
    """
    cmds = commands
    if state.capture_live or state.in_flight is Stage.CAPTURE:
        cmds = cmds + (DiscardCapture(session_id=state.session_id),)

    new_state = replace(
        state,
        state=State.ERROR,
        session_id=0,
        in_flight=None,
        capture_live=False,
        last_error=StageError(kind=kind, message=message),
    )
    return _transition(
        state,
        new_state,
        event,
        "enter_error",
        cmds + (_log(new_state, event, "enter_error", {"kind": kind.value, "message": message}),),
    )


def _retire_session(state: OrchestratorState) -> OrchestratorState:
    """Drop the active session while keeping id monotonicity and config."""
    return replace(
        state,
        state=State.IDLE,
        session_id=0,
        in_flight=None,
        capture_live=False,
        transcript=None,
        answer=None,
        last_error=None,
    )


# =============================================================================
# User actions
# =============================================================================

def _on_begin(
    state: OrchestratorState, event: Begin
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if state.state not in (State.IDLE, State.ERROR):
        return _ignore(state, event, "session_active")
    if state.in_flight is not None:
        return _ignore(state, event, "stage_in_flight")

    session_id = state.last_session_id + 1
    new_state = replace(
        _retire_session(state),
        state=State.REQUESTING_PERMISSION,
        session_id=session_id,
        last_session_id=session_id,
        in_flight=Stage.PERMISSION,
    )
    return _transition(
        state,
        new_state,
        event,
        "begin",
        (
            StopSpeech(),
            RequestPermission(session_id=session_id),
            _log(new_state, event, "session_started", {"new_session_id": session_id}),
        ),
    )


def _on_end(
    state: OrchestratorState, event: End
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if state.state is State.REQUESTING_PERMISSION:
        new_state = _retire_session(state)
        return _transition(
            state,
            new_state,
            event,
            "end_before_permission",
            _cancel_stage_commands(state, Stage.PERMISSION)
            + (_log(state, event, "session_cancelled"),),
        )

    if state.state is State.RECORDING:
        if not toggle_enabled(state):
            return _ignore(state, event, "capture_not_live")

        new_state = replace(
            state,
            state=State.TRANSCRIBING,
            in_flight=Stage.CAPTURE,
        )
        return _transition(
            state,
            new_state,
            event,
            "end_recording",
            (StopCapture(session_id=state.session_id),),
        )

    if state.state in (State.IDLE, State.ERROR):
        return _ignore(state, event, "no_active_session")

    return _ignore(state, event, "toggle_disabled")


def _on_replay(
    state: OrchestratorState, event: Replay
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    if state.state is not State.IDLE or not state.answer:
        return _ignore(state, event, "replay_disabled")
    if state.in_flight is not None:
        return _ignore(state, event, "stage_in_flight")

    new_state = replace(state, state=State.SPEAKING, in_flight=Stage.TTS)
    return _transition(
        state,
        new_state,
        event,
        "replay",
        (
            StartSynthesis(
                session_id=state.session_id,
                text=state.answer,
                params=SPEECH_PARAMS_V1,
            ),
        ),
    )


def _on_teardown(
    state: OrchestratorState, event: Teardown
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    cmds: tuple[Command, ...] = ()
    if state.in_flight is not None:
        cmds = cmds + (CancelStage(stage=state.in_flight, session_id=state.session_id),)
    if state.capture_live or state.in_flight is Stage.CAPTURE:
        cmds = cmds + (DiscardCapture(session_id=state.session_id),)
    cmds = cmds + (
        StopSpeech(),
        CancelTimer(timer_id=TIMER_STT),
        CancelTimer(timer_id=TIMER_LLM),
        _log(state, event, "teardown", {"reason": event.reason}),
    )

    return _transition(
        state,
        _retire_session(state),
        event,
        "teardown",
        cmds,
        publish=False,
    )


# =============================================================================
# Stage results
# =============================================================================

def _on_stage_event(
    state: OrchestratorState, event: StageEvent
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    # --- stale-result gate ---
    if state.session_id == 0 or event.session_id != state.session_id:
        return _ignore(state, event, "stale_session")
    if event.stage is not state.in_flight:
        return _ignore(state, event, "stage_not_in_flight")

    # ------------------------------------------------------------------
    # Permission
    # ------------------------------------------------------------------
    if isinstance(event, PermissionResult):
        if not event.granted:
            return _enter_error(
                state,
                event,
                ErrorKind.PERMISSION_DENIED,
                event.reason or _PERMISSION_DENIED_MESSAGE,
            )

        new_state = replace(state, state=State.RECORDING, in_flight=Stage.CAPTURE)
        return _transition(
            state,
            new_state,
            event,
            "permission_granted",
            (StartCapture(session_id=state.session_id, config=CAPTURE_CONFIG_V1),),
        )

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------
    if isinstance(event, CaptureStarted):
        new_state = replace(state, capture_live=True, in_flight=None)
        return _transition(
            state,
            new_state,
            event,
            "capture_started",
            (_log(new_state, event, "capture_live"),),
        )

    if isinstance(event, CaptureError):
        prefix = "Recording failed" if state.state is State.RECORDING else "Processing failed"
        return _enter_error(
            state,
            event,
            ErrorKind.CAPTURE_FAILED,
            f"{prefix}: {event.reason}",
        )

    if isinstance(event, AudioCaptured):
        new_state = replace(state, capture_live=False, in_flight=Stage.STT)
        return _transition(
            state,
            new_state,
            event,
            "audio_captured",
            (
                StartTranscription(session_id=state.session_id, audio=event.audio),
                StartTimer(
                    timer_id=TIMER_STT,
                    duration_ms=state.stt_timeout_ms,
                    timeout_event_type=EventType.TRANSCRIPTION_TIMEOUT,
                    session_id=state.session_id,
                ),
                _log(new_state, event, "start_transcription", {"audio_bytes": len(event.audio)}),
            ),
            publish=False,
        )

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------
    if isinstance(event, TranscriptReady):
        text = (event.text or "").strip()

        if not text:
            new_state = replace(
                state,
                state=State.IDLE,
                in_flight=None,
                transcript=NO_SPEECH_DETECTED,
            )
            return _transition(
                state,
                new_state,
                event,
                "no_speech_detected",
                (CancelTimer(timer_id=TIMER_STT),),
            )

        new_state = replace(
            state,
            state=State.GENERATING,
            in_flight=Stage.LLM,
            transcript=text,
        )
        return _transition(
            state,
            new_state,
            event,
            "transcript_ready",
            (
                CancelTimer(timer_id=TIMER_STT),
                StartGeneration(
                    session_id=state.session_id,
                    prompt=render_prompt(text),
                    prompt_version=PROMPT_VERSION,
                ),
                StartTimer(
                    timer_id=TIMER_LLM,
                    duration_ms=state.llm_timeout_ms,
                    timeout_event_type=EventType.GENERATION_TIMEOUT,
                    session_id=state.session_id,
                ),
                _log(new_state, event, "start_generation", {"transcript_len": len(text)}),
            ),
        )

    if isinstance(event, TranscriptionError):
        return _enter_error(
            state,
            event,
            ErrorKind.TRANSCRIPTION_FAILED,
            f"Processing failed: {event.reason}",
            (CancelTimer(timer_id=TIMER_STT),),
        )

    if isinstance(event, TranscriptionTimeout):
        return _enter_error(
            state,
            event,
            ErrorKind.TRANSCRIPTION_FAILED,
            f"Processing failed: Speech-to-Text request timed out after {state.stt_timeout_ms} ms",
            (CancelStage(stage=Stage.STT, session_id=state.session_id),),
        )

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    if isinstance(event, AnswerReady):
        answer = event.text.strip()
        if not answer:
            return _enter_error(
                state,
                event,
                ErrorKind.GENERATION_FAILED,
                "Gemini API Error: empty answer",
                (CancelTimer(timer_id=TIMER_LLM),),
            )

        new_state = replace(
            state,
            state=State.SPEAKING,
            in_flight=Stage.TTS,
            answer=answer,
        )
        return _transition(
            state,
            new_state,
            event,
            "answer_ready",
            (
                CancelTimer(timer_id=TIMER_LLM),
                StartSynthesis(
                    session_id=state.session_id,
                    text=answer,
                    params=SPEECH_PARAMS_V1,
                ),
                _log(new_state, event, "start_synthesis", {"answer_len": len(answer)}),
            ),
        )

    if isinstance(event, GenerationError):
        return _enter_error(
            state,
            event,
            ErrorKind.GENERATION_FAILED,
            f"Gemini API Error: {event.reason}",
            (CancelTimer(timer_id=TIMER_LLM),),
        )

    if isinstance(event, GenerationTimeout):
        return _enter_error(
            state,
            event,
            ErrorKind.GENERATION_FAILED,
            f"Gemini API Error: request timed out after {state.llm_timeout_ms} ms",
            (CancelStage(stage=Stage.LLM, session_id=state.session_id),),
        )

    # ------------------------------------------------------------------
    # Synthesis
    # ------------------------------------------------------------------
    if isinstance(event, SynthesisDone):
        new_state = replace(state, state=State.IDLE, in_flight=None)
        return _transition(state, new_state, event, "synthesis_done")

    if isinstance(event, SynthesisError):
        return _enter_error(
            state,
            event,
            ErrorKind.SYNTHESIS_FAILED,
            f"Speech Error: {event.reason}",
        )

    return _ignore(state, event, "unhandled_stage_event")


# =============================================================================
# Reducer entrypoint
# =============================================================================

def reduce(
    state: OrchestratorState, event: Event
) -> tuple[OrchestratorState, tuple[Command, ...]]:
    """
    Pure reducer for the voice interaction state machine.

    Given the current orchestrator state and a single event, returns:
    - the next state
    - a tuple of commands describing required side effects

    Properties:
    - Deterministic: no IO, clocks, or randomness
    - Total: every (state, event) pair is handled or explicitly ignored
    - Session-safe: ignores results tagged with a stale session id
    """
    if isinstance(event, Teardown):
        return _on_teardown(state, event)

    if isinstance(event, Begin):
        return _on_begin(state, event)

    if isinstance(event, End):
        return _on_end(state, event)

    if isinstance(event, Replay):
        return _on_replay(state, event)

    if isinstance(event, StageEvent):
        return _on_stage_event(state, event)

    return _ignore(state, event, "unknown_event")
