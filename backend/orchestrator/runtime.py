"""
Runtime execution shell for a single voice helper component.

Responsibilities:
- Own orchestrator state
- Call pure reducer
- Execute commands with side effects (permission, capture, STT, LLM, TTS)
- Run every external call as its own cancelable task
- Schedule and cancel timers
- Convert stage results, failures and timer expiry into events
- Release the capture resource on every exit path
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING

from constants import SHUTDOWN_DRAIN_TIMEOUT_S
from observability.logger import log_event
from observability.metrics import timed
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
from orchestrator.enums.stage import Stage
from orchestrator.events import (
    AnswerReady,
    AudioCaptured,
    CaptureError,
    CaptureStarted,
    Event,
    EventType,
    GenerationError,
    GenerationTimeout,
    PermissionResult,
    SynthesisDone,
    SynthesisError,
    Teardown,
    TranscriptionError,
    TranscriptionTimeout,
    TranscriptReady,
)
from orchestrator.reducer import reduce
from orchestrator.state_dataclass import OrchestratorState

if TYPE_CHECKING:
    from orchestrator.runtime_context import RuntimeExecutionContext


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _format_reason(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


class Runtime:
    """
    Runtime execution boundary for a single voice helper component.

    Responsibilities:
    - Own the authoritative orchestrator state
    - Act as the universal event sink
      (gateway actions, stage results, timer events)
    - Invoke the pure reducer deterministically
    - Execute emitted commands with side effects

    Guarantees:
    - Reducer is always called exactly once per incoming event
    - State is updated before any side effect executes
    - Commands are executed in reducer-emitted order
    - Runtime never performs orchestration logic itself
    - Stage tasks and timers emit events back into handle_event()
    - No stage exception propagates past the runtime
    """

    def __init__(
        self,
        *,
        initial_state: OrchestratorState,
        context: RuntimeExecutionContext,
    ) -> None:
        self._state = initial_state
        self._ctx = context
        self._tasks: dict[Stage, asyncio.Task[None]] = {}
        self._timers: dict[str, asyncio.Task[None]] = {}
        # Cancelled stage tasks that have not finished unwinding yet
        self._draining: set[asyncio.Task[None]] = set()
        self._capture_open = False
        self._closed = False

    @property
    def state(self) -> OrchestratorState:
        """
        Return the current immutable orchestrator state.

        The returned object must be treated as read-only; state is only
        replaced internally by Runtime via the reducer.
        """
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def live_capture_handles(self) -> int:
        """Number of recordings currently held open (0 or 1)."""
        return 1 if self._capture_open else 0

    async def handle_event(self, event: Event) -> None:
        """
        Process a single event through the orchestration pipeline.

        Processing steps:
        1. Pass the current state and event to the pure reducer
        2. Swap in the new orchestrator state
        3. Execute all emitted commands sequentially

        This method is the *only* entry point for events affecting
        orchestrator state. Events arriving after shutdown are dropped.
        """
        if self._closed:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "EVENT_AFTER_SHUTDOWN",
                "connection_id": self._ctx.connection_id,
                "dropped_event_type": event.event_type.value,
            })
            return

        new_state, commands = reduce(self._state, event)
        self._state = new_state

        for cmd in commands:
            await self._execute_command(cmd)

    async def shutdown(self, reason: str | None = None) -> None:
        """
        Component teardown.

        Dispatches Teardown through the reducer, then stops publishing,
        cancels whatever is still running and waits (bounded) for it to
        finish. Any capture resource left behind is released.
        Idempotent.
        """
        if self._closed:
            return

        await self.handle_event(
            Teardown(event_type=EventType.TEARDOWN, ts_ms=_now_ms(), reason=reason)
        )
        self._closed = True

        pending: list[asyncio.Task[None]] = [
            *self._tasks.values(),
            *self._timers.values(),
            *self._draining,
        ]
        self._tasks.clear()
        self._timers.clear()
        self._draining.clear()

        current = asyncio.current_task()
        pending = [t for t in pending if t is not current]
        for task in pending:
            task.cancel()

        if pending:
            _, still_running = await asyncio.wait(pending, timeout=SHUTDOWN_DRAIN_TIMEOUT_S)
            if still_running:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "SHUTDOWN_DRAIN_TIMEOUT",
                    "connection_id": self._ctx.connection_id,
                    "pending_tasks": len(still_running),
                })

        await self._release_capture()

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "RUNTIME_SHUTDOWN",
            "connection_id": self._ctx.connection_id,
            "reason": reason,
            "live_capture_handles": self.live_capture_handles,
        })

    # ------------------------------------------------------------------
    # Command execution (side effects)
    # ------------------------------------------------------------------

    async def _execute_command(self, cmd: Command) -> None:
        """Execute a single command with side effects."""

        if isinstance(cmd, LogEvent):
            log_event({
                **cmd.event,
                "connection_id": self._ctx.connection_id,
            })

        elif isinstance(cmd, PublishUpdate):
            if not self._closed:
                self._ctx.publish(cmd.update)

        elif isinstance(cmd, RequestPermission):
            self._spawn_stage(
                stage=Stage.PERMISSION,
                session_id=cmd.session_id,
                metric="permission",
                work=lambda: self._run_permission(cmd),
                on_error=lambda reason: PermissionResult(
                    event_type=EventType.PERMISSION_RESULT,
                    ts_ms=_now_ms(),
                    stage=Stage.PERMISSION,
                    session_id=cmd.session_id,
                    granted=False,
                    reason=f"Microphone permission not granted: {reason}",
                ),
            )

        elif isinstance(cmd, StartCapture):
            self._spawn_stage(
                stage=Stage.CAPTURE,
                session_id=cmd.session_id,
                metric="capture_start",
                work=lambda: self._run_start_capture(cmd),
                on_error=lambda reason: self._capture_error(cmd.session_id, reason),
            )

        elif isinstance(cmd, StopCapture):
            self._spawn_stage(
                stage=Stage.CAPTURE,
                session_id=cmd.session_id,
                metric="capture_stop",
                work=lambda: self._run_stop_capture(cmd),
                on_error=lambda reason: self._capture_error(cmd.session_id, reason),
            )

        elif isinstance(cmd, DiscardCapture):
            await self._release_capture()
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "capture_discard_executed",
                "connection_id": self._ctx.connection_id,
                "session_id": cmd.session_id,
            })

        elif isinstance(cmd, StartTranscription):
            self._spawn_stage(
                stage=Stage.STT,
                session_id=cmd.session_id,
                metric="transcription",
                work=lambda: self._run_transcription(cmd),
                on_error=lambda reason: TranscriptionError(
                    event_type=EventType.TRANSCRIPTION_ERROR,
                    ts_ms=_now_ms(),
                    stage=Stage.STT,
                    session_id=cmd.session_id,
                    reason=reason,
                ),
            )

        elif isinstance(cmd, StartGeneration):
            self._spawn_stage(
                stage=Stage.LLM,
                session_id=cmd.session_id,
                metric="generation",
                work=lambda: self._run_generation(cmd),
                on_error=lambda reason: GenerationError(
                    event_type=EventType.GENERATION_ERROR,
                    ts_ms=_now_ms(),
                    stage=Stage.LLM,
                    session_id=cmd.session_id,
                    reason=reason,
                ),
            )
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "llm_start_executed",
                "connection_id": self._ctx.connection_id,
                "session_id": cmd.session_id,
                "prompt_version": cmd.prompt_version,
            })

        elif isinstance(cmd, StartSynthesis):
            self._spawn_stage(
                stage=Stage.TTS,
                session_id=cmd.session_id,
                metric="synthesis",
                work=lambda: self._run_synthesis(cmd),
                on_error=lambda reason: SynthesisError(
                    event_type=EventType.SYNTHESIS_ERROR,
                    ts_ms=_now_ms(),
                    stage=Stage.TTS,
                    session_id=cmd.session_id,
                    reason=reason,
                ),
            )

        elif isinstance(cmd, StopSpeech):
            self._ctx.tts.stop()

        elif isinstance(cmd, CancelStage):
            self._cancel_stage(cmd.stage)
            if cmd.stage is Stage.TTS:
                self._ctx.tts.stop()
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "stage_cancel_executed",
                "connection_id": self._ctx.connection_id,
                "session_id": cmd.session_id,
                "stage": cmd.stage.value,
            })

        elif isinstance(cmd, StartTimer):
            self._start_timer(
                timer_id=cmd.timer_id,
                duration_ms=cmd.duration_ms,
                timeout_event_type=cmd.timeout_event_type,
                session_id=cmd.session_id,
            )

        elif isinstance(cmd, CancelTimer):
            if cmd.timer_id in self._timers:
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "TIMER_CANCELLED",
                    "connection_id": self._ctx.connection_id,
                    "timer_id": cmd.timer_id,
                })
            self._cancel_timer(cmd.timer_id)

        else:
            raise ValueError(f"Unknown command: {type(cmd).__name__}")

    # ------------------------------------------------------------------
    # Stage tasks
    # ------------------------------------------------------------------

    def _spawn_stage(
        self,
        *,
        stage: Stage,
        session_id: int,
        metric: str,
        work: Callable[[], Awaitable[Event]],
        on_error: Callable[[str], Event],
    ) -> None:
        """
        Run one external call as its own task.

        The task emits exactly one event back into handle_event(): the
        result from `work`, or `on_error(reason)` if it raised. A cancelled
        task emits nothing.
        """
        self._cancel_stage(stage)

        async def _stage_task() -> None:
            try:
                with timed(
                    metric,
                    session_id=session_id,
                    connection_id=self._ctx.connection_id,
                ):
                    event = await work()
            except asyncio.CancelledError:
                return
            except Exception as exc:  # pylint: disable=broad-exception-caught
                reason = _format_reason(exc)
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "STAGE_FAILED",
                    "connection_id": self._ctx.connection_id,
                    "session_id": session_id,
                    "stage": stage.value,
                    "reason": reason,
                })
                event = on_error(reason)

            await self.handle_event(event)

        task = asyncio.create_task(_stage_task())
        self._tasks[stage] = task

        def _cleanup(done: asyncio.Task[None]) -> None:
            if self._tasks.get(stage) is done:
                del self._tasks[stage]

        task.add_done_callback(_cleanup)

    def _cancel_stage(self, stage: Stage) -> None:
        """
        Cancel the task for a stage without awaiting it.

        Idempotent. A task never cancels itself; its result is discarded by
        the reducer's session gate instead.
        """
        task = self._tasks.pop(stage, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            self._draining.add(task)
            task.add_done_callback(self._draining.discard)

    async def _run_permission(self, cmd: RequestPermission) -> Event:
        granted = await self._ctx.permission.request()
        return PermissionResult(
            event_type=EventType.PERMISSION_RESULT,
            ts_ms=_now_ms(),
            stage=Stage.PERMISSION,
            session_id=cmd.session_id,
            granted=granted,
        )

    async def _run_start_capture(self, cmd: StartCapture) -> Event:
        await self._ctx.capture.start(cmd.config)
        self._capture_open = True
        log_event({
            "ts_ms": _now_ms(),
            "event_type": "capture_start_executed",
            "connection_id": self._ctx.connection_id,
            "session_id": cmd.session_id,
            "sample_rate_hz": cmd.config.sample_rate_hz,
        })
        return CaptureStarted(
            event_type=EventType.CAPTURE_STARTED,
            ts_ms=_now_ms(),
            stage=Stage.CAPTURE,
            session_id=cmd.session_id,
        )

    async def _run_stop_capture(self, cmd: StopCapture) -> Event:
        """Stop the recording, read it into memory, delete the file."""
        uri: str | None = None
        try:
            uri = await self._ctx.capture.stop()
            audio = await asyncio.to_thread(Path(uri).read_bytes)
        finally:
            if uri is not None:
                Path(uri).unlink(missing_ok=True)
            self._capture_open = False

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "capture_stop_executed",
            "connection_id": self._ctx.connection_id,
            "session_id": cmd.session_id,
            "audio_bytes": len(audio),
        })
        return AudioCaptured(
            event_type=EventType.AUDIO_CAPTURED,
            ts_ms=_now_ms(),
            stage=Stage.CAPTURE,
            session_id=cmd.session_id,
            audio=audio,
        )

    async def _run_transcription(self, cmd: StartTranscription) -> Event:
        text = await self._ctx.stt.transcribe(cmd.audio)
        return TranscriptReady(
            event_type=EventType.TRANSCRIPT_READY,
            ts_ms=_now_ms(),
            stage=Stage.STT,
            session_id=cmd.session_id,
            text=text,
        )

    async def _run_generation(self, cmd: StartGeneration) -> Event:
        text = await self._ctx.llm.generate(cmd.prompt)
        return AnswerReady(
            event_type=EventType.ANSWER_READY,
            ts_ms=_now_ms(),
            stage=Stage.LLM,
            session_id=cmd.session_id,
            text=text,
        )

    async def _run_synthesis(self, cmd: StartSynthesis) -> Event:
        await self._ctx.tts.speak(cmd.text, cmd.params)
        return SynthesisDone(
            event_type=EventType.SYNTHESIS_DONE,
            ts_ms=_now_ms(),
            stage=Stage.TTS,
            session_id=cmd.session_id,
        )

    @staticmethod
    def _capture_error(session_id: int, reason: str) -> Event:
        return CaptureError(
            event_type=EventType.CAPTURE_ERROR,
            ts_ms=_now_ms(),
            stage=Stage.CAPTURE,
            session_id=session_id,
            reason=reason,
        )

    async def _release_capture(self) -> None:
        """
        Stop any active recording and delete its file without reading it.

        Cleanup path: failures are logged, never raised.
        """
        capture = self._ctx.capture
        if capture.is_recording:
            try:
                uri = await capture.stop()
            except Exception as exc:  # pylint: disable=broad-exception-caught
                log_event({
                    "ts_ms": _now_ms(),
                    "event_type": "CAPTURE_RELEASE_FAILED",
                    "connection_id": self._ctx.connection_id,
                    "reason": _format_reason(exc),
                })
            else:
                Path(uri).unlink(missing_ok=True)
        self._capture_open = False

    # ------------------------------------------------------------------
    # Timer management
    # ------------------------------------------------------------------

    def _start_timer(
        self,
        *,
        timer_id: str,
        duration_ms: int,
        timeout_event_type: EventType,
        session_id: int,
    ) -> None:
        """
        Start or replace a timer that emits a timeout event.

        Timer tasks re-enter handle_event() when they expire,
        maintaining the single event entry point invariant.
        """
        self._cancel_timer(timer_id)
        event = self._construct_timeout_event(
            timer_id=timer_id,
            timeout_event_type=timeout_event_type,
            session_id=session_id,
        )

        async def _timer_task() -> None:
            try:
                await asyncio.sleep(duration_ms / 1000.0)
            except asyncio.CancelledError:
                # Timer was cancelled - this is normal
                return

            if self._timers.get(timer_id) is asyncio.current_task():
                del self._timers[timer_id]
            await self.handle_event(event)

        self._timers[timer_id] = asyncio.create_task(_timer_task())

    def _cancel_timer(self, timer_id: str) -> None:
        """
        Cancel an in-flight timer if it exists.

        Idempotent: safe to call even if timer doesn't exist.
        """
        task = self._timers.pop(timer_id, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    @staticmethod
    def _construct_timeout_event(
        *,
        timer_id: str,
        timeout_event_type: EventType,
        session_id: int,
    ) -> Event:
        """
        Build the timeout event a timer will inject on expiry.

        The reducer emits timer commands with just EventType and session id;
        runtime constructs the full event.
        """
        ts = _now_ms()

        if timeout_event_type is EventType.TRANSCRIPTION_TIMEOUT:
            return TranscriptionTimeout(
                event_type=EventType.TRANSCRIPTION_TIMEOUT,
                ts_ms=ts,
                stage=Stage.STT,
                session_id=session_id,
            )

        if timeout_event_type is EventType.GENERATION_TIMEOUT:
            return GenerationTimeout(
                event_type=EventType.GENERATION_TIMEOUT,
                ts_ms=ts,
                stage=Stage.LLM,
                session_id=session_id,
            )

        # This should never happen if reducer is correct
        raise ValueError(
            f"Unknown timeout event type: {timeout_event_type} "
            f"for timer_id: {timer_id}"
        )
