# pylint: disable=missing-module-docstring,missing-function-docstring
import asyncio
from pathlib import Path

from adapters.capture.base import CaptureError
from adapters.llm.base import GenerationError
from constants import NO_SPEECH_DETECTED, SPEECH_PARAMS_V1
from orchestrator.enums.error_kind import ErrorKind
from orchestrator.enums.state import State
from orchestrator.events import Begin, End, EventType, Replay
from orchestrator.state_dataclass import OrchestratorState

from fake_ports import (
    FakeCapture,
    FakePermission,
    FakeSpeechToText,
    FakeSynthesizer,
    FakeTextGenerator,
    Harness,
    wait_until,
)


def begin() -> Begin:
    return Begin(event_type=EventType.BEGIN, ts_ms=0)


def end() -> End:
    return End(event_type=EventType.END, ts_ms=0)


def replay() -> Replay:
    return Replay(event_type=EventType.REPLAY, ts_ms=0)


async def start_recording(h: Harness) -> None:
    await h.runtime.handle_event(begin())
    await wait_until(lambda: h.runtime.state.capture_live)


async def finish_interaction(h: Harness) -> None:
    await start_recording(h)
    await h.runtime.handle_event(end())
    await wait_until(
        lambda: h.runtime.state.state in (State.IDLE, State.ERROR)
        and h.runtime.state.in_flight is None
    )


# ---------------------------------------------------------------------
# Full interactions
# ---------------------------------------------------------------------

def test_happy_path_speaks_answer_and_releases_recording(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    async def scenario() -> None:
        await start_recording(h)
        assert h.runtime.live_capture_handles == 1

        await h.runtime.handle_event(end())
        await wait_until(lambda: h.runtime.state.state is State.IDLE)

    asyncio.run(scenario())

    state = h.runtime.state
    assert state.transcript == "I am happy"
    assert state.answer == "Happy means you feel good inside."
    assert state.last_error is None

    # Recording was read, uploaded and deleted
    assert h.stt.received == [h.capture.audio]
    assert all(not p.exists() for p in h.capture.paths)
    assert h.runtime.live_capture_handles == 0

    assert "I am happy" in h.llm.prompts[0]
    assert h.tts.spoken == [("Happy means you feel good inside.", SPEECH_PARAMS_V1)]

    states = [u["state"] for u in h.updates]
    assert states[0] == "REQUESTING_PERMISSION"
    assert "TRANSCRIBING" in states
    assert "GENERATING" in states
    assert "SPEAKING" in states
    assert states[-1] == "IDLE"
    assert h.updates[-1]["actions"] == {"toggle": True, "replay": True}


def test_no_speech_skips_generation(tmp_path: Path) -> None:
    h = Harness(tmp_path, stt=FakeSpeechToText(text=None))

    asyncio.run(finish_interaction(h))

    assert h.runtime.state.state is State.IDLE
    assert h.runtime.state.transcript == NO_SPEECH_DETECTED
    assert h.llm.prompts == []
    assert h.tts.spoken == []
    assert h.runtime.live_capture_handles == 0


def test_permission_denied_attempts_no_capture(tmp_path: Path) -> None:
    h = Harness(tmp_path, permission=FakePermission(granted=False))

    async def scenario() -> None:
        await h.runtime.handle_event(begin())
        await wait_until(lambda: h.runtime.state.state is State.ERROR)

    asyncio.run(scenario())

    assert h.runtime.state.last_error.kind is ErrorKind.PERMISSION_DENIED
    assert h.capture.start_calls == []
    assert h.updates[-1]["error"] == {
        "kind": "PERMISSION_DENIED",
        "message": "Microphone permission not granted",
    }


def test_permission_probe_failure_is_reported_as_denial(tmp_path: Path) -> None:
    h = Harness(tmp_path, permission=FakePermission(error=OSError("no audio subsystem")))

    async def scenario() -> None:
        await h.runtime.handle_event(begin())
        await wait_until(lambda: h.runtime.state.state is State.ERROR)

    asyncio.run(scenario())

    error = h.runtime.state.last_error
    assert error.kind is ErrorKind.PERMISSION_DENIED
    assert "OSError: no audio subsystem" in error.message


def test_capture_start_failure_leaves_no_handle(tmp_path: Path) -> None:
    h = Harness(
        tmp_path,
        capture=FakeCapture(tmp_path, start_error=CaptureError("device busy")),
    )

    async def scenario() -> None:
        await h.runtime.handle_event(begin())
        await wait_until(lambda: h.runtime.state.state is State.ERROR)

    asyncio.run(scenario())

    error = h.runtime.state.last_error
    assert error.kind is ErrorKind.CAPTURE_FAILED
    assert error.message == "Recording failed: CaptureError: device busy"
    assert h.runtime.live_capture_handles == 0


def test_generation_failure_keeps_transcript(tmp_path: Path) -> None:
    h = Harness(
        tmp_path,
        llm=FakeTextGenerator(error=GenerationError("Gemini API request failed: 500")),
    )

    asyncio.run(finish_interaction(h))

    state = h.runtime.state
    assert state.state is State.ERROR
    assert state.last_error.kind is ErrorKind.GENERATION_FAILED
    assert state.last_error.message == (
        "Gemini API Error: GenerationError: Gemini API request failed: 500"
    )
    assert state.transcript == "I am happy"
    assert h.tts.spoken == []
    assert h.runtime.live_capture_handles == 0


def test_transcription_timeout_cancels_request(tmp_path: Path) -> None:
    h = Harness(
        tmp_path,
        stt=FakeSpeechToText(gate=asyncio.Event()),
        initial_state=OrchestratorState(stt_timeout_ms=20),
    )

    async def scenario() -> None:
        await finish_interaction(h)
        await wait_until(lambda: h.stt.cancelled)

    asyncio.run(scenario())

    assert h.runtime.state.state is State.ERROR
    assert h.runtime.state.last_error.kind is ErrorKind.TRANSCRIPTION_FAILED
    assert h.stt.cancelled
    assert h.llm.prompts == []


def test_second_end_while_transcribing_changes_nothing(tmp_path: Path) -> None:
    gate = asyncio.Event()
    h = Harness(tmp_path, stt=FakeSpeechToText(gate=gate))

    async def scenario() -> None:
        await start_recording(h)
        await h.runtime.handle_event(end())
        await wait_until(lambda: len(h.stt.received) == 1)

        before = h.runtime.state
        await h.runtime.handle_event(end())
        assert h.runtime.state == before

        gate.set()
        await wait_until(lambda: h.runtime.state.state is State.IDLE)

    asyncio.run(scenario())

    assert h.capture.stop_calls == 1
    assert len(h.stt.received) == 1
    assert h.runtime.state.answer is not None


# ---------------------------------------------------------------------
# Replay
# ---------------------------------------------------------------------

def test_replay_speaks_again_without_upstream_calls(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    async def scenario() -> None:
        await finish_interaction(h)
        await h.runtime.handle_event(replay())
        await h.runtime.handle_event(replay())
        await wait_until(
            lambda: h.runtime.state.state is State.IDLE and len(h.tts.spoken) == 2
        )

    asyncio.run(scenario())

    assert len(h.stt.received) == 1
    assert len(h.llm.prompts) == 1
    assert [text for text, _ in h.tts.spoken] == [h.llm.answer, h.llm.answer]


# ---------------------------------------------------------------------
# Cancellation / teardown
# ---------------------------------------------------------------------

def test_end_during_permission_cancels_request(tmp_path: Path) -> None:
    h = Harness(tmp_path, permission=FakePermission(gate=asyncio.Event()))

    async def scenario() -> None:
        await h.runtime.handle_event(begin())
        await wait_until(lambda: h.permission.calls == 1)
        await h.runtime.handle_event(end())
        await wait_until(lambda: h.permission.cancelled)

    asyncio.run(scenario())

    assert h.runtime.state.state is State.IDLE
    assert h.runtime.state.session_id == 0
    assert h.capture.start_calls == []


def test_teardown_while_recording_releases_capture(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    async def scenario() -> None:
        await start_recording(h)
        published = len(h.updates)

        await h.runtime.shutdown(reason="client_disconnect")

        assert len(h.updates) == published

    asyncio.run(scenario())

    assert h.runtime.closed
    assert h.runtime.state.state is State.IDLE
    assert h.runtime.live_capture_handles == 0
    assert not h.capture.is_recording
    assert all(not p.exists() for p in h.capture.paths)
    assert h.stt.received == []


def test_teardown_while_transcribing_cancels_and_drops_late_events(tmp_path: Path) -> None:
    h = Harness(tmp_path, stt=FakeSpeechToText(gate=asyncio.Event()))

    async def scenario() -> None:
        await start_recording(h)
        await h.runtime.handle_event(end())
        await wait_until(lambda: len(h.stt.received) == 1)

        await h.runtime.shutdown()
        published = len(h.updates)

        await h.runtime.handle_event(begin())
        assert len(h.updates) == published

    asyncio.run(scenario())

    assert h.stt.cancelled
    assert h.llm.prompts == []
    assert h.runtime.state.session_id == 0
    assert h.runtime.live_capture_handles == 0


def test_teardown_while_speaking_stops_speech(tmp_path: Path) -> None:
    h = Harness(tmp_path, tts=FakeSynthesizer(gate=asyncio.Event()))

    async def scenario() -> None:
        await start_recording(h)
        await h.runtime.handle_event(end())
        await wait_until(lambda: h.runtime.state.state is State.SPEAKING)

        stops_before = h.tts.stop_calls
        await h.runtime.shutdown()
        assert h.tts.stop_calls > stops_before

    asyncio.run(scenario())

    assert h.runtime.state.state is State.IDLE


def test_shutdown_is_idempotent(tmp_path: Path) -> None:
    h = Harness(tmp_path)

    async def scenario() -> None:
        await h.runtime.shutdown()
        await h.runtime.shutdown()

    asyncio.run(scenario())

    assert h.runtime.closed
    assert h.updates == []
