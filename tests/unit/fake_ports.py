"""In-memory fakes for the five runtime ports."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from adapters.capture.base import CaptureError
from constants import CaptureConfig, SpeechParams
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import RuntimeExecutionContext
from orchestrator.state_dataclass import OrchestratorState


class FakePermission:
    def __init__(
        self,
        granted: bool = True,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.granted = granted
        self.error = error
        self.gate = gate
        self.calls = 0
        self.cancelled = False

    async def request(self) -> bool:
        self.calls += 1
        try:
            if self.gate is not None:
                await self.gate.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.granted


class FakeCapture:
    def __init__(
        self,
        tmp_dir: Path,
        audio: bytes = b"RIFF\x00\x00\x00\x00WAVEfake",
        start_error: Exception | None = None,
        stop_error: Exception | None = None,
    ) -> None:
        self.tmp_dir = tmp_dir
        self.audio = audio
        self.start_error = start_error
        self.stop_error = stop_error
        self.start_calls: list[CaptureConfig] = []
        self.stop_calls = 0
        self.paths: list[Path] = []
        self._recording = False

    @property
    def is_recording(self) -> bool:
        return self._recording

    async def start(self, config: CaptureConfig) -> None:
        self.start_calls.append(config)
        if self.start_error is not None:
            raise self.start_error
        self._recording = True

    async def stop(self) -> str:
        self.stop_calls += 1
        if not self._recording:
            raise CaptureError("No recording in progress")
        self._recording = False
        if self.stop_error is not None:
            raise self.stop_error
        path = self.tmp_dir / f"recording_{len(self.paths)}.wav"
        path.write_bytes(self.audio)
        self.paths.append(path)
        return str(path)


class FakeSpeechToText:
    def __init__(
        self,
        text: str | None = "I am happy",
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.text = text
        self.error = error
        self.gate = gate
        self.received: list[bytes] = []
        self.cancelled = False

    async def transcribe(self, audio: bytes) -> str | None:
        self.received.append(audio)
        try:
            if self.gate is not None:
                await self.gate.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.text


class FakeTextGenerator:
    def __init__(
        self,
        answer: str = "Happy means you feel good inside.",
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.answer = answer
        self.error = error
        self.gate = gate
        self.prompts: list[str] = []
        self.cancelled = False

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        try:
            if self.gate is not None:
                await self.gate.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        return self.answer


class FakeSynthesizer:
    def __init__(
        self,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.error = error
        self.gate = gate
        self.spoken: list[tuple[str, SpeechParams]] = []
        self.stop_calls = 0

    async def speak(self, text: str, params: SpeechParams) -> None:
        self.spoken.append((text, params))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error

    def stop(self) -> None:
        self.stop_calls += 1
        if self.gate is not None:
            self.gate.set()


class Harness:
    """A Runtime wired to fakes, plus the published updates."""

    def __init__(
        self,
        tmp_dir: Path,
        *,
        permission: FakePermission | None = None,
        capture: FakeCapture | None = None,
        stt: FakeSpeechToText | None = None,
        llm: FakeTextGenerator | None = None,
        tts: FakeSynthesizer | None = None,
        initial_state: OrchestratorState | None = None,
    ) -> None:
        self.permission = permission or FakePermission()
        self.capture = capture or FakeCapture(tmp_dir)
        self.stt = stt or FakeSpeechToText()
        self.llm = llm or FakeTextGenerator()
        self.tts = tts or FakeSynthesizer()
        self.updates: list[dict[str, Any]] = []

        self.runtime = Runtime(
            initial_state=initial_state or OrchestratorState(),
            context=RuntimeExecutionContext(
                connection_id="conn_test",
                permission=self.permission,
                capture=self.capture,
                stt=self.stt,
                llm=self.llm,
                tts=self.tts,
                publish=self.updates.append,
            ),
        )


async def wait_until(predicate: Callable[[], bool], timeout_s: float = 2.0) -> None:
    deadline = time.monotonic() + timeout_s
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.001)
