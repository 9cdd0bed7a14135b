"""
Runtime execution context.

Provides Runtime with access to the imperative resources it needs for
command execution (ports, update sink, connection identity).

This module contains:
- Narrow Protocols (capabilities, not implementations)
- Zero orchestration logic
- Zero state mutation
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from constants import CaptureConfig, SpeechParams


# ---------------------------------------------------------------------
# Port Protocols
# ---------------------------------------------------------------------

@runtime_checkable
class PermissionGateProtocol(Protocol):
    async def request(self) -> bool:
        """Return True when microphone access is granted."""
        ...


@runtime_checkable
class CaptureServiceProtocol(Protocol):
    """
    Single-recording microphone capture.

    Contract:
    - start() begins recording into a fresh temporary resource
    - stop() ends the recording and returns its location (file path)
    - The caller owns the returned file and must delete it
    """

    @property
    def is_recording(self) -> bool: ...

    async def start(self, config: CaptureConfig) -> None: ...

    async def stop(self) -> str: ...


@runtime_checkable
class SpeechToTextProtocol(Protocol):
    async def transcribe(self, audio: bytes) -> str | None:
        """Return the best transcript, or None when nothing was recognized."""
        ...


@runtime_checkable
class TextGeneratorProtocol(Protocol):
    async def generate(self, prompt: str) -> str: ...


@runtime_checkable
class SpeechSynthesizerProtocol(Protocol):
    """
    Local speech output.

    Contract:
    - speak() returns when the utterance finished, raises on engine error
    - stop() silences any utterance immediately; idempotent
    """

    async def speak(self, text: str, params: SpeechParams) -> None: ...

    def stop(self) -> None: ...


UpdateSink = Callable[[dict[str, Any]], None]


# ---------------------------------------------------------------------
# Runtime Execution Context
# ---------------------------------------------------------------------

class RuntimeExecutionContext:
    """
    Imperative execution context for Runtime.

    Runtime is allowed to:
    - Call ports
    - Publish snapshots through the update sink

    Runtime is NOT allowed to:
    - Replace ports
    - Perform orchestration decisions
    """

    def __init__(
        self,
        *,
        connection_id: str,
        permission: PermissionGateProtocol,
        capture: CaptureServiceProtocol,
        stt: SpeechToTextProtocol,
        llm: TextGeneratorProtocol,
        tts: SpeechSynthesizerProtocol,
        publish: UpdateSink,
    ) -> None:
        self._connection_id = connection_id
        self._permission = permission
        self._capture = capture
        self._stt = stt
        self._llm = llm
        self._tts = tts
        self._publish = publish

    # ----------------------------
    # Connection metadata
    # ----------------------------

    @property
    def connection_id(self) -> str:
        return self._connection_id

    # ----------------------------
    # Ports
    # ----------------------------

    @property
    def permission(self) -> PermissionGateProtocol:
        return self._permission

    @property
    def capture(self) -> CaptureServiceProtocol:
        return self._capture

    @property
    def stt(self) -> SpeechToTextProtocol:
        return self._stt

    @property
    def llm(self) -> TextGeneratorProtocol:
        return self._llm

    @property
    def tts(self) -> SpeechSynthesizerProtocol:
        return self._tts

    # ----------------------------
    # Presentation
    # ----------------------------

    def publish(self, update: dict[str, Any]) -> None:
        self._publish(update)
