"""
Session gateway.

Responsibilities:
- Owns VoiceSession lifecycle (one gateway == one connection)
- Builds the ports and the runtime for the connection
- Routes inbound JSON control messages -> orchestrator events
- Collects state snapshots published by the runtime for delivery
- Turns disconnect into component teardown

NOT responsible for:
- Executing commands
- Any state machine logic
- Socket IO (see server.routes)
"""

from __future__ import annotations

import json
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import httpx

from adapters.llm.prompts import PROMPT_VERSION
from constants import CAPTURE_CONFIG_V1, SPEECH_PARAMS_V1
from observability.logger import log_event
from orchestrator.enums.state import State
from orchestrator.events import Begin, End, Event, EventType, Replay
from orchestrator.runtime import Runtime
from orchestrator.runtime_context import (
    CaptureServiceProtocol,
    PermissionGateProtocol,
    RuntimeExecutionContext,
    SpeechSynthesizerProtocol,
    SpeechToTextProtocol,
    TextGeneratorProtocol,
)
from orchestrator.snapshot import build_snapshot
from orchestrator.state_dataclass import OrchestratorState
from session.voice_session import VoiceSession

if TYPE_CHECKING:
    from config import AppConfig

# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def _new_connection_id() -> str:
    return f"conn_{uuid4().hex[:12]}"


# ------------------------------------------------------------------
# Ports
# ------------------------------------------------------------------

@dataclass(frozen=True)
class SessionPorts:
    """The five side-effect ports one runtime talks to."""
    permission: PermissionGateProtocol
    capture: CaptureServiceProtocol
    stt: SpeechToTextProtocol
    llm: TextGeneratorProtocol
    tts: SpeechSynthesizerProtocol


PortsFactory = Callable[[str], SessionPorts]


def build_default_ports(
    *,
    config: AppConfig,
    http_client: httpx.AsyncClient,
    connection_id: str,
) -> SessionPorts:
    """
    Real adapters: PortAudio mic, Google STT, Gemini, pyttsx3.

    Imported here so that loading the gateway does not require the
    PortAudio shared library.
    """
    # pylint: disable=import-outside-toplevel
    from adapters.capture.sounddevice_capture import SoundDeviceCaptureService
    from adapters.llm.gemini import GeminiTextGenerator
    from adapters.permission.sounddevice_gate import SoundDevicePermissionGate
    from adapters.stt.google_speech import GoogleSpeechToText
    from adapters.tts.pyttsx3_adapter import Pyttsx3SpeechSynthesizer

    assert config.speech_api_key is not None, "GOOGLE_CLOUD_API_KEY missing"
    assert config.gemini_api_key is not None, "GEMINI_API_KEY missing"

    return SessionPorts(
        permission=SoundDevicePermissionGate(connection_id=connection_id),
        capture=SoundDeviceCaptureService(connection_id=connection_id),
        stt=GoogleSpeechToText(
            client=http_client,
            api_key=config.speech_api_key,
            connection_id=connection_id,
            language_code=config.speech_language_code,
            timeout_s=config.stt_timeout_ms / 1000.0,
        ),
        llm=GeminiTextGenerator(
            client=http_client,
            api_key=config.gemini_api_key,
            connection_id=connection_id,
            model=config.gemini_model,
            timeout_s=config.llm_timeout_ms / 1000.0,
        ),
        tts=Pyttsx3SpeechSynthesizer(
            connection_id=connection_id,
            voice_id=config.tts_voice_id,
        ),
    )


# ------------------------------------------------------------------
# Gateway result
# ------------------------------------------------------------------

@dataclass(frozen=True)
class GatewayResult:
    """
    Return value for gateway boundary methods.

    outbound_json:
        JSON messages to send to client immediately. State updates
        produced later by stage tasks are delivered via next_outbound().
    """
    outbound_json: tuple[dict[str, Any], ...] = ()


# ------------------------------------------------------------------
# SessionGateway
# ------------------------------------------------------------------

class SessionGateway:
    """One gateway == one client connection == one voice helper component."""

    def __init__(
        self,
        *,
        config: AppConfig,
        http_client: httpx.AsyncClient | None = None,
        ports_factory: PortsFactory | None = None,
    ) -> None:
        self._config = config
        self._http_client = http_client
        self._ports_factory = ports_factory
        self.session: VoiceSession | None = None

    def _build_ports(self, connection_id: str) -> SessionPorts:
        if self._ports_factory is not None:
            return self._ports_factory(connection_id)
        assert self._http_client is not None, "http_client required for default ports"
        return build_default_ports(
            config=self._config,
            http_client=self._http_client,
            connection_id=connection_id,
        )

    async def on_ws_connect(self) -> GatewayResult:
        """Called when a WebSocket connection is established."""
        connection_id = _new_connection_id()
        session = VoiceSession(connection_id=connection_id)
        ports = self._build_ports(connection_id)

        runtime = Runtime(
            initial_state=OrchestratorState(
                stt_timeout_ms=self._config.stt_timeout_ms,
                llm_timeout_ms=self._config.llm_timeout_ms,
            ),
            context=RuntimeExecutionContext(
                connection_id=connection_id,
                permission=ports.permission,
                capture=ports.capture,
                stt=ports.stt,
                llm=ports.llm,
                tts=ports.tts,
                publish=session.enqueue_control,
            ),
        )
        session.attach_runtime(runtime)
        self.session = session

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "WS_CONNECTED",
            **session.log_context(),
        })

        init_msg: dict[str, Any] = {
            "type": "SESSION_INIT",
            "connection_id": connection_id,
            "audio_format": {
                "sample_rate": CAPTURE_CONFIG_V1.sample_rate_hz,
                "sample_width": CAPTURE_CONFIG_V1.sample_width_bytes,
                "channels": CAPTURE_CONFIG_V1.channels,
                "container": CAPTURE_CONFIG_V1.extension.lstrip("."),
            },
            "speech": {
                "language": SPEECH_PARAMS_V1.language,
                "pitch": SPEECH_PARAMS_V1.pitch,
                "rate": SPEECH_PARAMS_V1.rate,
            },
            "prompt_version": PROMPT_VERSION,
        }

        return GatewayResult(outbound_json=(init_msg, build_snapshot(runtime.state)))

    async def on_ws_disconnect(self, reason: str | None = None) -> GatewayResult:
        """Called when the WebSocket disconnects: component teardown."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "WS_DISCONNECT_WITHOUT_SESSION",
                "reason": reason,
            })
            return GatewayResult()

        runtime = self.session.runtime
        if runtime is not None:
            await runtime.shutdown(reason=reason)

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "WS_DISCONNECTED",
            "reason": reason,
            **self.session.log_context(),
        })

        # Nothing is delivered after teardown
        self.session.drain_control()
        return GatewayResult()

    async def on_json_message(self, payload: str) -> GatewayResult:
        """Route inbound JSON to orchestrator events."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "MESSAGE_WITHOUT_SESSION",
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "JSON_DECODE_ERROR",
                "connection_id": self.session.connection_id,
                "error": str(e),
                "payload_preview": payload[:100],
            })
            return GatewayResult()

        msg_type = data.get("type") if isinstance(data, dict) else None
        ts_ms = _now_ms()

        event: Event | None = None

        if msg_type == "BEGIN":
            event = Begin(event_type=EventType.BEGIN, ts_ms=ts_ms)
        elif msg_type == "END":
            event = End(event_type=EventType.END, ts_ms=ts_ms)
        elif msg_type == "REPLAY":
            event = Replay(event_type=EventType.REPLAY, ts_ms=ts_ms)
        elif msg_type == "TOGGLE":
            event = self._toggle_event(ts_ms)
        else:
            log_event({
                "ts_ms": ts_ms,
                "event_type": "UNKNOWN_MESSAGE_TYPE",
                "msg_type": msg_type,
                "connection_id": self.session.connection_id,
            })
            return GatewayResult()

        await self._dispatch(event)
        return GatewayResult()

    async def next_outbound(self) -> tuple[dict[str, Any], ...]:
        """Wait for and drain state updates published by the runtime."""
        assert self.session is not None, "next_outbound() before on_ws_connect()"
        return await self.session.wait_control()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _toggle_event(self, ts_ms: int) -> Event:
        """
        Single-button clients: the toggle means begin when no session is
        active and end otherwise.
        """
        assert self.session is not None and self.session.runtime is not None
        if self.session.runtime.state.state in (State.IDLE, State.ERROR):
            return Begin(event_type=EventType.BEGIN, ts_ms=ts_ms)
        return End(event_type=EventType.END, ts_ms=ts_ms)

    async def _dispatch(self, event: Event) -> None:
        """Forward event into runtime. Runtime owns all orchestration."""
        if self.session is None:
            log_event({
                "ts_ms": _now_ms(),
                "event_type": "DISPATCH_WITHOUT_SESSION",
                "dropped_event": event.event_type.value,
            })
            return

        runtime = self.session.runtime
        assert runtime is not None, "Runtime must exist before dispatch"

        await runtime.handle_event(event)
