"""Microphone permission gate backed by PortAudio device probing."""

from __future__ import annotations

import asyncio
import time

import sounddevice as sd

from adapters.permission.base import PermissionGate
from constants import AUDIO_CHANNELS, AUDIO_SAMPLE_RATE_HZ
from observability.logger import log_event


class SoundDevicePermissionGate(PermissionGate):
    """
    Grants access when the default input device accepts the capture format.

    On desktop platforms the OS prompt (if any) is triggered by opening the
    device; a missing device or a refused format is reported as a denial.
    """

    def __init__(
        self,
        *,
        connection_id: str,
        sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ,
        channels: int = AUDIO_CHANNELS,
    ) -> None:
        self._connection_id = connection_id
        self._sample_rate_hz = sample_rate_hz
        self._channels = channels

    async def request(self) -> bool:
        return await asyncio.to_thread(self._probe)

    def _probe(self) -> bool:
        try:
            sd.check_input_settings(
                samplerate=self._sample_rate_hz,
                channels=self._channels,
                dtype="int16",
            )
        except (sd.PortAudioError, ValueError) as exc:
            log_event({
                "ts_ms": time.time_ns() // 1_000_000,
                "event_type": "PERMISSION_DENIED",
                "connection_id": self._connection_id,
                "reason": f"{type(exc).__name__}: {exc}",
            })
            return False
        return True
