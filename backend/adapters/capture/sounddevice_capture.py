"""
Microphone capture into a temporary WAV file.

sounddevice delivers int16 blocks on the PortAudio thread; each block is
appended to an open soundfile.SoundFile. stop() closes the stream first, so
no callback can race the file close. Opening and closing the device block,
so both run in a worker thread.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
import time
from pathlib import Path
from typing import Any

import numpy as np
import sounddevice as sd
import soundfile as sf

from adapters.capture.base import CaptureError, CaptureService
from constants import CAPTURE_BLOCK_MS, CaptureConfig
from observability.logger import log_event


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class SoundDeviceCaptureService(CaptureService):
    """Records the default input device with the given CaptureConfig."""

    def __init__(self, *, connection_id: str, tmp_dir: str | None = None) -> None:
        self._connection_id = connection_id
        self._tmp_dir = tmp_dir

        self._stream: sd.InputStream | None = None
        self._file: sf.SoundFile | None = None
        self._path: str | None = None
        self._frames_written = 0
        self._overflows = 0

    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    async def start(self, config: CaptureConfig) -> None:
        if self._stream is not None:
            raise CaptureError("Recording already in progress")

        stream, path = await asyncio.to_thread(self._open_blocking, config)
        self._stream = stream
        self._path = path

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "capture_started",
            "connection_id": self._connection_id,
            "sample_rate_hz": config.sample_rate_hz,
            "channels": config.channels,
        })

    async def stop(self) -> str:
        stream, path = self._stream, self._path
        if stream is None or path is None:
            raise CaptureError("No recording in progress")

        # The worker closes the stream on every path, so ownership moves now
        self._stream = None
        self._path = None

        try:
            await asyncio.to_thread(self._close_blocking, stream)
        except sd.PortAudioError as exc:
            Path(path).unlink(missing_ok=True)
            raise CaptureError(f"PortAudioError: {exc}") from exc

        log_event({
            "ts_ms": _now_ms(),
            "event_type": "capture_stopped",
            "connection_id": self._connection_id,
            "frames": self._frames_written,
            "overflows": self._overflows,
        })
        return path

    # ------------------------------------------------------------------
    # Internal (worker thread)
    # ------------------------------------------------------------------

    def _open_blocking(self, config: CaptureConfig) -> tuple[sd.InputStream, str]:
        fd, path = tempfile.mkstemp(
            prefix="capture_",
            suffix=config.extension,
            dir=self._tmp_dir,
        )
        os.close(fd)

        stream: sd.InputStream | None = None
        try:
            self._file = sf.SoundFile(
                path,
                mode="w",
                samplerate=config.sample_rate_hz,
                channels=config.channels,
                subtype=config.subtype,
                format="WAV",
            )
            self._frames_written = 0
            self._overflows = 0
            stream = sd.InputStream(
                samplerate=config.sample_rate_hz,
                channels=config.channels,
                dtype=f"int{config.sample_width_bytes * 8}",
                blocksize=config.sample_rate_hz * CAPTURE_BLOCK_MS // 1000,
                callback=self._on_block,
            )
            stream.start()
        except (sd.PortAudioError, sf.SoundFileError, RuntimeError, ValueError) as exc:
            if stream is not None:
                stream.close()
            self._close_file()
            Path(path).unlink(missing_ok=True)
            raise CaptureError(f"{type(exc).__name__}: {exc}") from exc

        return stream, path

    def _close_blocking(self, stream: sd.InputStream) -> None:
        try:
            try:
                stream.stop()
            finally:
                stream.close()
        finally:
            self._close_file()

    def _on_block(
        self,
        indata: np.ndarray,
        frames: int,
        time_info: Any,  # pylint: disable=unused-argument
        status: sd.CallbackFlags,
    ) -> None:
        # PortAudio thread: keep it short
        if status.input_overflow:
            self._overflows += 1
        f = self._file
        if f is not None:
            f.write(indata)
            self._frames_written += frames

    def _close_file(self) -> None:
        f = self._file
        self._file = None
        if f is not None and not f.closed:
            f.close()
