"""
Local speech output through pyttsx3.

runAndWait() blocks, so each utterance runs in a worker thread via
asyncio.to_thread; stop() interrupts it from the event loop thread.
pyttsx3 has no pitch control, so SpeechParams.pitch is not applied.
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Any

import pyttsx3

from adapters.tts.base import SpeechSynthesizer, SynthesisError
from constants import SPEECH_BASE_WPM, SpeechParams
from observability.logger import log_event


def rate_to_wpm(rate: float, base_wpm: int = SPEECH_BASE_WPM) -> int:
    """Map a relative rate (1.0 == normal) onto words per minute."""
    return max(1, round(base_wpm * rate))


def _voice_matches_language(voice: Any, language: str) -> bool:
    for lang in getattr(voice, "languages", None) or ():
        if isinstance(lang, bytes):
            lang = lang.decode("utf-8", errors="ignore")
        if str(lang).lstrip("\x05").lower().startswith(language.lower()):
            return True
    return False


class Pyttsx3SpeechSynthesizer(SpeechSynthesizer):
    """Speaks through the platform engine selected by pyttsx3."""

    def __init__(
        self,
        *,
        connection_id: str,
        voice_id: str | None = None,
        base_wpm: int = SPEECH_BASE_WPM,
    ) -> None:
        self._connection_id = connection_id
        self._voice_id = voice_id
        self._base_wpm = base_wpm
        self._engine: Any = None
        self._lock = threading.Lock()

    async def speak(self, text: str, params: SpeechParams) -> None:
        await asyncio.to_thread(self._speak_blocking, text, params)

    def stop(self) -> None:
        engine = self._engine
        if engine is None:
            return
        try:
            engine.stop()
        except RuntimeError as exc:
            log_event({
                "ts_ms": time.time_ns() // 1_000_000,
                "event_type": "TTS_STOP_FAILED",
                "connection_id": self._connection_id,
                "reason": f"{type(exc).__name__}: {exc}",
            })

    # ------------------------------------------------------------------
    # Internal (worker thread)
    # ------------------------------------------------------------------

    def _speak_blocking(self, text: str, params: SpeechParams) -> None:
        with self._lock:
            try:
                engine = self._ensure_engine(params.language)
                engine.setProperty("rate", rate_to_wpm(params.rate, self._base_wpm))
                engine.say(text)
                engine.runAndWait()
            except (RuntimeError, OSError, ReferenceError) as exc:
                raise SynthesisError(f"{type(exc).__name__}: {exc}") from exc

    def _ensure_engine(self, language: str) -> Any:
        if self._engine is not None:
            return self._engine

        engine = pyttsx3.init()
        if self._voice_id:
            engine.setProperty("voice", self._voice_id)
        else:
            for voice in engine.getProperty("voices") or ():
                if _voice_matches_language(voice, language):
                    engine.setProperty("voice", voice.id)
                    break

        self._engine = engine
        return engine
