"""
Speech synthesis adapter contract.

This module defines the *interface only*. No queuing, retries, timers or
orchestration decisions live here.

Key invariants:
- One utterance at a time; speak() returns when it finished playing.
- stop() silences output immediately and is safe to call at any time,
  including when nothing is speaking.
- The adapter never decides what to say or when.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from constants import SpeechParams


class SynthesisError(RuntimeError):
    """The speech engine failed to speak an utterance."""


class SpeechSynthesizer(ABC):
    """
    Abstract local speech output.

    Implementations are responsible for:
    - Mapping SpeechParams onto the engine's native settings
    - Keeping the event loop free while speaking
    - Supporting immediate stop()
    """

    @abstractmethod
    async def speak(self, text: str, params: SpeechParams) -> None:
        """
        Speak text and return when the utterance completes.

        Raises SynthesisError on engine failure. An utterance cut short by
        stop() returns normally.
        """
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        """Silence any current utterance. Idempotent, never raises."""
        raise NotImplementedError
