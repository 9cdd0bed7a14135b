"""
Speech-to-text adapter contract.

Rules:
- This file contains NO logic.
- No retries, no timers: timeouts are owned by the orchestrator.
- No knowledge of generation, speech output or the state machine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class SpeechToTextError(RuntimeError):
    """Transport failure, non-2xx status or malformed recognition response."""


class SpeechToTextAdapter(ABC):
    """
    Abstract batch speech-to-text adapter.

    The adapter is a *dumb pipe*: recorded audio -> vendor -> transcript.
    """

    @abstractmethod
    async def transcribe(self, audio: bytes) -> str | None:
        """
        Transcribe one complete recording.

        Returns:
            The top alternative of the first result, or None when the
            service recognized nothing. "Nothing recognized" is not an error.

        Raises:
            SpeechToTextError (or a transport exception) on failure.
        """
        raise NotImplementedError
