"""
Text generation adapter contract (v1).

Purpose:
- Define the interface for one-shot text generation.
- Keep all orchestration, retries, timing, and cancellation semantics
  OUT of the adapter.

Rules:
- This file contains NO logic.
- No retries.
- No prompt construction (prompts are rendered upstream and versioned).
- No knowledge of speech output, UI, or state machine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class GenerationError(RuntimeError):
    """Transport failure, non-2xx status or malformed generation response."""


class TextGenerator(ABC):
    """
    Abstract text generation adapter.

    The adapter is a *dumb pipe*:
    prompt -> vendor -> answer text.

    Orchestrator responsibilities (NOT here):
    - When to start
    - When to cancel
    - Timeouts
    - Prompt construction
    - What to do with the answer
    """

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """
        Generate an answer for a fully rendered prompt.

        Contract:
        - Returns non-blank answer text.
        - Raises GenerationError on non-2xx status, missing answer path or
          blank answer.
        - Must NOT retry internally.
        - Cancellation arrives as asyncio.CancelledError and must not be
          swallowed.
        """
        raise NotImplementedError
