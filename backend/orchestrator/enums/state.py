"""
Authoritative interaction state enumeration.

Rules:
- This enum defines ONLY the control-plane states.
- No behavior, no helper methods, no side effects.
- Transitions are defined exclusively in the reducer.
"""

from __future__ import annotations

from enum import Enum


class State(str, Enum):
    """
    High-level deterministic control states for one voice interaction.

    IDLE and ERROR are the only states from which a new session may begin.
    """

    IDLE = "IDLE"
    REQUESTING_PERMISSION = "REQUESTING_PERMISSION"
    RECORDING = "RECORDING"
    TRANSCRIBING = "TRANSCRIBING"
    GENERATING = "GENERATING"
    SPEAKING = "SPEAKING"
    ERROR = "ERROR"
