"""
Stage enumeration for session-scoped external calls.

Rules:
- This enum identifies external calls only.
- It must NOT encode behavior or lifecycle rules.
- Reducer logic decides when stages are started and canceled.
"""

from __future__ import annotations

from enum import Enum


class Stage(str, Enum):
    """
    External calls sequenced by the orchestrator.

    Each stage:
    - Has at most one outstanding call at a time
    - Is tagged with the session_id that issued it
    """

    PERMISSION = "PERMISSION"
    CAPTURE = "CAPTURE"
    STT = "STT"
    LLM = "LLM"
    TTS = "TTS"
