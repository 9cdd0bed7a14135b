"""
Error classification for failed stages.

Classification is by the stage that failed, never by exception type.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """User-visible failure categories."""

    PERMISSION_DENIED = "PERMISSION_DENIED"
    CAPTURE_FAILED = "CAPTURE_FAILED"
    TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
    GENERATION_FAILED = "GENERATION_FAILED"
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"
