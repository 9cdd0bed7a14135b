"""
Capture service contract.

Rules:
- One recording at a time.
- The recording lives in a temporary file until the caller deletes it.
- No reading, no uploading, no orchestration decisions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from constants import CaptureConfig


class CaptureError(RuntimeError):
    """Starting or stopping a recording failed."""


class CaptureService(ABC):
    """
    Abstract microphone capture.

    Ownership:
    - start() creates the temporary file
    - stop() hands the file over to the caller (returns its path)
    - If start() or stop() raises, no file is left behind
    """

    @property
    @abstractmethod
    def is_recording(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def start(self, config: CaptureConfig) -> None:
        """
        Begin recording.

        Raises CaptureError if a recording is already active or the
        device cannot be opened.
        """
        raise NotImplementedError

    @abstractmethod
    async def stop(self) -> str:
        """
        End the recording and return the path of the finished file.

        Raises CaptureError if nothing is recording.
        """
        raise NotImplementedError
