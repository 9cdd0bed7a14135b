"""
Permission gate contract.

Rules:
- This file contains NO logic.
- The gate answers one question: may the microphone be used right now?
- A denial is a normal answer (False), not an exception.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class PermissionGate(ABC):
    """Abstract microphone permission gate."""

    @abstractmethod
    async def request(self) -> bool:
        """
        Ask for microphone access.

        Contract:
        - Returns True when granted, False when denied.
        - May raise on platform failure; the runtime reports that as a denial.
        - Must NOT block the event loop.
        """
        raise NotImplementedError
