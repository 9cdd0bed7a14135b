"""
Voice session container.

- Owned and mutated by SessionGateway
- Holds the runtime and the outbound control queue for one connection
- NOT a state machine
- Contains no orchestration logic
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any

from orchestrator.runtime import Runtime


@dataclass
class VoiceSession:
    """Mutable container for one client connection."""

    # ------------------------------------------------------------------
    # Identity / lifecycle
    # ------------------------------------------------------------------

    connection_id: str
    created_at: float = field(default_factory=time.time)

    # ------------------------------------------------------------------
    # Runtime (executes commands + owns authoritative state)
    # ------------------------------------------------------------------

    runtime: Runtime | None = None

    def __post_init__(self) -> None:
        self._control_out: deque[dict[str, Any]] = deque()
        self._outbound_ready = asyncio.Event()

    # ------------------------------------------------------------------
    # Wiring helpers (called by SessionGateway)
    # ------------------------------------------------------------------

    def attach_runtime(self, runtime: Runtime) -> None:
        """Attach the runtime executor. Called once during bootstrap."""
        self.runtime = runtime

    # ------------------------------------------------------------------
    # Observability helpers (read-only)
    # ------------------------------------------------------------------

    def log_context(self) -> dict[str, Any]:
        """Standard logging context for this connection."""
        state = self.runtime.state if self.runtime is not None else None
        return {
            "connection_id": self.connection_id,
            "state": state.state.value if state is not None else None,
            "session_id": state.session_id if state is not None else None,
        }

    # ------------------------------------------------------------------
    # Outbound control queue
    # ------------------------------------------------------------------

    def enqueue_control(self, msg: dict[str, Any]) -> None:
        """
        Enqueue a control message for delivery to the client.

        Messages are buffered in FIFO order and later retrieved via
        drain_control().
        """
        self._control_out.append(msg)
        self._outbound_ready.set()

    def drain_control(self) -> tuple[dict[str, Any], ...]:
        """
        Atomically drain all pending control messages.

        Returns a FIFO-ordered tuple, empty if nothing is pending.
        After this call, the control queue is empty.
        """
        self._outbound_ready.clear()
        if not self._control_out:
            return ()
        out = tuple(self._control_out)
        self._control_out.clear()
        return out

    async def wait_control(self) -> tuple[dict[str, Any], ...]:
        """Wait until at least one control message is pending, then drain."""
        while not self._control_out:
            await self._outbound_ready.wait()
            self._outbound_ready.clear()
        return self.drain_control()
