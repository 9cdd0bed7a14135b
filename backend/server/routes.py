"""
Route registration for the voice helper API.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire gateway to WebSocket lifecycle
- Pull dependencies from app.state
"""

from __future__ import annotations

import asyncio
import json

from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from observability.logger import log_event
from session.gateway import GatewayResult, SessionGateway


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    @app.websocket("/ws")
    async def websocket_endpoint(ws: WebSocket) -> None: # pyright: ignore[reportUnusedFunction]
        await ws.accept()

        gateway = SessionGateway(
            config=app.state.config,
            http_client=app.state.http_client,
            ports_factory=getattr(app.state, "ports_factory", None),
        )

        sender: asyncio.Task[None] | None = None
        try:
            result = await gateway.on_ws_connect()
            await _flush_gateway_result(ws, result)

            # State updates are produced by stage tasks at any time
            sender = asyncio.create_task(_pump_updates(ws, gateway))

            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(code=msg.get("code", 1000))

                if msg.get("text") is not None:
                    result = await gateway.on_json_message(msg["text"])
                    await _flush_gateway_result(ws, result)

                elif msg.get("bytes") is not None:
                    log_event({
                        "event_type": "BINARY_MESSAGE_IGNORED",
                        "connection_id": gateway.session.connection_id if gateway.session else None,
                        "payload_len": len(msg["bytes"]),
                    })

        except WebSocketDisconnect:
            await _stop_sender(sender)
            await gateway.on_ws_disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "event_type": "WS_FATAL_ERROR",
                "connection_id": gateway.session.connection_id if gateway.session else None,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await _stop_sender(sender)
            await gateway.on_ws_disconnect(reason="server_error")


async def _pump_updates(ws: WebSocket, gateway: SessionGateway) -> None:
    """Single writer for runtime-published updates."""
    while True:
        for msg in await gateway.next_outbound():
            await ws.send_text(json.dumps(msg))


async def _stop_sender(sender: asyncio.Task[None] | None) -> None:
    if sender is None:
        return
    sender.cancel()
    try:
        await sender
    except asyncio.CancelledError:
        pass
    except Exception as exc:  # pylint: disable=broad-exception-caught
        # The socket is gone; a failed send is expected here
        log_event({
            "event_type": "WS_SENDER_STOPPED_WITH_ERROR",
            "exception": type(exc).__name__,
            "message": str(exc),
        })


async def _flush_gateway_result(
    ws: WebSocket,
    result: GatewayResult,
) -> None:
    for msg in result.outbound_json:
        await ws.send_text(json.dumps(msg))
