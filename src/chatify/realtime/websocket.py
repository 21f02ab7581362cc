"""WebSocket endpoint — presence and live message delivery.

Learn: Each browser tab connects to /ws with its `jwt` cookie. The handler:
1. Authenticates the handshake (ConnectionGate) — BEFORE accept()
2. Accepts and registers the connection with the hub
3. Keeps reading client frames (ping → pong) until disconnect
4. Unregisters in `finally`, so every exit path cleans up presence

A rejected handshake is closed before accept, which the ASGI server turns
into a refused upgrade. It never reaches the registry.
"""

import json

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from chatify.realtime.connection import WebSocketConnection
from chatify.realtime.deps import get_connection_gate, get_hub
from chatify.realtime.gate import REJECTED_CLOSE_CODE, ConnectionGate, HandshakeRejected
from chatify.realtime.hub import RealtimeHub

logger = structlog.get_logger()
router = APIRouter()


@router.websocket("/ws")
async def presence_websocket(
    websocket: WebSocket,
    gate: ConnectionGate = Depends(get_connection_gate),
    hub: RealtimeHub = Depends(get_hub),
):
    """WebSocket endpoint for presence updates and new-message pushes."""
    # ── Authentication ──────────────────────────────────────
    try:
        identity = await gate.authenticate(websocket)
    except HandshakeRejected as e:
        await websocket.close(code=REJECTED_CLOSE_CODE, reason=e.reason)
        return

    # ── Connection accepted ─────────────────────────────────
    await websocket.accept()
    connection = WebSocketConnection(websocket, identity)
    logger.info(
        "ws.connected",
        connection_id=connection.id,
        user_id=identity.id,
        full_name=identity.full_name,
    )

    try:
        await hub.connect(connection)
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if isinstance(msg, dict) and msg.get("type") == "ping":
                await connection.send_text(json.dumps({"type": "pong"}))
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(connection)
        logger.info(
            "ws.disconnected",
            connection_id=connection.id,
            user_id=identity.id,
            full_name=identity.full_name,
        )
