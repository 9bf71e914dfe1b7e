"""Chat router providing the WebSocket endpoint and the browser client page.

This module provides:
    - GET /: Browser chat client (static HTML)
    - WebSocket /ws/chat: Real-time chat

Protocol Flow:
    1. Client connects → unauthenticated session created
    2. Client sends {type: "login", data: {username, password}}
       or {type: "auto-login", data: {username, userId}}
       → Server sends login-success (login only), broadcasts user-connected
         to the others, online-users to everyone, load-messages to the client
    3. Client sends {type: "send-message", data: {body}}
       → Server sends message-stored to the client, chat-message to the others
    4. Client sends {type: "logout", data: {}}
       → Server broadcasts user-disconnected + online-users, sends logout-success
    5. On disconnect → same broadcast as logout (authenticated sessions only)
"""
import json
import logging
from pathlib import Path

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse

from .events import OutboundEvent
from .server import get_chat_server

logger = logging.getLogger(__name__)

router = APIRouter()

STATIC_DIR = Path(__file__).resolve().parent.parent / "static"


@router.get("/", include_in_schema=False)
async def index() -> FileResponse:
    """Serve the browser chat client."""
    return FileResponse(STATIC_DIR / "index.html")


@router.websocket("/ws/chat")
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for real-time chat.

    Handles the complete lifecycle for a single client. Frames are JSON
    objects ``{"type": ..., "data": ...}``; see ``textchat.chat.events``.

    Args:
        websocket: The WebSocket connection.
    """
    server = get_chat_server()
    if server is None:
        logger.error("[WS] Chat server not initialised; rejecting connection")
        await websocket.close(code=1011)  # 1011 = Internal Error
        return

    session = await server.hub.connect(websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                await server.hub.send(session, OutboundEvent.ERROR, "Invalid JSON")
                continue
            if not isinstance(data, dict):
                await server.hub.send(session, OutboundEvent.ERROR, "Invalid frame")
                continue

            event_type = data.get("type")
            logger.debug("[WS] %s received: type=%s", session.connection_id, event_type)
            server.dispatch(session, event_type, data.get("data"))

    except WebSocketDisconnect:
        logger.info(f"[WS] {session.connection_id} closed by client")
    finally:
        server.disconnect(session)
