"""Live WebSocket connections and event fan-out.

The hub knows every live connection, authenticated or not, and delivers
outbound frames to one, all, or all-but-one of them.

Performance Notes:
    - Broadcasting uses asyncio.gather() for concurrent delivery
    - Failed connections are dropped from fan-out during broadcast; the
      endpoint's disconnect handling cleans up their session state
    - Uvicorn handles ping/pong at the protocol level (default 20s interval)

Thread Safety:
    Designed for a single event loop. It is NOT thread-safe for access from
    multiple threads.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

from .events import OutboundEvent, frame
from .session import ConnectionSession

logger = logging.getLogger(__name__)


class ConnectionHub:
    """Tracks live connections and sends frames to them."""

    def __init__(self) -> None:
        # connection_id -> session, in connect order
        self.connections: Dict[str, ConnectionSession] = {}

    async def connect(self, websocket: WebSocket) -> ConnectionSession:
        """Accept a WebSocket and register a fresh unauthenticated session."""
        await websocket.accept()
        session = ConnectionSession(websocket=websocket)
        self.connections[session.connection_id] = session
        logger.info(
            f"[Hub] Connection {session.connection_id} accepted "
            f"({len(self.connections)} live)"
        )
        return session

    def remove(self, session: ConnectionSession) -> None:
        """Forget a connection (no-op if already gone)."""
        if self.connections.pop(session.connection_id, None) is not None:
            logger.info(
                f"[Hub] Connection {session.connection_id} removed "
                f"({len(self.connections)} live)"
            )

    def get(self, connection_id: str) -> Optional[ConnectionSession]:
        return self.connections.get(connection_id)

    def __len__(self) -> int:
        return len(self.connections)

    async def send(
        self, session: ConnectionSession, event: OutboundEvent, data: Any = None
    ) -> bool:
        """Send one frame to a single connection.

        Returns:
            True if delivered, False if the connection is gone or failed.
        """
        if not session.is_alive:
            return False
        ok = await self._safe_send(session, frame(event, data))
        if not ok:
            self._cleanup_connections([session])
        return ok

    async def broadcast(self, event: OutboundEvent, data: Any = None) -> None:
        """Send a frame to every live connection concurrently."""
        await self._fan_out(list(self.connections.values()), frame(event, data))

    async def broadcast_except(
        self,
        event: OutboundEvent,
        data: Any,
        exclude: ConnectionSession,
    ) -> None:
        """Send a frame to every live connection except *exclude*."""
        connections = [
            conn for conn in self.connections.values()
            if conn.connection_id != exclude.connection_id
        ]
        await self._fan_out(connections, frame(event, data))

    async def _fan_out(self, connections: List[ConnectionSession], message: dict) -> None:
        if not connections:
            return

        results = await asyncio.gather(
            *[self._safe_send(conn, message) for conn in connections],
            return_exceptions=True
        )

        # Remove failed connections
        failed_connections = [
            conn for conn, success in zip(connections, results)
            if success is not True
        ]
        self._cleanup_connections(failed_connections)

    async def _safe_send(self, session: ConnectionSession, message: dict) -> bool:
        """Send a message to a WebSocket connection with error handling.

        Returns:
            True if successful, False if connection failed.
        """
        try:
            await session.websocket.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"Failed to send to connection {session.connection_id}: {e}")
            return False

    def _cleanup_connections(self, failed_connections: List[ConnectionSession]) -> None:
        for conn in failed_connections:
            if self.connections.pop(conn.connection_id, None) is not None:
                logger.debug(f"Removed dead connection {conn.connection_id}")
