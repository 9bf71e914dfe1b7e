"""Chat server: wires the real-time components together and dispatches events.

A process-wide instance is created in the application lifespan
(``textchat/main.py``) and looked up by the WebSocket endpoint.

Each inbound event runs as its own ``asyncio.Task`` so a slow store call on
one connection never blocks event processing for the others. Tasks are not
cancelled when their connection goes away; the handlers discard late results
themselves.
"""
import asyncio
import logging
from typing import Any, Optional, Set

from pydantic import ValidationError

from textchat.identity import IdentityStore
from textchat.messages import MessageLog

from .events import (
    SESSION_EXPIRED,
    AutoLoginPayload,
    InboundEvent,
    LoginPayload,
    OutboundEvent,
)
from .history import DEFAULT_HISTORY_LIMIT, HistoryDelivery
from .hub import ConnectionHub
from .lifecycle import ConnectionLifecycle
from .messaging import DEFAULT_MAX_MESSAGE_LENGTH, MessageRouter
from .presence import PresenceBroadcaster
from .registry import SessionRegistry
from .session import ConnectionSession

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_server: Optional["ChatServer"] = None


def get_chat_server() -> Optional["ChatServer"]:
    """Return the global ChatServer, or None if not yet initialised."""
    return _server


def set_chat_server(server: Optional["ChatServer"]) -> None:
    """Set (or clear) the global ChatServer instance."""
    global _server
    _server = server


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


class ChatServer:
    """Owns the hub, the session registry and the event handlers.

    Args:
        identity_store: Credential lookups for login / auto-login.
        message_log: Durable message history.
        history_limit: Messages delivered after authentication.
        max_message_length: Longest accepted message body.
    """

    def __init__(
        self,
        identity_store: IdentityStore,
        message_log: MessageLog,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
    ) -> None:
        self.identity_store = identity_store
        self.message_log = message_log
        self.hub = ConnectionHub()
        self.registry = SessionRegistry()
        self.presence = PresenceBroadcaster(self.hub, self.registry)
        self.history = HistoryDelivery(self.hub, message_log, history_limit)
        self.router = MessageRouter(self.hub, message_log, max_message_length)
        self.lifecycle = ConnectionLifecycle(
            self.hub, self.registry, self.presence, self.history, identity_store
        )
        self._tasks: Set[asyncio.Task] = set()

    # -----------------------------------------------------------------------
    # Dispatch
    # -----------------------------------------------------------------------

    def dispatch(self, session: ConnectionSession, event_type: Any, data: Any) -> None:
        """Schedule the handler for one inbound event."""
        self._spawn(session, self._handle(session, event_type, data))

    async def _handle(self, session: ConnectionSession, event_type: Any, data: Any) -> None:
        if event_type == InboundEvent.AUTO_LOGIN.value:
            try:
                payload = AutoLoginPayload.model_validate(data)
            except ValidationError:
                await self.hub.send(session, OutboundEvent.AUTH_ERROR, SESSION_EXPIRED)
                return
            await self.lifecycle.auto_login(session, payload.username, payload.userId)

        elif event_type == InboundEvent.LOGIN.value:
            try:
                payload = LoginPayload.model_validate(data)
            except ValidationError:
                await self.hub.send(
                    session, OutboundEvent.LOGIN_ERROR, "Username and password are required"
                )
                return
            await self.lifecycle.login(session, payload.username, payload.password)

        elif event_type == InboundEvent.SEND_MESSAGE.value:
            body = data.get("body") if isinstance(data, dict) else data
            await self.router.send(session, body)

        elif event_type == InboundEvent.LOGOUT.value:
            await self.lifecycle.logout(session)

        else:
            logger.warning(f"[Server] Unknown event {event_type!r} from {session.connection_id}")
            await self.hub.send(session, OutboundEvent.ERROR, f"Unknown event: {event_type}")

    def _spawn(self, session: ConnectionSession, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.error(
                    f"[Server] Handler failed for {session.connection_id}: {exc!r}",
                    exc_info=exc,
                )

        task.add_done_callback(_done)
        return task

    def disconnect(self, session: ConnectionSession) -> None:
        """Transport closed for *session*.

        Scheduled like any other event so the departure is announced even if
        the endpoint coroutine itself is being cancelled.
        """
        self._spawn(session, self.lifecycle.disconnect(session))

    async def drain(self) -> None:
        """Wait for all in-flight handlers (used at shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
