"""Message router: validate, persist, acknowledge, fan out.

Flow for ``send-message``:
    1. Unauthenticated connection → dropped silently (no frame at all)
    2. Empty / oversized body → ``message-error`` to the sender
    3. Persist ``{userId, username, body, timestamp}`` to the message log
       - failure → ``message-error`` to the sender, nothing broadcast
    4. ``message-stored{id, timestamp}`` to the sender
    5. ``chat-message{username, body, timestamp}`` to every other connection
"""
import logging
from typing import Any

from textchat.messages import MessageLog, format_timestamp, utc_now

from .blocking import run_blocking
from .events import (
    MESSAGE_FAILED,
    MESSAGE_REQUIRED,
    MESSAGE_TOO_LONG,
    ChatMessageOut,
    MessageStored,
    OutboundEvent,
)
from .hub import ConnectionHub
from .session import ConnectionSession

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGE_LENGTH = 2000


class MessageRouter:
    """Validates, stores and fans out chat messages from authenticated connections."""

    def __init__(
        self,
        hub: ConnectionHub,
        message_log: MessageLog,
        max_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
    ) -> None:
        self._hub = hub
        self._log = message_log
        self._max_length = max_length

    async def send(self, session: ConnectionSession, body: Any) -> None:
        """Handle one ``send-message`` from *session*."""
        if not session.is_authenticated:
            logger.debug(f"[Router] Dropped message from unauthenticated {session.connection_id}")
            return

        if not isinstance(body, str) or not body.strip():
            await self._hub.send(session, OutboundEvent.MESSAGE_ERROR, MESSAGE_REQUIRED)
            return
        if len(body) > self._max_length:
            await self._hub.send(session, OutboundEvent.MESSAGE_ERROR, MESSAGE_TOO_LONG)
            return

        # Snapshot the identity: a logout may land while the insert runs
        username, user_id = session.username, session.user_id
        sent_at = utc_now()
        timestamp = format_timestamp(sent_at)

        try:
            stored = await run_blocking(self._log.insert, user_id, username, body, sent_at)
        except Exception as e:
            logger.error(f"[Router] Failed to store message from {username}: {e}")
            await self._hub.send(session, OutboundEvent.MESSAGE_ERROR, MESSAGE_FAILED)
            return

        logger.info(f"[Router] Stored message {stored.id} from {username}: {body[:50]}")

        # hub.send() skips a sender that terminated meanwhile; the
        # broadcast goes out regardless.
        await self._hub.send(
            session,
            OutboundEvent.MESSAGE_STORED,
            MessageStored(id=stored.id, timestamp=timestamp).model_dump(),
        )
        await self._hub.broadcast_except(
            OutboundEvent.CHAT_MESSAGE,
            ChatMessageOut(username=username, body=body, timestamp=timestamp).model_dump(),
            exclude=session,
        )
