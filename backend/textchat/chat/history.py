"""Recent-history delivery for freshly authenticated connections."""
import logging

from textchat.messages import MessageLog

from .blocking import run_blocking
from .events import OutboundEvent
from .hub import ConnectionHub
from .session import ConnectionSession

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


class HistoryDelivery:
    """Sends the last *limit* messages, oldest first, to one connection.

    A failed fetch is logged and otherwise ignored: the client gets no
    ``load-messages`` frame and no error.
    """

    def __init__(
        self,
        hub: ConnectionHub,
        message_log: MessageLog,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self._hub = hub
        self._log = message_log
        self.limit = limit

    async def deliver(self, session: ConnectionSession) -> None:
        try:
            newest_first = await run_blocking(self._log.recent_messages, self.limit)
        except Exception as e:
            logger.error(f"[History] Fetch failed for {session.connection_id}: {e}")
            return

        if not session.is_authenticated:
            # Logged out or disconnected while the query ran
            return

        messages = [msg.model_dump() for msg in reversed(newest_first)]
        await self._hub.send(session, OutboundEvent.LOAD_MESSAGES, messages)
        logger.debug("[History] Sent %d messages to %s", len(messages), session.connection_id)
