"""Presence broadcasting.

Every registry change caused by login, auto-login, logout or disconnect is
announced in two steps:

1. ``user-connected`` / ``user-disconnected`` to every *other* live connection
2. ``online-users`` with the full registry snapshot to *every* live connection

Step 1 is always awaited before step 2, so each observer sees the discrete
event no later than the population change.
"""
import logging

from .events import OutboundEvent
from .hub import ConnectionHub
from .registry import SessionRegistry
from .session import ConnectionSession

logger = logging.getLogger(__name__)


class PresenceBroadcaster:
    """Announces registry changes to the live connections."""

    def __init__(self, hub: ConnectionHub, registry: SessionRegistry) -> None:
        self._hub = hub
        self._registry = registry

    async def user_joined(self, session: ConnectionSession, username: str) -> None:
        await self._hub.broadcast_except(OutboundEvent.USER_CONNECTED, username, exclude=session)
        await self.refresh()

    async def user_left(self, session: ConnectionSession, username: str) -> None:
        await self._hub.broadcast_except(OutboundEvent.USER_DISCONNECTED, username, exclude=session)
        await self.refresh()

    async def refresh(self) -> None:
        """Send the current online list to everyone."""
        online = await self._registry.values()
        logger.debug("[Presence] online-users: %s", online)
        await self._hub.broadcast(OutboundEvent.ONLINE_USERS, online)
