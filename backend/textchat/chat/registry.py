"""Session registry: the single source of truth for who is online.

Maps ``connection_id -> username`` for every authenticated connection. A
connection appears at most once; a username may appear several times when
the same user is logged in from several connections.
"""
import asyncio
import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class SessionRegistry:
    """asyncio-safe insertion-ordered map of online sessions."""

    def __init__(self) -> None:
        self._entries: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def put(self, connection_id: str, username: str) -> None:
        """Record (or overwrite) the username bound to *connection_id*.

        Overwriting keeps the connection's original position.
        """
        async with self._lock:
            self._entries[connection_id] = username
        logger.debug("[Registry] %s -> %s (%d online)", connection_id, username, len(self._entries))

    async def remove(self, connection_id: str) -> Optional[str]:
        """Delete the entry for *connection_id* if present.

        Returns:
            The removed username, or None if there was no entry.
        """
        async with self._lock:
            username = self._entries.pop(connection_id, None)
        if username is not None:
            logger.debug("[Registry] removed %s (%s)", connection_id, username)
        return username

    async def values(self) -> List[str]:
        """Snapshot of online usernames in insertion order, duplicates kept."""
        async with self._lock:
            return list(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._entries
