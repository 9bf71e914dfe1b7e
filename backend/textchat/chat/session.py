"""Per-connection session state.

A ``ConnectionSession`` is created when a WebSocket is accepted and is passed
by reference into every handler for that connection. Only the lifecycle
controller changes its state::

    UNAUTHENTICATED --login/auto-login--> AUTHENTICATED
    AUTHENTICATED   --logout-----------> UNAUTHENTICATED
    any             --disconnect-------> TERMINATED
"""
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from fastapi import WebSocket


class ConnectionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    TERMINATED = "terminated"


class InvalidTransition(RuntimeError):
    """A state change was requested from the wrong state."""


@dataclass(eq=False)
class ConnectionSession:
    """One live transport session and the identity bound to it.

    Attributes:
        websocket: The underlying WebSocket.
        connection_id: Unique per live transport session.
        state: Current lifecycle state.
        username: Authenticated username, None while unauthenticated.
        user_id: Authenticated user ID, None while unauthenticated.
    """
    websocket: WebSocket
    connection_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: ConnectionState = ConnectionState.UNAUTHENTICATED
    username: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def is_alive(self) -> bool:
        return self.state is not ConnectionState.TERMINATED

    @property
    def is_authenticated(self) -> bool:
        return self.state is ConnectionState.AUTHENTICATED

    def authenticate(self, username: str, user_id: str) -> None:
        if self.state is not ConnectionState.UNAUTHENTICATED:
            raise InvalidTransition(f"Cannot authenticate from {self.state.value}")
        self.username = username
        self.user_id = user_id
        self.state = ConnectionState.AUTHENTICATED

    def clear(self) -> Tuple[Optional[str], Optional[str]]:
        """Drop the identity (logout). Returns the previous (username, user_id)."""
        if self.state is not ConnectionState.AUTHENTICATED:
            raise InvalidTransition(f"Cannot log out from {self.state.value}")
        previous = (self.username, self.user_id)
        self.username = None
        self.user_id = None
        self.state = ConnectionState.UNAUTHENTICATED
        return previous

    def terminate(self) -> Optional[str]:
        """Mark the connection dead.

        Returns:
            The username that was bound to it, or None if it was not
            authenticated (or already terminated).
        """
        username = self.username if self.is_authenticated else None
        self.state = ConnectionState.TERMINATED
        return username
