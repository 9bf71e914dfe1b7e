"""Real-time chat: sessions, presence, message routing over WebSocket."""

from .hub import ConnectionHub
from .lifecycle import ConnectionLifecycle
from .messaging import MessageRouter
from .presence import PresenceBroadcaster
from .registry import SessionRegistry
from .server import ChatServer, get_chat_server, set_chat_server
from .session import ConnectionSession, ConnectionState

__all__ = [
    "ChatServer",
    "ConnectionHub",
    "ConnectionLifecycle",
    "ConnectionSession",
    "ConnectionState",
    "MessageRouter",
    "PresenceBroadcaster",
    "SessionRegistry",
    "get_chat_server",
    "set_chat_server",
]
