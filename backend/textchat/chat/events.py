"""Wire protocol for the chat WebSocket.

Every frame, in both directions, is a JSON object::

    {"type": "<event name>", "data": <payload>}

Inbound events (client → server):
    - auto-login: {username, userId}  resume a stored session
    - login: {username, password}     explicit login
    - send-message: {body}            post a chat message
    - logout: {}                      end the session, keep the socket

Outbound events (server → client):
    - auth-error, login-error, message-error, error: reason string
    - login-success: {username, userId}
    - user-connected, user-disconnected: username
    - online-users: [username, ...] (duplicates for multi-connection users)
    - load-messages: [Message, ...] oldest first
    - message-stored: {id, timestamp}
    - chat-message: {username, body, timestamp}
    - logout-success: {}
"""
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class InboundEvent(str, Enum):
    """Events a client may send."""
    AUTO_LOGIN = "auto-login"
    LOGIN = "login"
    SEND_MESSAGE = "send-message"
    LOGOUT = "logout"


class OutboundEvent(str, Enum):
    """Events the server emits."""
    AUTH_ERROR = "auth-error"
    LOGIN_ERROR = "login-error"
    LOGIN_SUCCESS = "login-success"
    USER_CONNECTED = "user-connected"
    USER_DISCONNECTED = "user-disconnected"
    ONLINE_USERS = "online-users"
    LOAD_MESSAGES = "load-messages"
    MESSAGE_STORED = "message-stored"
    MESSAGE_ERROR = "message-error"
    CHAT_MESSAGE = "chat-message"
    LOGOUT_SUCCESS = "logout-success"
    ERROR = "error"


# Reason strings sent with the error events
SESSION_EXPIRED = "Session expired, please login again"
INVALID_CREDENTIALS = "Invalid credentials"
LOGIN_FAILED = "An error occurred during login"
ALREADY_LOGGED_IN = "Already logged in"
MESSAGE_FAILED = "Failed to send message"
MESSAGE_REQUIRED = "Message body is required"
MESSAGE_TOO_LONG = "Message is too long"


def frame(event: OutboundEvent, data: Any = None) -> dict:
    """Build an outbound frame."""
    return {"type": event.value, "data": data}


# =============================================================================
# Inbound payloads
# =============================================================================


class AutoLoginPayload(BaseModel):
    """Stored session a client presents to skip the password prompt."""
    username: str = Field(..., min_length=1)
    userId: str = Field(..., min_length=1)


class LoginPayload(BaseModel):
    """Username / password login."""
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


# =============================================================================
# Outbound payloads
# =============================================================================


class LoginSuccess(BaseModel):
    username: str
    userId: str


class MessageStored(BaseModel):
    """Acknowledgment sent to the author of a stored message."""
    id: int
    timestamp: str


class ChatMessageOut(BaseModel):
    """A message as fanned out to the other connections."""
    username: str
    body: str
    timestamp: str
