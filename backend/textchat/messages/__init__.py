"""Message log module: durable chat history."""

from .schemas import Message, format_timestamp, utc_now
from .store import MessageLog, MessageLogError

__all__ = [
    "Message",
    "MessageLog",
    "MessageLogError",
    "format_timestamp",
    "utc_now",
]
