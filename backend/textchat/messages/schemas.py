"""Pydantic schemas for persisted chat messages."""
from datetime import datetime, timezone

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(ts: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. ``2024-05-01T12:00:00.123Z``.

    Naive datetimes are taken to be UTC (that is how DuckDB hands them back).
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    else:
        ts = ts.astimezone(timezone.utc)
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Message(BaseModel):
    """A chat message as stored in the message log.

    Attributes:
        id: Assigned by the message log on insert.
        userId: Sender's user ID.
        username: Sender's username at send time.
        body: Message text.
        createdAt: Server-assigned send time (ISO-8601, UTC).
    """
    id: int = Field(..., description="Message ID assigned on insert")
    userId: str = Field(..., description="User ID of the sender")
    username: str = Field(..., description="Username of the sender at send time")
    body: str = Field(..., description="Message text")
    createdAt: str = Field(..., description="Send time, ISO-8601 UTC")
