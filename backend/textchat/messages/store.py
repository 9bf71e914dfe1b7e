"""DuckDB-based message log.

Persists chat messages and returns recent history. Mirrors the identity
store: one connection per process, guarded by a lock because calls arrive
from executor threads.

Database Schema:
    messages table:
        - id: Auto-incrementing primary key (sequence)
        - user_id: Sender's user ID
        - username: Sender's username at send time
        - body: Message text
        - created_at: Server-assigned send time (UTC)
"""
import logging
import threading
from datetime import datetime, timezone
from typing import List, Optional

import duckdb

from .schemas import Message, format_timestamp

logger = logging.getLogger(__name__)


class MessageLogError(Exception):
    """Raised when a message cannot be stored or history cannot be read."""


class MessageLog:
    """Singleton service for chat message history in DuckDB.

    Attributes:
        _instance: Singleton instance of the service.
        _default_db_path: Database file used when no path is given.
    """

    _instance: Optional["MessageLog"] = None
    _default_db_path: str = "textchat.duckdb"

    def __init__(self, db_path: Optional[str] = None) -> None:
        self._db_path = db_path or self._default_db_path
        self._lock = threading.Lock()
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialize_db()
        logger.info("[MessageLog] Initialized with db=%s", self._db_path)

    @classmethod
    def get_instance(cls, db_path: Optional[str] = None) -> "MessageLog":
        """Get or create the singleton instance.

        Args:
            db_path: Optional database path (only used on first call).
        """
        if cls._instance is None:
            cls._instance = cls(db_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Close and forget the singleton. Primarily used by tests."""
        if cls._instance is not None:
            cls._instance.close()
            cls._instance = None

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            self._connection = duckdb.connect(self._db_path)
        return self._connection

    def _initialize_db(self) -> None:
        """Create the sequence and table if they don't exist (idempotent)."""
        conn = self._get_connection()
        conn.execute("CREATE SEQUENCE IF NOT EXISTS messages_seq START 1")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                id INTEGER DEFAULT nextval('messages_seq') PRIMARY KEY,
                user_id VARCHAR NOT NULL,
                username VARCHAR NOT NULL,
                body VARCHAR NOT NULL,
                created_at TIMESTAMP NOT NULL
            )
        """)

    def insert(
        self, user_id: str, username: str, body: str, timestamp: datetime
    ) -> Message:
        """Store a message.

        Args:
            user_id: Sender's user ID.
            username: Sender's username.
            body: Message text.
            timestamp: Server-assigned send time.

        Returns:
            The stored message, including its new ID.

        Raises:
            MessageLogError: If the insert fails.
        """
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone(timezone.utc).replace(tzinfo=None)
        try:
            with self._lock:
                row = self._get_connection().execute(
                    """
                    INSERT INTO messages (user_id, username, body, created_at)
                    VALUES (?, ?, ?, ?)
                    RETURNING id
                    """,
                    [user_id, username, body, timestamp],
                ).fetchone()
        except duckdb.Error as exc:
            raise MessageLogError(str(exc)) from exc
        if row is None:
            raise MessageLogError("Insert returned no id")

        return Message(
            id=row[0],
            userId=user_id,
            username=username,
            body=body,
            createdAt=format_timestamp(timestamp),
        )

    def recent_messages(self, limit: int = 50) -> List[Message]:
        """Return up to *limit* most recent messages, newest first.

        Raises:
            MessageLogError: If the query fails.
        """
        try:
            with self._lock:
                rows = self._get_connection().execute(
                    """
                    SELECT id, user_id, username, body, created_at
                    FROM messages
                    ORDER BY created_at DESC, id DESC
                    LIMIT ?
                    """,
                    [limit],
                ).fetchall()
        except duckdb.Error as exc:
            raise MessageLogError(str(exc)) from exc

        return [
            Message(
                id=row[0],
                userId=row[1],
                username=row[2],
                body=row[3],
                createdAt=format_timestamp(row[4]),
            )
            for row in rows
        ]

    def count(self) -> int:
        """Total number of stored messages."""
        with self._lock:
            return self._get_connection().execute(
                "SELECT COUNT(*) FROM messages"
            ).fetchone()[0]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
