"""DuckDB-backed identity store.

Persists user records and validates credentials. The service follows the
same singleton pattern as the other DuckDB services so that only one
connection per process is opened.

Database Schema:
    users table:
        - id: UUID string primary key
        - username: unique, case-sensitive
        - email: unique
        - password_hash: bcrypt hash
        - created_at: when the account was created (UTC)

Thread Safety:
    The DuckDB connection is NOT safe for concurrent use. Store calls are
    issued from the executor pool by the chat layer, so every query runs
    under ``_lock``.

Usage:
    store = IdentityStore.get_instance()
    user = store.create("alice", "alice@example.com", store.hash_password("pw"))
    store.verify_password("pw", user.passwordHash)
"""
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Optional

import bcrypt
import duckdb

from .schemas import User

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    id            VARCHAR PRIMARY KEY,
    username      VARCHAR NOT NULL UNIQUE,
    email         VARCHAR NOT NULL UNIQUE,
    password_hash VARCHAR NOT NULL,
    created_at    TIMESTAMP NOT NULL
)
"""

_COLUMNS = "id, username, email, password_hash, created_at"

DEFAULT_BCRYPT_ROUNDS = 10


class IdentityStoreError(Exception):
    """Base class for identity store failures."""


class UsernameTakenError(IdentityStoreError):
    """The username is already registered."""


class EmailTakenError(IdentityStoreError):
    """The email address is already registered."""


class IdentityStore:
    """Singleton store for user records in DuckDB.

    Attributes:
        _instance: Singleton instance of the store.
        _default_db_path: Database file used when no path is given.
    """

    _instance: Optional["IdentityStore"] = None
    _default_db_path: str = "textchat.duckdb"

    def __init__(
        self,
        db_path: Optional[str] = None,
        bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS,
    ) -> None:
        self._db_path = db_path or self._default_db_path
        self._rounds = bcrypt_rounds
        self._lock = threading.Lock()
        self._conn: Optional[duckdb.DuckDBPyConnection] = duckdb.connect(self._db_path)
        self._conn.execute(_CREATE_TABLE)
        logger.info("[IdentityStore] Initialized with db=%s", self._db_path)

    @classmethod
    def get_instance(
        cls,
        db_path: Optional[str] = None,
        bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS,
    ) -> "IdentityStore":
        """Get or create the singleton instance.

        Args:
            db_path: Optional database path (only used on first call).
            bcrypt_rounds: bcrypt cost factor (only used on first call).
        """
        if cls._instance is None:
            cls._instance = cls(db_path, bcrypt_rounds)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Close and forget the singleton. Primarily used by tests."""
        if cls._instance is not None:
            cls._instance.close()
            cls._instance = None

    # -----------------------------------------------------------------------
    # Lookups
    # -----------------------------------------------------------------------

    def find_by_username(self, username: str) -> Optional[User]:
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM users WHERE username = ?", [username]
        )

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM users WHERE id = ?", [user_id]
        )

    def find_by_credentials(self, username: str, user_id: str) -> Optional[User]:
        """Return the user only if BOTH the username and the id match."""
        return self._fetch_one(
            f"SELECT {_COLUMNS} FROM users WHERE id = ? AND username = ?",
            [user_id, username],
        )

    def exists_by_username(self, username: str) -> bool:
        return self._exists("SELECT 1 FROM users WHERE username = ?", [username])

    def exists_by_email(self, email: str) -> bool:
        return self._exists("SELECT 1 FROM users WHERE email = ?", [email])

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    def create(self, username: str, email: str, password_hash: str) -> User:
        """Insert a new user.

        The UNIQUE constraints on ``username`` and ``email`` are the source of
        truth; callers may check ``exists_by_*`` first for a friendlier error,
        but a concurrent signup can still lose the race here.

        Raises:
            UsernameTakenError: If the username is already registered.
            EmailTakenError: If the email is already registered.
            IdentityStoreError: On any other database failure.
        """
        user_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        try:
            with self._lock:
                self._connection().execute(
                    f"INSERT INTO users ({_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                    [user_id, username, email, password_hash, now],
                )
        except duckdb.ConstraintException as exc:
            if self.exists_by_username(username):
                raise UsernameTakenError(username) from exc
            if self.exists_by_email(email):
                raise EmailTakenError(email) from exc
            raise IdentityStoreError(str(exc)) from exc
        except duckdb.Error as exc:
            raise IdentityStoreError(str(exc)) from exc

        logger.info("[IdentityStore] Created user %s (%s)", username, user_id)
        return User(
            id=user_id,
            username=username,
            email=email,
            passwordHash=password_hash,
            createdAt=now,
        )

    # -----------------------------------------------------------------------
    # Password primitives
    # -----------------------------------------------------------------------

    def hash_password(self, plain: str) -> str:
        """Hash *plain* with bcrypt at the configured cost factor.

        Raises:
            ValueError: If the password is longer than bcrypt accepts.
        """
        return bcrypt.hashpw(
            plain.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds)
        ).decode("utf-8")

    @staticmethod
    def verify_password(plain: str, hashed: str) -> bool:
        """Constant-time check of *plain* against a bcrypt hash."""
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            # Malformed hash or over-long password
            return False

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # -----------------------------------------------------------------------
    # Internal
    # -----------------------------------------------------------------------

    def _connection(self) -> duckdb.DuckDBPyConnection:
        if self._conn is None:
            raise IdentityStoreError("Identity store is closed")
        return self._conn

    def _fetch_one(self, query: str, params: list) -> Optional[User]:
        with self._lock:
            row = self._connection().execute(query, params).fetchone()
        return self._row_to_user(row) if row else None

    def _exists(self, query: str, params: list) -> bool:
        with self._lock:
            return self._connection().execute(query, params).fetchone() is not None

    @staticmethod
    def _row_to_user(row) -> User:
        return User(
            id=row[0],
            username=row[1],
            email=row[2],
            passwordHash=row[3],
            createdAt=row[4],
        )
