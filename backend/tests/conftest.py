"""Shared test fixtures and configuration for backend tests."""
import pytest
from fastapi.testclient import TestClient

from textchat.chat.server import get_chat_server
from textchat.config import (
    IN_MEMORY_DB,
    AppSettings,
    AuthSettings,
    DatabaseSettings,
    reset_config,
    set_config,
)
from textchat.identity import IdentityStore
from textchat.main import app
from textchat.messages import MessageLog


class FakeWebSocket:
    """Stands in for a Starlette WebSocket in unit tests; records sent frames."""

    def __init__(self, fail: bool = False) -> None:
        self.sent = []
        self.fail = fail
        self.accepted = False

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, message: dict) -> None:
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(message)

    def types(self) -> list:
        return [m["type"] for m in self.sent]

    def of_type(self, event_type: str) -> list:
        return [m["data"] for m in self.sent if m["type"] == event_type]


@pytest.fixture
def test_config():
    """In-memory databases and the cheapest bcrypt cost factor."""
    config = AppSettings(
        database=DatabaseSettings(path=IN_MEMORY_DB),
        auth=AuthSettings(bcrypt_rounds=4),
    )
    set_config(config)
    yield config
    reset_config()


@pytest.fixture
def api_client(test_config):
    """Provide a TestClient with the lifespan running.

    Entering the client as a context manager keeps every WebSocket session
    on one event loop, which the shared chat state relies on.
    """
    IdentityStore.reset_instance()
    MessageLog.reset_instance()
    with TestClient(app) as client:
        yield client
    IdentityStore.reset_instance()
    MessageLog.reset_instance()


@pytest.fixture
def chat_server(api_client):
    """The ChatServer created by the app lifespan."""
    return get_chat_server()


@pytest.fixture
def make_user(chat_server):
    """Create a user directly in the identity store."""
    def _make(username: str, password: str = "secret", email: str = None):
        store = chat_server.identity_store
        return store.create(
            username,
            email or f"{username}@example.com",
            store.hash_password(password),
        )
    return _make


@pytest.fixture
def fake_ws():
    """Factory for FakeWebSocket instances."""
    return FakeWebSocket


@pytest.fixture
def identity_store():
    store = IdentityStore(db_path=IN_MEMORY_DB, bcrypt_rounds=4)
    yield store
    store.close()


@pytest.fixture
def message_log():
    log = MessageLog(db_path=IN_MEMORY_DB)
    yield log
    log.close()
