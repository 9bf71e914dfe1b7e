"""Unit tests for ConnectionSession state transitions."""

import pytest

from textchat.chat.session import ConnectionSession, ConnectionState, InvalidTransition


@pytest.fixture
def session(fake_ws):
    return ConnectionSession(websocket=fake_ws())


class TestConnectionSession:
    """Tests for the UNAUTHENTICATED / AUTHENTICATED / TERMINATED machine."""

    def test_new_session_is_unauthenticated(self, session):
        assert session.state is ConnectionState.UNAUTHENTICATED
        assert session.is_alive
        assert not session.is_authenticated
        assert session.username is None
        assert session.user_id is None

    def test_connection_ids_are_unique(self, fake_ws):
        ids = {ConnectionSession(websocket=fake_ws()).connection_id for _ in range(20)}
        assert len(ids) == 20

    def test_authenticate_binds_identity(self, session):
        session.authenticate("alice", "u-1")

        assert session.is_authenticated
        assert session.username == "alice"
        assert session.user_id == "u-1"

    def test_authenticate_twice_is_rejected(self, session):
        session.authenticate("alice", "u-1")
        with pytest.raises(InvalidTransition):
            session.authenticate("bob", "u-2")
        assert session.username == "alice"

    def test_clear_returns_previous_identity(self, session):
        session.authenticate("alice", "u-1")

        assert session.clear() == ("alice", "u-1")
        assert session.state is ConnectionState.UNAUTHENTICATED
        assert session.username is None

    def test_clear_requires_authentication(self, session):
        with pytest.raises(InvalidTransition):
            session.clear()

    def test_terminate_authenticated_returns_username(self, session):
        session.authenticate("alice", "u-1")

        assert session.terminate() == "alice"
        assert not session.is_alive
        assert not session.is_authenticated

    def test_terminate_unauthenticated_returns_none(self, session):
        assert session.terminate() is None
        assert session.state is ConnectionState.TERMINATED

    def test_terminated_session_cannot_authenticate(self, session):
        session.terminate()
        with pytest.raises(InvalidTransition):
            session.authenticate("alice", "u-1")

    def test_terminate_twice_returns_none(self, session):
        session.authenticate("alice", "u-1")
        session.terminate()
        assert session.terminate() is None
