"""Connection lifecycle controller.

Drives each connection through::

    UNAUTHENTICATED → AUTHENTICATED → TERMINATED
                    ← (logout)

Login and auto-login converge on ``_establish_session``, which updates the
registry, announces presence and delivers history.

Store calls suspend the handler; other events (including a disconnect of the
same connection) may run meanwhile. Every handler therefore re-checks the
session state after each await and discards late results for connections
that are gone or no longer in the expected state.
"""
import logging

from textchat.identity import IdentityStore

from .blocking import run_blocking
from .events import (
    ALREADY_LOGGED_IN,
    INVALID_CREDENTIALS,
    LOGIN_FAILED,
    SESSION_EXPIRED,
    LoginSuccess,
    OutboundEvent,
)
from .history import HistoryDelivery
from .hub import ConnectionHub
from .presence import PresenceBroadcaster
from .registry import SessionRegistry
from .session import ConnectionSession, ConnectionState

logger = logging.getLogger(__name__)


class ConnectionLifecycle:
    """Handles auto-login, login, logout and disconnect for all connections."""

    def __init__(
        self,
        hub: ConnectionHub,
        registry: SessionRegistry,
        presence: PresenceBroadcaster,
        history: HistoryDelivery,
        identity_store: IdentityStore,
    ) -> None:
        self._hub = hub
        self._registry = registry
        self._presence = presence
        self._history = history
        self._identity = identity_store

    # =========================================================================
    # Authentication
    # =========================================================================

    async def auto_login(self, session: ConnectionSession, username: str, user_id: str) -> None:
        """Resume a stored session if BOTH username and user ID match a user."""
        if session.state is not ConnectionState.UNAUTHENTICATED:
            await self._hub.send(session, OutboundEvent.AUTH_ERROR, ALREADY_LOGGED_IN)
            return

        try:
            user = await run_blocking(self._identity.find_by_credentials, username, user_id)
        except Exception as e:
            logger.error(f"[Lifecycle] Auto-login lookup failed for {username}: {e}")
            user = None

        if not session.is_alive:
            return
        if user is None:
            logger.info(f"[Lifecycle] Auto-login rejected for {username}")
            await self._hub.send(session, OutboundEvent.AUTH_ERROR, SESSION_EXPIRED)
            return
        if session.state is not ConnectionState.UNAUTHENTICATED:
            # A concurrent login on this connection won
            return

        await self._establish_session(session, user.username, user.id)

    async def login(self, session: ConnectionSession, username: str, password: str) -> None:
        """Check username/password and establish the session on success."""
        if session.state is not ConnectionState.UNAUTHENTICATED:
            await self._hub.send(session, OutboundEvent.LOGIN_ERROR, ALREADY_LOGGED_IN)
            return

        try:
            user = await run_blocking(self._identity.find_by_username, username)
            verified = user is not None and await run_blocking(
                self._identity.verify_password, password, user.passwordHash
            )
        except Exception as e:
            logger.error(f"[Lifecycle] Login error for {username}: {e}")
            await self._hub.send(session, OutboundEvent.LOGIN_ERROR, LOGIN_FAILED)
            return

        if not session.is_alive:
            return
        if not verified:
            logger.info(f"[Lifecycle] Invalid credentials for {username}")
            await self._hub.send(session, OutboundEvent.LOGIN_ERROR, INVALID_CREDENTIALS)
            return
        if session.state is not ConnectionState.UNAUTHENTICATED:
            return

        await self._establish_session(session, user.username, user.id, acknowledge=True)

    async def _establish_session(
        self,
        session: ConnectionSession,
        username: str,
        user_id: str,
        *,
        acknowledge: bool = False,
    ) -> None:
        """Shared post-authentication steps for login and auto-login."""
        session.authenticate(username, user_id)
        await self._registry.put(session.connection_id, username)
        if not session.is_alive:
            # Disconnect ran between authenticate() and put()
            await self._registry.remove(session.connection_id)
            return

        logger.info(
            f"[Lifecycle] {username} authenticated on {session.connection_id} "
            f"({len(self._registry)} online)"
        )

        if acknowledge:
            await self._hub.send(
                session,
                OutboundEvent.LOGIN_SUCCESS,
                LoginSuccess(username=username, userId=user_id).model_dump(),
            )
            if not session.is_authenticated:
                # Logout or disconnect already announced the departure
                return
        await self._presence.user_joined(session, username)
        if not session.is_authenticated:
            return
        await self._history.deliver(session)

    # =========================================================================
    # Logout / disconnect
    # =========================================================================

    async def logout(self, session: ConnectionSession) -> None:
        """End the session but keep the connection open. Ignored when not logged in."""
        if not session.is_authenticated:
            logger.debug(f"[Lifecycle] Ignoring logout from {session.connection_id}")
            return

        username, _ = session.clear()
        await self._registry.remove(session.connection_id)
        await self._presence.user_left(session, username)
        await self._hub.send(session, OutboundEvent.LOGOUT_SUCCESS, {})
        logger.info(f"[Lifecycle] {username} logged out of {session.connection_id}")

    async def disconnect(self, session: ConnectionSession) -> None:
        """Transport closed. Announces the departure only if authenticated."""
        if not session.is_alive:
            return
        username = session.terminate()
        self._hub.remove(session)

        if username is None:
            logger.info(f"[Lifecycle] Unauthenticated {session.connection_id} disconnected")
            return

        await self._registry.remove(session.connection_id)
        await self._presence.user_left(session, username)
        logger.info(
            f"[Lifecycle] {username} disconnected from {session.connection_id} "
            f"({len(self._registry)} online)"
        )
