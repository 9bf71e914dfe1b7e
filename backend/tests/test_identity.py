"""Unit tests for the identity store and the signup endpoint."""

import os
import tempfile
from unittest.mock import patch

import pytest

from textchat.identity import (
    EmailTakenError,
    IdentityStore,
    IdentityStoreError,
    UsernameTakenError,
)


@pytest.fixture
def temp_db():
    """Create a temporary database path for testing."""
    # DuckDB creates the file itself; it must not exist beforehand
    db_path = tempfile.mktemp(suffix=".duckdb")

    yield db_path

    IdentityStore.reset_instance()
    for path in (db_path, db_path + ".wal"):
        if os.path.exists(path):
            os.remove(path)


class TestIdentityStore:
    """Tests for user records and lookups."""

    def test_create_and_find(self, identity_store):
        user = identity_store.create("alice", "alice@example.com", "hash")

        assert user.username == "alice"
        assert user.id
        found = identity_store.find_by_username("alice")
        assert found.id == user.id
        assert found.email == "alice@example.com"
        assert found.passwordHash == "hash"
        assert identity_store.find_by_id(user.id).username == "alice"

    def test_user_ids_are_unique(self, identity_store):
        a = identity_store.create("a", "a@example.com", "h")
        b = identity_store.create("b", "b@example.com", "h")
        assert a.id != b.id

    def test_lookup_missing_user(self, identity_store):
        assert identity_store.find_by_username("ghost") is None
        assert identity_store.find_by_id("nope") is None
        assert not identity_store.exists_by_username("ghost")
        assert not identity_store.exists_by_email("ghost@example.com")

    def test_username_is_case_sensitive(self, identity_store):
        identity_store.create("alice", "alice@example.com", "h")
        assert identity_store.find_by_username("Alice") is None

    def test_find_by_credentials_requires_both(self, identity_store):
        alice = identity_store.create("alice", "alice@example.com", "h")
        bob = identity_store.create("bob", "bob@example.com", "h")

        assert identity_store.find_by_credentials("alice", alice.id).id == alice.id
        assert identity_store.find_by_credentials("alice", bob.id) is None
        assert identity_store.find_by_credentials("carol", alice.id) is None

    def test_duplicate_username_raises(self, identity_store):
        identity_store.create("alice", "alice@example.com", "h")
        with pytest.raises(UsernameTakenError):
            identity_store.create("alice", "other@example.com", "h")

    def test_duplicate_email_raises(self, identity_store):
        identity_store.create("alice", "alice@example.com", "h")
        with pytest.raises(EmailTakenError):
            identity_store.create("alice2", "alice@example.com", "h")

    def test_password_hash_never_in_repr(self, identity_store):
        user = identity_store.create("alice", "alice@example.com", "s3cret-hash")
        assert "s3cret-hash" not in repr(user)

    def test_closed_store_raises(self, identity_store):
        identity_store.close()
        with pytest.raises(IdentityStoreError):
            identity_store.find_by_username("alice")

    def test_persists_across_instances(self, temp_db):
        store = IdentityStore(db_path=temp_db, bcrypt_rounds=4)
        user = store.create("alice", "alice@example.com", "h")
        store.close()

        reopened = IdentityStore(db_path=temp_db, bcrypt_rounds=4)
        assert reopened.find_by_username("alice").id == user.id
        reopened.close()

    def test_get_instance_returns_singleton(self, temp_db):
        IdentityStore.reset_instance()
        first = IdentityStore.get_instance(db_path=temp_db, bcrypt_rounds=4)
        assert IdentityStore.get_instance() is first


class TestPasswords:
    """Tests for bcrypt hashing and verification."""

    def test_hash_and_verify(self, identity_store):
        hashed = identity_store.hash_password("secret")

        assert hashed != "secret"
        assert hashed.startswith("$2")
        assert IdentityStore.verify_password("secret", hashed)
        assert not IdentityStore.verify_password("Secret", hashed)

    def test_hashes_are_salted(self, identity_store):
        assert identity_store.hash_password("pw") != identity_store.hash_password("pw")

    def test_malformed_hash_does_not_verify(self):
        assert not IdentityStore.verify_password("secret", "not-a-bcrypt-hash")


class TestSignupEndpoint:
    """Tests for POST /api/signup."""

    def test_signup_success(self, api_client, chat_server):
        response = api_client.post(
            "/api/signup",
            json={"username": "alice", "email": "alice@example.com", "password": "secret"},
        )

        assert response.status_code == 201
        assert response.json() == {"message": "User created successfully"}
        user = chat_server.identity_store.find_by_username("alice")
        assert IdentityStore.verify_password("secret", user.passwordHash)

    def test_signup_duplicate_username(self, api_client, make_user):
        make_user("alice")

        response = api_client.post(
            "/api/signup",
            json={"username": "alice", "email": "new@example.com", "password": "secret"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Username already exists"}

    def test_signup_duplicate_email(self, api_client, make_user):
        make_user("alice", email="shared@example.com")

        response = api_client.post(
            "/api/signup",
            json={"username": "bob", "email": "shared@example.com", "password": "secret"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Email already registered"}

    def test_signup_lost_race_maps_to_username_error(self, api_client, chat_server):
        store = chat_server.identity_store
        # The optimistic check passes, then the UNIQUE constraint fires
        with patch.object(store, "create", side_effect=UsernameTakenError("alice")):
            response = api_client.post(
                "/api/signup",
                json={"username": "alice", "email": "alice@example.com", "password": "secret"},
            )

        assert response.status_code == 400
        assert response.json() == {"error": "Username already exists"}

    def test_signup_store_failure(self, api_client, chat_server):
        with patch.object(
            chat_server.identity_store, "create", side_effect=IdentityStoreError("disk full")
        ):
            response = api_client.post(
                "/api/signup",
                json={"username": "alice", "email": "alice@example.com", "password": "secret"},
            )

        assert response.status_code == 500
        assert response.json() == {"error": "Signup failed"}

    def test_signup_unencodable_password(self, api_client, chat_server):
        error = UnicodeEncodeError("utf-8", "\ud800", 0, 1, "surrogates not allowed")
        with patch.object(chat_server.identity_store, "hash_password", side_effect=error):
            response = api_client.post(
                "/api/signup",
                json={"username": "alice", "email": "alice@example.com", "password": "secret"},
            )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid password"}
        assert chat_server.identity_store.find_by_username("alice") is None

    def test_signup_password_rejected_by_bcrypt(self, api_client, chat_server):
        with patch.object(
            chat_server.identity_store, "hash_password", side_effect=ValueError("password too long")
        ):
            response = api_client.post(
                "/api/signup",
                json={"username": "alice", "email": "alice@example.com", "password": "secret"},
            )

        assert response.status_code == 400
        assert response.json() == {"error": "Password is too long"}

    @pytest.mark.parametrize("body", [
        {"username": "alice", "email": "alice@example.com"},
        {"username": "", "email": "alice@example.com", "password": "secret"},
        {"username": "alice", "email": "not-an-email", "password": "secret"},
    ])
    def test_signup_invalid_body(self, api_client, body):
        response = api_client.post("/api/signup", json=body)
        assert response.status_code == 422

    def test_health(self, api_client):
        response = api_client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
