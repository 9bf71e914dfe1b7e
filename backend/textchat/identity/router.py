"""Signup router.

Endpoints:
    POST /api/signup - Register a new user (username, email, password)

Signup is plain request/response plumbing; login happens over the chat
WebSocket (see ``textchat.chat.lifecycle``).
"""
import asyncio
import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from .schemas import SignupRequest
from .store import EmailTakenError, IdentityStore, UsernameTakenError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["identity"])


def _store() -> IdentityStore:
    return IdentityStore.get_instance()


def _register(store: IdentityStore, body: SignupRequest) -> None:
    """Optimistic uniqueness checks, then hash and insert (blocking)."""
    if store.exists_by_username(body.username):
        raise UsernameTakenError(body.username)
    if store.exists_by_email(body.email):
        raise EmailTakenError(body.email)
    store.create(body.username, body.email, store.hash_password(body.password))


@router.post("/signup", status_code=201)
async def signup(body: SignupRequest) -> JSONResponse:
    """Create a user account.

    Args:
        body: Username, email and plain-text password.

    Returns:
        201 on success, 400 with a specific reason when the username or
        email is taken or the password cannot be hashed, 500 on any other
        failure.
    """
    store = _store()
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, _register, store, body)
    except UsernameTakenError:
        return JSONResponse({"error": "Username already exists"}, status_code=400)
    except EmailTakenError:
        return JSONResponse({"error": "Email already registered"}, status_code=400)
    except UnicodeEncodeError:
        # Lone surrogates in the JSON string cannot be hashed
        return JSONResponse({"error": "Invalid password"}, status_code=400)
    except ValueError:
        # bcrypt rejects passwords longer than 72 bytes
        return JSONResponse({"error": "Password is too long"}, status_code=400)
    except Exception as e:
        logger.error(f"[Signup] Failed for {body.username}: {e}")
        return JSONResponse({"error": "Signup failed"}, status_code=500)

    logger.info("[Signup] Registered user %s", body.username)
    return JSONResponse({"message": "User created successfully"}, status_code=201)
