"""Identity module: user records, password verification and signup."""

from .schemas import SignupRequest, User
from .store import EmailTakenError, IdentityStore, IdentityStoreError, UsernameTakenError
from .router import router

__all__ = [
    "EmailTakenError",
    "IdentityStore",
    "IdentityStoreError",
    "SignupRequest",
    "User",
    "UsernameTakenError",
    "router",
]
