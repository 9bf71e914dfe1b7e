"""Pydantic schemas for user identities and signup.

These schemas are used by:
    - POST /api/signup: request validation
    - IdentityStore: DuckDB storage layer
    - ConnectionLifecycle: credential checks during login / auto-login
"""
from datetime import datetime

from pydantic import BaseModel, Field


class User(BaseModel):
    """A registered user as stored in the ``users`` table.

    Attributes:
        id: Opaque unique identifier (UUID string).
        username: Unique, case-sensitive login name.
        email: Unique email address.
        passwordHash: bcrypt hash of the user's password.
        createdAt: When the account was created (UTC).
    """
    id: str = Field(..., description="Unique user ID")
    username: str = Field(..., description="Unique, case-sensitive username")
    email: str = Field(..., description="Unique email address")
    passwordHash: str = Field(..., repr=False, description="bcrypt password hash")
    createdAt: datetime = Field(..., description="Account creation time (UTC)")


class SignupRequest(BaseModel):
    """Request body for POST /api/signup."""
    username: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., max_length=254, pattern=r"^[^@\s]+@[^@\s]+$")
    # bcrypt only looks at the first 72 bytes; longer inputs are rejected.
    password: str = Field(..., min_length=1, max_length=72)
