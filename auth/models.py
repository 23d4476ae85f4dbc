"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services do
the work; routes map these onto the API contract in api/models.py.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


@dataclass
class User:
    """A registered identity.

    email is the sole lookup key for password authentication and is unique in
    the store. password holds the bcrypt hash -- plaintext never reaches this
    object. id is an opaque UUID string assigned by the store at creation.
    """

    email: str
    password: str  # bcrypt hash
    role: Role = Role.USER
    id: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class AuthResult:
    """What register and login hand back to the route layer."""

    user: User
    access_token: str
    refresh_token: str
