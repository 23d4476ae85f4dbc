"""
auth/service.py -- Credential Service: register, login, refresh.

Orchestrates the password hasher, the token issuer and a user store. Has no
HTTP knowledge and no state of its own; every collaborator is passed in at
construction, so tests can hand it an in-memory store or a MagicMock.

Each operation runs its steps strictly in sequence and fails fast. There are
no retries -- a failure is terminal for the request.

Registration does check-then-insert without a transaction. The store's
UNIQUE(email) constraint catches the concurrent case; its IntegrityError is
reported as DuplicateUserError like the ordinary duplicate.

Login returns the same AuthenticationError for "no such email" and "wrong
password", and burns one bcrypt verification in the first case so the two
are indistinguishable by status, body or timing.
"""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy.exc import IntegrityError

from auth.errors import AuthenticationError, DuplicateUserError, WeakPasswordError
from auth.models import AuthResult, Role, User
from auth.passwords import PasswordHasher, is_strong_password
from auth.tokens import TokenIssuer

logger = logging.getLogger("credapi.auth")


class UserRepository(Protocol):
    def get_by_email(self, email: str) -> User | None: ...

    def get_by_id(self, user_id: str) -> User | None: ...

    def create_user(self, email: str, password_hash: str, role: Role = Role.USER) -> User: ...


class CredentialService:
    def __init__(self, store: UserRepository, hasher: PasswordHasher, issuer: TokenIssuer) -> None:
        self.store = store
        self.hasher = hasher
        self.issuer = issuer

    def _issue_pair(self, user: User) -> AuthResult:
        return AuthResult(
            user=user,
            access_token=self.issuer.issue_access_token(user.id),
            refresh_token=self.issuer.issue_refresh_token(user.id),
        )

    def register(self, email: str, password: str) -> AuthResult:
        """Create a USER account and return it with a fresh token pair.

        Raises:
            WeakPasswordError:  password fails the strength policy.
            DuplicateUserError: email already registered (including the
                                insert-time race).
        """
        if not is_strong_password(password):
            raise WeakPasswordError()
        if self.store.get_by_email(email) is not None:
            raise DuplicateUserError()
        password_hash = self.hasher.hash(password)
        try:
            user = self.store.create_user(email, password_hash, role=Role.USER)
        except IntegrityError as exc:
            raise DuplicateUserError() from exc
        logger.info("Registered user %s", user.id)
        return self._issue_pair(user)

    def login(self, email: str, password: str) -> AuthResult:
        """Authenticate by email and password and return a fresh token pair.

        Raises:
            AuthenticationError: unknown email or wrong password (same error).
        """
        user = self.store.get_by_email(email)
        if user is None:
            self.hasher.burn(password)
            raise AuthenticationError()
        if not self.hasher.verify(password, user.password):
            raise AuthenticationError()
        logger.info("User %s logged in", user.id)
        return self._issue_pair(user)

    def refresh_access(self, refresh_token: str) -> str:
        """Return a new access token. Raises InvalidTokenError (403) on a bad refresh token."""
        return self.issuer.refresh_access_token(refresh_token)

    def authenticate_access(self, access_token: str) -> User:
        """Resolve a bearer access token to its user.

        Raises InvalidTokenError for a bad token and AuthenticationError when
        the token is valid but its user no longer exists.
        """
        claims = self.issuer.verify_access_token(access_token)
        return self.get_user(claims["userId"])

    def get_user(self, user_id: str) -> User:
        user = self.store.get_by_id(user_id)
        if user is None:
            raise AuthenticationError("User no longer exists")
        return user
