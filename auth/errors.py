"""
auth/errors.py -- Typed error taxonomy for the credential core.

Every error carries the HTTP status and machine-readable code it should
surface as. The core never imports FastAPI; api/main.py registers a single
exception handler for ApplicationError that turns these into the shared
ErrorResponse envelope.
"""

from __future__ import annotations

from typing import Any


class ApplicationError(Exception):
    """Domain fault with an explicit HTTP status."""

    status_code: int = 500
    code: str = "application_error"
    default_message: str = "Request could not be completed."

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        self.details = details
        super().__init__(self.message)


class WeakPasswordError(ApplicationError):
    status_code = 400
    code = "weak_password"
    default_message = "Provided password is weak. Please provide a stronger password."


class DuplicateUserError(ApplicationError):
    status_code = 400
    code = "user_exists"
    default_message = "User already exists"


class AuthenticationError(ApplicationError):
    """Bad credentials. Unknown email and wrong password raise the same thing."""

    status_code = 401
    code = "bad_credentials"
    default_message = "Invalid credentials"


class InvalidTokenError(ApplicationError):
    status_code = 403
    code = "invalid_token"
    default_message = "Invalid refresh token"


class CryptoError(ApplicationError):
    """The password could not be turned into bcrypt input."""

    status_code = 500
    code = "crypto_error"
    default_message = "Password could not be processed."
