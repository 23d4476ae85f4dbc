"""
API request and response models for the Credential API REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire format is camelCase (refreshToken, createdAt); Python attributes stay
snake_case via the alias generator. FastAPI serializes response models by
alias, and populate_by_name lets tests build models with either spelling.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import Role, User


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CredentialsRequest(_CamelModel):
    """Request body for POST /auth/register and POST /auth/login.

    Strength is NOT validated here -- the service owns the policy and answers
    a weak password with 400 weak_password rather than a 422. Length is not
    bounded either: an empty password is weak on register and a bad
    credential on login, and the body cap in SanitizeJSONMiddleware limits size.
    """

    email: str = Field(min_length=3, max_length=255)
    password: str


class RefreshRequest(_CamelModel):
    """Request body for POST /auth/refresh."""

    refresh_token: str = Field(min_length=1, max_length=4096)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(_CamelModel):
    """Public view of a user. The password hash is never part of it."""

    id: str
    email: str
    role: Role
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, email=user.email, role=user.role, created_at=user.created_at or "")


class AuthResponse(_CamelModel):
    """Response for register and login: the user plus an access/refresh pair."""

    user: UserResponse
    token: str
    refresh_token: str


class TokenResponse(_CamelModel):
    """Response for POST /auth/refresh."""

    token: str


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "OK"
    uptime: float
    version: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str | dict | list] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail

    def as_content(self) -> dict:
        """JSON body with an absent detail omitted rather than sent as null."""
        return self.model_dump(exclude_none=True)
