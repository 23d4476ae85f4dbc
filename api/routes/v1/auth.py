"""
api/routes/v1/auth.py -- Registration, login and token refresh endpoints.

Routes:
  POST /api/v1/auth/register  -- create account; 201 with user + token pair
  POST /api/v1/auth/login     -- password login; 200 with user + token pair
  POST /api/v1/auth/refresh   -- exchange refresh token; 200 with new access token

All three are public. Failures surface as typed ApplicationErrors from the
CredentialService and are rendered by the central handler in api/main.py:
  400 weak_password / user_exists, 401 bad_credentials, 403 invalid_token.

Handlers are plain def functions: bcrypt and the SQLAlchemy store block, so
Starlette runs them on its thread pool instead of the event loop.

Responses that carry tokens are marked Cache-Control: no-store.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from api.models import AuthResponse, CredentialsRequest, RefreshRequest, TokenResponse, UserResponse
from auth.dependencies import get_credential_service
from auth.models import AuthResult
from auth.service import CredentialService

router = APIRouter()


def _auth_response(result: AuthResult) -> AuthResponse:
    return AuthResponse(
        user=UserResponse.from_user(result.user),
        token=result.access_token,
        refresh_token=result.refresh_token,
    )


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(
    body: CredentialsRequest,
    response: Response,
    service: CredentialService = Depends(get_credential_service),
) -> AuthResponse:
    """Create a USER account and log it in."""
    result = service.register(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"
    return _auth_response(result)


@router.post("/auth/login", response_model=AuthResponse)
def login(
    body: CredentialsRequest,
    response: Response,
    service: CredentialService = Depends(get_credential_service),
) -> AuthResponse:
    """Authenticate with email and password.

    Unknown email and wrong password produce the same 401 body so the
    response does not reveal which emails are registered.
    """
    result = service.login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"
    return _auth_response(result)


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(
    body: RefreshRequest,
    response: Response,
    service: CredentialService = Depends(get_credential_service),
) -> TokenResponse:
    """Issue a new access token for a valid refresh token."""
    token = service.refresh_access(body.refresh_token)
    response.headers["Cache-Control"] = "no-store"
    return TokenResponse(token=token)
