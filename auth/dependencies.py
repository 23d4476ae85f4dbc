"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Protected routes accept an access token in the Authorization header:
    Authorization: Bearer <token>

get_credential_service() hands routes the CredentialService wired into
app.state by the lifespan. get_current_user() resolves the bearer token to a
User and raises HTTP 401 otherwise.

Layer rule: auth/dependencies.py may import from fastapi because it is part
of the FastAPI dependency injection system. It does not import from api/.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from auth.errors import AuthenticationError, InvalidTokenError
from auth.models import User
from auth.service import CredentialService


def get_credential_service(request: Request) -> CredentialService:
    return request.app.state.credentials


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_current_user(
    request: Request,
    service: CredentialService = Depends(get_credential_service),
) -> User:
    """Require a valid access token. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return service.authenticate_access(token)
    except (InvalidTokenError, AuthenticationError) as exc:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Invalid or expired access token."},
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
