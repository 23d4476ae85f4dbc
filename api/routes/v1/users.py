"""
api/routes/v1/users.py -- User resource endpoints.

Routes:
  GET /api/v1/users/me -- the user behind the bearer access token (requires auth)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from api.models import UserResponse
from auth.dependencies import get_current_user
from auth.models import User

router = APIRouter()


@router.get("/users/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the public profile of the authenticated user."""
    return UserResponse.from_user(current_user)
