"""
auth/tokens.py -- Access and refresh token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Both token variants carry the same claim set
       {userId, type, iat, exp}. The "type" claim ("access" / "refresh") keeps
       the variants apart even when REFRESH_TOKEN_SECRET is not configured and
       both are signed with JWT_SECRET -- an access token never passes refresh
       verification and vice versa.

  Lifetimes: access 1 hour, refresh 7 days (configurable).

  Stateless: nothing is persisted. Validity is signature + expiry + type at
       verification time; there is no revocation list.

  Verification raises InvalidTokenError on any failure -- bad signature,
       expiry, malformed input, wrong type, missing userId. Callers get either
       the claims or the error, never a partial result.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from jose import JWTError, jwt

from auth.errors import InvalidTokenError

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("credapi.auth")

_ALGORITHM = "HS256"

ACCESS = "access"
REFRESH = "refresh"

DEFAULT_ACCESS_TTL = 3600
DEFAULT_REFRESH_TTL = 7 * 24 * 3600


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Signs and verifies access/refresh tokens.

    Args:
        access_secret:  HS256 key for access tokens.
        refresh_secret: HS256 key for refresh tokens. Falls back to
                        access_secret when empty or None.
        access_ttl:     Access token lifetime in seconds.
        refresh_ttl:    Refresh token lifetime in seconds.
        clock:          Returns the current aware UTC datetime. Tests pass a
                        fixed clock to mint already-expired tokens.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str | None = None,
        access_ttl: int = DEFAULT_ACCESS_TTL,
        refresh_ttl: int = DEFAULT_REFRESH_TTL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not access_secret:
            raise ValueError("TokenIssuer requires a non-empty access secret")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret or access_secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenIssuer:
        return cls(
            access_secret=settings.jwt_secret,
            refresh_secret=settings.refresh_token_secret or None,
            access_ttl=settings.access_token_expire_seconds,
            refresh_ttl=settings.refresh_token_expire_seconds,
        )

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def _sign(self, user_id: str, token_type: str, secret: str, ttl: int) -> str:
        now = self._clock()
        payload = {
            "userId": user_id,
            "type": token_type,
            "iat": now,
            "exp": now + timedelta(seconds=ttl),
        }
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)

    def issue_access_token(self, user_id: str) -> str:
        return self._sign(user_id, ACCESS, self._access_secret, self.access_ttl)

    def issue_refresh_token(self, user_id: str) -> str:
        return self._sign(user_id, REFRESH, self._refresh_secret, self.refresh_ttl)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def _verify(self, token: str, token_type: str, secret: str, message: str) -> dict[str, Any]:
        if not isinstance(token, str) or not token:
            raise InvalidTokenError(message)
        try:
            payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except JWTError as exc:
            logger.info("Rejected %s token: %s", token_type, exc)
            raise InvalidTokenError(message) from exc
        user_id = payload.get("userId")
        if payload.get("type") != token_type or not isinstance(user_id, str) or not user_id:
            logger.info("Rejected %s token: unexpected claims", token_type)
            raise InvalidTokenError(message)
        return {"userId": user_id}

    def verify_refresh_token(self, token: str) -> dict[str, Any]:
        """Return ``{"userId": ...}`` for a valid refresh token or raise InvalidTokenError."""
        return self._verify(token, REFRESH, self._refresh_secret, "Invalid refresh token")

    def verify_access_token(self, token: str) -> dict[str, Any]:
        """Return ``{"userId": ...}`` for a valid access token or raise InvalidTokenError."""
        return self._verify(token, ACCESS, self._access_secret, "Invalid access token")

    def refresh_access_token(self, refresh_token: str) -> str:
        """Exchange a valid refresh token for a new access token."""
        claims = self.verify_refresh_token(refresh_token)
        return self.issue_access_token(claims["userId"])
