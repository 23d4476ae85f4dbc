"""Unit tests for auth/tokens.py -- TokenIssuer.

Covers:
- access and refresh tokens are not interchangeable (separate and shared secrets)
- refresh_access_token yields an access token carrying the same userId
- expiry: access 1 hour, refresh 7 days; expired tokens -> InvalidTokenError
- tampered, malformed, empty and foreign-secret tokens -> InvalidTokenError
- refresh secret falls back to the access secret when not configured
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.errors import InvalidTokenError
from auth.tokens import TokenIssuer
from core.config import Settings

ACCESS_SECRET = "access-secret-0123456789abcdef-0123456789"
REFRESH_SECRET = "refresh-secret-0123456789abcdef-0123456789"
USER_ID = "5b7a3c1e-1f0e-4c43-9d1b-2c8f6a0e4d11"


def _fixed_clock(moment: datetime):
    return lambda: moment


@pytest.fixture(params=["separate", "shared"])
def any_issuer(request) -> TokenIssuer:
    refresh_secret = REFRESH_SECRET if request.param == "separate" else None
    return TokenIssuer(ACCESS_SECRET, refresh_secret)


class TestIssue:
    def test_access_token_claims(self):
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        issuer = TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, clock=_fixed_clock(now))
        claims = jwt.get_unverified_claims(issuer.issue_access_token(USER_ID))
        assert claims["userId"] == USER_ID
        assert claims["type"] == "access"
        assert claims["exp"] - claims["iat"] == 3600
        assert claims["iat"] == int(now.timestamp())

    def test_refresh_token_lives_seven_days(self):
        issuer = TokenIssuer(ACCESS_SECRET, REFRESH_SECRET)
        claims = jwt.get_unverified_claims(issuer.issue_refresh_token(USER_ID))
        assert claims["type"] == "refresh"
        assert claims["exp"] - claims["iat"] == 7 * 24 * 3600

    def test_refresh_signed_with_refresh_secret(self):
        issuer = TokenIssuer(ACCESS_SECRET, REFRESH_SECRET)
        token = issuer.issue_refresh_token(USER_ID)
        assert jwt.decode(token, REFRESH_SECRET, algorithms=["HS256"])["userId"] == USER_ID

    def test_refresh_falls_back_to_access_secret(self):
        issuer = TokenIssuer(ACCESS_SECRET)
        token = issuer.issue_refresh_token(USER_ID)
        assert jwt.decode(token, ACCESS_SECRET, algorithms=["HS256"])["userId"] == USER_ID

    def test_empty_access_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenIssuer("")


class TestVerify:
    def test_refresh_round_trip(self, any_issuer):
        assert any_issuer.verify_refresh_token(any_issuer.issue_refresh_token(USER_ID)) == {"userId": USER_ID}

    def test_access_token_is_not_a_refresh_token(self, any_issuer):
        access = any_issuer.issue_access_token(USER_ID)
        with pytest.raises(InvalidTokenError):
            any_issuer.verify_refresh_token(access)

    def test_refresh_token_is_not_an_access_token(self, any_issuer):
        refresh = any_issuer.issue_refresh_token(USER_ID)
        with pytest.raises(InvalidTokenError):
            any_issuer.verify_access_token(refresh)

    def test_expired_refresh_token(self):
        eight_days_ago = datetime.now(timezone.utc) - timedelta(days=8)
        past = TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, clock=_fixed_clock(eight_days_ago))
        token = past.issue_refresh_token(USER_ID)
        with pytest.raises(InvalidTokenError) as excinfo:
            TokenIssuer(ACCESS_SECRET, REFRESH_SECRET).verify_refresh_token(token)
        assert excinfo.value.status_code == 403

    def test_refresh_token_valid_just_inside_window(self):
        six_days_ago = datetime.now(timezone.utc) - timedelta(days=6)
        past = TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, clock=_fixed_clock(six_days_ago))
        token = past.issue_refresh_token(USER_ID)
        assert TokenIssuer(ACCESS_SECRET, REFRESH_SECRET).verify_refresh_token(token)["userId"] == USER_ID

    def test_expired_access_token(self):
        two_hours_ago = datetime.now(timezone.utc) - timedelta(hours=2)
        past = TokenIssuer(ACCESS_SECRET, REFRESH_SECRET, clock=_fixed_clock(two_hours_ago))
        with pytest.raises(InvalidTokenError):
            TokenIssuer(ACCESS_SECRET, REFRESH_SECRET).verify_access_token(past.issue_access_token(USER_ID))

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "x" * 500])
    def test_malformed_tokens(self, any_issuer, token):
        with pytest.raises(InvalidTokenError):
            any_issuer.verify_refresh_token(token)

    def test_tampered_signature(self, any_issuer):
        token = any_issuer.issue_refresh_token(USER_ID)
        head, body, sig = token.split(".")
        tampered = ".".join([head, body, sig[:-2] + ("AA" if not sig.endswith("AA") else "BB")])
        with pytest.raises(InvalidTokenError):
            any_issuer.verify_refresh_token(tampered)

    def test_foreign_secret(self):
        other = TokenIssuer("another-secret-entirely-0123456789abcdef")
        with pytest.raises(InvalidTokenError):
            TokenIssuer(ACCESS_SECRET, REFRESH_SECRET).verify_refresh_token(other.issue_refresh_token(USER_ID))

    def test_missing_user_id_claim(self):
        token = jwt.encode(
            {"type": "refresh", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            REFRESH_SECRET,
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError):
            TokenIssuer(ACCESS_SECRET, REFRESH_SECRET).verify_refresh_token(token)

    def test_algorithm_none_rejected(self):
        header = "eyJhbGciOiJub25lIiwidHlwIjoiSldUIn0"  # {"alg":"none","typ":"JWT"}
        issuer = TokenIssuer(ACCESS_SECRET, REFRESH_SECRET)
        body = issuer.issue_refresh_token(USER_ID).split(".")[1]
        with pytest.raises(InvalidTokenError):
            issuer.verify_refresh_token(f"{header}.{body}.")


class TestRefreshAccessToken:
    def test_yields_access_token_for_same_user(self, any_issuer):
        new_access = any_issuer.refresh_access_token(any_issuer.issue_refresh_token(USER_ID))
        claims = jwt.get_unverified_claims(new_access)
        assert claims["userId"] == USER_ID
        assert claims["type"] == "access"
        assert any_issuer.verify_access_token(new_access) == {"userId": USER_ID}

    def test_rejects_access_token(self, any_issuer):
        with pytest.raises(InvalidTokenError) as excinfo:
            any_issuer.refresh_access_token(any_issuer.issue_access_token(USER_ID))
        assert excinfo.value.code == "invalid_token"


class TestFromSettings:
    def test_uses_configured_secrets_and_lifetimes(self):
        settings = Settings(
            _env_file=None,
            jwt_secret=ACCESS_SECRET,
            refresh_token_secret=REFRESH_SECRET,
            access_token_expire_seconds=60,
            refresh_token_expire_seconds=120,
        )
        issuer = TokenIssuer.from_settings(settings)
        access = jwt.decode(issuer.issue_access_token(USER_ID), ACCESS_SECRET, algorithms=["HS256"])
        refresh = jwt.decode(issuer.issue_refresh_token(USER_ID), REFRESH_SECRET, algorithms=["HS256"])
        assert access["exp"] - access["iat"] == 60
        assert refresh["exp"] - refresh["iat"] == 120

    def test_blank_refresh_secret_means_shared(self):
        settings = Settings(_env_file=None, jwt_secret=ACCESS_SECRET, refresh_token_secret="")
        issuer = TokenIssuer.from_settings(settings)
        jwt.decode(issuer.issue_refresh_token(USER_ID), ACCESS_SECRET, algorithms=["HS256"])
