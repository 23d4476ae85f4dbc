"""
tests/conftest.py -- Shared test fixtures for the Credential API.

This module provides:
  - make_store(): isolated named shared-memory SQLite user stores
  - _patch_lifespan(): wires a test CredentialService into app.state,
    bypassing the real startup
  - service / issuer / hasher: the credential core over a fresh store
  - api_client: TestClient against the real app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

Environment must be set before any core/auth/api import: DEBUG lets
get_settings() generate JWT_SECRET instead of raising, and a bcrypt cost of
4 keeps hashing fast.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any core/auth/api import (get_settings() is cached).
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_SALT_ROUNDS", "4")
os.environ.setdefault("CORS_ORIGIN", "http://localhost:3000,http://app.example.com")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.passwords import PasswordHasher
from auth.service import CredentialService
from auth.store import UserStore
from auth.tokens import TokenIssuer

ACCESS_SECRET = "a" * 16 + "access-secret-for-tests-0123456789"
REFRESH_SECRET = "r" * 16 + "refresh-secret-for-tests-0123456789"
TEST_ROUNDS = 4


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def make_store(name: str | None = None) -> UserStore:
    """Create an isolated named shared-memory SQLite store."""
    name = name or uuid.uuid4().hex
    return UserStore(f"sqlite:///file:test_users_{name}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(service: CredentialService):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = service.store
        app.state.credentials = service
        yield

    return test_lifespan


# ---------------------------------------------------------------------------
# Credential core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    user_store = make_store()
    yield user_store
    user_store.close()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    return PasswordHasher(TEST_ROUNDS)


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(ACCESS_SECRET, REFRESH_SECRET)


@pytest.fixture
def service(store: UserStore, hasher: PasswordHasher, issuer: TokenIssuer) -> CredentialService:
    return CredentialService(store=store, hasher=hasher, issuer=issuer)


# ---------------------------------------------------------------------------
# HTTP fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_rate_limits() -> None:
    """Every test starts with an empty rate-limit window (all requests share one client key)."""
    limiter.reset()


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, CredentialService], None, None]:
    """Yield (client, service) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan, so
    tests hit real middleware and route handlers but an isolated store.
    """
    user_store = make_store()
    credentials = CredentialService(
        store=user_store,
        hasher=PasswordHasher(TEST_ROUNDS),
        issuer=TokenIssuer(ACCESS_SECRET, REFRESH_SECRET),
    )
    app.router.lifespan_context = _patch_lifespan(credentials)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, credentials

    user_store.close()


@pytest.fixture
def new_email():
    """Factory for emails no other test has registered."""

    def _make(prefix: str = "user") -> str:
        return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"

    return _make
