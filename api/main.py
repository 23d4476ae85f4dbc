"""
api/main.py -- FastAPI application entry point for the Credential API.

Run with:  python main.py
           uvicorn asgi:app --reload

Request pipeline (outermost to innermost):
  1. SecurityHeadersMiddleware -- CSP, HSTS, no-referrer, nosniff
  2. CORSMiddleware            -- origins from CORS_ORIGIN
  3. SanitizeJSONMiddleware    -- body size cap, "$"/"." key stripping
  4. TraceIdMiddleware         -- X-Trace-Id in, out, and in every log line
  5. log_requests              -- one access-log line per request, 500 envelope
                                  for unhandled faults
  6. SlowAPIMiddleware         -- 100 requests / 15 minutes per client
  7. routers under /api/v1, then the exception handlers below

Lifespan owns the single store handle: opened at startup, closed at shutdown
in a finally block so a failed startup step still releases it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.middleware import TRACE_HEADER, SanitizeJSONMiddleware, SecurityHeadersMiddleware, TraceIdMiddleware
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.users import router as users_router
from auth.errors import ApplicationError
from auth.passwords import PasswordHasher
from auth.service import CredentialService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import get_settings
from core.logging import configure_logging

__version__ = "1.0.0"

API_PREFIX = "/api/v1"

_PROCESS_START = time.monotonic()

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

configure_logging(settings.log_level)
logger = logging.getLogger("credapi.api")

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Acquire the user store once, wire the credential core, release on shutdown.

    uvicorn runs the shutdown half only after it has stopped accepting
    connections and drained in-flight requests, so the store outlives every
    request that could use it.
    """
    logger.info("Credential API starting up")
    store = UserStore(settings.database_url)
    try:
        app.state.user_store = store
        app.state.credentials = CredentialService(
            store=store,
            hasher=PasswordHasher(settings.bcrypt_salt_rounds),
            issuer=TokenIssuer.from_settings(settings),
        )
        logger.info("Credential service ready (bcrypt rounds=%d)", settings.bcrypt_salt_rounds)
        yield
    finally:
        store.close()
        logger.info("Credential API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Credential API",
    description="Registration, login and token refresh backed by bcrypt and signed JWTs.",
    version=__version__,
    lifespan=lifespan,
    docs_url=f"{API_PREFIX}/docs",
    openapi_url=f"{API_PREFIX}/openapi.json",
    redoc_url=None,
)

# SlowAPIMiddleware looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Middleware stack
#
# Starlette inserts each add_middleware() at the front of the stack, so the
# LAST registration is the OUTERMOST layer. Registration below therefore runs
# innermost first: rate limiting ... security headers.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Access log line per request; unhandled faults become a 500 envelope here.

    Rendering the 500 inside the trace and security-header layers keeps
    X-Trace-Id and the security headers on it. The app-level Exception
    handler below only sees faults raised by the outer middleware.
    """
    start = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        response = _error(500, "internal_error", "An unexpected error occurred.")
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


app.add_middleware(TraceIdMiddleware)
app.add_middleware(SanitizeJSONMiddleware, max_body_bytes=settings.max_body_bytes)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization", TRACE_HEADER],
    expose_headers=[TRACE_HEADER],
    allow_credentials=True,
    max_age=600,
)
app.add_middleware(SecurityHeadersMiddleware)

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix=API_PREFIX, tags=["Auth"])
app.include_router(users_router, prefix=API_PREFIX, tags=["Users"])

# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail=None, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).as_content(),
        headers=headers,
    )


@app.exception_handler(ApplicationError)
async def application_error_handler(request: Request, exc: ApplicationError) -> JSONResponse:
    """Render a typed domain error with the status and code it carries."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return _error(exc.status_code, exc.code, exc.message, exc.details)


# Sync on purpose: SlowAPIMiddleware calls this handler directly, without awaiting it.
@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 0) or 15 * 60)
    return _error(
        429,
        "rate_limited",
        "Too many requests, please try again later.",
        detail=str(exc.detail),
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    # "input" would echo submitted passwords back to the client.
    errors = [{key: value for key, value in error.items() if key != "input"} for error in exc.errors()]
    return _error(422, "validation_error", "Request validation failed.", detail=str(errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Structured error for every HTTP exception, including router 404/405.

    Route dependencies raise HTTPException with detail={"code", "message"}.
    A dict detail becomes the error field as-is; anything else is wrapped.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail), headers=exc.headers)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler for faults raised outside log_requests.

    Route faults are rendered by log_requests, inside the trace layer. The
    exception goes to the log with its traceback, never to the client.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly on the app so it is always reachable regardless of router
# registration state. Exempt from rate limiting -- probes from load balancers
# must not be throttled. Sync because limiter.exempt wraps with a sync shim;
# the response model is given to the decorator since the shim's globals are
# slowapi's, not this module's.
# ---------------------------------------------------------------------------


@app.get(f"{API_PREFIX}/health", response_model=HealthResponse, tags=["Health"])
@limiter.exempt
def health():
    """Return liveness, seconds since process start, and version."""
    return HealthResponse(status="OK", uptime=round(time.monotonic() - _PROCESS_START, 3), version=__version__)
