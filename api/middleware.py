"""
api/middleware.py -- Pure ASGI middleware for the request pipeline.

  SecurityHeadersMiddleware -- CSP, HSTS, referrer, nosniff and friends on
                               every response.
  SanitizeJSONMiddleware    -- caps JSON body size and strips object keys
                               that start with "$" or contain "." before the
                               body reaches a route handler.
  TraceIdMiddleware         -- per-request X-Trace-Id: reused from the client
                               when present, generated otherwise; echoed on
                               the response and stamped on every log line.

These are written against the raw ASGI interface (scope/receive/send) rather
than BaseHTTPMiddleware: the sanitizer has to replay a rewritten body through
receive(), and the header middlewares only need to touch the
http.response.start message.

Registration order lives in api/main.py.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from api.models import ErrorDetail, ErrorResponse
from core.logging import trace_id_var

logger = logging.getLogger("credapi.api")

TRACE_HEADER = "X-Trace-Id"

# ---------------------------------------------------------------------------
# Security headers
# ---------------------------------------------------------------------------

# script/style also allow the CDN that serves the Swagger UI bundle at /api/v1/docs.
_DOCS_CDN = "https://cdn.jsdelivr.net"

SECURITY_HEADERS: dict[str, str] = {
    "Content-Security-Policy": (
        "default-src 'self'; "
        f"script-src 'self' 'unsafe-inline' {_DOCS_CDN}; "
        f"style-src 'self' 'unsafe-inline' {_DOCS_CDN}; "
        "img-src 'self' data: https://fastapi.tiangolo.com; "
        "base-uri 'self'; "
        "frame-ancestors 'self'; "
        "object-src 'none'"
    ),
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "no-referrer",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "X-DNS-Prefetch-Control": "off",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
}


class SecurityHeadersMiddleware:
    def __init__(self, app: ASGIApp, headers: dict[str, str] | None = None) -> None:
        self.app = app
        self.headers = SECURITY_HEADERS if headers is None else headers

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                for name, value in self.headers.items():
                    headers.setdefault(name, value)
            await send(message)

        await self.app(scope, receive, send_with_headers)


# ---------------------------------------------------------------------------
# JSON body limit + sanitization
# ---------------------------------------------------------------------------


def _is_operator_key(key: str) -> bool:
    return key.startswith("$") or "." in key


def strip_operator_keys(value: Any) -> Any:
    """Return a copy of a parsed JSON value with operator-style keys removed at every depth."""
    if isinstance(value, dict):
        return {k: strip_operator_keys(v) for k, v in value.items() if not _is_operator_key(k)}
    if isinstance(value, list):
        return [strip_operator_keys(v) for v in value]
    return value


def _is_json(headers: Headers) -> bool:
    content_type = headers.get("content-type", "").split(";", 1)[0].strip().lower()
    # FastAPI parses a body without a content type as JSON.
    if not content_type:
        return True
    return content_type == "application/json" or content_type.endswith("+json")


def _too_large_response(limit: int) -> JSONResponse:
    return JSONResponse(
        status_code=413,
        content=ErrorResponse(
            error=ErrorDetail(
                code="payload_too_large",
                message=f"Request body exceeds {limit} bytes.",
            )
        ).as_content(),
    )


class SanitizeJSONMiddleware:
    """Buffer JSON request bodies, enforce a size cap, and rewrite them sanitized.

    Bodies that are not valid JSON pass through untouched so FastAPI's own
    validation answers them with 422. Non-JSON content types are not buffered;
    a missing content type counts as JSON.
    """

    def __init__(self, app: ASGIApp, max_body_bytes: int = 100 * 1024) -> None:
        self.app = app
        self.max_body_bytes = max_body_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return
        headers = Headers(scope=scope)
        if not _is_json(headers):
            await self.app(scope, receive, send)
            return

        declared = headers.get("content-length")
        if declared is not None and declared.isdigit() and int(declared) > self.max_body_bytes:
            await _too_large_response(self.max_body_bytes)(scope, receive, send)
            return

        chunks: list[bytes] = []
        size = 0
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            chunk = message.get("body", b"")
            size += len(chunk)
            if size > self.max_body_bytes:
                await _too_large_response(self.max_body_bytes)(scope, receive, send)
                return
            chunks.append(chunk)
            more_body = message.get("more_body", False)
        body = b"".join(chunks)

        if body:
            try:
                payload = json.loads(body)
            except ValueError:
                payload = None
            else:
                cleaned = strip_operator_keys(payload)
                if cleaned != payload:
                    logger.warning("Stripped operator keys from request body on %s", scope.get("path"))
                    body = json.dumps(cleaned).encode("utf-8")

        scope = dict(scope)
        rewritten = MutableHeaders(scope=scope)
        rewritten["content-length"] = str(len(body))

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": body, "more_body": False}
            return await receive()

        await self.app(scope, replay, send)


# ---------------------------------------------------------------------------
# Trace id
# ---------------------------------------------------------------------------


class TraceIdMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        incoming = Headers(scope=scope).get(TRACE_HEADER, "").strip()
        # Client-supplied ids are echoed into logs and headers; keep them short and printable.
        trace_id = incoming if incoming and len(incoming) <= 128 and incoming.isprintable() else str(uuid.uuid4())
        scope.setdefault("state", {})["trace_id"] = trace_id

        async def send_with_trace(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[TRACE_HEADER] = trace_id
            await send(message)

        token = trace_id_var.set(trace_id)
        try:
            await self.app(scope, receive, send_with_trace)
        finally:
            trace_id_var.reset(token)
