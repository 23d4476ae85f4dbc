#!/usr/bin/env python3
"""
Credential API -- registration, login and token refresh over HTTP.

Usage:
  python main.py
  python main.py --port 8080
  python main.py --host 127.0.0.1 --reload

Environment variables (see core/config.py for the full list):
  JWT_SECRET            Required outside DEBUG. At least 32 characters.
  REFRESH_TOKEN_SECRET  Optional separate key for refresh tokens.
  BCRYPT_SALT_ROUNDS    bcrypt cost factor (default 12).
  CORS_ORIGIN           Comma-separated allowed origins.
  PORT                  Listen port (default 3000).

Shutdown: SIGINT/SIGTERM make uvicorn stop accepting connections, wait up to
SHUTDOWN_TIMEOUT seconds for in-flight requests, then run the app's lifespan
shutdown, which closes the database handle.
"""

import argparse

import uvicorn

from core.config import get_settings


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run the Credential API server.")
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default {settings.host}).")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Listen port (default {settings.port}).")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only).")
    args = parser.parse_args()

    uvicorn.run(
        "asgi:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
        timeout_graceful_shutdown=settings.shutdown_timeout or None,
    )


if __name__ == "__main__":
    main()
