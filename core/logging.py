"""
core/logging.py -- Logging setup and per-request trace id context.

The trace id of the request being served is kept in a ContextVar so every
log line emitted while handling it -- route, service, store -- carries the
same correlation value without threading it through call signatures.

Starlette runs sync route handlers in a worker thread via anyio, which copies
the current context, so the value set by the trace middleware is visible there.
"""

import logging
from contextvars import ContextVar

_NO_TRACE = "-"

trace_id_var: ContextVar[str] = ContextVar("trace_id", default=_NO_TRACE)

LOG_FORMAT = "%(asctime)s %(levelname)-5s %(name)s [%(trace_id)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class TraceIdFilter(logging.Filter):
    """Stamp the current trace id on each record as ``record.trace_id``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = trace_id_var.get()
        return True


def get_trace_id() -> str:
    return trace_id_var.get()


def configure_logging(level: str = "INFO") -> None:
    """Install the stderr handler once.

    basicConfig is a no-op when the root logger already has handlers (pytest's
    capture handler, uvicorn's --log-config), so calling this at import time
    never clobbers an outer configuration.
    """
    handler = logging.StreamHandler()
    handler.addFilter(TraceIdFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logging.basicConfig(level=level.upper(), handlers=[handler])
