"""
api/limiter.py -- Shared slowapi rate limiter instance.

Mounted by api/main.py through SlowAPIMiddleware. application_limits puts one
window (100 requests per 15 minutes unless RATE_LIMIT says otherwise) across
the whole API per client address: requests to different routes draw from the
same budget. Routes marked @limiter.exempt skip it.

A single shared instance means all routes share the same in-memory counter
store. Counters are process-local; running several workers multiplies the
effective limit.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(
    key_func=get_remote_address,
    application_limits=[get_settings().rate_limit],
    storage_uri="memory://",
)
