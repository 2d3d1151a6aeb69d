"""Rate limiting configuration using slowapi.

Provides a module-level Limiter instance that can be imported by routers
for per-endpoint rate limiting, and wired into the FastAPI app in main.py.
Counters live in process memory, keyed by client IP.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from sirtis.config import settings

# Applied to every route through SlowAPIMiddleware.
# Individual routes can tighten it with @limiter.limit("N/period").
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    storage_uri="memory://",
)
