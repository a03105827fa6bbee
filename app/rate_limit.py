"""
Per-IP request limiting.

Every endpoint shares one window per client address (RATE_LIMIT, by
default 10 requests per 15 minutes). It is an application limit, not a
per-route one, so requests to /health count against /transaction too.
Counters live in process memory; each worker process counts on its own.

The limiter is kept on app.state.limiter, where SlowAPIMiddleware looks
it up on every request.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import Settings


def build_limiter(settings: Settings) -> Limiter:
    """Create the limiter described by `settings`."""
    return Limiter(
        key_func=get_remote_address,
        application_limits=[settings.RATE_LIMIT],
        enabled=settings.RATE_LIMIT_ENABLED,
    )
