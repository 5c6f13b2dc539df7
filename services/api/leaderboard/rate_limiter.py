"""Rate limiting configuration for the application."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from leaderboard.settings import Settings

# Create rate limiter instance
# key_func determines the key for rate limiting (client IP)
limiter = Limiter(key_func=get_remote_address)

_rate_limit = "100/second"


def api_rate_limit() -> str:
    """Limit applied to every API route, read on each request."""
    return _rate_limit


def configure_limiter(settings: Settings) -> Limiter:
    """Apply settings to the shared limiter and start from empty counters."""
    global _rate_limit
    _rate_limit = settings.rate_limit
    limiter.enabled = settings.rate_limit_enabled
    limiter.reset()
    return limiter
