"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in
api/routes/v1/auth.py (to apply per-route limits with @limiter.limit()).

A single shared instance keeps one in-memory counter store for every route.
Separate instances per module would each count on their own and the limits
would never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def login_rate_limit() -> str:
    """Return the configured sign-in limit, e.g. "10/minute".

    slowapi accepts a callable so the value is read per request rather than
    frozen at import time.
    """
    return get_settings().login_rate_limit
