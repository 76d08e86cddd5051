"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/auth.py (to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If each module instantiated its own, each would get an
isolated counter and limits would never trigger.

This is per-IP throttling of the credential endpoints. It complements, and
does not replace, the per-account lockout in auth/lockout.py.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def auth_rate_limit() -> str:
    """Limit string for register/login, resolved from settings at request time."""
    return get_settings().auth_rate_limit
