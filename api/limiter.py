"""
api/limiter.py -- The one slowapi Limiter shared by every route module.

Login and forgot-password take @limiter.limit(login_rate_limit);
api/main.py mounts SlowAPIMiddleware and sets app.state.limiter to this
object. Counters are per client IP and live in process memory, so a restart
resets them and multiple workers each keep their own window.

@limiter.limit must sit BELOW @router.post so the router registers the
rate-limited wrapper. Above it, FastAPI would route to the bare function
and the limit would never be checked.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://", strategy="fixed-window")


def login_rate_limit() -> str:
    """LOGIN_RATE_LIMIT, read per request so the limit follows the current settings."""
    return get_settings().login_rate_limit
