"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in api/main.py (to mount as middleware) and in the route modules
(to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

Decorator order: @router.<method>(...) goes ABOVE @limiter.limit(...) so the
router registers the rate-limited wrapper, not the bare function.

Limits come from Settings and are fixed at import time. RATE_LIMIT_ENABLED=false
turns every limit off (the test suite does this).
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

settings = get_settings()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.default_rate_limit],
    storage_uri="memory://",
    enabled=settings.rate_limit_enabled,
)
