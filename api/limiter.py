"""
api/limiter.py -- Shared slowapi rate limiter instance.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/session.py (to apply per-route limits with @limiter.limit()).

Using a single shared instance ensures all routes share the same in-memory
counter store. If this were instantiated in each module separately, each
module would get its own isolated counter and rate limits would never trigger.

This limiter covers general HTTP traffic. The per-location auth-check limit
lives in auth/rate_limiter.py and is enforced inside the route guard.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from starlette.requests import Request

from core.config import get_settings


def get_client_identifier(request: Request) -> str:
    """Best-effort client IP, honouring the usual reverse-proxy headers.

    Order: first X-Forwarded-For hop, X-Real-IP, CF-Connecting-IP, then the
    socket peer. Only meaningful behind a proxy that overwrites these headers.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first_hop = forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop
    for header in ("x-real-ip", "cf-connecting-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[get_settings().general_rate_limit],
    headers_enabled=True,
    storage_uri="memory://",
)
