"""
api/routes/v1/session.py -- Session status endpoint for API clients.

Runs the same require_auth check as protected pages, but answers in JSON:
a browser redirect is useless to a fetch() call, so a Deny becomes HTTP 401
with a machine-readable code instead of a 302.

  200 -> {"authenticated": true, "user": {...}}
  401 -> {"error": {"code": "session_expired" | "session_error" |
                            "rate_limited" | "unauthorized", ...}}

The guard's rate limit still applies: this endpoint counts against the same
per-location table as the page guard. A rate-limited 401 carries Retry-After.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.limiter import limiter
from api.models import ErrorDetail, SessionStatusResponse, UserResponse
from auth.dependencies import get_auth_guard, request_location
from auth.guard import AuthGuard, Deny
from core.config import get_settings

router = APIRouter()

_DENY_ERRORS: dict[str, tuple[str, str]] = {
    "expired": ("session_expired", "Session has expired."),
    "error": ("session_error", "Session could not be verified."),
    "rate_limited": ("rate_limited", "Too many authentication checks."),
}


@router.get("/session", response_model=SessionStatusResponse)
@limiter.limit(get_settings().api_rate_limit)
async def get_session_status(
    request: Request,
    response: Response,
    guard: AuthGuard = Depends(get_auth_guard),
) -> SessionStatusResponse:
    """Return the current user, or 401 when the guard would deny access."""
    decision = await guard.require_auth(request_location(request))
    if isinstance(decision, Deny):
        code, message = _DENY_ERRORS.get(decision.cause or "", ("unauthorized", "Authentication required."))
        headers = {"Retry-After": str(decision.retry_after)} if decision.retry_after is not None else None
        raise HTTPException(
            status_code=401,
            detail=ErrorDetail(code=code, message=message).model_dump(),
            headers=headers,
        )
    response.headers["Cache-Control"] = "no-store"
    return SessionStatusResponse(user=UserResponse.from_user(decision.user))
