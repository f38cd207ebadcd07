"""
auth/dependencies.py -- FastAPI Depends() helpers for the route guard.

The guard core (auth/guard.py) returns Proceed/Deny values. This module is the
thin layer that plugs it into FastAPI's dependency injection:

  require_user   -- Depends() for protected pages. Returns the User or raises
                    NavigationInterrupt.
  require_guest  -- Depends() for sign-in / sign-up. Returns None or raises
                    NavigationInterrupt.

api/main.py registers an exception handler that renders NavigationInterrupt as
a 302 (see redirect_response()).

A guard is built per request: the session resolver has to forward this
request's Cookie header. The RateLimiter is not per request -- it lives on
app.state for the process lifetime and every guard shares it.

get_session_resolver is a separate dependency so tests can swap the identity
provider via app.dependency_overrides without touching the network.

Layer rule: no imports from api/ or web/. This module may import from fastapi
and core/ because it is part of the FastAPI dependency injection system; the
rest of auth/ stays framework-free.
"""

from __future__ import annotations

from fastapi import Depends, Request
from fastapi.responses import RedirectResponse

from auth.guard import AuthGuard, Deny, GuardDecision, Location, NavigationInterrupt
from auth.models import User
from auth.redirects import RedirectSanitizer
from auth.session import HttpSessionResolver, SessionResolver
from core.config import get_settings


def get_session_resolver(request: Request) -> SessionResolver:
    settings = get_settings()
    return HttpSessionResolver(
        client=request.app.state.http_client,
        session_url=settings.session_api_url,
        cookie_header=request.headers.get("cookie"),
        timeout=settings.session_timeout_seconds,
    )


def get_sanitizer() -> RedirectSanitizer:
    return RedirectSanitizer(auth_section_prefix=get_settings().auth_section_prefix)


def get_auth_guard(
    request: Request,
    resolver: SessionResolver = Depends(get_session_resolver),
) -> AuthGuard:
    settings = get_settings()
    return AuthGuard(
        resolver=resolver,
        rate_limiter=request.app.state.rate_limiter,
        sanitizer=get_sanitizer(),
        sign_in_path=settings.sign_in_path,
        default_redirect=settings.default_redirect,
    )


def request_location(request: Request) -> Location:
    """Router-style href for the request: path plus query string, never the host."""
    href = request.url.path
    if request.url.query:
        href = f"{href}?{request.url.query}"
    return Location(href=href)


def enforce(decision: GuardDecision) -> User | None:
    """Translate a guard decision into the router's interrupt mechanism."""
    if isinstance(decision, Deny):
        raise NavigationInterrupt(decision.to, decision.search)
    return decision.user


async def require_user(request: Request, guard: AuthGuard = Depends(get_auth_guard)) -> User:
    """Protected-page dependency:

    @router.get("/dashboard")
    async def dashboard(request: Request, user: User = Depends(require_user)): ...
    """
    return enforce(await guard.require_auth(request_location(request)))


async def require_guest(request: Request, guard: AuthGuard = Depends(get_auth_guard)) -> None:
    """Guest-page dependency. Signed-in users are sent to the default redirect."""
    enforce(await guard.require_guest(location=request_location(request)))


def redirect_response(interrupt: NavigationInterrupt) -> RedirectResponse:
    resp = RedirectResponse(interrupt.url, status_code=302)
    # Auth redirects depend on cookies; never let an intermediary cache them.
    resp.headers["Cache-Control"] = "no-store"
    return resp
