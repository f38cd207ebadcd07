"""
auth/guard.py -- Route-access decisions for protected and guest-only views.

Two entry points, awaited before a view runs:

  require_auth(location)   -- protected pages. Returns Proceed(user) or a
                              Deny pointing at the sign-in page.
  require_guest(...)       -- sign-in / sign-up pages. Returns Proceed() or a
                              Deny pointing authenticated users away.

Flow per call:
  RATE_CHECK -> SESSION_FETCH -> {user | classified error | no session} -> decision

The guard never raises for a denial. Deny is a value; turning it into the
router's redirect mechanism is auth/dependencies.py's job. The one
exception that does pass through is NavigationInterrupt: if a collaborator
already decided to redirect, that decision is re-raised unchanged.

Failure policy is asymmetric:
  require_auth  fails CLOSED -- on anything ambiguous, send the user to sign-in.
  require_guest fails OPEN   -- on anything ambiguous, show the guest page.
Leaking a protected view is worse than an extra sign-in; blocking a public
sign-in page because the provider hiccupped is worse than showing it.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union
from urllib.parse import urlencode

from auth.models import User
from auth.rate_limiter import RateLimiter
from auth.redirects import RedirectSanitizer
from auth.session import SessionResolver
from auth.session_errors import SessionErrorReason, classify_session_error

auth_logger = logging.getLogger("routeguard.auth")
security_logger = logging.getLogger("routeguard.security")

DEFAULT_SIGN_IN_PATH = "/auth/sign-in"
DEFAULT_REDIRECT = "/dashboard"

# Provider answers 429 to rapid reloads of guest pages. Expected noise.
_TOO_MANY_REQUESTS = 429


class NavigationInterrupt(Exception):
    """Abort rendering and redirect the browser. Not an error.

    Recognisable by its `to` attribute. Raised only by the router integration
    layer (or by collaborators that redirect on their own), never by the
    guard's decision logic.
    """

    def __init__(self, to: str, search: Optional[dict[str, str]] = None):
        self.to = to
        self.search = dict(search or {})
        super().__init__(self.url)

    @property
    def url(self) -> str:
        if not self.search:
            return self.to
        return f"{self.to}?{urlencode(self.search)}"


@dataclass(frozen=True)
class Location:
    """The navigation being guarded. href is path plus query string."""

    href: str


@dataclass(frozen=True)
class Proceed:
    user: Optional[User] = None


@dataclass(frozen=True)
class Deny:
    to: str
    search: dict[str, str] = field(default_factory=dict)
    # Why access was denied, for callers that answer in JSON instead of redirecting.
    cause: Optional[str] = field(default=None, compare=False)
    # Seconds until the attempt window resets; set only for rate-limited denials.
    retry_after: Optional[int] = field(default=None, compare=False)


GuardDecision = Union[Proceed, Deny]


class FailureMode(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


@dataclass(frozen=True)
class GuardPolicy:
    """How a guard resolves outcomes it cannot classify."""

    name: str
    failure_mode: FailureMode


REQUIRE_AUTH_POLICY = GuardPolicy(name="require_auth", failure_mode=FailureMode.CLOSED)
REQUIRE_GUEST_POLICY = GuardPolicy(name="require_guest", failure_mode=FailureMode.OPEN)


class AuthGuard:
    def __init__(
        self,
        resolver: SessionResolver,
        rate_limiter: RateLimiter,
        sanitizer: Optional[RedirectSanitizer] = None,
        sign_in_path: str = DEFAULT_SIGN_IN_PATH,
        default_redirect: str = DEFAULT_REDIRECT,
    ):
        """
        Args:
            resolver: Session lookup for the current browser
            rate_limiter: Shared attempt table. One instance per process, passed
                          in so every guard built for a request counts against
                          the same table.
            sanitizer: Redirect target validation
            sign_in_path: Where denied protected-route access lands
            default_redirect: Fallback post-login target and guest-page bounce target
        """
        self._resolver = resolver
        self._rate_limiter = rate_limiter
        self._sanitizer = sanitizer or RedirectSanitizer()
        self.sign_in_path = sign_in_path
        self.default_redirect = default_redirect

    async def require_auth(self, location: Location) -> GuardDecision:
        """Admit an authenticated user to a protected view, or deny to sign-in."""
        identifier = f"auth:{location.href}"
        status = self._rate_limiter.check(identifier)
        if not status.allowed:
            # No redirect target: do not disclose the requested page.
            security_logger.error("Auth check rate limit exceeded for %s", identifier)
            return Deny(
                self.sign_in_path,
                cause="rate_limited",
                retry_after=self._rate_limiter.retry_after(status),
            )

        try:
            result = await self._resolver.get_session()

            if result.error is not None:
                reason = classify_session_error(result.error)
                auth_logger.warning(
                    "Session check failed: location=%s expired=%s status=%d",
                    location.href,
                    reason is SessionErrorReason.EXPIRED,
                    result.error.status,
                )
                return Deny(
                    self.sign_in_path,
                    {"redirect": self._return_target(location), "reason": reason.query_value},
                    cause=reason.value,
                )

            user = result.user
            if user is None:
                auth_logger.info("Unauthenticated access to %s, redirecting to sign-in", location.href)
                return Deny(self.sign_in_path, {"redirect": self._return_target(location)}, cause="unauthenticated")

            auth_logger.debug("Auth check passed for user %s on %s", user.id, location.href)
            return Proceed(user)
        except NavigationInterrupt:
            raise
        except Exception:
            auth_logger.exception("Unexpected failure during auth check for %s", location.href)
            return self._resolve_failure(REQUIRE_AUTH_POLICY)

    async def require_guest(
        self,
        default_redirect: Optional[str] = None,
        location: Optional[Location] = None,
    ) -> GuardDecision:
        """Admit anonymous visitors to a guest-only view; bounce signed-in users."""
        target = default_redirect or self.default_redirect
        try:
            result = await self._resolver.get_session()

            if result.error is not None:
                if result.error.status != _TOO_MANY_REQUESTS:
                    auth_logger.debug(
                        "Session check failed on guest page %s (status %d), allowing access",
                        location.href if location else "-",
                        result.error.status,
                    )
                return self._resolve_failure(REQUIRE_GUEST_POLICY)

            user = result.user
            if user is not None:
                # With no caller override target is the configured default and is its own
                # fallback. A caller-supplied target falls back to the configured one.
                destination = self._sanitizer.sanitize(target, self.default_redirect)
                auth_logger.info("Authenticated user %s on guest page, redirecting to %s", user.id, destination)
                return Deny(destination, cause="authenticated")

            return Proceed()
        except NavigationInterrupt:
            raise
        except Exception:
            auth_logger.warning(
                "Unexpected failure during guest check for %s, allowing access",
                location.href if location else "-",
                exc_info=True,
            )
            return self._resolve_failure(REQUIRE_GUEST_POLICY)

    def _return_target(self, location: Location) -> str:
        return self._sanitizer.sanitize(location.href, self.default_redirect)

    def _resolve_failure(self, policy: GuardPolicy) -> GuardDecision:
        if policy.failure_mode is FailureMode.CLOSED:
            return Deny(self.sign_in_path, cause="unexpected_failure")
        return Proceed()
