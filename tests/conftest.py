"""
tests/conftest.py -- Shared test fixtures for RouteGuard.

This module provides:
  - FrozenClock: a controllable monotonic clock for RateLimiter
  - FakeSessionResolver: stands in for the identity provider, counts calls
  - session result builders: authenticated(), unauthenticated(), transport_error()
  - rate_limiter / resolver / guard: unit-level fixtures for the guard core
  - web_client: TestClient over the assembled ASGI app with the lifespan
    patched and the session resolver dependency overridden

Environment variables must be set before any api/ or core/ import so
get_settings() sees them when it is first called.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import Optional
from unittest.mock import MagicMock

# CRITICAL: Set before any app import. TestClient sends Host: testserver,
# which TrustedHostMiddleware rejects unless it is allowed.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from asgi import app
from auth.dependencies import get_session_resolver
from auth.guard import AuthGuard
from auth.models import SessionData, SessionError, SessionResult, User
from auth.rate_limiter import RateLimiter

# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class FrozenClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSessionResolver:
    """Returns a canned SessionResult (or raises a canned exception)."""

    def __init__(self, result: Optional[SessionResult] = None, exc: Optional[BaseException] = None):
        self.result = result if result is not None else SessionResult()
        self.exc = exc
        self.calls = 0

    async def get_session(self) -> SessionResult:
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        return self.result


def make_user(**overrides) -> User:
    fields = {"id": "user_123", "email": "ada@example.com", "name": "Ada Lovelace", "email_verified": True}
    fields.update(overrides)
    return User(**fields)


def authenticated(user: Optional[User] = None) -> SessionResult:
    return SessionResult(data=SessionData(user=user or make_user(), session={"id": "sess_1"}))


def unauthenticated() -> SessionResult:
    return SessionResult()


def transport_error(status: int, status_text: str = "") -> SessionResult:
    return SessionResult(error=SessionError(status=status, status_text=status_text))


# ---------------------------------------------------------------------------
# Guard core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def rate_limiter(clock: FrozenClock) -> RateLimiter:
    return RateLimiter(window_seconds=60.0, max_attempts=10, clock=clock)


@pytest.fixture
def resolver() -> FakeSessionResolver:
    return FakeSessionResolver()


@pytest.fixture
def guard(resolver: FakeSessionResolver, rate_limiter: RateLimiter) -> AuthGuard:
    return AuthGuard(resolver=resolver, rate_limiter=rate_limiter)


# ---------------------------------------------------------------------------
# Integration fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(rate_limiter: RateLimiter):
    """Return an async context manager that replaces the real lifespan.

    Wires the test's RateLimiter (driven by a FrozenClock) into app.state and
    replaces the shared HTTP client with a mock -- the session resolver is
    overridden, so nothing should reach the network.

    The purge_task is a long-sleeping coroutine so shutdown can cancel a real
    asyncio.Task.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.rate_limiter = rate_limiter
        app.state.http_client = MagicMock()
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture
def web_client(
    resolver: FakeSessionResolver, rate_limiter: RateLimiter
) -> Generator[tuple[TestClient, FakeSessionResolver], None, None]:
    """Yield (client, resolver) for route integration tests.

    follow_redirects=False is essential: we assert on redirect *locations*,
    which are invisible once the client follows the redirect.

    Set resolver.result inside a test to change what the identity provider
    answers for subsequent requests.
    """
    original_lifespan = app.router.lifespan_context
    app.router.lifespan_context = _patch_lifespan(rate_limiter)
    app.dependency_overrides[get_session_resolver] = lambda: resolver
    limiter.reset()

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, resolver

    app.dependency_overrides.pop(get_session_resolver, None)
    app.router.lifespan_context = original_lifespan
