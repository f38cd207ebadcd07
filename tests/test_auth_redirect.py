"""
tests/test_auth_redirect.py -- Integration tests for the auth redirect chain.

These tests exercise the route guard end-to-end through the real ASGI stack
using the web_client fixture (follow_redirects=False). We assert on redirect
Location headers directly -- following the redirect would hide them.

Coverage:
  - Unauthenticated requests -> 302 /auth/sign-in?redirect={path}
  - Expired session (401/403 from the provider) -> ...&reason=expired
  - Provider failure (other status) -> ...&reason=error
  - Authenticated requests pass through (200, no redirect)
  - Guest pages bounce signed-in users, and stay reachable when the provider
    is rate limiting or failing
  - Auth-check rate limit: 11th check of one location denied without a
    session fetch and without a return target
  - Security: reason whitelist, redirect param re-validated on the sign-in page

Why integration tests over unit tests:
  The guard is a safety-critical path. Running through ASGI catches
  regressions where a dependency is dropped from a route or the interrupt
  handler stops producing a 302.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

from fastapi.testclient import TestClient

from conftest import FakeSessionResolver, authenticated, make_user, transport_error, unauthenticated


def _redirect_parts(resp) -> tuple[str, dict[str, list[str]]]:
    parsed = urlparse(resp.headers["location"])
    return parsed.path, parse_qs(parsed.query)


class TestProtectedPage:
    """All branches of require_user on GET /dashboard."""

    def test_unauthenticated_redirects_to_sign_in(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, resolver = web_client
        resolver.result = unauthenticated()

        resp = client.get("/dashboard")

        assert resp.status_code == 302
        path, query = _redirect_parts(resp)
        assert path == "/auth/sign-in"
        assert query == {"redirect": ["/dashboard"]}

    def test_return_target_keeps_query_string(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, resolver = web_client
        resolver.result = unauthenticated()

        resp = client.get("/dashboard?tab=billing")

        _, query = _redirect_parts(resp)
        assert query["redirect"] == ["/dashboard?tab=billing"]

    def test_expired_session_adds_reason(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, resolver = web_client
        resolver.result = transport_error(401, "Unauthorized")

        resp = client.get("/dashboard")

        assert resp.status_code == 302
        path, query = _redirect_parts(resp)
        assert path == "/auth/sign-in"
        assert query == {"redirect": ["/dashboard"], "reason": ["expired"]}

    def test_provider_failure_adds_error_reason(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, resolver = web_client
        resolver.result = transport_error(500, "Internal Server Error")

        _, query = _redirect_parts(client.get("/dashboard"))
        assert query["reason"] == ["error"]

    def test_unexpected_failure_redirects_without_target(
        self, web_client: tuple[TestClient, FakeSessionResolver]
    ) -> None:
        client, resolver = web_client
        resolver.exc = RuntimeError("provider unreachable")

        resp = client.get("/dashboard")

        assert resp.status_code == 302
        assert resp.headers["location"] == "/auth/sign-in"

    def test_authenticated_user_sees_dashboard(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, resolver = web_client
        resolver.result = authenticated(make_user(name="Grace Hopper", email="grace@example.com"))

        resp = client.get("/dashboard")

        assert resp.status_code == 200
        assert "Welcome back, Grace Hopper!" in resp.text
        assert "grace@example.com" in resp.text

    def test_user_without_name_gets_generic_greeting(
        self, web_client: tuple[TestClient, FakeSessionResolver]
    ) -> None:
        client, resolver = web_client
        resolver.result = authenticated(make_user(name=""))

        assert "Welcome back, User!" in client.get("/dashboard").text

    def test_redirect_is_not_cacheable(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, resolver = web_client
        resolver.result = unauthenticated()

        resp = client.get("/dashboard")
        assert resp.headers["cache-control"] == "no-store"

    def test_public_landing_page_never_checks_session(
        self, web_client: tuple[TestClient, FakeSessionResolver]
    ) -> None:
        client, resolver = web_client
        resp = client.get("/")
        assert resp.status_code == 200
        assert resolver.calls == 0


class TestAuthCheckRateLimit:
    def test_eleventh_check_is_denied_without_session_fetch(
        self, web_client: tuple[TestClient, FakeSessionResolver]
    ) -> None:
        client, resolver = web_client
        resolver.result = authenticated()

        for _ in range(10):
            assert client.get("/dashboard").status_code == 200

        resp = client.get("/dashboard")

        assert resp.status_code == 302
        assert resp.headers["location"] == "/auth/sign-in"
        assert resolver.calls == 10

    def test_window_expiry_restores_access(self, web_client: tuple[TestClient, FakeSessionResolver], clock) -> None:
        client, resolver = web_client
        resolver.result = authenticated()
        for _ in range(11):
            client.get("/dashboard")

        clock.advance(61)

        assert client.get("/dashboard").status_code == 200


class TestGuestPages:
    def test_anonymous_visitor_sees_sign_in(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, resolver = web_client
        resolver.result = unauthenticated()

        resp = client.get("/auth/sign-in")

        assert resp.status_code == 200
        assert 'action="/api/auth/sign-in/email"' in resp.text

    def test_signed_in_user_is_bounced_from_sign_in(
        self, web_client: tuple[TestClient, FakeSessionResolver]
    ) -> None:
        client, resolver = web_client
        resolver.result = authenticated()

        resp = client.get("/auth/sign-in")

        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard"

    def test_signed_in_user_is_bounced_from_sign_up(
        self, web_client: tuple[TestClient, FakeSessionResolver]
    ) -> None:
        client, resolver = web_client
        resolver.result = authenticated()

        resp = client.get("/auth/sign-up")

        assert resp.status_code == 302
        assert resp.headers["location"] == "/dashboard"

    def test_provider_rate_limit_still_shows_sign_in(
        self, web_client: tuple[TestClient, FakeSessionResolver]
    ) -> None:
        client, resolver = web_client
        resolver.result = transport_error(429, "Too Many Requests")

        assert client.get("/auth/sign-in").status_code == 200

    def test_provider_failure_still_shows_sign_up(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, resolver = web_client
        resolver.exc = RuntimeError("provider unreachable")

        resp = client.get("/auth/sign-up")

        assert resp.status_code == 200
        assert 'href="/auth/sign-in' in resp.text

    def test_guest_pages_are_not_auth_rate_limited(
        self, web_client: tuple[TestClient, FakeSessionResolver]
    ) -> None:
        client, resolver = web_client
        resolver.result = unauthenticated()
        for _ in range(15):
            assert client.get("/auth/sign-in").status_code == 200


class TestSignInPageSecurity:
    def test_known_reason_shows_message(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, _ = web_client
        resp = client.get("/auth/sign-in?reason=expired")
        assert "Your session has expired" in resp.text

    def test_unknown_reason_is_not_reflected(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, _ = web_client
        resp = client.get("/auth/sign-in", params={"reason": "<script>alert(1)</script>"})
        assert resp.status_code == 200
        assert "<script>alert(1)</script>" not in resp.text
        assert 'class="notice"' not in resp.text

    def test_safe_redirect_becomes_callback(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, _ = web_client
        resp = client.get("/auth/sign-in", params={"redirect": "/reports"})
        assert 'name="callbackURL" value="/reports"' in resp.text

    def test_offsite_redirect_is_replaced(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, _ = web_client
        resp = client.get("/auth/sign-in", params={"redirect": "https://attacker.com"})
        assert 'name="callbackURL" value="/dashboard"' in resp.text
        assert "attacker.com" not in resp.text

    def test_auth_loop_redirect_is_replaced(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, _ = web_client
        resp = client.get("/auth/sign-up", params={"redirect": "/auth/sign-in"})
        assert 'name="callbackURL" value="/dashboard"' in resp.text

    def test_missing_redirect_uses_default(self, web_client: tuple[TestClient, FakeSessionResolver]) -> None:
        client, _ = web_client
        resp = client.get("/auth/sign-in")
        assert 'name="callbackURL" value="/dashboard"' in resp.text

    def test_encoded_auth_loop_redirect_is_replaced(
        self, web_client: tuple[TestClient, FakeSessionResolver]
    ) -> None:
        """/auth%2fsign-in is routed to the sign-in page, so it must not become the callback."""
        client, _ = web_client
        for target in ("/auth%2fsign-in", "/%2e%2e/auth/sign-in", "/dashboard/%2E%2E/auth/sign-up"):
            resp = client.get("/auth/sign-in", params={"redirect": target})
            assert 'name="callbackURL" value="/dashboard"' in resp.text
