"""
api/middleware.py -- Per-response HTTP hardening and request correlation.

Two pieces, both wired into api/main.py with @app.middleware("http"):

  Request ID       -- reuse an inbound x-request-id / x-correlation-id /
                      x-trace-id, otherwise mint one. Stored on
                      request.state.request_id and echoed as x-request-id.

  Security headers -- OWASP baseline on every response. The CSP is strict in
                      production and relaxed in debug mode (hot reload, local
                      devtools). HSTS is production-only; sending it from a
                      plain-http localhost would pin the browser to https.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Mapping

_REQUEST_ID_HEADERS = ("x-request-id", "x-correlation-id", "x-trace-id")

_BASE_HEADERS: dict[str, str] = {
    "X-Frame-Options": "SAMEORIGIN",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": (
        "accelerometer=(), camera=(), geolocation=(), gyroscope=(), "
        "magnetometer=(), microphone=(), payment=(), usb=()"
    ),
}

_PRODUCTION_CSP = "; ".join(
    [
        "default-src 'self'",
        "script-src 'self'",
        "style-src 'self' 'unsafe-inline'",
        "img-src 'self' data: blob: https:",
        "font-src 'self' data:",
        "connect-src 'self'",
        "object-src 'none'",
        "frame-ancestors 'self'",
        "base-uri 'self'",
        "form-action 'self'",
        "upgrade-insecure-requests",
    ]
)

_DEVELOPMENT_CSP = "; ".join(
    [
        "default-src 'self'",
        "script-src 'self' 'unsafe-inline' 'unsafe-eval' http://localhost:*",
        "style-src 'self' 'unsafe-inline'",
        "img-src 'self' data: blob: https: http:",
        "font-src 'self' data:",
        "connect-src 'self' http://localhost:* ws://localhost:*",
        "object-src 'none'",
        "frame-ancestors 'self'",
        "base-uri 'self'",
        "form-action 'self'",
    ]
)


def generate_request_id() -> str:
    """Format: <epoch ms>-<16 url-safe chars>, e.g. 1704067200000-V1StGXR8Z5jdHi6B."""
    return f"{int(time.time() * 1000)}-{secrets.token_urlsafe(12)[:16]}"


def get_or_generate_request_id(headers: Mapping[str, str]) -> str:
    for name in _REQUEST_ID_HEADERS:
        value = headers.get(name)
        if value:
            return value
    return generate_request_id()


def get_security_headers(debug: bool = False) -> dict[str, str]:
    headers = dict(_BASE_HEADERS)
    if debug:
        headers["Content-Security-Policy"] = _DEVELOPMENT_CSP
    else:
        headers["Content-Security-Policy"] = _PRODUCTION_CSP
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
    return headers
