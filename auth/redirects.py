"""
auth/redirects.py -- Post-login redirect target validation.

A redirect target arrives from the outside world (the requested URL of a
protected page, a ?redirect= query parameter echoed back by the sign-in page,
a caller-supplied default). Sending the browser there unchecked allows two
attacks:

  Open redirect:  /auth/sign-in?redirect=https://attacker.com
                  /auth/sign-in?redirect=//attacker.com
                  /auth/sign-in?redirect=/\\attacker.com
  Redirect loop:  /auth/sign-in?redirect=/auth/sign-in

RedirectSanitizer resolves the candidate against a neutral base URL the way a
browser would, then requires:
  1. it resolves at all (empty or malformed input is rejected),
  2. the resolved origin is the base's origin,
  3. it is rooted at "/",
  4. it is not inside the auth section.

Rules 2 to 4 are checked again on the percent-decoded path, resolved a second
time: "/%2e%2e/auth/sign-in" and "/auth%2fsign-in" land in the auth section
once a browser or the router decodes them.

On success the caller's original string is returned, not the resolved form, so
query strings and fragments survive untouched. On failure the fallback is
returned and a security warning is logged.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import SplitResult, unquote, urljoin, urlsplit

logger = logging.getLogger("routeguard.security")

NEUTRAL_BASE = "http://localhost"
DEFAULT_AUTH_SECTION_PREFIX = "/auth/"

# Browsers strip leading/trailing C0 controls and spaces and drop embedded
# tab/CR/LF before parsing, and treat "\" as "/" in http(s) URLs.
_STRIP_CHARS = "".join(chr(c) for c in range(0x21))
_EMBEDDED_WS = re.compile(r"[\t\r\n]")


@dataclass(frozen=True)
class RedirectDecision:
    """Where to send the browser, and whether the requested target was refused."""

    target_path: str
    was_sanitized: bool


class RedirectSanitizer:
    def __init__(self, auth_section_prefix: str = DEFAULT_AUTH_SECTION_PREFIX, base: str = NEUTRAL_BASE):
        self.auth_section_prefix = auth_section_prefix.lower()
        self._base = base
        parts = urlsplit(base)
        self._base_origin = _origin(parts)

    def sanitize(self, requested_path: Optional[str], fallback_path: str) -> str:
        return self.decide(requested_path, fallback_path).target_path

    def decide(self, requested_path: Optional[str], fallback_path: str) -> RedirectDecision:
        reason = self._rejection_reason(requested_path)
        if reason is None:
            return RedirectDecision(target_path=requested_path, was_sanitized=False)
        logger.warning(
            "Unsafe redirect target rejected (%s): requested=%r fallback=%r",
            reason,
            requested_path,
            fallback_path,
        )
        return RedirectDecision(target_path=fallback_path, was_sanitized=True)

    def is_safe(self, requested_path: Optional[str]) -> bool:
        return self._rejection_reason(requested_path) is None

    def _rejection_reason(self, requested_path: Optional[str]) -> Optional[str]:
        if not requested_path:
            return "empty"
        cleaned = _EMBEDDED_WS.sub("", requested_path.strip(_STRIP_CHARS)).replace("\\", "/")
        if not cleaned:
            return "empty"
        try:
            resolved = urlsplit(urljoin(self._base, cleaned))
            origin = _origin(resolved)
            # Browsers read %2e as "." and the router decodes %2f, so the
            # decoded path is resolved again and checked alongside the raw one.
            decoded = urlsplit(urljoin(self._base, unquote(resolved.path)))
            decoded_origin = _origin(decoded)
        except ValueError:
            return "malformed"
        if origin != self._base_origin:
            return "cross-origin"
        # The raw string is what gets returned, so it must be rooted itself;
        # "http://localhost/x" resolves same-origin against the neutral base only.
        if not resolved.path.startswith("/") or not cleaned.startswith("/"):
            return "not path-rooted"
        if decoded_origin != self._base_origin or not decoded.path.startswith("/"):
            return "encoded cross-origin"
        # Anything still decoding to a dot segment was encoded more than once.
        if any(segment in (".", "..") for segment in unquote(decoded.path).split("/")):
            return "encoded dot segment"
        if self._in_auth_section(resolved.path) or self._in_auth_section(decoded.path):
            return "auth section"
        return None

    def _in_auth_section(self, path: str) -> bool:
        path = path.lower()
        return path.startswith(self.auth_section_prefix) or path == self.auth_section_prefix.rstrip("/")


def _origin(parts: SplitResult) -> tuple[str, Optional[str], Optional[int]]:
    # .port raises ValueError for out-of-range or non-numeric ports
    return parts.scheme.lower(), parts.hostname, parts.port
