"""
auth/session.py -- Session lookup against the external identity provider.

SessionResolver is the seam between the guard and whatever issues sessions.
The guard only needs one awaitable: "who is this browser?". Tests substitute a
fake; production uses HttpSessionResolver, which forwards the browser's Cookie
header to a better-auth style GET /api/auth/get-session endpoint.

Response mapping:
  non-2xx              -> SessionResult(error=SessionError(status, reason))
  2xx, body null       -> SessionResult()            (no session)
  2xx, {user, session} -> SessionResult(data=...)    (user may be absent)

Network failures (connect errors, timeouts) are not mapped: they propagate as
httpx exceptions and the guard treats them as unexpected failures.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from auth.models import SessionData, SessionError, SessionResult, User

logger = logging.getLogger("routeguard.auth")


class SessionResolver(Protocol):
    async def get_session(self) -> SessionResult: ...


class HttpSessionResolver:
    def __init__(
        self,
        client: httpx.AsyncClient,
        session_url: str,
        cookie_header: Optional[str] = None,
        timeout: float = 10.0,
    ):
        self._client = client
        self._session_url = session_url
        self._cookie_header = cookie_header
        self._timeout = timeout

    async def get_session(self) -> SessionResult:
        headers = {"Accept": "application/json"}
        if self._cookie_header:
            headers["Cookie"] = self._cookie_header

        resp = await self._client.get(self._session_url, headers=headers, timeout=self._timeout)
        if not resp.is_success:
            return SessionResult(error=SessionError(status=resp.status_code, status_text=resp.reason_phrase))

        try:
            body = resp.json()
        except ValueError:
            logger.warning("Session endpoint returned a non-JSON body (status %d)", resp.status_code)
            return SessionResult(error=SessionError(status=resp.status_code, status_text="Invalid JSON"))

        if not body:
            return SessionResult()
        if not isinstance(body, dict):
            return SessionResult(error=SessionError(status=resp.status_code, status_text="Unexpected payload"))

        user_payload = body.get("user")
        user = User.from_payload(user_payload) if isinstance(user_payload, dict) and user_payload.get("id") else None
        return SessionResult(data=SessionData(user=user, session=body.get("session") or {}))
