"""
auth/session_errors.py -- Classify a failed session fetch.

401/403 means the provider recognised a session that is no longer valid
(expired or revoked). Anything else is a transport problem on the provider's
side. The distinction drives the log level and the ?reason= annotation on the
sign-in redirect, so the sign-in page can say "your session expired" without
re-deriving the cause.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from auth.models import SessionError

_EXPIRED_STATUSES = frozenset({401, 403})


class SessionErrorReason(str, Enum):
    NONE = "none"
    EXPIRED = "expired"
    GENERIC = "error"

    @property
    def query_value(self) -> Optional[str]:
        """Value for the sign-in page's ?reason= parameter (None = omit it)."""
        return None if self is SessionErrorReason.NONE else self.value


def classify_session_error(error: Optional[SessionError]) -> SessionErrorReason:
    if error is None:
        return SessionErrorReason.NONE
    if error.status in _EXPIRED_STATUSES:
        return SessionErrorReason.EXPIRED
    return SessionErrorReason.GENERIC
