"""
auth/models.py -- Domain dataclasses for the session data the guard consumes.

Pattern: Data class (pure data container, zero logic beyond parsing the
identity provider's payload). The guard and the resolver do the work.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class User:
    """The authenticated identity as reported by the identity provider.

    Only the fields the views need are lifted out of the provider payload.
    Everything the provider sends stays available in `raw`.
    """

    id: str
    email: str
    name: str = ""
    image: Optional[str] = None
    email_verified: bool = False
    raw: dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> User:
        return cls(
            id=str(payload["id"]),
            email=payload.get("email") or "",
            name=payload.get("name") or "",
            image=payload.get("image"),
            email_verified=bool(payload.get("emailVerified", False)),
            raw=dict(payload),
        )


@dataclass
class SessionError:
    """Transport-level failure reported by the session fetch (non-2xx response)."""

    status: int
    status_text: str = ""


@dataclass
class SessionData:
    """A resolved session. `user` is None when the provider answered without one."""

    user: Optional[User] = None
    session: dict[str, Any] = field(default_factory=dict)


@dataclass
class SessionResult:
    """Result envelope of one session fetch: data, error, or neither.

    Neither set means the provider answered successfully and there is no
    session (plain unauthenticated access).
    """

    data: Optional[SessionData] = None
    error: Optional[SessionError] = None

    @property
    def user(self) -> Optional[User]:
        return self.data.user if self.data else None
