"""
auth/rate_limiter.py -- Fixed-window attempt counter for authentication checks.

Every protected-route load runs a session check against the identity provider.
A client hammering one protected URL (reload loops, scripted probing) would
turn into the same number of upstream session lookups. RateLimiter caps the
number of checks per identifier inside a window; once capped, the guard denies
without contacting the provider.

Algorithm: fixed window per identifier.
  - No record, or the record's window has elapsed -> new record, count=1, allow.
  - count < max_attempts -> increment, allow.
  - count >= max_attempts -> deny, record untouched until the window ends.

A burst straddling a window boundary can see up to 2 x max_attempts allowed in
quick succession. That is accepted: the limiter damps abuse coarsely, it is not
a billing quota.

Concurrency: one instance is shared by every request on the event loop. There
is no lock; check() contains no await, so the read-check-increment sequence
cannot interleave with another coroutine.

Layer rule: no imports from api/, web/, or core/.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger("routeguard.ratelimit")


@dataclass
class AttemptRecord:
    """Attempts seen for one identifier in its current window."""

    identifier: str
    count: int
    window_reset_at: float


@dataclass(frozen=True)
class RateLimitStatus:
    """Outcome of a single check, with enough detail for rate-limit headers."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: float


class RateLimiter:
    def __init__(
        self,
        window_seconds: float = 60.0,
        max_attempts: int = 10,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize Rate Limiter

        Args:
            window_seconds: Length of one counting window
            max_attempts: Attempts allowed per identifier per window
            clock: Source of "now" in seconds. Must be monotonic; tests pass a
                   controllable fake.
        """
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.window_seconds = window_seconds
        self.max_attempts = max_attempts
        self._clock = clock
        self._records: dict[str, AttemptRecord] = {}

    def check(self, identifier: str) -> RateLimitStatus:
        """Record one attempt for `identifier` and report whether it is allowed."""
        now = self._clock()
        record = self._records.get(identifier)

        if record is None or now > record.window_reset_at:
            record = AttemptRecord(identifier=identifier, count=1, window_reset_at=now + self.window_seconds)
            self._records[identifier] = record
            return RateLimitStatus(
                allowed=True,
                limit=self.max_attempts,
                remaining=self.max_attempts - 1,
                reset_at=record.window_reset_at,
            )

        if record.count >= self.max_attempts:
            logger.debug(
                "Rate limit exceeded for %s (%d attempts, window resets in %.1fs)",
                identifier,
                record.count,
                record.window_reset_at - now,
            )
            return RateLimitStatus(
                allowed=False,
                limit=self.max_attempts,
                remaining=0,
                reset_at=record.window_reset_at,
            )

        record.count += 1
        return RateLimitStatus(
            allowed=True,
            limit=self.max_attempts,
            remaining=self.max_attempts - record.count,
            reset_at=record.window_reset_at,
        )

    def track_attempt(self, identifier: str) -> bool:
        """Record one attempt. True = allowed, False = blocked. Never raises."""
        return self.check(identifier).allowed

    def retry_after(self, status: RateLimitStatus) -> int:
        """Whole seconds until the window behind `status` resets (never negative)."""
        return max(0, math.ceil(status.reset_at - self._clock()))

    def purge_expired(self) -> int:
        """Drop records whose window has elapsed. Returns the number removed."""
        now = self._clock()
        expired = [key for key, record in self._records.items() if now > record.window_reset_at]
        for key in expired:
            del self._records[key]
        if expired:
            logger.debug("Purged %d expired rate-limit records", len(expired))
        return len(expired)

    def reset(self, identifier: Optional[str] = None) -> None:
        """Forget one identifier, or every identifier when called without one."""
        if identifier is None:
            self._records.clear()
        else:
            self._records.pop(identifier, None)

    def __len__(self) -> int:
        return len(self._records)

    def get_stats(self) -> dict:
        """Get rate limiter statistics"""
        return {
            "tracked_identifiers": len(self._records),
            "window_seconds": self.window_seconds,
            "max_attempts": self.max_attempts,
        }
