"""
In-memory escalating-block rate limiter for PollGuard.

Counts failures per identifier within a fixed window. Reaching the
threshold switches the entry to a block with its own expiry clock.
Every entry carries its own expiry and is reclaimed lazily on the next
read or write for its identifier.

State is process-local: multiple workers each keep their own map.
"""

import math
import threading
from dataclasses import dataclass

from pollguard.audit import AuditEvent, rate_limit_event
from pollguard.clock import SYSTEM_CLOCK, Clock
from pollguard.config.logging import get_logger
from pollguard.constants import (
    AUTH_RATE_LIMIT_BLOCK_MS,
    AUTH_RATE_LIMIT_MAX_ATTEMPTS,
    AUTH_RATE_LIMIT_WINDOW_MS,
    UNKNOWN_IDENTIFIER,
)

logger = get_logger(__name__)


@dataclass
class RateLimitEntry:
    """
    Failure counter for a single identifier.

    Attributes:
        count: Failures within the current window
        window_reset_at: Expiry in ms; the block's expiry once blocked
        blocked: True once count reached the threshold
    """

    count: int
    window_reset_at: int
    blocked: bool = False

    def is_expired(self, now: int) -> bool:
        # The boundary instant itself is not yet expired
        return now > self.window_reset_at


@dataclass(frozen=True)
class RateLimitStatus:
    """Read-only view of an identifier's rate limit state."""

    allowed: bool
    remaining_attempts: int
    retry_after: int


def normalize_identifier(identifier: str | None) -> str:
    """Map empty or missing identifiers to the shared "unknown" bucket."""
    if not identifier or not identifier.strip():
        return UNKNOWN_IDENTIFIER
    return identifier.strip()


class RateLimiter:
    """
    Escalating-block rate limiter with per-identifier tracking.

    State machine per identifier: ABSENT -> COUNTING -> BLOCKED, returning
    to ABSENT on expiry or success.
    """

    def __init__(
        self,
        max_attempts: int = AUTH_RATE_LIMIT_MAX_ATTEMPTS,
        window_ms: int = AUTH_RATE_LIMIT_WINDOW_MS,
        block_duration_ms: int = AUTH_RATE_LIMIT_BLOCK_MS,
        clock: Clock = SYSTEM_CLOCK,
        name: str = "auth",
    ):
        """
        Initialize the rate limiter.

        Args:
            max_attempts: Failures allowed before an identifier is blocked
            window_ms: Duration of the failure-counting window
            block_duration_ms: How long a block lasts, measured from the
                failure that triggered it
            clock: Time source
            name: Label used in log events
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if window_ms <= 0 or block_duration_ms <= 0:
            raise ValueError("window_ms and block_duration_ms must be positive")

        self.max_attempts = max_attempts
        self.window_ms = window_ms
        self.block_duration_ms = block_duration_ms
        self.name = name
        self._clock = clock
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        max_attempts: int,
        window_seconds: int,
        block_seconds: int,
        clock: Clock = SYSTEM_CLOCK,
        name: str = "auth",
    ) -> "RateLimiter":
        """Build a limiter from second-based settings values."""
        return cls(
            max_attempts=max_attempts,
            window_ms=window_seconds * 1000,
            block_duration_ms=block_seconds * 1000,
            clock=clock,
            name=name,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def is_allowed(self, identifier: str | None) -> bool:
        """
        Check if a request from the given identifier may proceed.

        Purges the entry if its window or block has elapsed.

        Args:
            identifier: Client identifier, typically an IP address

        Returns:
            True if allowed, False if rate-limited
        """
        key = normalize_identifier(identifier)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return True

            if entry.is_expired(self._clock.now_ms()):
                del self._entries[key]
                return True

            if entry.blocked:
                return False

            return entry.count < self.max_attempts

    def record_failure(self, identifier: str | None) -> None:
        """
        Record a failed attempt for the identifier.

        Reaching `max_attempts` blocks the identifier for
        `block_duration_ms` from now.
        """
        key = normalize_identifier(identifier)
        with self._lock:
            now = self._clock.now_ms()
            entry = self._entries.get(key)

            if entry is None or entry.is_expired(now):
                self._entries[key] = RateLimitEntry(
                    count=1,
                    window_reset_at=now + self.window_ms,
                )
                return

            entry.count += 1
            if entry.count < self.max_attempts:
                return

            # Failures while blocked restart the block clock
            newly_blocked = not entry.blocked
            entry.blocked = True
            entry.window_reset_at = now + self.block_duration_ms

        if newly_blocked:
            rate_limit_event(
                AuditEvent.SECURITY_RATE_LIMIT_BLOCK,
                key,
                {"limiter": self.name, "block_seconds": self.block_duration_ms // 1000},
            )

    def record_success(self, identifier: str | None) -> None:
        """Clear all tracking state for the identifier."""
        key = normalize_identifier(identifier)
        with self._lock:
            self._entries.pop(key, None)

    def remaining_attempts(self, identifier: str | None) -> int:
        """Get the number of failures left before the identifier is blocked."""
        entry = self._entries.get(normalize_identifier(identifier))
        if entry is None or entry.is_expired(self._clock.now_ms()):
            return self.max_attempts
        return max(0, self.max_attempts - entry.count)

    def reset_seconds(self, identifier: str | None) -> int:
        """Get whole seconds until the identifier's window or block resets."""
        entry = self._entries.get(normalize_identifier(identifier))
        if entry is None:
            return 0
        remaining_ms = entry.window_reset_at - self._clock.now_ms()
        return max(0, math.ceil(remaining_ms / 1000))

    def status(self, identifier: str | None) -> RateLimitStatus:
        """Combined admission decision and advisory values for responses."""
        allowed = self.is_allowed(identifier)
        return RateLimitStatus(
            allowed=allowed,
            remaining_attempts=self.remaining_attempts(identifier),
            retry_after=0 if allowed else self.reset_seconds(identifier),
        )

    def purge_expired(self) -> int:
        """
        Remove every entry whose window or block has elapsed.

        Returns:
            Number of entries removed
        """
        with self._lock:
            now = self._clock.now_ms()
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]

        if expired:
            logger.debug("Purged expired rate limit entries", limiter=self.name, count=len(expired))
        return len(expired)
