"""
Session lifecycle enforcement.

The identity provider owns the session itself. The guardian layers two
cookie-backed clocks on top of it:

- ``last-activity``: refreshed on every touch, drives idle expiry
- ``session-created``: written once, drives absolute expiry

An expired session is terminated (provider sign-out plus cookie cleanup),
never silently extended. Request handlers should call `extend()`.
"""

import asyncio
from dataclasses import dataclass

from pollguard.audit import AuditEvent, auth_event, internal_error, security_event
from pollguard.clock import SYSTEM_CLOCK, Clock
from pollguard.config.logging import get_logger
from pollguard.constants import (
    LAST_ACTIVITY_COOKIE,
    SESSION_CREATED_COOKIE,
    SESSION_HANDLE_VISIBLE_CHARS,
    SESSION_MAX_IDLE_MS,
    SESSION_MAX_LIFETIME_MS,
    SESSION_SOFT_TIMEOUT_MS,
    SESSION_WARNING_MS,
)
from pollguard.cookies import CookieStore
from pollguard.identity import IdentityProvider

logger = get_logger(__name__)

# Expiry reasons
REASON_MISSING = "missing"
REASON_IDLE = "idle"
REASON_AGE = "age"


@dataclass(frozen=True)
class SessionRecord:
    """
    Provider session combined with locally tracked activity.

    Attributes:
        subject_id: User identifier from the identity provider
        session_handle: Truncated provider session handle
        last_activity_at: Last touch in ms, None if never recorded
        created_at: First observation in ms
    """

    subject_id: str
    session_handle: str
    last_activity_at: int | None
    created_at: int


@dataclass(frozen=True)
class SessionValidation:
    """Result of a session validity check."""

    valid: bool
    reason: str | None = None


@dataclass(frozen=True)
class TimeoutInfo:
    """Advisory timing for client-side session warnings. All values in ms."""

    time_until_warning: int
    time_until_timeout: int
    should_warn: bool
    should_timeout: bool


def _parse_timestamp(raw: str | None) -> int | None:
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


class SessionGuardian:
    """Derives and enforces session health for one process."""

    def __init__(
        self,
        identity_provider: IdentityProvider,
        clock: Clock = SYSTEM_CLOCK,
        soft_timeout_ms: int = SESSION_SOFT_TIMEOUT_MS,
        warning_ms: int = SESSION_WARNING_MS,
        max_idle_ms: int = SESSION_MAX_IDLE_MS,
        max_lifetime_ms: int = SESSION_MAX_LIFETIME_MS,
    ):
        """
        Initialize the guardian.

        Args:
            identity_provider: Source of the upstream session
            clock: Time source
            soft_timeout_ms: Advisory timeout reported by timeout_info()
            warning_ms: How long before the soft timeout to start warning
            max_idle_ms: Hard idle limit
            max_lifetime_ms: Absolute session lifetime
        """
        if warning_ms >= soft_timeout_ms:
            raise ValueError("warning_ms must be shorter than soft_timeout_ms")

        self.identity_provider = identity_provider
        self.soft_timeout_ms = soft_timeout_ms
        self.warning_ms = warning_ms
        self.max_idle_ms = max_idle_ms
        self.max_lifetime_ms = max_lifetime_ms
        self._clock = clock
        self._lock = asyncio.Lock()

    async def current_session(self, cookies: CookieStore) -> SessionRecord | None:
        """
        Get the current session, or None if there is none.

        Identity provider failures are logged and reported as no session.
        """
        try:
            session = await self.identity_provider.get_session(cookies)
        except Exception as e:
            internal_error(AuditEvent.INTERNAL_IDENTITY_PROVIDER, e, {"operation": "get_session"})
            return None

        if session is None:
            return None

        created_at = _parse_timestamp(cookies.get(SESSION_CREATED_COOKIE))
        return SessionRecord(
            subject_id=session.user_id,
            session_handle=session.access_token[:SESSION_HANDLE_VISIBLE_CHARS],
            last_activity_at=_parse_timestamp(cookies.get(LAST_ACTIVITY_COOKIE)),
            created_at=created_at if created_at is not None else self._clock.now_ms(),
        )

    async def touch(self, cookies: CookieStore) -> None:
        """Record activity now; start the absolute clock if not yet started."""
        async with self._lock:
            self._touch(cookies)

    async def validate(self, cookies: CookieStore) -> SessionValidation:
        """
        Check the session against the idle and absolute limits.

        Both limits are checked on every call.
        """
        session = await self.current_session(cookies)
        if session is None:
            return SessionValidation(valid=False, reason=REASON_MISSING)

        now = self._clock.now_ms()

        # A missing or unreadable activity cookie means the idle clock has
        # run out (the cookie lives exactly as long as the idle limit)
        if session.last_activity_at is None or now - session.last_activity_at > self.max_idle_ms:
            security_event(
                AuditEvent.SESSION_EXPIRED,
                {
                    "reason": REASON_IDLE,
                    "idle_ms": None if session.last_activity_at is None else now - session.last_activity_at,
                },
                subject_id=session.subject_id,
                session_id=session.session_handle,
            )
            return SessionValidation(valid=False, reason=REASON_IDLE)

        # Same for the created cookie: it is always written alongside the
        # activity cookie and lives exactly as long as the session may
        created_at = _parse_timestamp(cookies.get(SESSION_CREATED_COOKIE))
        if created_at is None or now - created_at > self.max_lifetime_ms:
            security_event(
                AuditEvent.SESSION_EXPIRED,
                {"reason": REASON_AGE, "age_ms": None if created_at is None else now - created_at},
                subject_id=session.subject_id,
                session_id=session.session_handle,
            )
            return SessionValidation(valid=False, reason=REASON_AGE)

        return SessionValidation(valid=True)

    async def terminate(self, cookies: CookieStore, reason: str) -> None:
        """
        Sign the session out and clear local activity tracking.

        Safe to call without a session: nothing is logged and the cookies
        are still cleared.
        """
        async with self._lock:
            await self._terminate(cookies, reason)

    async def extend(self, cookies: CookieStore) -> bool:
        """
        Validate the session and either refresh or terminate it.

        Returns:
            True if the session is valid and was refreshed, False if it
            was terminated
        """
        async with self._lock:
            try:
                validation = await self.validate(cookies)
                if not validation.valid:
                    await self._terminate(cookies, validation.reason or "invalid")
                    return False

                self._touch(cookies)
            except Exception as e:
                internal_error(AuditEvent.INTERNAL_COOKIE_STORE, e, {"operation": "extend"})
                self._clear_activity(cookies)
                return False

        session = await self.current_session(cookies)
        if session:
            auth_event(AuditEvent.SESSION_EXTEND, session.subject_id)
        return True

    async def initialize(self, cookies: CookieStore) -> None:
        """
        Start activity tracking for a freshly authenticated session.

        Clocks left behind by an earlier session on the same client are
        discarded, so the new session gets its own full lifetime.
        """
        session = await self.current_session(cookies)
        if session is None:
            return

        async with self._lock:
            self._clear_activity(cookies)
            self._touch(cookies)
        auth_event(AuditEvent.SESSION_INITIALIZE, session.subject_id)

    async def timeout_info(self, cookies: CookieStore) -> TimeoutInfo | None:
        """
        Get advisory warning / timeout timing relative to last activity.

        Has no authority to terminate anything.
        """
        session = await self.current_session(cookies)
        if session is None or session.last_activity_at is None:
            return None

        since_activity = self._clock.now_ms() - session.last_activity_at
        time_until_warning = (self.soft_timeout_ms - self.warning_ms) - since_activity
        time_until_timeout = self.soft_timeout_ms - since_activity

        return TimeoutInfo(
            time_until_warning=time_until_warning,
            time_until_timeout=time_until_timeout,
            should_warn=time_until_warning <= 0 and time_until_timeout > 0,
            should_timeout=time_until_timeout <= 0,
        )

    def _touch(self, cookies: CookieStore) -> None:
        now = str(self._clock.now_ms())
        cookies.set(LAST_ACTIVITY_COOKIE, now, max_age=self.max_idle_ms // 1000)
        if not cookies.get(SESSION_CREATED_COOKIE):
            cookies.set(SESSION_CREATED_COOKIE, now, max_age=self.max_lifetime_ms // 1000)

    async def _terminate(self, cookies: CookieStore, reason: str) -> None:
        session = await self.current_session(cookies)
        if session:
            security_event(
                AuditEvent.SESSION_TERMINATE,
                {"reason": reason},
                subject_id=session.subject_id,
                session_id=session.session_handle,
            )

        try:
            await self.identity_provider.sign_out(cookies)
        except Exception as e:
            internal_error(
                AuditEvent.INTERNAL_IDENTITY_PROVIDER,
                e,
                {"operation": "sign_out", "reason": reason},
            )
        finally:
            self._clear_activity(cookies)

    @staticmethod
    def _clear_activity(cookies: CookieStore) -> None:
        cookies.delete(LAST_ACTIVITY_COOKIE)
        cookies.delete(SESSION_CREATED_COOKIE)
