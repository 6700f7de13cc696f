"""
Identity provider interface.

Credential verification and session issuance belong to an external identity
provider. PollGuard only needs to read the provider's session, sign users
in and out, and register accounts. `InMemoryIdentityProvider` is a
development / testing stand-in.
"""

import asyncio
import hashlib
import hmac
import os
import secrets
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

from pollguard.config.logging import get_logger
from pollguard.constants import IDP_SESSION_COOKIE
from pollguard.cookies import CookieStore
from pollguard.errors import AccountExistsError, InvalidCredentialsError

logger = get_logger(__name__)

PBKDF2_ITERATIONS = 100_000
PROVIDER_SESSION_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class ProviderSession:
    """
    Session as reported by the identity provider.

    Attributes:
        user_id: Stable subject identifier
        access_token: Opaque provider session handle
        email: Email the user signed in with
    """

    user_id: str
    access_token: str
    email: str | None = None


class IdentityProvider(ABC):
    """Abstract base class for identity providers."""

    @abstractmethod
    async def get_session(self, cookies: CookieStore) -> ProviderSession | None:
        """Get the provider session for the client, if one exists."""
        ...

    @abstractmethod
    async def sign_in(self, cookies: CookieStore, email: str, password: str) -> ProviderSession:
        """
        Verify credentials and start a provider session.

        Raises:
            InvalidCredentialsError: If the credentials are rejected
        """
        ...

    @abstractmethod
    async def sign_up(
        self, cookies: CookieStore, email: str, password: str, display_name: str
    ) -> ProviderSession:
        """
        Create an account and start a provider session.

        Raises:
            AccountExistsError: If the email is already registered
        """
        ...

    @abstractmethod
    async def sign_out(self, cookies: CookieStore) -> None:
        """End the client's provider session."""
        ...


@dataclass
class _Account:
    user_id: str
    email: str
    display_name: str
    salt: bytes
    password_hash: bytes


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt, PBKDF2_ITERATIONS, dklen=32)


class InMemoryIdentityProvider(IdentityProvider):
    """In-memory identity provider for development/testing."""

    def __init__(self, session_ttl_seconds: int = PROVIDER_SESSION_TTL_SECONDS):
        self._accounts: dict[str, _Account] = {}  # email -> account
        self._sessions: dict[str, ProviderSession] = {}  # access token -> session
        self._lock = asyncio.Lock()
        self.session_ttl_seconds = session_ttl_seconds

    async def get_session(self, cookies: CookieStore) -> ProviderSession | None:
        access_token = cookies.get(IDP_SESSION_COOKIE)
        if not access_token:
            return None
        return self._sessions.get(access_token)

    async def sign_in(self, cookies: CookieStore, email: str, password: str) -> ProviderSession:
        account = self._accounts.get(email)
        if account is None or not hmac.compare_digest(
            account.password_hash, _hash_password(password, account.salt)
        ):
            raise InvalidCredentialsError()
        return await self._start_session(cookies, account)

    async def sign_up(
        self, cookies: CookieStore, email: str, password: str, display_name: str
    ) -> ProviderSession:
        async with self._lock:
            if email in self._accounts:
                raise AccountExistsError()
            salt = os.urandom(16)
            account = _Account(
                user_id=str(uuid.uuid4()),
                email=email,
                display_name=display_name,
                salt=salt,
                password_hash=_hash_password(password, salt),
            )
            self._accounts[email] = account

        logger.info("Registered account", user_id=account.user_id)
        return await self._start_session(cookies, account)

    async def sign_out(self, cookies: CookieStore) -> None:
        access_token = cookies.get(IDP_SESSION_COOKIE)
        if access_token:
            async with self._lock:
                self._sessions.pop(access_token, None)
        cookies.delete(IDP_SESSION_COOKIE)

    async def _start_session(self, cookies: CookieStore, account: _Account) -> ProviderSession:
        session = ProviderSession(
            user_id=account.user_id,
            access_token=secrets.token_urlsafe(32),
            email=account.email,
        )
        async with self._lock:
            self._sessions[session.access_token] = session
        cookies.set(IDP_SESSION_COOKIE, session.access_token, max_age=self.session_ttl_seconds)
        return session
