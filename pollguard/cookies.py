"""
Cookie store used by the CSRF service and session guardian.

Components talk to a `CookieStore` (get / set with max-age / delete). The
request-bound `CookieJar` reads the cookies a client sent, overlays the
writes made while handling the request, and copies those writes onto
the outgoing response.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from starlette.requests import Request
from starlette.responses import Response

from pollguard.errors import CookieStoreError


class CookieStore(Protocol):
    """Minimal cookie interface consumed by the security components."""

    def get(self, name: str) -> str | None: ...

    def set(self, name: str, value: str, max_age: int) -> None: ...

    def delete(self, name: str) -> None: ...


@dataclass(frozen=True)
class CookiePolicy:
    """Attributes applied to every cookie PollGuard writes."""

    secure: bool = True
    httponly: bool = True
    samesite: str = "strict"
    path: str = "/"


@dataclass
class _PendingCookie:
    value: str | None  # None marks a deletion
    max_age: int = 0


class CookieJar:
    """
    Request-scoped cookie store.

    Reads see writes made earlier in the same request. Nothing reaches the
    client until `apply()` is called with the response.
    """

    def __init__(self, incoming: Mapping[str, str], policy: CookiePolicy | None = None):
        self._incoming = dict(incoming)
        self._pending: dict[str, _PendingCookie] = {}
        self.policy = policy or CookiePolicy()

    def get(self, name: str) -> str | None:
        if name in self._pending:
            return self._pending[name].value
        value = self._incoming.get(name)
        return value or None

    def set(self, name: str, value: str, max_age: int) -> None:
        if max_age <= 0:
            raise CookieStoreError(name, "max_age must be positive")
        self._pending[name] = _PendingCookie(value=value, max_age=max_age)

    def delete(self, name: str) -> None:
        self._pending[name] = _PendingCookie(value=None)

    @property
    def has_changes(self) -> bool:
        return bool(self._pending)

    def apply(self, response: Response) -> None:
        """Write pending cookie changes onto a response."""
        for name, pending in self._pending.items():
            if pending.value is None:
                response.delete_cookie(
                    key=name,
                    path=self.policy.path,
                    secure=self.policy.secure,
                    httponly=self.policy.httponly,
                    samesite=self.policy.samesite,
                )
            else:
                response.set_cookie(
                    key=name,
                    value=pending.value,
                    max_age=pending.max_age,
                    path=self.policy.path,
                    secure=self.policy.secure,
                    httponly=self.policy.httponly,
                    samesite=self.policy.samesite,
                )


def get_cookie_jar(request: Request) -> CookieJar:
    """
    Get the cookie jar bound to the current request.

    The jar is created by `CookieJarMiddleware`; without it writes could
    never reach the client, so its absence is an error.
    """
    jar = getattr(request.state, "cookie_jar", None)
    if jar is None:
        raise CookieStoreError("*", "CookieJarMiddleware is not installed")
    return jar
