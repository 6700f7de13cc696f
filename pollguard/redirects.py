"""
Open-redirect protection.

Post-login redirect targets come from user-controlled query or form
parameters. Only allow-listed internal paths, either relative or on the
app's own origin, are accepted; anything else falls back to a default.
"""

from urllib.parse import unquote, urlencode, urlsplit

from pollguard.audit import AuditEvent, security_event
from pollguard.constants import ALLOWED_REDIRECT_PATHS, DEFAULT_REDIRECT_PATH, LOGIN_PATH

REDIRECT_QUERY_PARAMS = ("redirect", "redirectTo", "return_to")


def _path_allowed(path: str, allowed_paths: tuple[str, ...]) -> bool:
    for allowed in allowed_paths:
        if path == allowed:
            return True
        # "/" admits only the root itself, not every path
        if allowed != "/" and path.startswith(allowed.rstrip("/") + "/"):
            return True
    return False


def _origin(url: str) -> tuple[str, str]:
    parts = urlsplit(url)
    return parts.scheme.lower(), parts.netloc.lower()


def is_safe_redirect_url(
    url: str,
    app_url: str,
    allowed_paths: tuple[str, ...] = ALLOWED_REDIRECT_PATHS,
) -> bool:
    """
    Check whether a URL is safe to redirect to.

    Args:
        url: Candidate redirect target
        app_url: The application's public origin
        allowed_paths: Allow-listed internal paths

    Returns:
        True for allow-listed relative paths or same-origin absolute URLs
    """
    if not url:
        return False

    # Protocol-relative ("//evil.com") and backslash tricks parse as relative
    if url.startswith("//") or "\\" in url:
        return False

    try:
        if url.startswith("/"):
            return _path_allowed(urlsplit(url).path, allowed_paths)

        parts = urlsplit(url)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            return False
        if _origin(url) != _origin(app_url):
            return False
        return _path_allowed(parts.path or "/", allowed_paths)
    except ValueError:
        return False


def safe_redirect_target(
    url: str | None,
    app_url: str,
    fallback: str = DEFAULT_REDIRECT_PATH,
) -> str:
    """Return `url` if it is safe, otherwise `fallback`. Rejections are logged."""
    if not url:
        return fallback
    if is_safe_redirect_url(url, app_url):
        return url
    security_event(AuditEvent.SECURITY_UNSAFE_REDIRECT, {"target": url[:200]})
    return fallback


def redirect_from_query(
    params: dict[str, str],
    app_url: str,
    fallback: str = DEFAULT_REDIRECT_PATH,
) -> str:
    """Pick a safe redirect target from the first known query parameter present."""
    for name in REDIRECT_QUERY_PARAMS:
        if params.get(name):
            return safe_redirect_target(params[name], app_url, fallback)
    return fallback


def sanitize_redirect_param(raw: str | None, app_url: str) -> str:
    """Decode a URL-encoded redirect parameter and validate it."""
    if not raw:
        return DEFAULT_REDIRECT_PATH
    try:
        decoded = unquote(raw, errors="strict")
    except UnicodeDecodeError:
        return DEFAULT_REDIRECT_PATH
    return safe_redirect_target(decoded, app_url)


def login_redirect_url(return_to: str | None, app_url: str) -> str:
    """Build the login URL, carrying a safe return target if one is given."""
    if not return_to or not is_safe_redirect_url(return_to, app_url):
        return LOGIN_PATH
    return f"{LOGIN_PATH}?{urlencode({'redirect': return_to})}"
