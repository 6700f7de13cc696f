"""
Application constants.

These values are intentionally not configurable via environment variables.
"""

# Identifier used when no client address can be derived from a request.
# All unidentifiable clients share this rate-limit bucket.
UNKNOWN_IDENTIFIER = "unknown"

# Client address headers, in priority order
FORWARDED_FOR_HEADER = "x-forwarded-for"
REAL_IP_HEADER = "x-real-ip"
CDN_CONNECTING_IP_HEADER = "cf-connecting-ip"

# CSRF
CSRF_SECRET_COOKIE = "csrf-secret"
CSRF_TOKEN_COOKIE = "csrf-token"
CSRF_FORM_FIELD = "csrf-token"
CSRF_TOKEN_BYTES = 32

# Session activity tracking
LAST_ACTIVITY_COOKIE = "last-activity"
SESSION_CREATED_COOKIE = "session-created"

# Identity provider session cookie (dev provider only)
IDP_SESSION_COOKIE = "pollguard-idp-session"

# Only this many characters of a session handle are ever kept or logged
SESSION_HANDLE_VISIBLE_CHARS = 16

# Time units
SECOND_MS = 1000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS

# Authentication limiter: 5 failures per 15 minutes, 30 minute block
AUTH_RATE_LIMIT_MAX_ATTEMPTS = 5
AUTH_RATE_LIMIT_WINDOW_MS = 15 * MINUTE_MS
AUTH_RATE_LIMIT_BLOCK_MS = 30 * MINUTE_MS

# CSRF cookie lifetimes
CSRF_SECRET_TTL_SECONDS = 24 * 60 * 60
CSRF_TOKEN_TTL_SECONDS = 60 * 60

# Session timeouts
SESSION_SOFT_TIMEOUT_MS = 30 * MINUTE_MS  # advisory, drives the warning UX
SESSION_WARNING_MS = 5 * MINUTE_MS  # warn this long before the soft timeout
SESSION_MAX_IDLE_MS = HOUR_MS  # hard idle limit, also the last-activity cookie TTL
SESSION_MAX_LIFETIME_MS = 24 * HOUR_MS  # absolute limit, also the session-created cookie TTL

# Redirects
DEFAULT_REDIRECT_PATH = "/polls"
LOGIN_PATH = "/login"
ALLOWED_REDIRECT_PATHS = (
    "/",
    "/polls",
    "/polls/create",
    "/profile",
    "/settings",
    "/login",
    "/register",
)
