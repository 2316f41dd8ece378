# === NAVMAP v1 ===
# {
#   "module": "TypedAPI.network.policy",
#   "purpose": "HTTP policy constants and defaults.",
#   "sections": []
# }
# === /NAVMAP ===

"""HTTP policy constants and defaults.

Defines the timeout budgets used by the default httpx transport, the fixed
header every assembled request carries, and the status codes and exception
types the stock retry conditions treat as transient.
"""

import httpx

# ============================================================================
# Timeout Budgets (seconds)
# ============================================================================

#: Connection establishment timeout
HTTP_CONNECT_TIMEOUT = 5.0

#: Read timeout (time between data packets on established connection)
HTTP_READ_TIMEOUT = 30.0

#: Write timeout (time to send request body)
HTTP_WRITE_TIMEOUT = 15.0

#: Pool timeout (acquiring a connection from the pool)
HTTP_POOL_TIMEOUT = 5.0


# ============================================================================
# Request Assembly
# ============================================================================

#: Methods a request or manager may be bound to
HTTP_METHODS = ("OPTIONS", "GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "TRACE", "CONNECT")

#: Header added to every assembled request before processors run
CONTENT_TYPE_HEADER = "Content-Type"

#: Charset declaration carried by the Content-Type header
DEFAULT_CONTENT_TYPE = "charset=utf-8"

#: Request extension keys written during assembly
ATTEMPT_EXTENSION = "typedapi.attempt"
FIRST_DISPATCH_EXTENSION = "typedapi.first_dispatch"


# ============================================================================
# Retry Defaults
# ============================================================================

#: Status codes treated as transient by the stock retry conditions
RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})

#: Transport failures treated as transient by the stock retry conditions
RETRYABLE_EXCEPTIONS = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
)

#: Total attempts allowed by the stock retry conditions (first try included)
DEFAULT_MAX_ATTEMPTS = 3

#: Deadline for tenacity-backed policies (seconds)
DEFAULT_MAX_DELAY_SECONDS = 30


# ============================================================================
# User-Agent
# ============================================================================

USER_AGENT = "typed-api/0.1.0"


__all__ = [
    "HTTP_CONNECT_TIMEOUT",
    "HTTP_READ_TIMEOUT",
    "HTTP_WRITE_TIMEOUT",
    "HTTP_POOL_TIMEOUT",
    "HTTP_METHODS",
    "CONTENT_TYPE_HEADER",
    "DEFAULT_CONTENT_TYPE",
    "ATTEMPT_EXTENSION",
    "FIRST_DISPATCH_EXTENSION",
    "RETRY_STATUSES",
    "RETRYABLE_EXCEPTIONS",
    "DEFAULT_MAX_ATTEMPTS",
    "DEFAULT_MAX_DELAY_SECONDS",
    "USER_AGENT",
]
