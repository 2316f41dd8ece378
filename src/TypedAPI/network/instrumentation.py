# === NAVMAP v1 ===
# {
#   "module": "TypedAPI.network.instrumentation",
#   "purpose": "HTTP network layer instrumentation and telemetry.",
#   "sections": [
#     {
#       "id": "create-http-event-hooks",
#       "name": "create_http_event_hooks",
#       "anchor": "function-create-http-event-hooks",
#       "kind": "function"
#     },
#     {
#       "id": "redact-url",
#       "name": "redact_url",
#       "anchor": "function-redact-url",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""HTTP network layer instrumentation and telemetry.

Logs a ``net.request`` record for every attempt sent by the default
transport, capturing method, redacted URL, status, attempt number and
timings. Records carry their fields in ``extra_fields`` so the JSON
formatter writes them as top-level keys.
"""

import logging
import time
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from .policy import ATTEMPT_EXTENSION

logger = logging.getLogger(__name__)

_START_EXTENSION = "typedapi.t0_perf"


def create_http_event_hooks() -> dict:
    """Create httpx AsyncClient event hooks for telemetry emission.

    Returns:
        Dict with 'request' and 'response' hooks for httpx.AsyncClient

    Usage:
        >>> import httpx
        >>> hooks = create_http_event_hooks()
        >>> client = httpx.AsyncClient(event_hooks=hooks)
    """

    async def on_request(request: Any) -> None:
        request.extensions[_START_EXTENSION] = time.perf_counter()

    async def on_response(response: Any) -> None:
        request = response.request
        start_time = request.extensions.get(_START_EXTENSION)
        if start_time is None:
            return
        elapsed_ms = (time.perf_counter() - start_time) * 1000

        logger.debug(
            "net.request %s %s -> %s",
            request.method,
            redact_url(str(request.url)),
            response.status_code,
            extra={
                "extra_fields": {
                    "event": "net.request",
                    "method": request.method,
                    "url_redacted": redact_url(str(request.url)),
                    "host": request.url.host or "unknown",
                    "status": response.status_code,
                    "attempt": request.extensions.get(ATTEMPT_EXTENSION, 1),
                    "http_version": response.http_version,
                    "elapsed_ms": round(elapsed_ms, 3),
                    "content_length": response.headers.get("Content-Length"),
                }
            },
        )

    return {
        "request": [on_request],
        "response": [on_response],
    }


def redact_url(url: str) -> str:
    """Strip query string, fragment and userinfo, keeping scheme + host + path.

    Examples:
        >>> redact_url("https://user:pw@api.example.com/v1/items?token=abc")
        'https://api.example.com/v1/items'
    """
    try:
        parts = urlsplit(url)
        netloc = parts.hostname or ""
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
    except ValueError:
        return "[URL_REDACTION_FAILED]"
    return urlunsplit((parts.scheme, netloc, parts.path, "", ""))


__all__ = [
    "create_http_event_hooks",
    "redact_url",
]
