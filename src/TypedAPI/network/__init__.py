"""Network subsystem: HTTP client, transport, instrumentation and retry policies.

This package provides the transport side of the request pipeline, based on:
- HTTPX: async HTTP client, one per event loop
- Tenacity: retry policies with exponential backoff and Retry-After support

Modules:
- client: HTTPX AsyncClient factory, one lazy client per event loop
- policy: HTTP policy constants (timeouts, headers, retryable statuses)
- instrumentation: Request/response hooks for structured telemetry
- transport: Transport protocol and the default httpx transport
- retry: Retry conditions and the Tenacity policy adapter

Example:
    >>> from TypedAPI.network.retry import create_http_retry_policy, retry_with_policy
    >>>
    >>> policy = create_http_retry_policy(max_delay_seconds=30)
    >>> request.retry(retry_with_policy(policy)).call()
"""

from TypedAPI.network.client import (
    aclose_http_clients,
    get_http_client,
    reset_http_client,
)
from TypedAPI.network.instrumentation import create_http_event_hooks, redact_url
from TypedAPI.network.policy import (
    HTTP_CONNECT_TIMEOUT,
    HTTP_POOL_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_WRITE_TIMEOUT,
    RETRY_STATUSES,
    RETRYABLE_EXCEPTIONS,
)
from TypedAPI.network.retry import (
    create_http_retry_policy,
    retry_on_exception,
    retry_on_status,
    retry_with_policy,
)
from TypedAPI.network.transport import (
    HttpxTransport,
    Transport,
    TransportOutcome,
    get_default_transport,
)

__all__ = [
    # Client
    "get_http_client",
    "aclose_http_clients",
    "reset_http_client",
    # Instrumentation
    "create_http_event_hooks",
    "redact_url",
    # Policy
    "HTTP_CONNECT_TIMEOUT",
    "HTTP_READ_TIMEOUT",
    "HTTP_WRITE_TIMEOUT",
    "HTTP_POOL_TIMEOUT",
    "RETRY_STATUSES",
    "RETRYABLE_EXCEPTIONS",
    # Transport
    "Transport",
    "TransportOutcome",
    "HttpxTransport",
    "get_default_transport",
    # Retry
    "retry_on_status",
    "retry_on_exception",
    "create_http_retry_policy",
    "retry_with_policy",
]
