# === NAVMAP v1 ===
# {
#   "module": "TypedAPI.errors",
#   "purpose": "Error taxonomy and failure logging helpers for typed requests.",
#   "sections": [
#     {
#       "id": "apierror",
#       "name": "APIError",
#       "anchor": "class-apierror",
#       "kind": "class"
#     },
#     {
#       "id": "get-actionable-error-message",
#       "name": "get_actionable_error_message",
#       "anchor": "function-get-actionable-error-message",
#       "kind": "function"
#     },
#     {
#       "id": "log-request-failure",
#       "name": "log_request_failure",
#       "anchor": "function-log-request-failure",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Error taxonomy and failure logging helpers for typed requests.

Responsibilities
----------------
- Define the exception types the pipeline records as a request's terminal
  error (``RequestFailure``, ``RequestCancelled``, ``TransportFailure``) and
  the ones hooks are expected to raise (``SerializeError``,
  ``DeserializeError``, ``ValidationError``).
- Translate HTTP status codes and error classes into user-friendly
  remediation hints via :func:`get_actionable_error_message`.
- Centralise structured logging through :func:`log_request_failure`.

Design Notes
------------
- Hooks may raise any ``Exception``; the pipeline records it unchanged, so
  callers can match on their own exception types. The classes below are the
  ones the library itself creates.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

__all__ = (
    "APIError",
    "IllegalURLError",
    "SerializeError",
    "DeserializeError",
    "ValidationError",
    "RequestFailure",
    "RequestCancelled",
    "TransportFailure",
    "get_actionable_error_message",
    "log_request_failure",
)


class APIError(Exception):
    """Base class for errors raised or recorded by TypedAPI."""


class IllegalURLError(APIError):
    """Raised when a manager endpoint cannot be parsed as an absolute URL."""

    def __init__(self, url: str, reason: str | None = None):
        message = f"Illegal URL string: {url!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.url = url
        self.reason = reason


class SerializeError(APIError):
    """Raised by serializers that cannot encode request parameters."""


class DeserializeError(APIError):
    """Raised by deserializers that cannot decode a response payload."""

    def __init__(self, message: str, *, data: Optional[bytes] = None):
        super().__init__(message)
        self.data = data


class ValidationError(APIError):
    """Raised by validators rejecting a response."""

    def __init__(self, message: str, *, response: Any = None):
        super().__init__(message)
        self.response = response

    @property
    def status_code(self) -> Optional[int]:
        return getattr(self.response, "status_code", None)


class RequestFailure(APIError):
    """Transport finished without an error but produced no request or response."""

    def __init__(self, message: str = "Request failure"):
        super().__init__(message)


class RequestCancelled(APIError):
    """The request was cancelled before it produced an outcome."""

    def __init__(self, message: str = "Request cancelled"):
        super().__init__(message)


class TransportFailure(APIError):
    """A transport raised instead of reporting its failure in the outcome."""

    def __init__(self, cause: BaseException):
        super().__init__(f"Transport raised {type(cause).__name__}: {cause}")
        self.cause = cause


def get_actionable_error_message(
    http_status: int | None,
    error: BaseException | None = None,
) -> tuple[str, str | None]:
    """Generate a user-friendly error message with an actionable suggestion.

    Args:
        http_status: Status code of the final response, if any
        error: Terminal error recorded on the request

    Returns:
        Tuple of (error_message, suggestion) where suggestion may be None

    Examples:
        >>> msg, suggestion = get_actionable_error_message(429)
        >>> print(msg)
        Rate limit exceeded (HTTP 429)
    """

    if isinstance(error, RequestCancelled):
        return ("Request cancelled", None)
    if isinstance(error, SerializeError):
        return (
            "Request parameters could not be serialized",
            "Check the serializer against the parameter type",
        )
    if isinstance(error, DeserializeError):
        return (
            "Response payload could not be deserialized",
            "Check the deserializer against the payload the endpoint returns",
        )

    if http_status == 401:
        return (
            "Authentication required (HTTP 401)",
            "Attach credentials with a processor or refresh the access token",
        )
    elif http_status == 403:
        return (
            "Access forbidden (HTTP 403)",
            "Check authentication credentials or access permissions for this resource",
        )
    elif http_status == 404:
        return ("Resource not found (HTTP 404)", "Check the endpoint URL and method")
    elif http_status == 429:
        return (
            "Rate limit exceeded (HTTP 429)",
            "Slow down requests or add a retry condition honouring Retry-After",
        )
    elif http_status in (502, 503):
        return (
            f"Service temporarily unavailable (HTTP {http_status})",
            "The server is temporarily overloaded. Retry with exponential backoff.",
        )
    elif http_status == 504:
        return (
            "Gateway timeout (HTTP 504)",
            "Increase the read timeout or retry later",
        )
    elif http_status and http_status >= 500:
        return (
            f"Server error (HTTP {http_status})",
            "The upstream server encountered an error. Retry later.",
        )
    elif http_status and http_status >= 400:
        return (f"HTTP error {http_status}", "Check the request parameters and headers")

    if isinstance(error, (TransportFailure, RequestFailure)):
        return (
            "Network request failed",
            "Check network connectivity, firewall rules, or proxy configuration",
        )
    if error is not None and type(error).__module__.startswith("httpx"):
        return (
            "Network request failed",
            "Check network connectivity, DNS resolution, or timeout values",
        )

    return ("Request failed", "Check logs for detailed error information")


def log_request_failure(
    logger: logging.Logger,
    *,
    method: str,
    url: str,
    error: BaseException,
    http_status: int | None = None,
    retry_times: int = 0,
) -> None:
    """Log a terminal request failure with structured context.

    Args:
        logger: Logger instance to use for output
        method: HTTP method of the request
        url: Target URL of the request
        error: Terminal error recorded on the request
        http_status: Status code of the final response, if any
        retry_times: Number of retries performed before giving up
    """

    error_msg, suggestion = get_actionable_error_message(http_status, error)

    log_entry: dict[str, Any] = {
        "method": method,
        "url": url,
        "http_status": http_status,
        "retry_times": retry_times,
        "error_message": error_msg,
        "exception_type": type(error).__name__,
        "exception_message": str(error),
    }
    if suggestion:
        log_entry["suggestion"] = suggestion

    level = logging.DEBUG if isinstance(error, RequestCancelled) else logging.WARNING
    logger.log(
        level,
        "%s %s failed: %s",
        method,
        url,
        error_msg,
        extra={"extra_fields": log_entry},
    )
