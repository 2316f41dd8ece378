"""Typed request/response pipeline over httpx.

A :class:`Request` carries typed parameters through serialization,
processing, transport, validation and deserialization into a typed result,
with optional retries, interceptors, completion handlers and cooperative
cancellation. A :class:`Manager` binds requests to one endpoint and tracks
the ones in flight. :mod:`TypedAPI.server_time` keeps the process-wide
estimate of the server clock.
"""

from TypedAPI.errors import (
    APIError,
    DeserializeError,
    IllegalURLError,
    RequestCancelled,
    RequestFailure,
    SerializeError,
    TransportFailure,
    ValidationError,
)
from TypedAPI.logging_utils import setup_logging
from TypedAPI.manager import Manager, no_payload, no_result
from TypedAPI.network.transport import HttpxTransport, Transport, TransportOutcome
from TypedAPI.request import Method, Priority, Request
from TypedAPI.server_time import (
    ServerTime,
    get_server_time,
    parse_server_date,
    update_server_time,
)
from TypedAPI.settings import APISettings, get_settings
from TypedAPI.validators import (
    json_deserializer,
    json_serializer,
    validate_content_type,
    validate_status,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Errors
    "APIError",
    "IllegalURLError",
    "SerializeError",
    "DeserializeError",
    "ValidationError",
    "RequestFailure",
    "RequestCancelled",
    "TransportFailure",
    # Pipeline
    "Method",
    "Priority",
    "Request",
    "Manager",
    "no_payload",
    "no_result",
    # Transport
    "Transport",
    "TransportOutcome",
    "HttpxTransport",
    # Server time
    "ServerTime",
    "get_server_time",
    "parse_server_date",
    "update_server_time",
    # Settings
    "APISettings",
    "get_settings",
    "setup_logging",
    # Validators
    "validate_status",
    "validate_content_type",
    "json_serializer",
    "json_deserializer",
]
