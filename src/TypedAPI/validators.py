"""Stock validators, serializers and deserializers for typed requests.

Validators raise :class:`TypedAPI.errors.ValidationError` carrying the
response, so retry conditions such as
:func:`TypedAPI.network.retry.retry_on_status` can still see its status.
The JSON helpers use a pydantic ``TypeAdapter`` when given a type, which
covers models, dataclasses and plain typing constructs alike.

Example:
    >>> request = Request(
    ...     Method.POST,
    ...     "https://api.example.com/v1/items",
    ...     Item(name="a"),
    ...     json_serializer(Item),
    ...     json_deserializer(ItemCreated),
    ... ).validate(validate_status()).validate(validate_content_type("application/json"))
"""

from __future__ import annotations

import json
from typing import Any, Callable, Container, Optional

import httpx
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import DeserializeError, SerializeError, ValidationError


def validate_status(codes: Container[int] = range(200, 300)) -> Callable[..., None]:
    """Reject responses whose status code is not in ``codes`` (default 2xx)."""

    def _validate(
        parameters: Any,
        request: httpx.Request,
        response: httpx.Response,
        data: Optional[bytes],
    ) -> None:
        if response.status_code not in codes:
            raise ValidationError(
                f"Unacceptable status code {response.status_code}", response=response
            )

    return _validate


def validate_content_type(*types: str) -> Callable[..., None]:
    """Reject responses whose media type is not one of ``types``.

    Parameters such as ``charset`` are ignored and matching is
    case-insensitive. A missing ``Content-Type`` header is rejected too.
    """
    accepted = frozenset(t.lower() for t in types)

    def _validate(
        parameters: Any,
        request: httpx.Request,
        response: httpx.Response,
        data: Optional[bytes],
    ) -> None:
        header = response.headers.get("Content-Type", "")
        media_type = header.split(";", 1)[0].strip().lower()
        if media_type not in accepted:
            raise ValidationError(
                f"Unacceptable content type {header or '<missing>'!r}", response=response
            )

    return _validate


def json_serializer(model: Any = None) -> Callable[[Any], bytes]:
    """Serialize parameters to JSON bytes, through ``TypeAdapter(model)`` if given."""
    adapter = TypeAdapter(model) if model is not None else None

    def _serialize(parameters: Any) -> bytes:
        try:
            if adapter is not None:
                return adapter.dump_json(parameters)
            return json.dumps(parameters).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise SerializeError(f"Cannot encode parameters as JSON: {exc}") from exc

    return _serialize


def json_deserializer(model: Any = None) -> Callable[..., Any]:
    """Decode the JSON payload, validating it against ``model`` if given."""
    adapter = TypeAdapter(model) if model is not None else None

    def _deserialize(
        parameters: Any,
        request: httpx.Request,
        response: httpx.Response,
        data: Optional[bytes],
    ) -> Any:
        if not data:
            raise DeserializeError("Empty response payload", data=data)
        try:
            if adapter is not None:
                return adapter.validate_json(data)
            return json.loads(data)
        except PydanticValidationError as exc:
            raise DeserializeError(
                f"Payload does not match {model!r}: {exc.error_count()} error(s)", data=data
            ) from exc
        except ValueError as exc:
            raise DeserializeError(f"Invalid JSON payload: {exc}", data=data) from exc

    return _deserialize


__all__ = [
    "validate_status",
    "validate_content_type",
    "json_serializer",
    "json_deserializer",
]
