"""Transport capability consumed by the request pipeline.

A transport takes an assembled ``httpx.Request`` and asynchronously yields a
:class:`TransportOutcome`. Transport-level failures are reported in the
outcome instead of being raised, so the pipeline can validate, retry or
complete uniformly. Cancelling the task that awaits :meth:`Transport.perform`
is how an in-flight call is cancelled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

import httpx

from .client import get_http_client

if TYPE_CHECKING:
    from TypedAPI.settings import APISettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportOutcome:
    """What a transport call produced.

    Attributes:
        request: The request actually sent, if the transport got that far
        response: Response metadata (status, headers), if one arrived
        data: Raw response payload
        error: Transport-level failure, if any
    """

    request: Optional[httpx.Request] = None
    response: Optional[httpx.Response] = None
    data: Optional[bytes] = None
    error: Optional[BaseException] = None


@runtime_checkable
class Transport(Protocol):
    """Asynchronously perform one assembled request."""

    async def perform(self, request: httpx.Request) -> TransportOutcome:
        ...


class HttpxTransport:
    """Default transport sending requests through an ``httpx.AsyncClient``.

    When no client is given, the per-loop client from
    :func:`TypedAPI.network.client.get_http_client` is used. Response bodies
    are read before the outcome is returned.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional["APISettings"] = None,
    ) -> None:
        self._client = client
        self._settings = settings

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return get_http_client(self._settings)

    async def perform(self, request: httpx.Request) -> TransportOutcome:
        client = self.client
        # Rebuild through the client so its timeout and default headers apply.
        outbound = client.build_request(
            request.method,
            request.url,
            headers=request.headers,
            content=await request.aread(),
            extensions=dict(request.extensions),
        )
        try:
            response = await client.send(outbound)
        except httpx.HTTPError as exc:
            logger.debug("Transport error for %s %s: %r", request.method, request.url, exc)
            return TransportOutcome(request=request, error=exc)

        return TransportOutcome(
            request=response.request,
            response=response,
            data=response.content,
        )


_DEFAULT_TRANSPORT: Optional[HttpxTransport] = None


def get_default_transport() -> HttpxTransport:
    """Return the shared transport used when a request is given none."""
    global _DEFAULT_TRANSPORT
    if _DEFAULT_TRANSPORT is None:
        _DEFAULT_TRANSPORT = HttpxTransport()
    return _DEFAULT_TRANSPORT


__all__ = [
    "Transport",
    "TransportOutcome",
    "HttpxTransport",
    "get_default_transport",
]
