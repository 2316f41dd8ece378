# === NAVMAP v1 ===
# {
#   "module": "TypedAPI.manager",
#   "purpose": "Endpoint-bound request factory tracking dispatched requests.",
#   "sections": [
#     {
#       "id": "manager",
#       "name": "Manager",
#       "anchor": "class-manager",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Endpoint-bound request factory tracking dispatched requests.

A :class:`Manager` is bound to one endpoint (URL + method). Every request it
creates joins the manager's live set when dispatched and leaves it when it
completes, so :meth:`Manager.cancel_all` can stop whatever is still running.
Completed requests also refresh the process-wide server clock estimate from
their ``Date`` header.

Example:
    >>> manager = Manager("https://api.example.com/v1/items", Method.POST)
    >>> request = manager.request({"id": 1}, json_serializer(), json_deserializer())
    >>> await request.call()
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor
from typing import Any, Generic, Optional, Set, Tuple, Union

import httpx

from .concurrency import create_executor
from .errors import IllegalURLError
from .network.transport import Transport
from .request import Deserializer, Method, P, R, Request, Serializer
from .server_time import parse_server_date, update_server_time

logger = logging.getLogger(__name__)


def no_payload(parameters: Any) -> Optional[bytes]:
    """Serializer for requests without a body."""
    return None


def no_result(
    parameters: Any,
    request: httpx.Request,
    response: httpx.Response,
    data: Optional[bytes],
) -> None:
    """Deserializer for requests whose result is ignored."""
    return None


def parse_endpoint(text: Union[httpx.URL, str]) -> httpx.URL:
    """Parse an absolute http(s) endpoint URL.

    Raises:
        IllegalURLError: if ``text`` is not an absolute http or https URL
    """
    try:
        url = httpx.URL(text)
    except (httpx.InvalidURL, TypeError) as exc:
        raise IllegalURLError(str(text), str(exc)) from exc
    if url.scheme not in ("http", "https"):
        raise IllegalURLError(str(text), "scheme must be http or https")
    if not url.host:
        raise IllegalURLError(str(text), "missing host")
    return url


class Manager(Generic[P, R]):
    """Typed request factory bound to one endpoint.

    Args:
        url: Endpoint URL; must be absolute http(s)
        method: HTTP method (default: ``APISettings.default_method``, POST)
        transport: Transport handed to every request (default: shared httpx one)
        executor: Worker executor handed to every request
        workers: Build and own a dedicated pool of this many worker threads
            instead (default: ``APISettings.worker_threads``)

    Raises:
        IllegalURLError: for a malformed endpoint
    """

    def __init__(
        self,
        url: Union[httpx.URL, str],
        method: Optional[Union[Method, str]] = None,
        *,
        transport: Optional[Transport] = None,
        executor: Optional[Executor] = None,
        workers: Optional[int] = None,
    ) -> None:
        self._url = parse_endpoint(url)

        if method is None or (workers is None and executor is None):
            from .settings import get_settings

            settings = get_settings()
            if method is None:
                method = settings.default_method
            if workers is None and executor is None:
                workers = settings.worker_threads

        self._method = Method(method.upper()) if isinstance(method, str) else method
        self._transport = transport
        self._owns_executor = False
        if executor is None and workers:
            executor, self._owns_executor = create_executor(workers)
        self._executor = executor

        self._requests: Set[Request[P, R]] = set()
        self._lock = threading.Lock()

    @classmethod
    def from_url_string(
        cls, text: str, method: Optional[Union[Method, str]] = None, **kwargs: Any
    ) -> "Manager[P, R]":
        """Build a manager from a URL string (raises :class:`IllegalURLError`)."""
        return cls(text, method, **kwargs)

    def __repr__(self) -> str:
        return f"<Manager {self._method.value} {self._url} pending={len(self)}>"

    @property
    def url(self) -> httpx.URL:
        return self._url

    @property
    def method(self) -> Method:
        return self._method

    @property
    def pending(self) -> Tuple[Request[P, R], ...]:
        """Snapshot of the dispatched, not yet completed requests."""
        with self._lock:
            return tuple(self._requests)

    def __len__(self) -> int:
        with self._lock:
            return len(self._requests)

    def request(
        self,
        parameters: P = None,
        serializer: Serializer = no_payload,
        deserializer: Deserializer = no_result,
    ) -> Request[P, R]:
        """Create a request for this endpoint; it is not dispatched yet."""
        request: Request[P, R] = Request(
            self._method,
            self._url,
            parameters,
            serializer,
            deserializer,
            transport=self._transport,
            executor=self._executor,
        )
        request.before_calling(self._track)
        request.completion(self._untrack)
        return request

    def _track(self, request: Request[P, R]) -> None:
        with self._lock:
            self._requests.add(request)

    def _untrack(self, request: Request[P, R]) -> None:
        with self._lock:
            self._requests.discard(request)

        date = parse_server_date(request.response)
        if date is not None:
            update_server_time(date)

    def cancel_all(self) -> None:
        """Cancel every pending request and empty the live set."""
        with self._lock:
            requests = tuple(self._requests)
            self._requests.clear()

        if requests:
            logger.debug("Cancelling %d pending request(s) for %s", len(requests), self._url)
        for request in requests:
            request.cancel()

    async def aclose(self) -> None:
        """Cancel pending requests and shut down an owned worker pool."""
        self.cancel_all()
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False)
            self._owns_executor = False

    async def __aenter__(self) -> "Manager[P, R]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()


__all__ = [
    "Manager",
    "no_payload",
    "no_result",
    "parse_endpoint",
]
