# === NAVMAP v1 ===
# {
#   "module": "tests.fixtures.http_mocking",
#   "purpose": "HTTP mocking fixtures for hermetic network testing",
#   "sections": [
#     {"id": "mock-response-builder", "name": "MockResponseBuilder", "anchor": "class-mock-response-builder", "kind": "class"},
#     {"id": "scripted-transport", "name": "ScriptedTransport", "anchor": "class-scripted-transport", "kind": "class"},
#     {"id": "http-mock-fixture", "name": "http_mock", "anchor": "fixture-http-mock", "kind": "fixture"},
#     {"id": "mock-client-fixture", "name": "mock_client", "anchor": "fixture-mock-client", "kind": "fixture"}
#   ]
# }
# === /NAVMAP ===

"""
HTTP mocking fixtures for hermetic network testing.

Provides a scripted :class:`TypedAPI.network.transport.Transport`, mock
response builders and httpx ``MockTransport`` clients so the request pipeline
can be exercised without real network access. All responses are
deterministic and reproducible.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Generator, Optional, Union

import httpx
import pytest

from TypedAPI.network.transport import TransportOutcome

Step = Union[httpx.Response, TransportOutcome, BaseException, Callable[[httpx.Request], Any]]


class MockResponseBuilder:
    """Builder for constructing mock HTTP responses with fluent API."""

    def __init__(self, status_code: int = 200, content: bytes = b""):
        self.status_code = status_code
        self.content = content
        self.headers: dict[str, str] = {}

    def with_status(self, code: int) -> MockResponseBuilder:
        """Set response status code."""
        self.status_code = code
        return self

    def with_content(self, content: bytes | str) -> MockResponseBuilder:
        if isinstance(content, str):
            content = content.encode("utf-8")
        self.content = content
        return self

    def with_json(self, data: Any) -> MockResponseBuilder:
        """Set response content as JSON."""
        self.content = json.dumps(data).encode("utf-8")
        self.headers["content-type"] = "application/json"
        return self

    def with_header(self, name: str, value: str) -> MockResponseBuilder:
        self.headers[name] = value
        return self

    def build(self) -> httpx.Response:
        """Build the final response object."""
        return httpx.Response(
            status_code=self.status_code,
            content=self.content,
            headers=self.headers,
        )


class ScriptedTransport:
    """Transport replaying one scripted step per attempt.

    Steps are responses, ready-made outcomes, exceptions to raise, or
    callables receiving the request and returning any of those. The last
    step repeats once the script runs out. When ``gate`` is given, every
    attempt waits for it before answering, which keeps the call in flight.
    """

    def __init__(self, *steps: Step, gate: Optional[asyncio.Event] = None):
        self.steps = list(steps) or [httpx.Response(200)]
        self.gate = gate
        self.calls: list[httpx.Request] = []
        self.started = asyncio.Event()

    async def perform(self, request: httpx.Request) -> TransportOutcome:
        self.calls.append(request)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()

        step: Any = self.steps[min(len(self.calls), len(self.steps)) - 1]
        if callable(step) and not isinstance(step, (httpx.Response, BaseException)):
            step = step(request)
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, TransportOutcome):
            return step

        step.request = request
        return TransportOutcome(request=request, response=step, data=step.content)


@pytest.fixture
def http_mock() -> Generator[Callable[..., MockResponseBuilder], None, None]:
    """
    Provide a mock HTTP response builder factory.

    Example:
        def test_http_client(http_mock):
            json_resp = http_mock(200).with_json({"id": 1}).build()
            assert json_resp.headers["content-type"] == "application/json"
    """

    def _mock_response(
        status_code: int = 200,
        content: bytes | str = b"",
    ) -> MockResponseBuilder:
        if isinstance(content, str):
            content = content.encode("utf-8")
        return MockResponseBuilder(status_code=status_code, content=content)

    yield _mock_response


@pytest.fixture
def mock_client() -> Generator[Callable[..., httpx.AsyncClient], None, None]:
    """
    Provide a factory for httpx AsyncClients backed by ``MockTransport``.

    Example:
        async def test_send(mock_client):
            client = mock_client(lambda request: httpx.Response(204))
            response = await client.get("https://api.example.com/")
            assert response.status_code == 204
    """

    def _factory(
        handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any
    ) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs)

    yield _factory
