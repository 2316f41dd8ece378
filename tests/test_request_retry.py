"""Unit tests for request retries.

Tests cover:
- Condition evaluation order and the first-True rule
- Transient fields cleared between attempts
- Retry conditions raising (terminal)
- Stock conditions from TypedAPI.network.retry driving real requests
"""

from __future__ import annotations

import threading

import httpx
import pytest

from tests.fixtures.http_mocking import ScriptedTransport
from TypedAPI.errors import ValidationError
from TypedAPI.manager import no_payload
from TypedAPI.network.policy import ATTEMPT_EXTENSION
from TypedAPI.network.retry import retry_on_exception, retry_on_status
from TypedAPI.network.transport import TransportOutcome
from TypedAPI.request import Method, Request
from TypedAPI.validators import validate_status

URL = "https://api.example.com/v1/flaky"


def body(parameters, request, response, data):
    return data.decode()


def make_request(transport, **kwargs):
    return Request(Method.GET, URL, None, no_payload, body, transport=transport, **kwargs)


class TestRetryConditions:
    """Condition evaluation."""

    @pytest.mark.asyncio
    async def test_false_true_false_conditions_give_three_attempts(self, http_mock):
        transport = ScriptedTransport(
            http_mock(503, b"first").build(),
            http_mock(502, b"second").build(),
            http_mock(200, b"third").build(),
        )
        evaluated = []

        def never(parameters, request, response, data, result, error, retry_times):
            evaluated.append(("never", retry_times, response.status_code, data, result, error))
            return False

        def first_two(parameters, request, response, data, result, error, retry_times):
            evaluated.append(("first_two", retry_times))
            return retry_times < 2

        def last(*args):
            evaluated.append(("last", args[-1]))
            return False

        request = make_request(transport).validate(validate_status())
        request.retry(never).retry(first_two).retry(last)

        await request.call()

        assert len(transport.calls) == 3
        assert [r.extensions[ATTEMPT_EXTENSION] for r in transport.calls] == [1, 2, 3]
        assert request.retry_times == 2
        assert request.response.status_code == 200
        assert request.result == "third"
        assert request.error is None

        never_calls = [entry for entry in evaluated if entry[0] == "never"]
        assert [entry[2] for entry in never_calls] == [503, 502, 200]
        assert [entry[3] for entry in never_calls] == [b"first", b"second", b"third"]
        assert isinstance(never_calls[0][5], ValidationError)
        assert never_calls[0][5].status_code == 503
        assert never_calls[1][5].status_code == 502
        assert never_calls[2][4:] == ("third", None)
        assert [entry for entry in evaluated if entry[0] == "last"] == [("last", 2)]

    @pytest.mark.asyncio
    async def test_decision_sequence(self):
        decisions = iter([True, True, False])
        transport = ScriptedTransport(httpx.Response(200, content=b"ok"))
        request = make_request(transport).retry(lambda *args: next(decisions))

        await request.call()

        assert len(transport.calls) == 3
        assert request.retry_times == 2

    @pytest.mark.asyncio
    async def test_failures_are_not_retried_without_conditions(self, http_mock):
        transport = ScriptedTransport(http_mock(500).build())
        request = make_request(transport).validate(validate_status())

        await request.call()

        assert len(transport.calls) == 1
        assert isinstance(request.error, ValidationError)

    @pytest.mark.asyncio
    async def test_raising_condition_is_terminal(self, http_mock):
        transport = ScriptedTransport(http_mock(500).build(), http_mock(200, b"ok").build())
        failure = LookupError("no policy")
        later = []

        def broken(*args):
            raise failure

        request = make_request(transport).validate(validate_status())
        request.retry(broken).retry(lambda *args: later.append(args) or True)

        await request.call()

        assert len(transport.calls) == 1
        assert request.error is failure
        assert later == []

    @pytest.mark.asyncio
    async def test_conditions_run_off_loop(self):
        threads = []
        request = make_request(ScriptedTransport(httpx.Response(200, content=b"")))
        request.retry(lambda *args: threads.append(threading.get_ident()) or False)

        await request.call()

        assert threads and threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_preprocess_runs_before_every_attempt(self):
        runs = []
        transport = ScriptedTransport(httpx.Response(200, content=b""))
        request = make_request(transport, preprocess=lambda: runs.append(len(transport.calls)))
        request.retry(lambda *args: args[-1] < 2)

        await request.call()

        assert runs == [0, 1, 2]


class TestStockConditions:
    """Conditions from TypedAPI.network.retry."""

    @pytest.mark.asyncio
    async def test_retry_on_status_recovers(self, http_mock):
        transport = ScriptedTransport(
            http_mock(503).build(), http_mock(429).build(), http_mock(200, b"done").build()
        )
        request = make_request(transport).validate(validate_status())
        request.retry(retry_on_status(max_attempts=3))

        await request.call()

        assert len(transport.calls) == 3
        assert request.result == "done"

    @pytest.mark.asyncio
    async def test_retry_on_status_gives_up_after_max_attempts(self, http_mock):
        transport = ScriptedTransport(http_mock(503).build())
        request = make_request(transport).validate(validate_status())
        request.retry(retry_on_status(max_attempts=2))

        await request.call()

        assert len(transport.calls) == 2
        assert request.error.status_code == 503

    @pytest.mark.asyncio
    async def test_retry_on_status_ignores_permanent_failures(self, http_mock):
        transport = ScriptedTransport(http_mock(404).build())
        request = make_request(transport).validate(validate_status())
        request.retry(retry_on_status())

        await request.call()

        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_retry_on_exception(self):
        transport = ScriptedTransport(
            TransportOutcome(error=httpx.ConnectError("refused")),
            httpx.Response(200, content=b"up"),
        )
        request = make_request(transport).retry(retry_on_exception())

        await request.call()

        assert len(transport.calls) == 2
        assert request.result == "up"
