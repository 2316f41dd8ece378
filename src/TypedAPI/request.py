# === NAVMAP v1 ===
# {
#   "module": "TypedAPI.request",
#   "purpose": "Typed request lifecycle: assembly, transport, validation, retry, completion.",
#   "sections": [
#     {
#       "id": "method",
#       "name": "Method",
#       "anchor": "class-method",
#       "kind": "class"
#     },
#     {
#       "id": "priority",
#       "name": "Priority",
#       "anchor": "class-priority",
#       "kind": "class"
#     },
#     {
#       "id": "request",
#       "name": "Request",
#       "anchor": "class-request",
#       "kind": "class"
#     }
#   ]
# }
# === /NAVMAP ===

"""Typed request lifecycle: assembly, transport, validation, retry, completion.

A :class:`Request` is one configured, dispatchable, retryable unit of network
work with a fixed parameter type ``P`` and result type ``R``::

    Idle -> Dispatching -> (Preprocessing) -> InFlight -> Resolving
         -> RetryEvaluating -> Completed        (Cancelled from any live state)

Concurrency
-----------
``call()`` captures the running event loop. A driver task on that loop walks
the states; preprocessing and retry conditions run on a worker executor and
the transport runs as its own task, and every one of those suspension points
resumes inside the driver, on the captured loop. All state of a request is
therefore mutated from one loop only and needs no lock. The only lock guards
the completed flag together with the pending completion handlers, because
handlers may be registered from any thread.

Completion handlers run exactly once, after completion, on the loop that
registered them (or on the request's loop when registered outside a loop).
"""

from __future__ import annotations

import asyncio
import functools
import logging
import threading
import time
from concurrent.futures import Executor
from enum import Enum, IntEnum
from typing import Any, Callable, Generic, List, Optional, Tuple, TypeVar, Union

import httpx

from .errors import RequestCancelled, RequestFailure, TransportFailure, log_request_failure
from .network.policy import (
    ATTEMPT_EXTENSION,
    CONTENT_TYPE_HEADER,
    DEFAULT_CONTENT_TYPE,
    FIRST_DISPATCH_EXTENSION,
)
from .network.transport import Transport, TransportOutcome, get_default_transport

logger = logging.getLogger(__name__)

P = TypeVar("P")
R = TypeVar("R")


class Method(str, Enum):
    """HTTP method a request is bound to."""

    OPTIONS = "OPTIONS"
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    TRACE = "TRACE"
    CONNECT = "CONNECT"


class Priority(IntEnum):
    """Processor priority; higher priorities run first."""

    VERY_LOW = 0
    LOW = 1
    NORMAL = 2
    HIGH = 3
    VERY_HIGH = 4


Serializer = Callable[[P], Optional[bytes]]
Deserializer = Callable[[P, httpx.Request, httpx.Response, Optional[bytes]], R]
Processor = Callable[[httpx.Request], None]
Validation = Callable[[P, httpx.Request, httpx.Response, Optional[bytes]], None]
RetryCondition = Callable[
    [
        P,
        Optional[httpx.Request],
        Optional[httpx.Response],
        Optional[bytes],
        Optional[R],
        Optional[BaseException],
        int,
    ],
    bool,
]
Preprocess = Callable[[], None]

# Driver tasks stay referenced until done; the loop only keeps weak references.
_DRIVERS: "set[asyncio.Task]" = set()


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def _evaluate_conditions(
    conditions: Tuple[Callable[..., bool], ...],
    arguments: Tuple[Any, ...],
) -> Tuple[bool, Optional[BaseException]]:
    """Run retry conditions in order; first ``True`` or first raise wins."""
    try:
        for condition in conditions:
            if condition(*arguments):
                return True, None
    except Exception as exc:
        return False, exc
    return False, None


class Request(Generic[P, R]):
    """One typed unit of network work.

    Args:
        method: HTTP method
        url: Target URL
        parameters: Value handed to the serializer, validators, deserializer
            and retry conditions
        serializer: ``parameters -> Optional[bytes]`` request payload
        deserializer: ``(parameters, request, response, data) -> result``
        transport: Transport performing the call (default: shared httpx one)
        executor: Worker executor for preprocessing and retry conditions
            (default: the loop's default executor)
        preprocess: Optional blocking step run before every attempt
    """

    def __init__(
        self,
        method: Union[Method, str],
        url: Union[httpx.URL, str],
        parameters: P,
        serializer: Serializer,
        deserializer: Deserializer,
        *,
        transport: Optional[Transport] = None,
        executor: Optional[Executor] = None,
        preprocess: Optional[Preprocess] = None,
    ) -> None:
        self._method = Method(method.upper()) if isinstance(method, str) else method
        self._url = httpx.URL(url)
        self._parameters = parameters
        self._serializer = serializer
        self._deserializer = deserializer
        self._transport = transport or get_default_transport()
        self._executor = executor
        self._preprocess = preprocess

        self._called = False
        self._cancelled = False
        self._completed = False
        self._completion_lock = threading.Lock()

        self._processors: List[Tuple[Processor, Priority]] = []
        self._ordered_processors: Tuple[Processor, ...] = ()
        self._validations: List[Validation] = []
        self._retry_conditions: List[RetryCondition] = []
        self._before_calling: List[Interceptor] = []
        self._after_calling: List[Interceptor] = []
        self._completion_interceptors: List[Interceptor] = []
        self._completion_handlers: List[
            Tuple[Optional[asyncio.AbstractEventLoop], Interceptor]
        ] = []

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._driver: Optional[asyncio.Task] = None
        self._task: Optional[asyncio.Task] = None
        self._retry_times = 0
        self._first_dispatch: Optional[float] = None

        self._request: Optional[httpx.Request] = None
        self._response: Optional[httpx.Response] = None
        self._response_data: Optional[bytes] = None
        self._error: Optional[BaseException] = None
        self._result: Optional[R] = None

    def __repr__(self) -> str:
        state = "completed" if self._completed else "called" if self._called else "idle"
        if self._cancelled:
            state += ",cancelled"
        return f"<Request {self._method.value} {self._url} [{state}]>"

    # ------------------------------------------------------------------
    # Identity and state
    # ------------------------------------------------------------------

    @property
    def method(self) -> Method:
        return self._method

    @property
    def url(self) -> httpx.URL:
        return self._url

    @property
    def parameters(self) -> P:
        return self._parameters

    @property
    def serializer(self) -> Serializer:
        return self._serializer

    @property
    def deserializer(self) -> Deserializer:
        return self._deserializer

    @property
    def preprocess(self) -> Optional[Preprocess]:
        return self._preprocess

    @preprocess.setter
    def preprocess(self, value: Optional[Preprocess]) -> None:
        if self._called:
            logger.debug("Ignoring preprocess change on dispatched %r", self)
            return
        self._preprocess = value

    @property
    def called(self) -> bool:
        return self._called

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def retry_times(self) -> int:
        return self._retry_times

    @property
    def request(self) -> Optional[httpx.Request]:
        return self._request

    @property
    def response(self) -> Optional[httpx.Response]:
        return self._response

    @property
    def response_data(self) -> Optional[bytes]:
        return self._response_data

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    @property
    def result(self) -> Optional[R]:
        return self._result

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def process(
        self, processor: Processor, priority: Priority = Priority.NORMAL
    ) -> "Request[P, R]":
        """Register a processor editing the outbound request before it is sent."""
        if not self._called:
            self._processors.append((processor, Priority(priority)))
        return self

    def validate(self, validation: Validation) -> "Request[P, R]":
        """Register a response validator; validators run in registration order."""
        if not self._completed:
            self._validations.append(validation)
        return self

    def retry(self, condition: RetryCondition) -> "Request[P, R]":
        """Register a retry condition; the first one returning ``True`` re-dispatches."""
        if not self._called:
            self._retry_conditions.append(condition)
        return self

    def before_calling(self, interceptor: Interceptor) -> "Request[P, R]":
        if not self._called:
            self._before_calling.append(interceptor)
        return self

    def after_calling(self, interceptor: Interceptor) -> "Request[P, R]":
        if not self._called:
            self._after_calling.append(interceptor)
        return self

    def completion(self, interceptor: Interceptor) -> "Request[P, R]":
        """Register a hook run synchronously on the request's loop at completion.

        Completion interceptors run before any completion handler is
        scheduled; an interceptor registered after completion runs at once.
        """
        with self._completion_lock:
            if not self._completed:
                self._completion_interceptors.append(interceptor)
                return self
        self._run_hook(interceptor)
        return self

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def call(self) -> "Request[P, R]":
        """Dispatch the request on the running event loop.

        Calling a request twice, or calling a cancelled one, does nothing.

        Raises:
            RuntimeError: if no event loop is running in this thread
        """
        if self._cancelled or self._called:
            return self
        loop = asyncio.get_running_loop()

        self._loop = loop
        self._called = True
        self._ordered_processors = tuple(
            processor
            for processor, _ in sorted(self._processors, key=lambda item: item[1], reverse=True)
        )

        interceptors, self._before_calling = self._before_calling, []
        for interceptor in interceptors:
            interceptor(self)

        logger.debug("Dispatching %s %s", self._method.value, self._url)
        driver = loop.create_task(self._drive())
        _DRIVERS.add(driver)
        driver.add_done_callback(_DRIVERS.discard)
        self._driver = driver

        interceptors, self._after_calling = self._after_calling, []
        for interceptor in interceptors:
            interceptor(self)

        return self

    def cancel(self) -> None:
        """Cancel the request cooperatively.

        An in-flight transport call is asked to stop and its outcome still
        flows through validation and retry evaluation. With nothing in
        flight, the request completes at once with :class:`RequestCancelled`.
        """
        loop = self._loop
        if loop is not None and _running_loop() is not loop and not loop.is_closed():
            loop.call_soon_threadsafe(self._cancel)
            return
        self._cancel()

    def _cancel(self) -> None:
        if self._cancelled or self._completed:
            return
        self._cancelled = True

        if self._task is not None:
            logger.debug("Cancelling in-flight %s %s", self._method.value, self._url)
            self._task.cancel()
        else:
            self._error = RequestCancelled()
            # Never-dispatched requests are dead too; freeze their configuration.
            self._called = True
            self._complete()

    async def _drive(self) -> None:
        while not self._completed:
            if self._cancelled:
                self._error = RequestCancelled()
                break

            await self._attempt()
            if self._completed:
                return

            if not await self._should_retry():
                break
            if self._cancelled:
                self._error = RequestCancelled()
                break

            self._retry_times += 1
            logger.debug(
                "Retrying %s %s (retry %d)", self._method.value, self._url, self._retry_times
            )
            self._clear_request_result()

        self._complete()

    async def _attempt(self) -> None:
        if self._preprocess is not None:
            try:
                await self._run_in_worker(self._preprocess)
            except Exception as exc:
                if self._completed:
                    logger.debug("Discarding preprocess failure of cancelled %r: %r", self, exc)
                    return
                self._error = exc
                return
            if self._completed:
                logger.debug("Discarding preprocess outcome of cancelled %r", self)
                return

        try:
            description = self._generate_request()
        except Exception as exc:
            self._error = exc
            return

        outcome = await self._perform(description)
        self._request = outcome.request
        self._response = outcome.response
        self._response_data = outcome.data
        self._error = outcome.error
        self._process_request_result()

    async def _perform(self, description: httpx.Request) -> TransportOutcome:
        task = self._loop.create_task(self._transport.perform(description))
        self._task = task
        try:
            await asyncio.wait((task,))
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            self._task = None

        if task.cancelled():
            return TransportOutcome(
                request=description, error=RequestCancelled("Transport call cancelled")
            )
        exc = task.exception()
        if exc is not None:
            return TransportOutcome(request=description, error=TransportFailure(exc))
        return task.result()

    async def _should_retry(self) -> bool:
        if not self._retry_conditions:
            return False

        arguments = (
            self._parameters,
            self._request,
            self._response,
            self._response_data,
            self._result,
            self._error,
            self._retry_times,
        )
        retryable, error = await self._run_in_worker(
            _evaluate_conditions, tuple(self._retry_conditions), arguments
        )
        if self._completed:
            logger.debug("Discarding retry decision of cancelled %r", self)
            return False
        if error is not None:
            self._error = error
            return False
        return retryable

    async def _run_in_worker(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await self._loop.run_in_executor(self._executor, functools.partial(fn, *args))

    def _generate_request(self) -> httpx.Request:
        payload = self._serializer(self._parameters)
        request = httpx.Request(
            self._method.value,
            self._url,
            content=payload,
            headers={CONTENT_TYPE_HEADER: DEFAULT_CONTENT_TYPE},
        )
        if self._first_dispatch is None:
            self._first_dispatch = time.monotonic()
        request.extensions[ATTEMPT_EXTENSION] = self._retry_times + 1
        request.extensions[FIRST_DISPATCH_EXTENSION] = self._first_dispatch

        for processor in self._ordered_processors:
            processor(request)
        return request

    def _process_request_result(self) -> None:
        if self._error is not None:
            return

        if self._request is None or self._response is None:
            self._error = RequestFailure()
            return

        try:
            for validation in self._validations:
                validation(self._parameters, self._request, self._response, self._response_data)

            self._result = self._deserializer(
                self._parameters, self._request, self._response, self._response_data
            )
        except Exception as exc:
            self._error = exc

    def _clear_request_result(self) -> None:
        self._request = None
        self._response = None
        self._response_data = None
        self._error = None
        self._result = None

    def _complete(self) -> None:
        with self._completion_lock:
            if self._completed:
                return
            self._completed = True
            interceptors, self._completion_interceptors = self._completion_interceptors, []
            handlers, self._completion_handlers = self._completion_handlers, []

        if self._error is not None:
            log_request_failure(
                logger,
                method=self._method.value,
                url=str(self._url),
                error=self._error,
                http_status=getattr(self._response, "status_code", None),
                retry_times=self._retry_times,
            )
        else:
            logger.debug("Completed %s %s", self._method.value, self._url)

        for interceptor in interceptors:
            self._run_hook(interceptor)
        for loop, handler in handlers:
            self._schedule(loop, handler)

    def _schedule(
        self, loop: Optional[asyncio.AbstractEventLoop], handler: Interceptor
    ) -> None:
        target = loop or self._loop
        if target is None or target.is_closed():
            self._run_hook(handler)
            return
        target.call_soon_threadsafe(handler, self)

    def _run_hook(self, hook: Interceptor) -> None:
        try:
            hook(self)
        except Exception:
            logger.exception(
                "Completion hook %r failed for %s %s", hook, self._method.value, self._url
            )

    # ------------------------------------------------------------------
    # Completion handlers
    # ------------------------------------------------------------------

    def on_response(
        self,
        handler: Callable[["Request[P, R]"], None],
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> "Request[P, R]":
        """Run ``handler(request)`` once the request completes.

        The handler runs on ``loop``, by default the loop running at
        registration, else the request's own loop. Handlers registered after
        completion are scheduled immediately.
        """
        loop = loop or _running_loop()
        with self._completion_lock:
            if not self._completed:
                self._completion_handlers.append((loop, handler))
                return self
        self._schedule(loop, handler)
        return self

    def on_response_details(
        self,
        handler: Callable[
            [
                P,
                Optional[httpx.Request],
                Optional[httpx.Response],
                Optional[bytes],
                Optional[R],
                Optional[BaseException],
            ],
            None,
        ],
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> "Request[P, R]":
        return self.on_response(
            lambda this: handler(
                this.parameters,
                this.request,
                this.response,
                this.response_data,
                this.result,
                this.error,
            ),
            loop=loop,
        )

    def on_response_parameters(
        self,
        handler: Callable[[P, Optional[R], Optional[BaseException]], None],
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> "Request[P, R]":
        return self.on_response(
            lambda this: handler(this.parameters, this.result, this.error), loop=loop
        )

    def on_response_result(
        self,
        handler: Callable[[Optional[R], Optional[BaseException]], None],
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> "Request[P, R]":
        return self.on_response(lambda this: handler(this.result, this.error), loop=loop)

    def on_success_details(
        self,
        success: Callable[[P, httpx.Request, httpx.Response, Optional[bytes], R], None],
        failure: Optional[
            Callable[
                [
                    P,
                    Optional[httpx.Request],
                    Optional[httpx.Response],
                    Optional[bytes],
                    Optional[R],
                    BaseException,
                ],
                None,
            ]
        ] = None,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> "Request[P, R]":
        """Split completion into success (no error, full outcome) and failure."""

        def _dispatch(this: "Request[P, R]") -> None:
            if this.error is not None:
                if failure is not None:
                    failure(
                        this.parameters,
                        this.request,
                        this.response,
                        this.response_data,
                        this.result,
                        this.error,
                    )
            else:
                success(
                    this.parameters,
                    this.request,
                    this.response,
                    this.response_data,
                    this.result,
                )

        return self.on_response(_dispatch, loop=loop)

    def on_success_parameters(
        self,
        success: Callable[[P, R], None],
        failure: Optional[Callable[[P, BaseException], None]] = None,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> "Request[P, R]":
        def _dispatch(this: "Request[P, R]") -> None:
            if this.error is not None:
                if failure is not None:
                    failure(this.parameters, this.error)
            else:
                success(this.parameters, this.result)

        return self.on_response(_dispatch, loop=loop)

    def on_success(
        self,
        success: Callable[[R], None],
        failure: Optional[Callable[[BaseException], None]] = None,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> "Request[P, R]":
        def _dispatch(this: "Request[P, R]") -> None:
            if this.error is not None:
                if failure is not None:
                    failure(this.error)
            else:
                success(this.result)

        return self.on_response(_dispatch, loop=loop)

    async def wait(self) -> "Request[P, R]":
        """Wait for completion from a coroutine and return the request."""
        if self._completed:
            return self
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def _resolve(this: "Request[P, R]") -> None:
            if not future.done():
                future.set_result(this)

        self.on_response(_resolve, loop=loop)
        return await future

    def __await__(self):
        return self.wait().__await__()


Interceptor = Callable[[Request], None]


__all__ = [
    "Method",
    "Priority",
    "Request",
    "Serializer",
    "Deserializer",
    "Processor",
    "Validation",
    "RetryCondition",
    "Preprocess",
    "Interceptor",
]
