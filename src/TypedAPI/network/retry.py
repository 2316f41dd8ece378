"""Retry conditions: stock predicates and a Tenacity policy adapter.

A request re-dispatches when one of its retry conditions returns ``True``.
This module provides conditions for the common transient failures and an
adapter that lets a ``tenacity.Retrying`` policy act as a condition:

- Connection errors and timeouts (``retry_on_exception``)
- Rate-limiting and server errors (``retry_on_status``)
- Any Tenacity policy, including its backoff (``retry_with_policy``)

Design:
- **Full-jitter exponential backoff**: Reduces synchronized retry storms
- **Retry-After support**: Respects server guidance
- **Conservative defaults**: 3 attempts, 30-second deadline
- **Blocking waits are fine here**: conditions run on a worker thread, never
  on the event loop

Example:
    >>> from TypedAPI.network.retry import create_http_retry_policy, retry_with_policy
    >>> request.retry(retry_with_policy(create_http_retry_policy(max_attempts=4)))
"""

import email.utils
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, Tuple, Type

import httpx
from tenacity import (
    RetryAction,
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_random_exponential,
)
from tenacity.wait import wait_base

from .policy import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY_SECONDS,
    FIRST_DISPATCH_EXTENSION,
    RETRY_STATUSES,
    RETRYABLE_EXCEPTIONS,
)

logger = logging.getLogger(__name__)

RetryCondition = Callable[
    [
        Any,
        Optional[httpx.Request],
        Optional[httpx.Response],
        Optional[bytes],
        Any,
        Optional[BaseException],
        int,
    ],
    bool,
]


# ============================================================================
# Retry-After
# ============================================================================


def _parse_retry_after_value(value: Optional[str]) -> Optional[float]:
    """Convert a Retry-After header value into a delay in seconds."""
    if not value:
        return None

    try:
        delay = float(int(value))
    except ValueError:
        try:
            dt = email.utils.parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        delay = (dt - datetime.now(timezone.utc)).total_seconds()

    return max(0.0, delay)


def _extract_retry_after_seconds(candidate: object) -> Optional[float]:
    """Extract Retry-After guidance from an httpx response-like object."""
    if candidate is None:
        return None
    headers = getattr(candidate, "headers", None)
    if headers is None:
        return None
    return _parse_retry_after_value(headers.get("Retry-After"))


class _RetryAfterOrBackoff(wait_base):
    """Wait strategy that honours Retry-After before falling back to backoff."""

    def __init__(self, fallback_wait: wait_base, max_delay_seconds: int) -> None:
        self._fallback_wait = fallback_wait
        self._max_delay_seconds = max_delay_seconds

    def __call__(self, retry_state: RetryCallState) -> float:
        delay = self._retry_after_delay(retry_state)
        if delay is not None:
            return min(delay, float(self._max_delay_seconds))
        return float(self._fallback_wait(retry_state))

    def _retry_after_delay(self, retry_state: RetryCallState) -> Optional[float]:
        outcome = retry_state.outcome
        if outcome is None:
            return None

        exc = outcome.exception()
        if exc is not None:
            return _extract_retry_after_seconds(getattr(exc, "response", None))

        return _extract_retry_after_seconds(outcome.result())


# ============================================================================
# Plain Conditions
# ============================================================================


def retry_on_status(
    statuses: Iterable[int] = RETRY_STATUSES,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> RetryCondition:
    """Retry while the response status is transient and attempts remain.

    The status is read from the response, or from the ``response`` attribute
    of the recorded error (validators raising ``ValidationError``).

    Args:
        statuses: Status codes worth another attempt (default 429/5xx)
        max_attempts: Total attempts allowed, first try included

    Returns:
        Retry condition for ``Request.retry``
    """
    retry_statuses = frozenset(statuses)

    def _condition(parameters, request, response, data, result, error, retry_times) -> bool:
        if retry_times + 1 >= max_attempts:
            return False
        candidate = response if response is not None else getattr(error, "response", None)
        status = getattr(candidate, "status_code", None)
        return status in retry_statuses

    return _condition


def retry_on_exception(
    types: Tuple[Type[BaseException], ...] = RETRYABLE_EXCEPTIONS,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> RetryCondition:
    """Retry while the recorded error is one of ``types`` and attempts remain.

    Args:
        types: Exception classes worth another attempt
        max_attempts: Total attempts allowed, first try included

    Returns:
        Retry condition for ``Request.retry``
    """

    def _condition(parameters, request, response, data, result, error, retry_times) -> bool:
        if retry_times + 1 >= max_attempts:
            return False
        return isinstance(error, types)

    return _condition


# ============================================================================
# Tenacity Policies
# ============================================================================


def create_http_retry_policy(
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    max_delay_seconds: int = DEFAULT_MAX_DELAY_SECONDS,
    statuses: Iterable[int] = RETRY_STATUSES,
) -> Retrying:
    """Create a Tenacity retry policy for HTTP requests.

    Retry strategy:
    - **Retryable exceptions**: ConnectError, ConnectTimeout, ReadTimeout
    - **Retryable responses**: 429 (rate-limit), 5xx (server error)
    - **Backoff strategy**: Full-jitter exponential (reduces thundering herd)
    - **Stop**: After ``max_attempts`` or ``max_delay_seconds`` since the
      first dispatch, whichever comes first
    - **Retry-After**: Respects server guidance if provided

    Args:
        max_attempts: Maximum number of attempts (default 3)
        max_delay_seconds: Maximum time to retry (seconds, default 30)
        statuses: Status codes treated as transient

    Returns:
        Configured Tenacity Retrying object; wrap it with
        :func:`retry_with_policy` to register it on a request
    """
    retry_statuses = frozenset(statuses)

    def retry_on_response_status(response: Any) -> bool:
        return getattr(response, "status_code", None) in retry_statuses

    wait_strategy = _RetryAfterOrBackoff(
        fallback_wait=wait_random_exponential(
            multiplier=0.5,  # Initial: 0.5s * 2^attempt
            max=min(60, max_delay_seconds),  # Cap at deadline
        ),
        max_delay_seconds=max_delay_seconds,
    )

    return Retrying(
        stop=stop_after_attempt(max_attempts) | stop_after_delay(max_delay_seconds),
        wait=wait_strategy,
        retry=(
            retry_if_exception_type(RETRYABLE_EXCEPTIONS)
            | retry_if_result(retry_on_response_status)
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def retry_with_policy(retrying: Retrying) -> RetryCondition:
    """Adapt a Tenacity ``Retrying`` policy into a request retry condition.

    Each evaluation rebuilds the policy's view of the attempt: the attempt
    number (``retry_times + 1``), the outcome and the start time (the
    request's first dispatch). The outcome is the response whenever one
    arrived, so status-based policies still judge a 503 that a validator or
    deserializer turned into an error; only transport failures without a
    response are handed over as exceptions. The policy's ``retry`` and
    ``stop`` strategies decide; when a retry is due, the
    ``wait`` strategy's delay is slept on the worker thread before returning.

    Args:
        retrying: Tenacity policy, e.g. from :func:`create_http_retry_policy`

    Returns:
        Retry condition for ``Request.retry``
    """

    def _condition(parameters, request, response, data, result, error, retry_times) -> bool:
        state = RetryCallState(retry_object=retrying, fn=None, args=(), kwargs={})
        if request is not None:
            first_dispatch = request.extensions.get(FIRST_DISPATCH_EXTENSION)
            if first_dispatch is not None:
                state.start_time = first_dispatch
        state.attempt_number = retry_times + 1
        if response is None and error is not None:
            state.set_exception((type(error), error, error.__traceback__))
        else:
            state.set_result(response)

        if not retrying.retry(state):
            return False
        if retrying.stop(state):
            logger.debug("Retry policy exhausted after %d attempt(s)", state.attempt_number)
            return False

        delay = retrying.wait(state) if retrying.wait is not None else 0.0
        state.next_action = RetryAction(delay)
        state.idle_for += delay
        if retrying.before_sleep is not None:
            retrying.before_sleep(state)
        if delay > 0:
            retrying.sleep(delay)
        return True

    return _condition


__all__ = [
    "RetryCondition",
    "retry_on_status",
    "retry_on_exception",
    "create_http_retry_policy",
    "retry_with_policy",
]
