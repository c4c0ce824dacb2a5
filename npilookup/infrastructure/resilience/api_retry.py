"""Service for executing registry calls with automatic retries.

Implements exponential backoff for transient errors such as rate limits
(429), temporary server issues (5xx) and network failures. Client errors
(other 4xx) abort immediately. Backoff waits and in-flight attempts race the
caller's cancellation token, and no new attempt starts once it has fired.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

from npilookup.domain.events.api_events import (
    ApiCallFailed,
    ApiCallInitiated,
    ApiCallSucceeded,
    DomainEvent,
    EventSink,
    RequestCancelled,
    RetriesExhausted,
    RetryScheduled,
    dispatch_event,
    log_event,
)
from npilookup.domain.models.config import RetryPolicy
from npilookup.domain.models.errors import (
    AttemptError,
    NpiLookupError,
    RequestCancelledError,
    RetriesExhaustedError,
)
from npilookup.infrastructure.resilience.cancellation import CancellationToken

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (delay_seconds, token) -> True if cancelled during the wait
Waiter = Callable[[float, Optional[CancellationToken]], Awaitable[bool]]


def backoff_delay(policy: RetryPolicy, retry_number: int) -> float:
    """Delay before retry ``retry_number`` (1-based); 0 for the first attempt."""
    if retry_number < 1:
        return 0.0
    try:
        delay = policy.initial_delay * (policy.backoff_multiplier ** (retry_number - 1))
    except OverflowError:
        return policy.max_delay
    return min(policy.max_delay, delay)


def classify_error(error: BaseException, key: Optional[str] = None) -> AttemptError:
    """Maps an exception raised by an attempt onto an AttemptError.

    Attempt errors keep the kind they were built with. Anything else is a
    failure below the protocol layer (transport error, timeout, malformed
    body) and is treated as retryable. An attempt error lacking a key is
    rebuilt with ``key`` rather than modified.
    """
    if isinstance(error, AttemptError):
        if key is None or error.key is not None:
            return error
        return AttemptError(
            error.kind, error.message, status_code=error.status_code, key=key, cause=error.cause
        )
    return AttemptError.from_exception(error, key=key)


async def wait_or_cancel(delay: float, cancel: Optional[CancellationToken]) -> bool:
    """Sleeps for ``delay`` seconds unless ``cancel`` fires first."""
    if cancel is None:
        await asyncio.sleep(delay)
        return False
    return await cancel.wait(delay)


class AttemptAbandoned(Exception):
    """Internal signal: the token fired while an attempt was in flight."""


async def run_attempt(func: Callable[[], Awaitable[T]], cancel: Optional[CancellationToken]) -> T:
    """Runs one attempt, abandoning it if ``cancel`` fires first.

    Raises:
        AttemptAbandoned: The token fired before the attempt finished.
    """
    if cancel is None:
        return await func()

    call = asyncio.ensure_future(func())
    watcher = asyncio.ensure_future(cancel.wait_cancelled())
    try:
        done, _ = await asyncio.wait({call, watcher}, return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        call.cancel()
        watcher.cancel()
        raise

    if call in done:
        watcher.cancel()
        await asyncio.gather(watcher, return_exceptions=True)
        return call.result()

    call.cancel()
    await asyncio.gather(call, return_exceptions=True)
    raise AttemptAbandoned()


class ApiRetryService:
    """Runs one registry call under a bounded exponential-backoff retry policy."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        waiter: Optional[Waiter] = None,
        on_event: Optional[EventSink] = None,
    ):
        """Initializes the ApiRetryService.

        Args:
            policy: Retry budget and backoff settings. Defaults to RetryPolicy().
            waiter: Coroutine used for backoff waits; replaceable in tests.
            on_event: Receiver for lifecycle events. Defaults to DEBUG logging.
        """
        self.policy = policy or RetryPolicy()
        self._waiter = waiter or wait_or_cancel
        self._on_event = on_event or log_event

        logger.info(
            f"ApiRetryService initialized: max_retries={self.policy.max_retries}, "
            f"initial_delay={self.policy.initial_delay}s, max_delay={self.policy.max_delay}s, "
            f"multiplier={self.policy.backoff_multiplier}"
        )

    def _dispatch(self, event: DomainEvent) -> None:
        dispatch_event(self._on_event, event)

    def _cancelled(self, url: str, key: Optional[str], attempts: int) -> RequestCancelledError:
        logger.info(f"Request to {url} cancelled after {attempts} attempt(s)")
        self._dispatch(RequestCancelled(url=url, attempts=attempts, npi=key))
        return RequestCancelledError(
            f"request cancelled after {attempts} attempt(s)", key=key, attempts=attempts
        )

    async def execute_with_retry(
        self,
        func: Callable[[], Awaitable[T]],
        *,
        key: Optional[str] = None,
        url: str = "",
        cancel: Optional[CancellationToken] = None,
    ) -> T:
        """Executes an async call with retries and cancellation.

        Args:
            func: Zero-argument coroutine function performing one attempt.
            key: NPI involved, attached to any error raised.
            url: Request URL, for events and logging only.
            cancel: Optional cancellation token checked before every attempt
                and raced against every backoff wait and in-flight attempt.

        Returns:
            The result of the first successful attempt.

        Raises:
            AttemptError: A FATAL classification, after a single attempt.
            RetriesExhaustedError: Every allowed attempt failed retryably.
            RequestCancelledError: The token fired during a wait or an attempt.
        """
        last_error: Optional[AttemptError] = None
        max_retries = self.policy.max_retries

        for attempt in range(max_retries + 1):
            if attempt > 0:
                delay = backoff_delay(self.policy, attempt)
                logger.warning(
                    f"Retryable error calling {url} on attempt {attempt}/{max_retries + 1}: "
                    f"{last_error}. Waiting {delay:.2f}s..."
                )
                self._dispatch(RetryScheduled(url=url, attempt_number=attempt + 1, delay_seconds=delay, npi=key))
                if await self._waiter(delay, cancel):
                    raise self._cancelled(url, key, attempt)

            if cancel is not None and cancel.cancelled:
                raise self._cancelled(url, key, attempt)

            self._dispatch(ApiCallInitiated(url=url, attempt_number=attempt + 1, npi=key))
            start_time = time.perf_counter()
            try:
                result = await run_attempt(func, cancel)
            except AttemptAbandoned:
                raise self._cancelled(url, key, attempt) from None
            except AttemptError as e:
                error = classify_error(e, key)
            except NpiLookupError:
                # Already a terminal classification (e.g. input validation); not ours to retry.
                raise
            except Exception as e:
                error = classify_error(e, key)
            else:
                latency_ms = (time.perf_counter() - start_time) * 1000
                self._dispatch(ApiCallSucceeded(url=url, attempt_number=attempt + 1, latency_ms=latency_ms, npi=key))
                return result

            self._dispatch(ApiCallFailed(
                url=url,
                attempt_number=attempt + 1,
                error_kind=error.kind.value,
                error_message=error.message,
                status_code=error.status_code,
                npi=key,
            ))

            if not error.retryable:
                logger.error(f"Non-retryable error calling {url} on attempt {attempt + 1}: {error}")
                raise error
            last_error = error

        attempts = max_retries + 1
        logger.error(f"Max retries ({max_retries}) reached for {url}. Last error: {last_error}")
        self._dispatch(RetriesExhausted(url=url, attempts=attempts, error_message=str(last_error), npi=key))
        raise RetriesExhaustedError(last_error, attempts, key=key) from last_error
