import asyncio

import pytest

from npilookup.domain.events.api_events import (
    ApiCallFailed,
    ApiCallInitiated,
    ApiCallSucceeded,
    RequestCancelled,
    RetriesExhausted,
    RetryScheduled,
)
from npilookup.domain.models.config import RetryPolicy
from npilookup.domain.models.errors import (
    AttemptError,
    ErrorKind,
    InputValidationError,
    RequestCancelledError,
    RetriesExhaustedError,
)
from npilookup.infrastructure.resilience.api_retry import ApiRetryService, backoff_delay, classify_error
from npilookup.infrastructure.resilience.cancellation import CancellationToken


class CountingCall:
    """Zero-argument coroutine function failing with the given errors, then returning 'ok'."""

    def __init__(self, *failures):
        self.failures = list(failures)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "ok"


def transient():
    return AttemptError.from_status(503, b"service unavailable")


@pytest.fixture
def policy():
    return RetryPolicy(max_retries=3, initial_delay=0.1, max_delay=5.0, backoff_multiplier=2.0)


# --- backoff_delay ---

def test_backoff_delay_sequence_is_exponential_and_capped():
    policy = RetryPolicy(max_retries=10, initial_delay=0.1, max_delay=5.0, backoff_multiplier=2.0)
    delays = [backoff_delay(policy, n) for n in range(1, 10)]
    assert delays[:6] == pytest.approx([0.1, 0.2, 0.4, 0.8, 1.6, 3.2])
    assert delays[6:] == [5.0, 5.0, 5.0]


def test_backoff_delay_is_zero_before_first_retry(policy):
    assert backoff_delay(policy, 0) == 0.0


def test_backoff_delay_huge_exponent_stays_at_cap():
    policy = RetryPolicy(max_retries=5000, initial_delay=0.1, max_delay=5.0, backoff_multiplier=10.0)
    assert backoff_delay(policy, 4000) == 5.0


# --- classify_error ---

def test_classify_error_keeps_attempt_error_kind():
    fatal = AttemptError.from_status(404)
    assert classify_error(fatal) is fatal
    assert fatal.kind is ErrorKind.FATAL


def test_classify_error_treats_other_exceptions_as_transport():
    error = classify_error(ValueError("failed to decode response"))
    assert error.kind is ErrorKind.TRANSPORT
    assert error.retryable
    assert isinstance(error.cause, ValueError)


def test_classify_error_attaches_key_without_modifying_the_original():
    original = AttemptError.from_status(503)
    keyed = classify_error(original, key="1234567893")

    assert keyed is not original
    assert original.key is None
    assert keyed.key == "1234567893"
    assert keyed.kind is ErrorKind.TRANSIENT
    assert keyed.status_code == 503


def test_classify_error_keeps_an_existing_key():
    original = AttemptError.from_status(500, key="a")
    assert classify_error(original, key="b") is original
    assert classify_error(OSError("reset"), key="b").key == "b"


# --- execute_with_retry ---

def test_success_on_first_attempt_does_not_wait(policy, recording_waiter):
    waiter = recording_waiter()
    service = ApiRetryService(policy, waiter=waiter)
    call = CountingCall()

    assert asyncio.run(service.execute_with_retry(call)) == "ok"
    assert call.calls == 1
    assert waiter.delays == []


def test_transient_failure_exhausts_after_max_retries_plus_one(policy, recording_waiter):
    waiter = recording_waiter()
    service = ApiRetryService(policy, waiter=waiter)
    call = CountingCall(*[transient() for _ in range(10)])

    with pytest.raises(RetriesExhaustedError) as excinfo:
        asyncio.run(service.execute_with_retry(call, key="1234567893"))

    assert call.calls == 4
    assert waiter.delays == pytest.approx([0.1, 0.2, 0.4])
    error = excinfo.value
    assert error.kind is ErrorKind.RETRIES_EXHAUSTED
    assert error.attempts == 4
    assert error.key == "1234567893"
    assert error.last_error.status_code == 503
    assert "max retries exceeded" in str(error)


def test_recovers_after_transient_failures(policy, recording_waiter):
    waiter = recording_waiter()
    service = ApiRetryService(policy, waiter=waiter)
    call = CountingCall(transient(), transient())

    assert asyncio.run(service.execute_with_retry(call)) == "ok"
    assert call.calls == 3
    assert waiter.delays == pytest.approx([0.1, 0.2])


def test_rate_limited_is_retried(policy, recording_waiter):
    service = ApiRetryService(policy, waiter=recording_waiter())
    call = CountingCall(AttemptError.from_status(429))

    assert asyncio.run(service.execute_with_retry(call)) == "ok"
    assert call.calls == 2


def test_client_error_fails_after_single_attempt(policy, recording_waiter):
    waiter = recording_waiter()
    service = ApiRetryService(policy, waiter=waiter)
    call = CountingCall(AttemptError.from_status(400, b"invalid"))

    with pytest.raises(AttemptError) as excinfo:
        asyncio.run(service.execute_with_retry(call, key="1234567893"))

    assert call.calls == 1
    assert waiter.delays == []
    assert excinfo.value.kind is ErrorKind.FATAL
    assert excinfo.value.status_code == 400
    assert excinfo.value.key == "1234567893"


def test_transport_failure_is_retried(policy, recording_waiter):
    service = ApiRetryService(policy, waiter=recording_waiter())
    call = CountingCall(ConnectionError("connection refused"))

    assert asyncio.run(service.execute_with_retry(call)) == "ok"
    assert call.calls == 2


def test_lookup_errors_propagate_without_retry(policy, recording_waiter):
    waiter = recording_waiter()
    service = ApiRetryService(policy, waiter=waiter)
    call = CountingCall(InputValidationError("npi cannot be empty"))

    with pytest.raises(InputValidationError):
        asyncio.run(service.execute_with_retry(call))
    assert call.calls == 1
    assert waiter.delays == []


def test_zero_retries_makes_exactly_one_attempt(recording_waiter):
    waiter = recording_waiter()
    service = ApiRetryService(RetryPolicy(max_retries=0), waiter=waiter)
    call = CountingCall(transient())

    with pytest.raises(RetriesExhaustedError) as excinfo:
        asyncio.run(service.execute_with_retry(call))

    assert call.calls == 1
    assert waiter.delays == []
    assert excinfo.value.attempts == 1


def test_cancel_during_backoff_stops_without_another_attempt(policy, recording_waiter):
    waiter = recording_waiter(cancel_on_call=1)
    service = ApiRetryService(policy, waiter=waiter)
    call = CountingCall(*[transient() for _ in range(10)])

    async def run():
        token = CancellationToken()
        return await service.execute_with_retry(call, key="1234567893", cancel=token)

    with pytest.raises(RequestCancelledError) as excinfo:
        asyncio.run(run())

    assert call.calls == 1
    assert excinfo.value.kind is ErrorKind.CANCELLED
    assert excinfo.value.attempts == 1
    assert excinfo.value.key == "1234567893"


def test_already_cancelled_token_makes_no_attempt(policy, recording_waiter):
    service = ApiRetryService(policy, waiter=recording_waiter())
    call = CountingCall()

    async def run():
        token = CancellationToken()
        token.cancel()
        return await service.execute_with_retry(call, cancel=token)

    with pytest.raises(RequestCancelledError):
        asyncio.run(run())
    assert call.calls == 0


def test_default_waiter_is_interrupted_by_cancellation():
    policy = RetryPolicy(max_retries=3, initial_delay=30.0, max_delay=30.0, backoff_multiplier=1.0)
    service = ApiRetryService(policy)
    call = CountingCall(*[transient() for _ in range(10)])

    async def run():
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)
        return await service.execute_with_retry(call, cancel=token)

    with pytest.raises(RequestCancelledError):
        asyncio.run(asyncio.wait_for(run(), timeout=5))
    assert call.calls == 1


def test_deadline_expiring_during_backoff_cancels():
    policy = RetryPolicy(max_retries=3, initial_delay=30.0, max_delay=30.0, backoff_multiplier=1.0)
    service = ApiRetryService(policy)
    call = CountingCall(*[transient() for _ in range(10)])

    async def run():
        token = CancellationToken.with_timeout(0.05)
        return await service.execute_with_retry(call, cancel=token)

    with pytest.raises(RequestCancelledError):
        asyncio.run(asyncio.wait_for(run(), timeout=5))
    assert call.calls == 1


def test_events_are_emitted_for_each_phase(policy, recording_waiter, events):
    service = ApiRetryService(policy, waiter=recording_waiter(), on_event=events.append)
    call = CountingCall(transient())

    asyncio.run(service.execute_with_retry(call, key="1234567893", url="https://registry.test/?number=1234567893"))

    kinds = [type(event) for event in events]
    assert kinds == [ApiCallInitiated, ApiCallFailed, RetryScheduled, ApiCallInitiated, ApiCallSucceeded]
    failed = events[1]
    assert failed.error_kind == "transient"
    assert failed.status_code == 503
    assert failed.npi == "1234567893"
    assert events[2].delay_seconds == pytest.approx(0.1)
    assert events[4].attempt_number == 2


def test_exhaustion_and_cancellation_events(policy, recording_waiter, events):
    exhaust = ApiRetryService(RetryPolicy(max_retries=1), waiter=recording_waiter(), on_event=events.append)
    with pytest.raises(RetriesExhaustedError):
        asyncio.run(exhaust.execute_with_retry(CountingCall(transient(), transient())))
    assert isinstance(events[-1], RetriesExhausted)
    assert events[-1].attempts == 2

    cancelling = ApiRetryService(policy, waiter=recording_waiter(cancel_on_call=1), on_event=events.append)

    async def run():
        return await cancelling.execute_with_retry(CountingCall(transient()), cancel=CancellationToken())

    with pytest.raises(RequestCancelledError):
        asyncio.run(run())
    assert isinstance(events[-1], RequestCancelled)


def test_failing_event_sink_does_not_break_the_call(policy, recording_waiter):
    def broken_sink(event):
        raise RuntimeError("sink down")

    service = ApiRetryService(policy, waiter=recording_waiter(), on_event=broken_sink)
    assert asyncio.run(service.execute_with_retry(CountingCall(transient()))) == "ok"


def test_cancel_abandons_in_flight_attempt(policy, recording_waiter):
    service = ApiRetryService(policy, waiter=recording_waiter())
    started = []

    async def slow_call():
        started.append(True)
        await asyncio.sleep(30)
        return "late"

    async def run():
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.05, token.cancel)
        return await service.execute_with_retry(slow_call, key="1234567893", cancel=token)

    with pytest.raises(RequestCancelledError) as excinfo:
        asyncio.run(asyncio.wait_for(run(), timeout=5))
    assert started == [True]
    assert excinfo.value.attempts == 0
