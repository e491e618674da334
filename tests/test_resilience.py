"""
Retry policy, circuit breaker and the resilient HTTP client.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest
from kungfu import Error, Ok

from paysync.errors import AppError, AppErrors, ErrorKind
from paysync.resilience import (
    BreakerPolicy,
    BreakerState,
    CircuitBreaker,
    ResilientClient,
    Retries,
    RetryPolicy,
    Timeout,
    network_or_timeout,
    retry,
)


class Flaky:
    """Async call that fails with the given errors, then succeeds."""

    def __init__(self, *errors: AppError, value: str = "ok") -> None:
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            return Error(self.errors.pop(0))
        return Ok(self.value)


async def failing():
    return Error(AppErrors.network("connection reset"))


async def succeeding():
    return Ok("pong")


# ============================================================================
# Policy
# ============================================================================


class TestRetryPolicy:
    def test_exponential_delays(self):
        policy = Retries.WEBHOOK_PERSISTENCE
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [5.0, 10.0, 20.0]

    def test_max_delay_caps(self):
        policy = RetryPolicy(max_retries=5).with_backoff(base=1.0, multiplier=10.0, max_delay=30.0)
        assert policy.delay_for(3) == 30.0

    def test_budget_is_bounded(self):
        policy = RetryPolicy().with_retries(2)
        err = AppErrors.network("down")
        assert policy.should_retry(err, 2)
        assert not policy.should_retry(err, 3)

    def test_rejects_nonsense(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)
        with pytest.raises(ValueError):
            BreakerPolicy(failure_threshold=0)
        with pytest.raises(ValueError):
            Timeout(0)


# ============================================================================
# Retry loop
# ============================================================================


class TestRetry:
    async def test_succeeds_after_transient_failures(self, sleep):
        call = Flaky(AppErrors.network("a"), AppErrors.timeout(1))

        match await retry(call, Retries.CREATE_TRANSACTION, sleep=sleep):
            case Ok(value):
                assert value == "ok"
            case Error(err):
                raise AssertionError(err)

        assert call.calls == 3
        assert sleep.delays == [1.0, 2.0]

    async def test_gives_up_after_budget(self, sleep):
        call = Flaky(*[AppErrors.network("down")] * 10)

        match await retry(call, Retries.TRANSACTION_STATUS, sleep=sleep):
            case Error(err):
                assert err.kind is ErrorKind.NETWORK
            case Ok(_):
                raise AssertionError("expected failure")

        assert call.calls == 3
        assert sleep.delays == [1.0, 1.5]

    async def test_non_retryable_error_returns_immediately(self, sleep):
        call = Flaky(AppErrors.validation("bad amount", field="gross_amount"))

        result = await retry(call, Retries.CREATE_TRANSACTION, sleep=sleep)

        assert isinstance(result, Error)
        assert call.calls == 1
        assert sleep.delays == []

    async def test_predicate_narrows_what_is_retried(self, sleep):
        policy = RetryPolicy(max_retries=3).with_retry_on(network_or_timeout)
        call = Flaky(AppErrors.api("boom", status=500))

        await retry(call, policy, sleep=sleep)

        assert call.calls == 1

    async def test_on_retry_hook_sees_each_attempt(self, sleep):
        seen = []

        async def hook(attempt, err, delay):
            seen.append((attempt, err.kind, delay))

        call = Flaky(AppErrors.persistence("locked"), AppErrors.persistence("locked"))
        await retry(call, Retries.WEBHOOK_PERSISTENCE, sleep=sleep, on_retry=hook)

        assert seen == [(1, ErrorKind.PERSISTENCE, 5.0), (2, ErrorKind.PERSISTENCE, 10.0)]


# ============================================================================
# Circuit breaker
# ============================================================================


class TestCircuitBreaker:
    def make(self, monotonic, **kwargs) -> CircuitBreaker:
        policy = BreakerPolicy(failure_threshold=3, reset_timeout=30.0, **kwargs)
        return CircuitBreaker(policy, clock=monotonic)

    async def test_opens_after_consecutive_failures(self, monotonic):
        breaker = self.make(monotonic)

        for _ in range(3):
            await breaker.call(failing)

        assert breaker.state is BreakerState.OPEN

    async def test_success_resets_the_failure_count(self, monotonic):
        breaker = self.make(monotonic)

        await breaker.call(failing)
        await breaker.call(failing)
        await breaker.call(succeeding)
        await breaker.call(failing)

        assert breaker.state is BreakerState.CLOSED
        assert breaker.snapshot().failures == 1

    async def test_open_breaker_fails_fast(self, monotonic):
        breaker = self.make(monotonic)
        for _ in range(3):
            await breaker.call(failing)

        calls = 0

        async def tracked():
            nonlocal calls
            calls += 1
            return Ok("never")

        match await breaker.call(tracked):
            case Error(err):
                assert err.kind is ErrorKind.CIRCUIT_OPEN
            case Ok(_):
                raise AssertionError("open breaker let a call through")
        assert calls == 0

    async def test_half_open_trial_closes_on_success(self, monotonic):
        breaker = self.make(monotonic)
        for _ in range(3):
            await breaker.call(failing)

        monotonic.advance(30.0)
        match await breaker.call(succeeding):
            case Ok(value):
                assert value == "pong"
            case Error(err):
                raise AssertionError(err)

        assert breaker.state is BreakerState.CLOSED

    async def test_half_open_failure_reopens(self, monotonic):
        breaker = self.make(monotonic)
        for _ in range(3):
            await breaker.call(failing)

        monotonic.advance(31.0)
        await breaker.call(failing)

        assert breaker.state is BreakerState.OPEN
        assert breaker.snapshot().opened_at == monotonic()

    async def test_cancelled_trial_does_not_wedge_the_breaker(self, monotonic):
        breaker = self.make(monotonic)
        for _ in range(3):
            await breaker.call(failing)
        monotonic.advance(30.0)

        started = asyncio.Event()

        async def hanging():
            started.set()
            await asyncio.sleep(3600)
            return Ok("never")

        trial = asyncio.create_task(breaker.call(hanging))
        await started.wait()
        trial.cancel()
        with pytest.raises(asyncio.CancelledError):
            await trial

        assert breaker.state is BreakerState.OPEN

        monotonic.advance(30.0)
        match await breaker.call(succeeding):
            case Ok(value):
                assert value == "pong"
            case Error(err):
                raise AssertionError(err)
        assert breaker.state is BreakerState.CLOSED

    def test_only_one_trial_in_half_open(self, monotonic):
        breaker = self.make(monotonic)
        for _ in range(3):
            breaker.record_failure()

        monotonic.advance(30.0)
        assert breaker.allow()
        assert breaker.state is BreakerState.HALF_OPEN
        assert not breaker.allow()

    def test_success_threshold(self, monotonic):
        breaker = self.make(monotonic, success_threshold=2)
        for _ in range(3):
            breaker.record_failure()
        monotonic.advance(30.0)

        assert breaker.allow()
        breaker.record_success()
        assert breaker.state is BreakerState.HALF_OPEN

        assert breaker.allow()
        breaker.record_success()
        assert breaker.state is BreakerState.CLOSED

    async def test_validation_answers_do_not_trip(self, monotonic):
        breaker = self.make(monotonic)

        async def rejected():
            return Error(AppErrors.validation("bad request"))

        for _ in range(5):
            await breaker.call(rejected)

        assert breaker.state is BreakerState.CLOSED

    def test_reset(self, monotonic):
        breaker = self.make(monotonic)
        for _ in range(3):
            breaker.record_failure()
        breaker.reset()
        assert breaker.state is BreakerState.CLOSED
        assert breaker.allow()


# ============================================================================
# Resilient client
# ============================================================================


def http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="https://api.test")


class TestResilientClient:
    async def test_unwraps_success_envelope(self, sleep):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True, "data": {"token": "t-1"}})

        async with http_client(handler) as http:
            client = ResilientClient(http, sleep=sleep)
            match await client.request("POST", "/payments/transactions", json={}):
                case Ok(data):
                    assert data == {"token": "t-1"}
                case Error(err):
                    raise AssertionError(err)

    async def test_failure_envelope_is_an_api_error(self, sleep):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False, "message": "order locked"})

        async with http_client(handler) as http:
            match await ResilientClient(http, sleep=sleep).request("GET", "/x"):
                case Error(err):
                    assert err.kind is ErrorKind.API
                    assert err.message == "order locked"
                case Ok(_):
                    raise AssertionError("failure envelope accepted")

    async def test_server_errors_are_retried(self, sleep):
        hits = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal hits
            hits += 1
            if hits < 3:
                return httpx.Response(503, json={"error": "unavailable"})
            return httpx.Response(200, json={"success": True, "data": "ok"})

        async with http_client(handler) as http:
            client = ResilientClient(http, sleep=sleep)
            result = await client.request("POST", "/p", retry=Retries.CREATE_TRANSACTION)

        assert isinstance(result, Ok)
        assert hits == 3
        assert sleep.delays == [1.0, 2.0]

    async def test_client_errors_are_not_retried(self, sleep):
        hits = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal hits
            hits += 1
            return httpx.Response(422, json={"error": "gross_amount must be positive"})

        async with http_client(handler) as http:
            client = ResilientClient(http, sleep=sleep)
            match await client.request("POST", "/p", retry=Retries.CREATE_TRANSACTION):
                case Error(err):
                    assert err.kind is ErrorKind.VALIDATION
                    assert err.message == "gross_amount must be positive"
                case Ok(_):
                    raise AssertionError("422 accepted")

        assert hits == 1

    async def test_connection_errors_are_network_errors(self, sleep):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with http_client(handler) as http:
            match await ResilientClient(http, sleep=sleep).request("GET", "/health"):
                case Error(err):
                    assert err.kind is ErrorKind.NETWORK
                case Ok(_):
                    raise AssertionError("connection error swallowed")

    async def test_timeout_counts_toward_breaker(self, sleep, monotonic):
        breaker = CircuitBreaker(BreakerPolicy(failure_threshold=2), clock=monotonic)
        client = ResilientClient(breaker=breaker, timeout=Timeout(0.01), sleep=sleep)

        async def hangs():
            await asyncio.sleep(1)
            return "late"

        for _ in range(2):
            match await client.call(hangs):
                case Error(err):
                    assert err.kind is ErrorKind.TIMEOUT
                case Ok(_):
                    raise AssertionError("timeout not enforced")

        assert breaker.state is BreakerState.OPEN
        match await client.call(hangs):
            case Error(err):
                assert err.kind is ErrorKind.CIRCUIT_OPEN
            case Ok(_):
                raise AssertionError("open breaker let a call through")

    async def test_params_drop_none_values(self, sleep):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(dict(request.url.params))
            return httpx.Response(200, json=[])

        async with http_client(handler) as http:
            await ResilientClient(http, sleep=sleep).request(
                "GET", "/payments/transactions/history", params={"status": "settlement", "limit": None}
            )

        assert seen == [{"status": "settlement"}]

    async def test_text_responses(self, sleep):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="a,b\n1,2\n")

        async with http_client(handler) as http:
            match await ResilientClient(http, sleep=sleep).request("GET", "/export", as_text=True):
                case Ok(text):
                    assert text.startswith("a,b")
                case Error(err):
                    raise AssertionError(err)

    async def test_without_http_client(self):
        match await ResilientClient().request("GET", "/health"):
            case Error(err):
                assert err.kind is ErrorKind.NETWORK
            case Ok(_):
                raise AssertionError("request without transport succeeded")
