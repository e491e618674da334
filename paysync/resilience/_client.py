"""
Resilient API client — every outbound call goes through here.

    call ─▶ retry loop ─▶ circuit breaker ─▶ per-call timeout ─▶ network

A timeout is a failure like any other: it is retried when the policy
allows and it counts toward opening the breaker.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx
from kungfu import Result, Ok, Error

from paysync import lift as L
from paysync._types import Sleep
from paysync.errors import AppError, AppErrors, Failure, unwrap_envelope
from paysync.resilience._breaker import CircuitBreaker
from paysync.resilience._policy import NO_RETRY, RetryPolicy, Timeout
from paysync.resilience._retry import OnRetry, retry as run_retry


class ResilientClient:
    """
    Wraps an `httpx.AsyncClient` (or any async callable) with retry,
    circuit breaking and a per-call timeout.

    Example:
        async with httpx.AsyncClient(base_url=url) as http:
            client = ResilientClient(http, breaker=CircuitBreaker())
            result = await client.request(
                "POST", "/payments/transactions",
                json=payload, retry=Retries.CREATE_TRANSACTION,
            )
    """

    def __init__(
        self,
        http: httpx.AsyncClient | None = None,
        *,
        breaker: CircuitBreaker | None = None,
        timeout: Timeout = Timeout(),
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._http = http
        self._breaker = breaker or CircuitBreaker()
        self._timeout = timeout
        self._sleep = sleep

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    @property
    def timeout(self) -> Timeout:
        return self._timeout

    async def call[T](
        self,
        fn: Callable[[], Awaitable[T]],
        *,
        retry: RetryPolicy = NO_RETRY,
        on_retry: OnRetry | None = None,
        label: str = "call",
    ) -> Result[T, AppError]:
        """Run an arbitrary outbound coroutine under the full stack."""

        async def attempt() -> Result[T, AppError]:
            return await self._breaker.call(lambda: L.guarded(lambda: self._bounded(fn)))

        return await run_retry(attempt, retry, sleep=self._sleep, on_retry=on_retry, label=label)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        retry: RetryPolicy = NO_RETRY,
        as_text: bool = False,
    ) -> Result[Any, AppError]:
        """
        HTTP request against the backend.

        JSON bodies in the `{success, data?, error?}` envelope are unwrapped
        to `data`; a `success: false` body becomes an API error.
        """
        if self._http is None:
            return Error(AppErrors.network("No HTTP client configured"))
        http = self._http

        async def send() -> Any:
            response = await http.request(
                method,
                path,
                json=json,
                params={k: v for k, v in (params or {}).items() if v is not None},
            )
            response.raise_for_status()
            if as_text:
                return response.text
            return response.json() if response.content else None

        result = await self.call(send, retry=retry, label=f"{method} {path}")
        match result:
            case Ok(body) if not as_text:
                return unwrap_envelope(body)
            case _:
                return result

    async def _bounded[T](self, fn: Callable[[], Awaitable[T]]) -> T:
        seconds = self._timeout.seconds
        try:
            async with asyncio.timeout(seconds):
                return await fn()
        except TimeoutError as exc:
            raise Failure(AppErrors.timeout(seconds, cause=exc)) from exc


__all__ = ("ResilientClient",)
