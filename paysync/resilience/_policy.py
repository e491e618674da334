"""
Resilience policy types — retry, circuit breaker and timeout settings.

Policies are values: frozen, comparable, and passed to the code that uses
them. Nothing reads them from global state.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Protocol

from paysync.errors import AppError, ErrorKind


class RetryOn(Protocol):
    def __call__(self, err: AppError) -> bool: ...


def retryable(err: AppError) -> bool:
    """Default predicate: retry whatever the taxonomy marks transient."""
    return err.retryable


def network_or_timeout(err: AppError) -> bool:
    return err.kind in (ErrorKind.NETWORK, ErrorKind.TIMEOUT)


# ═══════════════════════════════════════════════════════════════════════════════
# Retry
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Bounded exponential backoff.

    The n-th retry (1-based) waits `base_delay * multiplier ** (n - 1)`
    seconds, capped at `max_delay` when set. At most `max_retries`
    retries follow the first attempt.

    Example:
        policy = (
            RetryPolicy()
            .with_retries(3)
            .with_backoff(base=1.0, multiplier=2.0)
            .with_retry_on(network_or_timeout)
        )
    """

    max_retries: int = 0
    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float | None = None
    retry_on: RetryOn = retryable

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0 or self.multiplier < 1:
            raise ValueError("base_delay must be >= 0 and multiplier >= 1")

    def delay_for(self, attempt: int) -> float:
        """Delay before the given retry (1-based)."""
        delay = self.base_delay * self.multiplier ** (attempt - 1)
        if self.max_delay is not None:
            return min(delay, self.max_delay)
        return delay

    def should_retry(self, err: AppError, attempt: int) -> bool:
        """Whether retry number `attempt` (1-based) may run after `err`."""
        return attempt <= self.max_retries and self.retry_on(err)

    def with_retries(self, times: int) -> RetryPolicy:
        return replace(self, max_retries=times)

    def with_backoff(
        self,
        *,
        base: float | None = None,
        multiplier: float | None = None,
        max_delay: float | None = None,
    ) -> RetryPolicy:
        return replace(
            self,
            base_delay=self.base_delay if base is None else base,
            multiplier=self.multiplier if multiplier is None else multiplier,
            max_delay=self.max_delay if max_delay is None else max_delay,
        )

    def with_retry_on(self, predicate: RetryOn) -> RetryPolicy:
        return replace(self, retry_on=predicate)


NO_RETRY = RetryPolicy()


class Retries:
    """Per-call presets for the backend and gateway."""

    CREATE_TRANSACTION = RetryPolicy(max_retries=3, base_delay=1.0, multiplier=2.0)
    VERIFY_SIGNATURE = RetryPolicy(max_retries=2, base_delay=0.5, multiplier=1.5)
    NOTIFICATIONS = RetryPolicy(max_retries=3, base_delay=2.0, multiplier=2.0)
    TRANSACTION_STATUS = RetryPolicy(max_retries=2, base_delay=1.0, multiplier=1.5)
    HEALTH = RetryPolicy(max_retries=1, base_delay=1.0, multiplier=1.0)
    # Gateway popup: only network/timeout failures, 1s then 2s.
    GATEWAY = RetryPolicy(
        max_retries=2, base_delay=1.0, multiplier=2.0, retry_on=network_or_timeout
    )
    # Webhook persistence: 5s, 10s, 20s.
    WEBHOOK_PERSISTENCE = RetryPolicy(max_retries=3, base_delay=5.0, multiplier=2.0)


# ═══════════════════════════════════════════════════════════════════════════════
# Circuit Breaker
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class BreakerPolicy:
    """
    failure_threshold: consecutive failures that open the circuit.
    reset_timeout: seconds an open circuit waits before a trial call.
    success_threshold: consecutive half-open successes that close it.
    """

    failure_threshold: int = 5
    reset_timeout: float = 30.0
    success_threshold: int = 1

    def __post_init__(self) -> None:
        if self.failure_threshold < 1 or self.success_threshold < 1:
            raise ValueError("breaker thresholds must be >= 1")
        if self.reset_timeout <= 0:
            raise ValueError("reset_timeout must be > 0")

    def with_failure_threshold(self, n: int) -> BreakerPolicy:
        return replace(self, failure_threshold=n)

    def with_reset_timeout(self, seconds: float) -> BreakerPolicy:
        return replace(self, reset_timeout=seconds)

    def with_success_threshold(self, n: int) -> BreakerPolicy:
        return replace(self, success_threshold=n)


# ═══════════════════════════════════════════════════════════════════════════════
# Timeout
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Timeout:
    """Per-call budget in seconds. An expired budget counts as a breaker failure."""

    seconds: float = 15.0

    def __post_init__(self) -> None:
        if self.seconds <= 0:
            raise ValueError("timeout must be > 0")


__all__ = (
    "RetryOn",
    "retryable",
    "network_or_timeout",
    "RetryPolicy",
    "NO_RETRY",
    "Retries",
    "BreakerPolicy",
    "Timeout",
)
