"""
Circuit breaker — stop calling a dependency that keeps failing.

    CLOSED ──(failure_threshold consecutive failures)──▶ OPEN
    OPEN ──(reset_timeout elapsed)──▶ HALF_OPEN
    HALF_OPEN ──(success_threshold consecutive successes)──▶ CLOSED
    HALF_OPEN ──(any failure)──▶ OPEN (timer restarts)

While OPEN, calls fail fast with CIRCUIT_OPEN and never reach the network.
In HALF_OPEN only one trial call is in flight at a time.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from kungfu import Result, Ok, Error

from paysync._types import Monotonic
from paysync.errors import AppError, AppErrors, ErrorKind
from paysync.resilience._policy import BreakerPolicy

logger = logging.getLogger(__name__)


class BreakerState(Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


# Failures that say nothing about the dependency's health.
_HEALTHY_ANSWERS = frozenset({
    ErrorKind.VALIDATION,
    ErrorKind.NOT_FOUND,
    ErrorKind.SIGNATURE,
    ErrorKind.PAYMENT,
})


@dataclass(frozen=True, slots=True)
class BreakerSnapshot:
    state: BreakerState
    failures: int
    successes: int
    opened_at: float | None


class CircuitBreaker:
    def __init__(
        self,
        policy: BreakerPolicy = BreakerPolicy(),
        *,
        clock: Monotonic = time.monotonic,
        name: str = "backend",
    ) -> None:
        self._policy = policy
        self._clock = clock
        self._name = name
        self._state = BreakerState.CLOSED
        self._failures = 0
        self._successes = 0
        self._opened_at: float | None = None
        self._trial_in_flight = False

    @property
    def policy(self) -> BreakerPolicy:
        return self._policy

    @property
    def state(self) -> BreakerState:
        return self._state

    def snapshot(self) -> BreakerSnapshot:
        return BreakerSnapshot(self._state, self._failures, self._successes, self._opened_at)

    def allow(self) -> bool:
        """Whether a call may go out now. Moves OPEN to HALF_OPEN when due."""
        if self._state is BreakerState.OPEN:
            if self._opened_at is not None and self._clock() - self._opened_at < self._policy.reset_timeout:
                return False
            self._transition(BreakerState.HALF_OPEN)
            self._successes = 0

        if self._state is BreakerState.HALF_OPEN:
            if self._trial_in_flight:
                return False
            self._trial_in_flight = True

        return True

    def record_success(self) -> None:
        self._trial_in_flight = False
        if self._state is BreakerState.HALF_OPEN:
            self._successes += 1
            if self._successes >= self._policy.success_threshold:
                self._failures = 0
                self._successes = 0
                self._opened_at = None
                self._transition(BreakerState.CLOSED)
            return
        self._failures = 0

    def record_failure(self) -> None:
        self._trial_in_flight = False
        self._failures += 1
        if self._state is BreakerState.HALF_OPEN:
            self._open()
        elif self._state is BreakerState.CLOSED and self._failures >= self._policy.failure_threshold:
            self._open()

    def reset(self) -> None:
        self._state = BreakerState.CLOSED
        self._failures = 0
        self._successes = 0
        self._opened_at = None
        self._trial_in_flight = False

    async def call[T](
        self,
        fn: Callable[[], Awaitable[Result[T, AppError]]],
    ) -> Result[T, AppError]:
        """Run `fn` under the breaker."""
        if not self.allow():
            logger.debug("breaker %s fast-fail (%s)", self._name, self._state.value)
            return Error(AppErrors.circuit_open())

        try:
            result = await fn()
        except BaseException:
            self.record_failure()
            raise
        match result:
            case Ok(_):
                self.record_success()
            case Error(err) if err.kind in _HEALTHY_ANSWERS:
                self.record_success()
            case Error(_):
                self.record_failure()
        return result

    def _open(self) -> None:
        self._opened_at = self._clock()
        self._successes = 0
        self._transition(BreakerState.OPEN)

    def _transition(self, state: BreakerState) -> None:
        if state is not self._state:
            level = logging.WARNING if state is BreakerState.OPEN else logging.INFO
            logger.log(
                level,
                "breaker %s %s -> %s (failures=%d)",
                self._name,
                self._state.value,
                state.value,
                self._failures,
            )
        self._state = state


__all__ = (
    "BreakerState",
    "BreakerSnapshot",
    "CircuitBreaker",
)
