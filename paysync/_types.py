"""
Core types for paysync.

Re-exports from kungfu + aliases shared by every component.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Never

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Lazy Computation Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type Lazy[T, E] = LazyCoroResult[T, E]
"""Lazy async computation that may fail."""

type Pure[T] = Lazy[T, Never]
"""Lazy computation that cannot fail."""

# ═══════════════════════════════════════════════════════════════════════════════
# Money & Time
# ═══════════════════════════════════════════════════════════════════════════════

type Money = int
"""Whole rupiah. No fractional units anywhere in the core."""

type Clock = Callable[[], datetime]
"""Wall clock, injected so tests can freeze time."""

type Monotonic = Callable[[], float]
"""Monotonic seconds, used by the circuit breaker and rate limiter."""

type Sleep = Callable[[float], Awaitable[None]]
"""Backoff sleeper, injected so tests never wait."""

# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Type aliases
    "Lazy",
    "Pure",
    "Money",
    "Clock",
    "Monotonic",
    "Sleep",
)
