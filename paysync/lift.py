"""
Lift — helpers for lifting outbound calls into Result-typed computations.

Re-exports from combinators.lift with paysync-specific additions.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from kungfu import LazyCoroResult

from combinators.lift import catching_async

from paysync.errors import AppError, classify


# ═══════════════════════════════════════════════════════════════════════════════
# paysync-specific helpers
# ═══════════════════════════════════════════════════════════════════════════════

def guarded[T](
    awaitable_fn: Callable[[], Awaitable[T]],
) -> LazyCoroResult[T, AppError]:
    """
    Run an outbound call, turning any exception into a classified AppError.

    Every network-facing component goes through this so no exception
    crosses a component boundary.
    """
    return catching_async(awaitable_fn, on_error=classify)


__all__ = (
    # From combinators.lift
    "catching_async",
    # paysync additions
    "guarded",
)
