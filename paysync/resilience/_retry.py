"""
Bounded retry loop driven by a RetryPolicy.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from kungfu import Result, Ok, Error

from paysync._types import Sleep
from paysync.errors import AppError
from paysync.resilience._policy import RetryPolicy

logger = logging.getLogger(__name__)

type OnRetry = Callable[[int, AppError, float], Awaitable[None]]
"""Hook called before each retry with (attempt, error, delay)."""


async def retry[T](
    call: Callable[[], Awaitable[Result[T, AppError]]],
    policy: RetryPolicy,
    *,
    sleep: Sleep = asyncio.sleep,
    on_retry: OnRetry | None = None,
    label: str = "call",
) -> Result[T, AppError]:
    """
    Run `call` once, then retry at most `policy.max_retries` times.

    Only errors accepted by `policy.retry_on` are retried; anything else
    is returned immediately. The last result is returned when the
    budget runs out.
    """
    result = await call()

    for attempt in range(1, policy.max_retries + 1):
        match result:
            case Ok(_):
                return result
            case Error(err) if not policy.retry_on(err):
                return result
            case Error(err):
                delay = policy.delay_for(attempt)
                logger.info(
                    "%s failed (%s), retry %d/%d in %.2fs",
                    label,
                    err.kind.value,
                    attempt,
                    policy.max_retries,
                    delay,
                )
                if on_retry is not None:
                    await on_retry(attempt, err, delay)
                await sleep(delay)
        result = await call()

    return result


__all__ = (
    "OnRetry",
    "retry",
)
