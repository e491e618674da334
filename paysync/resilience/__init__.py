"""
Resilience — retry with backoff, circuit breaker and per-call timeouts.

    from paysync import resilience as R

    client = R.ResilientClient(
        http,
        breaker=R.CircuitBreaker(R.BreakerPolicy(failure_threshold=5)),
        timeout=R.Timeout(seconds=15),
    )
    result = await client.request("GET", "/health", retry=R.Retries.HEALTH)
"""

from paysync.resilience._policy import (
    RetryOn,
    retryable,
    network_or_timeout,
    RetryPolicy,
    NO_RETRY,
    Retries,
    BreakerPolicy,
    Timeout,
)
from paysync.resilience._breaker import (
    BreakerState,
    BreakerSnapshot,
    CircuitBreaker,
)
from paysync.resilience._retry import (
    OnRetry,
    retry,
)
from paysync.resilience._client import ResilientClient

__all__ = (
    # Policy
    "RetryOn",
    "retryable",
    "network_or_timeout",
    "RetryPolicy",
    "NO_RETRY",
    "Retries",
    "BreakerPolicy",
    "Timeout",
    # Breaker
    "BreakerState",
    "BreakerSnapshot",
    "CircuitBreaker",
    # Retry
    "OnRetry",
    "retry",
    # Client
    "ResilientClient",
)
