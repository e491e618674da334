"""
Settings — one immutable configuration value, built fluently or from env.

    settings = (
        Settings()
        .with_backend("https://api.example.com")
        .with_timeout(seconds=12)
        .with_breaker(failure_threshold=3)
    )

    settings = Settings.from_env()   # PAYSYNC_* variables
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace

from paysync.resilience import BreakerPolicy, Timeout

DEFAULT_ALLOWED_ORIGINS = (
    "http://localhost:3000",
    "http://localhost:5173",
    "https://app.midtrans.com",
    "https://app.sandbox.midtrans.com",
)


@dataclass(frozen=True, slots=True)
class Settings:
    """
    backend_url: remote backend; when set, storage goes over HTTP.
    database_url: SQLAlchemy async URL; used when no backend is set.
    strict_service_labels: reject unknown service labels instead of
        falling back to `website`.

    Note: Immutable — each `with_*` returns a new Settings.
    """

    backend_url: str | None = None
    database_url: str | None = None
    timeout: Timeout = Timeout()
    breaker: BreakerPolicy = BreakerPolicy()
    strict_service_labels: bool = False
    allowed_origins: tuple[str, ...] = DEFAULT_ALLOWED_ORIGINS
    max_request_bytes: int = 10 * 1024
    max_checkout_attempts: int = 3
    rate_limits: Mapping[str, tuple[int, float]] = field(
        default_factory=lambda: {
            "/payments/transactions": (10, 60.0),
            "/payments/notifications": (100, 60.0),
            "/payments/verify-signature": (50, 60.0),
        }
    )

    def with_backend(self, url: str | None) -> Settings:
        return replace(self, backend_url=url or None)

    def with_database(self, url: str | None) -> Settings:
        return replace(self, database_url=url or None)

    def with_timeout(self, *, seconds: float) -> Settings:
        return replace(self, timeout=Timeout(seconds))

    def with_breaker(
        self,
        *,
        failure_threshold: int | None = None,
        reset_timeout: float | None = None,
        success_threshold: int | None = None,
    ) -> Settings:
        policy = self.breaker
        if failure_threshold is not None:
            policy = policy.with_failure_threshold(failure_threshold)
        if reset_timeout is not None:
            policy = policy.with_reset_timeout(reset_timeout)
        if success_threshold is not None:
            policy = policy.with_success_threshold(success_threshold)
        return replace(self, breaker=policy)

    def with_strict_service_labels(self, strict: bool = True) -> Settings:
        return replace(self, strict_service_labels=strict)

    def with_allowed_origins(self, *origins: str) -> Settings:
        return replace(self, allowed_origins=tuple(origins))

    def with_max_request_bytes(self, size: int) -> Settings:
        return replace(self, max_request_bytes=size)

    def with_rate_limit(self, endpoint: str, requests: int, window: float = 60.0) -> Settings:
        return replace(self, rate_limits={**self.rate_limits, endpoint: (requests, window)})

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        settings = cls()

        settings = settings.with_backend(env.get("PAYSYNC_BACKEND_URL"))
        settings = settings.with_database(env.get("PAYSYNC_DATABASE_URL"))

        if timeout := env.get("PAYSYNC_REQUEST_TIMEOUT"):
            settings = settings.with_timeout(seconds=float(timeout))

        settings = settings.with_breaker(
            failure_threshold=_int(env.get("PAYSYNC_BREAKER_THRESHOLD")),
            reset_timeout=_float(env.get("PAYSYNC_BREAKER_RESET")),
            success_threshold=_int(env.get("PAYSYNC_BREAKER_SUCCESSES")),
        )

        if strict := env.get("PAYSYNC_STRICT_SERVICE_LABELS"):
            settings = settings.with_strict_service_labels(
                strict.strip().lower() in ("1", "true", "yes", "on")
            )

        if origins := env.get("PAYSYNC_ALLOWED_ORIGINS"):
            settings = settings.with_allowed_origins(
                *(o.strip() for o in origins.split(",") if o.strip())
            )

        if size := env.get("PAYSYNC_MAX_REQUEST_BYTES"):
            settings = settings.with_max_request_bytes(int(size))

        return settings


def _int(raw: str | None) -> int | None:
    return int(raw) if raw else None


def _float(raw: str | None) -> float | None:
    return float(raw) if raw else None


__all__ = (
    "DEFAULT_ALLOWED_ORIGINS",
    "Settings",
)
