"""
Request guard — size, origin and rate checks in front of the webhook,
plus structural validation of notification bodies.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from paysync._types import Monotonic
from paysync.config import Settings
from paysync.status import GatewayStatus

logger = logging.getLogger(__name__)

ORDER_ID_RE = re.compile(r"^[A-Z0-9\-_]{10,50}$")
MIN_AMOUNT = 1_000
MAX_AMOUNT = 100_000_000

REQUIRED_NOTIFICATION_FIELDS = (
    "order_id",
    "transaction_id",
    "gross_amount",
    "payment_type",
    "transaction_time",
    "transaction_status",
    "signature_key",
)

SECURITY_HEADERS: Mapping[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


@dataclass(frozen=True, slots=True)
class Rejection:
    """Why a request was turned away, and with which HTTP status."""

    status_code: int
    error: str
    reason: str
    errors: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": False, "error": self.error}
        if self.errors:
            out["errors"] = list(self.errors)
        return out


# ═══════════════════════════════════════════════════════════════════════════════
# Rate Limiter
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """
    Fixed window per `endpoint:client`. The first request opens a window;
    once it has passed, the next request opens a fresh one.
    Endpoints without a configured limit are never limited.
    """

    def __init__(
        self,
        limits: Mapping[str, tuple[int, float]],
        *,
        clock: Monotonic = time.monotonic,
    ) -> None:
        self._limits = dict(limits)
        self._clock = clock
        self._windows: dict[str, _Window] = {}

    def is_limited(self, endpoint: str, client_id: str) -> bool:
        limit = self._limits.get(endpoint)
        if limit is None:
            return False
        requests, window = limit

        key = f"{endpoint}:{client_id}"
        now = self._clock()
        current = self._windows.get(key)

        if current is None or now > current.reset_at:
            self._windows[key] = _Window(count=1, reset_at=now + window)
            return False

        if current.count >= requests:
            return True

        current.count += 1
        return False

    def cleanup(self) -> int:
        """Drop expired windows. Returns how many were dropped."""
        now = self._clock()
        expired = [k for k, w in self._windows.items() if now > w.reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)


# ═══════════════════════════════════════════════════════════════════════════════
# Guard
# ═══════════════════════════════════════════════════════════════════════════════


class RequestGuard:
    def __init__(self, settings: Settings | None = None, *, clock: Monotonic = time.monotonic) -> None:
        self._settings = settings or Settings()
        self._limiter = RateLimiter(self._settings.rate_limits, clock=clock)

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    def admit(
        self,
        endpoint: str,
        client_id: str,
        *,
        content_length: int | None = None,
        origin: str | None = None,
    ) -> Rejection | None:
        """Rate limit, then size, then origin. None means the request may proceed."""
        if self._limiter.is_limited(endpoint, client_id):
            logger.warning("rate limit exceeded for %s on %s", client_id, endpoint)
            return Rejection(429, "Rate limit exceeded", "rate_limited")

        if content_length is not None and content_length > self._settings.max_request_bytes:
            logger.warning("request too large: %d bytes", content_length)
            return Rejection(413, "Request too large", "payload_too_large")

        if origin and origin not in self._settings.allowed_origins:
            logger.warning("invalid origin: %s", origin)
            return Rejection(403, "Invalid origin", "invalid_origin")

        return None

    def validate_notification(self, payload: Any) -> Rejection | None:
        errors = notification_errors(payload)
        if not errors:
            return None
        for error in errors:
            logger.warning("notification validation error: %s", error)
        return Rejection(400, "Invalid notification", "invalid_payload", tuple(errors))

    @staticmethod
    def client_id(headers: Mapping[str, str], host: str | None = None) -> str:
        if forwarded := headers.get("x-forwarded-for"):
            return forwarded.split(",")[0].strip()
        if real_ip := headers.get("x-real-ip"):
            return real_ip
        return host or "unknown"


def notification_errors(payload: Any) -> list[str]:
    if not isinstance(payload, Mapping) or not payload:
        return ["Notification data is required"]

    errors = [
        f"Required field '{name}' is missing"
        for name in REQUIRED_NOTIFICATION_FIELDS
        if not payload.get(name)
    ]

    order_id = payload.get("order_id")
    if order_id and not (isinstance(order_id, str) and ORDER_ID_RE.match(order_id)):
        errors.append("Invalid order ID in notification")

    amount = payload.get("gross_amount")
    if amount and not _amount_in_range(amount):
        errors.append("Invalid gross amount in notification")

    status = payload.get("transaction_status")
    if status and status not in {s.value for s in GatewayStatus}:
        errors.append(f"Invalid transaction status: {status}")

    return errors


def _amount_in_range(raw: Any) -> bool:
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        return False
    return value.is_finite() and MIN_AMOUNT <= value <= MAX_AMOUNT


__all__ = (
    "ORDER_ID_RE",
    "MIN_AMOUNT",
    "MAX_AMOUNT",
    "REQUIRED_NOTIFICATION_FIELDS",
    "SECURITY_HEADERS",
    "Rejection",
    "RateLimiter",
    "RequestGuard",
    "notification_errors",
)
