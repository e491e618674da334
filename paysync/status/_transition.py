"""
Status transition — the only place a payment status is decided.

The popup callback, the status poll and the webhook all call
`apply_transition`, so the three signals can arrive in any order.

    settlement | capture   → paid
    pending                → pending_confirmation
    deny | expire          → failed
    cancel                 → cancelled
    refund                 → refunded
    partial_refund         → partially_refunded
    anything else          → pending_confirmation (logged)

Terminal statuses are sticky. The single exception is the refund flow:
a paid transaction may still become refunded or partially refunded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class GatewayStatus(Enum):
    """Raw gateway vocabulary."""

    PENDING = "pending"
    CAPTURE = "capture"
    SETTLEMENT = "settlement"
    DENY = "deny"
    CANCEL = "cancel"
    EXPIRE = "expire"
    REFUND = "refund"
    PARTIAL_REFUND = "partial_refund"
    AUTHORIZE = "authorize"


class PaymentStatus(Enum):
    """Order-facing payment status."""

    DRAFT = "draft"
    PENDING_CONFIRMATION = "pending_confirmation"
    PAID = "paid"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


TERMINAL = frozenset({
    PaymentStatus.PAID,
    PaymentStatus.FAILED,
    PaymentStatus.CANCELLED,
    PaymentStatus.REFUNDED,
})

_MAPPING: dict[GatewayStatus, PaymentStatus] = {
    GatewayStatus.SETTLEMENT: PaymentStatus.PAID,
    GatewayStatus.CAPTURE: PaymentStatus.PAID,
    GatewayStatus.PENDING: PaymentStatus.PENDING_CONFIRMATION,
    GatewayStatus.DENY: PaymentStatus.FAILED,
    GatewayStatus.EXPIRE: PaymentStatus.FAILED,
    GatewayStatus.CANCEL: PaymentStatus.CANCELLED,
    GatewayStatus.REFUND: PaymentStatus.REFUNDED,
    GatewayStatus.PARTIAL_REFUND: PaymentStatus.PARTIALLY_REFUNDED,
}

_REFUNDS = frozenset({PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED})


def is_terminal(status: PaymentStatus) -> bool:
    return status in TERMINAL


def parse_gateway_status(raw: str | GatewayStatus) -> GatewayStatus | None:
    if isinstance(raw, GatewayStatus):
        return raw
    try:
        return GatewayStatus(raw.strip().lower())
    except ValueError:
        return None


def map_gateway_status(raw: str | GatewayStatus) -> PaymentStatus:
    status = parse_gateway_status(raw)
    mapped = _MAPPING.get(status) if status is not None else None
    if mapped is None:
        logger.warning("unknown transaction status %r, treating as pending_confirmation", raw)
        return PaymentStatus.PENDING_CONFIRMATION
    return mapped


@dataclass(frozen=True, slots=True)
class Transition:
    previous: PaymentStatus | None
    status: PaymentStatus
    changed: bool
    ignored: bool = False
    """True when a terminal status blocked the incoming one."""


def apply_transition(
    current: PaymentStatus | None,
    raw: str | GatewayStatus,
) -> Transition:
    """
    Decide the next status for a record currently at `current`.

    `current=None` means no status has been recorded yet.
    """
    return settle(current, map_gateway_status(raw))


def settle(current: PaymentStatus | None, incoming: PaymentStatus) -> Transition:
    """`apply_transition` for an already-mapped status. Stores call this."""
    if current is None:
        return Transition(None, incoming, changed=True)

    if is_terminal(current) and incoming is not current:
        if current is PaymentStatus.PAID and incoming in _REFUNDS:
            return Transition(current, incoming, changed=True)
        logger.info(
            "ignoring %s for terminal status %s",
            incoming.value,
            current.value,
        )
        return Transition(current, current, changed=False, ignored=True)

    return Transition(current, incoming, changed=incoming is not current)


__all__ = (
    "GatewayStatus",
    "PaymentStatus",
    "TERMINAL",
    "is_terminal",
    "parse_gateway_status",
    "map_gateway_status",
    "Transition",
    "apply_transition",
    "settle",
)
