"""
Checkout types — the orchestrator's states and its mutable session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from paysync._types import Money
from paysync.gateway import GatewayResult, TransactionToken
from paysync.order import OrderForm, PreparedOrder
from paysync.pricing import Amounts, PaymentMethod
from paysync.status import PaymentStatus
from paysync.voucher import Voucher

SYNC_PENDING_WARNING = "payment succeeded, sync pending"


class CheckoutState(Enum):
    """
    COLLECTING_INFO → SELECTING_METHOD → AWAITING_GATEWAY_RESULT
        → PAID | PENDING_CONFIRMATION | FAILED | CLOSED

    FAILED and CLOSED may go back to SELECTING_METHOD through retry().
    """

    COLLECTING_INFO = "collecting_info"
    SELECTING_METHOD = "selecting_method"
    AWAITING_GATEWAY_RESULT = "awaiting_gateway_result"
    PAID = "paid"
    PENDING_CONFIRMATION = "pending_confirmation"
    FAILED = "failed"
    CLOSED = "closed"


RETRYABLE_STATES = frozenset({CheckoutState.FAILED, CheckoutState.CLOSED})


@dataclass(slots=True)
class CheckoutSession:
    """
    Everything one checkout knows. Owned and mutated by a single
    PaymentOrchestrator.

    base_amounts: amounts before the payment-method fee.
    amounts: amounts with the fee; what the order is charged.
    payment_status: last status settled through the transition function.
    """

    state: CheckoutState = CheckoutState.COLLECTING_INFO
    attempts: int = 0
    form: OrderForm | None = None
    subtotal: Money = 0
    shipping_cost: Money = 0
    voucher: Voucher | None = None
    order: PreparedOrder | None = None
    base_amounts: Amounts | None = None
    amounts: Amounts | None = None
    method: PaymentMethod | None = None
    fee: Money = 0
    token: TransactionToken | None = None
    result: GatewayResult | None = None
    payment_status: PaymentStatus | None = None
    status_message: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def order_id(self) -> str | None:
        return self.order.order_id if self.order else None

    @property
    def charge(self) -> Money:
        """What the gateway is asked to collect now."""
        return self.amounts.amount_due_now if self.amounts else 0


__all__ = (
    "SYNC_PENDING_WARNING",
    "CheckoutState",
    "RETRYABLE_STATES",
    "CheckoutSession",
)
