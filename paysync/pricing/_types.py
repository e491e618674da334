"""
Pricing types — services, order statuses, calculation input and amounts.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass
from decimal import Decimal
from enum import Enum

from paysync._types import Money

TAX_RATE = Decimal("0.11")
"""PPN (VAT)."""


# ═══════════════════════════════════════════════════════════════════════════════
# Service Type & Order Status
# ═══════════════════════════════════════════════════════════════════════════════


class ServiceType(Enum):
    WEBSITE = "website"
    WORDPRESS = "wordpress"
    MOBILE = "mobile"
    EDITING = "editing"
    SERVICE_DEVICE = "service_device"


class OrderStatus(Enum):
    """
    Order lifecycle:

        WAITING_DEPOSIT → DEPOSIT_PAID → WAITING_ONSITE_PAYMENT → ONSITE_PAID

    CANCELLED is reachable from every non-terminal state. On-site device
    orders start at WAITING_ONSITE_PAYMENT.
    """

    WAITING_DEPOSIT = "waiting_deposit"
    DEPOSIT_PAID = "deposit_paid"
    WAITING_ONSITE_PAYMENT = "waiting_onsite_payment"
    ONSITE_PAID = "onsite_paid"
    CANCELLED = "cancelled"


# ═══════════════════════════════════════════════════════════════════════════════
# Service Payment Policy
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentKind(Enum):
    DEPOSIT = "deposit"   # part up front through the gateway
    GATEWAY = "gateway"   # full amount through the gateway
    CASH = "cash"         # paid on site after the work


@dataclass(frozen=True, slots=True)
class ServicePolicy:
    kind: PaymentKind
    deposit_percent: int = 0
    payment_required: bool = True

    @property
    def requires_deposit(self) -> bool:
        return self.deposit_percent > 0

    @property
    def uses_gateway(self) -> bool:
        return self.payment_required and self.kind is not PaymentKind.CASH

    @property
    def initial_status(self) -> OrderStatus:
        if self.requires_deposit:
            return OrderStatus.WAITING_DEPOSIT
        return OrderStatus.WAITING_ONSITE_PAYMENT


SERVICE_POLICIES: Mapping[ServiceType, ServicePolicy] = {
    ServiceType.WEBSITE: ServicePolicy(PaymentKind.DEPOSIT, deposit_percent=50),
    ServiceType.WORDPRESS: ServicePolicy(PaymentKind.DEPOSIT, deposit_percent=50),
    ServiceType.MOBILE: ServicePolicy(PaymentKind.DEPOSIT, deposit_percent=50),
    ServiceType.EDITING: ServicePolicy(PaymentKind.GATEWAY, deposit_percent=50),
    ServiceType.SERVICE_DEVICE: ServicePolicy(PaymentKind.CASH, payment_required=False),
}


def policy_for(service: ServiceType) -> ServicePolicy:
    return SERVICE_POLICIES[service]


# ═══════════════════════════════════════════════════════════════════════════════
# Input & Amounts
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CalculationInput:
    """
    Already-resolved absolute values. Percentage fees must be resolved
    (see `resolve_fee`) before they get here.
    """

    subtotal: Money
    discount: Money = 0
    fee: Money = 0
    shipping_cost: Money = 0
    service_type: ServiceType = ServiceType.WEBSITE


@dataclass(frozen=True, slots=True)
class Amounts:
    subtotal: Money
    discount: Money
    dpp: Money
    ppn: Money
    fee: Money
    shipping_cost: Money
    grand_total: Money
    deposit: Money
    remaining: Money
    status: OrderStatus

    @property
    def amount_due_now(self) -> Money:
        """What the gateway charges at checkout: the deposit when one applies."""
        return self.deposit if self.deposit > 0 else self.grand_total

    def to_dict(self) -> dict[str, object]:
        out = asdict(self)
        out["status"] = self.status.value
        return out


__all__ = (
    "TAX_RATE",
    "ServiceType",
    "OrderStatus",
    "PaymentKind",
    "ServicePolicy",
    "SERVICE_POLICIES",
    "policy_for",
    "CalculationInput",
    "Amounts",
)
