"""
Order types — intake form, prepared order and validation errors.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from paysync._types import Money
from paysync.errors import AppError
from paysync.pricing import Amounts, OrderStatus, ServiceType
from paysync.voucher import VoucherError


class DeliveryMethod(Enum):
    PICKUP = "pickup"
    SHIP = "ship"


class Urgency(Enum):
    NORMAL = "normal"
    URGENT = "urgent"


@dataclass(frozen=True, slots=True)
class OrderForm:
    """What the intake form submits. `service` is the human-readable label."""

    name: str
    whatsapp: str
    service: str
    email: str | None = None
    company: str | None = None
    scope: Mapping[str, Any] = field(default_factory=dict)
    schedule_date: str | None = None
    schedule_time: str | None = None
    voucher_code: str | None = None
    delivery_method: DeliveryMethod = DeliveryMethod.PICKUP
    urgency: Urgency = Urgency.NORMAL


@dataclass(frozen=True, slots=True)
class ValidationErrors:
    """Every field error of one submission, reported together."""

    errors: tuple[AppError, ...]

    @property
    def fields(self) -> dict[str, str]:
        return {e.field or "form": e.message for e in self.errors}

    def __str__(self) -> str:
        return "; ".join(str(e) for e in self.errors)


@dataclass(frozen=True, slots=True)
class PreparedOrder:
    order_id: str
    customer_name: str
    first_name: str
    last_name: str | None
    whatsapp: str
    email: str | None
    company: str | None
    service_type: ServiceType
    urgency: Urgency
    scope: Mapping[str, Any]
    delivery_method: DeliveryMethod
    schedule_date: str | None
    schedule_time: str | None
    shipping_cost: Money
    voucher_code: str | None
    voucher_error: VoucherError | None
    amounts: Amounts
    payment_required: bool

    @property
    def status(self) -> OrderStatus:
        return self.amounts.status

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "customer_name": self.customer_name,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "whatsapp": self.whatsapp,
            "email": self.email,
            "company": self.company,
            "service_type": self.service_type.value,
            "urgency": self.urgency.value,
            "scope": dict(self.scope),
            "delivery_method": self.delivery_method.value,
            "schedule_date": self.schedule_date,
            "schedule_time": self.schedule_time,
            "shipping_cost": self.shipping_cost,
            "voucher_code": self.voucher_code,
            "voucher_error": self.voucher_error.value if self.voucher_error else None,
            "payment_required": self.payment_required,
            **self.amounts.to_dict(),
        }


__all__ = (
    "DeliveryMethod",
    "Urgency",
    "OrderForm",
    "ValidationErrors",
    "PreparedOrder",
)
