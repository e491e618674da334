"""
Gateway shapes — what the core sends to the payment gateway and what
comes back (popup outcomes, status polls, webhook notifications).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Protocol

from paysync._types import Money


# ═══════════════════════════════════════════════════════════════════════════════
# Request
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ItemDetail:
    id: str
    name: str
    price: Money
    quantity: int = 1

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name[:50], "price": self.price, "quantity": self.quantity}


@dataclass(frozen=True, slots=True)
class CustomerDetails:
    first_name: str
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None

    def to_payload(self) -> dict[str, Any]:
        out: dict[str, Any] = {"first_name": self.first_name}
        if self.last_name:
            out["last_name"] = self.last_name
        if self.email:
            out["email"] = self.email
        if self.phone:
            out["phone"] = self.phone
        return out


@dataclass(frozen=True, slots=True)
class GatewayRequest:
    """
    Invariant: gross_amount equals the sum of item price × quantity.
    """

    order_id: str
    gross_amount: Money
    item_details: tuple[ItemDetail, ...]
    customer_details: CustomerDetails
    payment_method: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "transaction_details": {
                "order_id": self.order_id,
                "gross_amount": self.gross_amount,
            },
            "item_details": [i.to_payload() for i in self.item_details],
            "customer_details": self.customer_details.to_payload(),
        }
        if self.payment_method:
            payload["enabled_payments"] = [self.payment_method]
        return payload


@dataclass(frozen=True, slots=True)
class TransactionToken:
    token: str
    redirect_url: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Results & Notifications
# ═══════════════════════════════════════════════════════════════════════════════


def parse_amount(raw: Any) -> Money:
    """Gateway amounts arrive as "999000.00"; whole rupiah only."""
    try:
        return int(Decimal(str(raw)))
    except (InvalidOperation, ValueError):
        return 0


@dataclass(frozen=True, slots=True)
class GatewayResult:
    """Popup result object or status-poll answer."""

    order_id: str
    transaction_status: str
    transaction_id: str = ""
    payment_type: str = ""
    transaction_time: str | None = None
    gross_amount: str | None = None
    status_code: str | None = None
    status_message: str | None = None
    fraud_status: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> GatewayResult:
        return cls(
            order_id=str(raw.get("order_id", "")),
            transaction_status=str(raw.get("transaction_status", "")),
            transaction_id=str(raw.get("transaction_id", "")),
            payment_type=str(raw.get("payment_type", "")),
            transaction_time=raw.get("transaction_time"),
            gross_amount=None if raw.get("gross_amount") is None else str(raw["gross_amount"]),
            status_code=None if raw.get("status_code") is None else str(raw["status_code"]),
            status_message=raw.get("status_message"),
            fraud_status=raw.get("fraud_status"),
            raw=dict(raw),
        )


@dataclass(frozen=True, slots=True)
class Notification:
    """An inbound webhook body. `raw` keeps every field for the audit log."""

    order_id: str
    transaction_id: str
    gross_amount: str
    payment_type: str
    transaction_time: str
    transaction_status: str
    signature_key: str
    status_code: str | None = None
    fraud_status: str | None = None
    status_message: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)

    @property
    def amount(self) -> Money:
        return parse_amount(self.gross_amount)

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> Notification:
        def text(key: str) -> str:
            value = raw.get(key)
            return "" if value is None else str(value)

        return cls(
            order_id=text("order_id"),
            transaction_id=text("transaction_id"),
            gross_amount=text("gross_amount"),
            payment_type=text("payment_type"),
            transaction_time=text("transaction_time"),
            transaction_status=text("transaction_status"),
            signature_key=text("signature_key"),
            status_code=None if raw.get("status_code") is None else str(raw["status_code"]),
            fraud_status=raw.get("fraud_status"),
            status_message=raw.get("status_message"),
            raw=dict(raw),
        )

    @classmethod
    def from_result(cls, result: GatewayResult) -> Notification:
        """A popup result or poll answer, as the reconciler sees it."""
        return cls(
            order_id=result.order_id,
            transaction_id=result.transaction_id,
            gross_amount=result.gross_amount or "0",
            payment_type=result.payment_type,
            transaction_time=result.transaction_time or "",
            transaction_status=result.transaction_status,
            signature_key="",
            status_code=result.status_code,
            fraud_status=result.fraud_status,
            status_message=result.status_message,
            raw=result.raw,
        )

    def to_payload(self) -> dict[str, Any]:
        return dict(self.raw) if self.raw else {
            "order_id": self.order_id,
            "transaction_id": self.transaction_id,
            "gross_amount": self.gross_amount,
            "payment_type": self.payment_type,
            "transaction_time": self.transaction_time,
            "transaction_status": self.transaction_status,
            "signature_key": self.signature_key,
            "status_code": self.status_code,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# Popup Outcome
# ═══════════════════════════════════════════════════════════════════════════════


class OutcomeKind(Enum):
    SUCCESS = "success"
    PENDING = "pending"
    ERROR = "error"
    CLOSE = "close"


@dataclass(frozen=True, slots=True)
class GatewayOutcome:
    """Exactly one per popup invocation. CLOSE carries no result."""

    kind: OutcomeKind
    result: GatewayResult | None = None

    @classmethod
    def success(cls, result: GatewayResult) -> GatewayOutcome:
        return cls(OutcomeKind.SUCCESS, result)

    @classmethod
    def pending(cls, result: GatewayResult) -> GatewayOutcome:
        return cls(OutcomeKind.PENDING, result)

    @classmethod
    def error(cls, result: GatewayResult) -> GatewayOutcome:
        return cls(OutcomeKind.ERROR, result)

    @classmethod
    def closed(cls) -> GatewayOutcome:
        return cls(OutcomeKind.CLOSE)


class PaymentGateway(Protocol):
    """
    Hosted-checkout popup/redirect. Resolves with one outcome; transport
    problems are raised and classified by the caller.
    """

    async def open(self, token: TransactionToken, request: GatewayRequest) -> GatewayOutcome: ...


__all__ = (
    "ItemDetail",
    "CustomerDetails",
    "GatewayRequest",
    "TransactionToken",
    "parse_amount",
    "GatewayResult",
    "Notification",
    "OutcomeKind",
    "GatewayOutcome",
    "PaymentGateway",
)
