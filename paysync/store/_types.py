"""
Storage — typed, Result-based persistence for orders and transactions.

Storage is the single shared mutable resource of the core. Every write
is keyed by order id and is a single upsert; the sticky-terminal rule is
applied inside the write, never as a separate read-then-write by callers.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Protocol

from kungfu import Result

from paysync.errors import AppError, AppErrors
from paysync.order import PreparedOrder
from paysync.pricing import OrderStatus
from paysync.status import PaymentStatus


# ═══════════════════════════════════════════════════════════════════════════════
# Store Error
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class StoreError:
    """Storage operation error."""

    message: str
    cause: Exception | None = None

    def to_app_error(self) -> AppError:
        return AppErrors.persistence(self.message, cause=self.cause)


# ═══════════════════════════════════════════════════════════════════════════════
# Records
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class OrderRecord:
    """
    A persisted order. Never deleted; only its statuses move.

    data: the full prepared order, JSON-ready.
    """

    order_id: str
    service_type: str
    status: OrderStatus
    payment_status: PaymentStatus
    grand_total: int
    amount_due: int
    data: Mapping[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_prepared(cls, prepared: PreparedOrder, now: datetime) -> OrderRecord:
        return cls(
            order_id=prepared.order_id,
            service_type=prepared.service_type.value,
            status=prepared.status,
            payment_status=PaymentStatus.DRAFT,
            grand_total=prepared.amounts.grand_total,
            amount_due=prepared.amounts.amount_due_now,
            data=prepared.to_dict(),
            created_at=now,
            updated_at=now,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "service_type": self.service_type,
            "status": self.status.value,
            "payment_status": self.payment_status.value,
            "grand_total": self.grand_total,
            "amount_due": self.amount_due,
            "data": dict(self.data),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> OrderRecord:
        return cls(
            order_id=raw["order_id"],
            service_type=raw["service_type"],
            status=OrderStatus(raw["status"]),
            payment_status=PaymentStatus(raw["payment_status"]),
            grand_total=int(raw["grand_total"]),
            amount_due=int(raw["amount_due"]),
            data=raw.get("data") or {},
            created_at=datetime.fromisoformat(raw["created_at"]),
            updated_at=datetime.fromisoformat(raw["updated_at"]),
        )


@dataclass(frozen=True, slots=True)
class TransactionRecord:
    """
    One gateway interaction for an order, upserted by order id.

    transaction_status: raw gateway vocabulary.
    payment_status: what it maps to after the sticky rule.
    processed: True once a terminal status has been applied.
    """

    id: str
    order_id: str
    transaction_id: str
    gross_amount: int
    payment_type: str
    transaction_status: str
    payment_status: PaymentStatus
    created_at: datetime
    updated_at: datetime
    transaction_time: str | None = None
    fraud_status: str | None = None
    notification_data: Mapping[str, Any] = field(default_factory=dict)
    retry_count: int = 0
    last_retry_at: datetime | None = None
    processed: bool = False

    def with_retry(self, attempt: int, at: datetime) -> TransactionRecord:
        return replace(self, retry_count=attempt, last_retry_at=at, updated_at=at)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "transaction_id": self.transaction_id,
            "gross_amount": self.gross_amount,
            "payment_type": self.payment_type,
            "transaction_status": self.transaction_status,
            "payment_status": self.payment_status.value,
            "transaction_time": self.transaction_time,
            "fraud_status": self.fraud_status,
            "notification_data": dict(self.notification_data),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "retry_count": self.retry_count,
            "last_retry_at": self.last_retry_at.isoformat() if self.last_retry_at else None,
            "processed": self.processed,
        }

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> TransactionRecord:
        last_retry = raw.get("last_retry_at")
        return cls(
            id=raw["id"],
            order_id=raw["order_id"],
            transaction_id=raw["transaction_id"],
            gross_amount=int(raw["gross_amount"]),
            payment_type=raw["payment_type"],
            transaction_status=raw["transaction_status"],
            payment_status=PaymentStatus(raw["payment_status"]),
            transaction_time=raw.get("transaction_time"),
            fraud_status=raw.get("fraud_status"),
            notification_data=raw.get("notification_data") or {},
            created_at=datetime.fromisoformat(raw["created_at"]),
            updated_at=datetime.fromisoformat(raw["updated_at"]),
            retry_count=int(raw.get("retry_count", 0)),
            last_retry_at=datetime.fromisoformat(last_retry) if last_retry else None,
            processed=bool(raw.get("processed", False)),
        )


@dataclass(frozen=True, slots=True)
class TransactionFilters:
    order_id: str | None = None
    status: str | None = None
    start: datetime | None = None
    end: datetime | None = None

    def matches(self, record: TransactionRecord) -> bool:
        if self.order_id and record.order_id != self.order_id:
            return False
        if self.status and record.transaction_status != self.status:
            return False
        if self.start and record.created_at < self.start:
            return False
        if self.end and record.created_at > self.end:
            return False
        return True

    def to_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self.order_id:
            params["orderId"] = self.order_id
        if self.status:
            params["status"] = self.status
        if self.start:
            params["startDate"] = self.start.isoformat()
        if self.end:
            params["endDate"] = self.end.isoformat()
        return params


NO_FILTERS = TransactionFilters()


# ═══════════════════════════════════════════════════════════════════════════════
# Storage Protocol
# ═══════════════════════════════════════════════════════════════════════════════


class Storage(Protocol):
    """
    Persistence for orders and transactions.

    Implementations: MemoryStorage, SQLAlchemyStorage, RemoteStorage.
    The core never knows which one it is talking to.
    """

    async def save_order(self, order: OrderRecord) -> Result[OrderRecord, StoreError]:
        """Upsert an order by id. An existing order keeps its statuses."""
        ...

    async def get_order(self, order_id: str) -> Result[OrderRecord | None, StoreError]:
        ...

    async def apply_payment(
        self, order_id: str, payment: PaymentStatus
    ) -> Result[OrderRecord | None, StoreError]:
        """
        Move an order's payment status under the sticky rule, and its
        order status accordingly. Ok(None) if the order is unknown.
        """
        ...

    async def set_order_status(
        self, order_id: str, status: OrderStatus
    ) -> Result[OrderRecord | None, StoreError]:
        """Write an order status already checked by the lifecycle rules."""
        ...

    async def upsert_transaction(
        self, record: TransactionRecord
    ) -> Result[TransactionRecord, StoreError]:
        """
        Insert or update the transaction for `record.order_id`.

        Keeps the stored id, created_at and retry bookkeeping; a terminal
        stored status is not overwritten (see `status.settle`).
        Returns what is stored after the write.
        """
        ...

    async def get_transaction(self, order_id: str) -> Result[TransactionRecord | None, StoreError]:
        ...

    async def list_transactions(
        self, filters: TransactionFilters = NO_FILTERS
    ) -> Result[list[TransactionRecord], StoreError]:
        """Matching transactions, newest `created_at` first."""
        ...

    async def record_retry(
        self, order_id: str, attempt: int, at: datetime
    ) -> Result[None, StoreError]:
        ...


__all__ = (
    "StoreError",
    "OrderRecord",
    "TransactionRecord",
    "TransactionFilters",
    "NO_FILTERS",
    "Storage",
)
