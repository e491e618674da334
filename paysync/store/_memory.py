"""
In-memory storage — single process, used for tests and for running
without a backend.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime

from kungfu import Result, Ok

from paysync._types import Clock
from paysync.pricing import OrderStatus
from paysync.status import PaymentStatus
from paysync.store._merge import merge_order_payment, merge_transaction
from paysync.store._types import (
    NO_FILTERS,
    OrderRecord,
    StoreError,
    TransactionFilters,
    TransactionRecord,
)


class MemoryStorage:
    """
    Note: Only for single-instance use. No data survives a restart.
    One asyncio.Lock makes every write a single atomic step.
    """

    def __init__(self, *, clock: Clock = datetime.now) -> None:
        self._orders: dict[str, OrderRecord] = {}
        self._transactions: dict[str, TransactionRecord] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    async def save_order(self, order: OrderRecord) -> Result[OrderRecord, StoreError]:
        async with self._lock:
            existing = self._orders.get(order.order_id)
            if existing is not None:
                order = replace(
                    order,
                    status=existing.status,
                    payment_status=existing.payment_status,
                    created_at=existing.created_at,
                )
            self._orders[order.order_id] = order
            return Ok(order)

    async def get_order(self, order_id: str) -> Result[OrderRecord | None, StoreError]:
        async with self._lock:
            return Ok(self._orders.get(order_id))

    async def apply_payment(
        self, order_id: str, payment: PaymentStatus
    ) -> Result[OrderRecord | None, StoreError]:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                return Ok(None)
            updated = merge_order_payment(order, payment, self._clock())
            self._orders[order_id] = updated
            return Ok(updated)

    async def set_order_status(
        self, order_id: str, status: OrderStatus
    ) -> Result[OrderRecord | None, StoreError]:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                return Ok(None)
            updated = replace(order, status=status, updated_at=self._clock())
            self._orders[order_id] = updated
            return Ok(updated)

    async def upsert_transaction(
        self, record: TransactionRecord
    ) -> Result[TransactionRecord, StoreError]:
        async with self._lock:
            stored = merge_transaction(self._transactions.get(record.order_id), record)
            self._transactions[record.order_id] = stored
            return Ok(stored)

    async def get_transaction(self, order_id: str) -> Result[TransactionRecord | None, StoreError]:
        async with self._lock:
            return Ok(self._transactions.get(order_id))

    async def list_transactions(
        self, filters: TransactionFilters = NO_FILTERS
    ) -> Result[list[TransactionRecord], StoreError]:
        async with self._lock:
            rows = [r for r in self._transactions.values() if filters.matches(r)]
        rows.sort(key=lambda r: r.created_at, reverse=True)
        return Ok(rows)

    async def record_retry(
        self, order_id: str, attempt: int, at: datetime
    ) -> Result[None, StoreError]:
        async with self._lock:
            record = self._transactions.get(order_id)
            if record is not None:
                self._transactions[order_id] = record.with_retry(attempt, at)
            return Ok(None)


__all__ = ("MemoryStorage",)
