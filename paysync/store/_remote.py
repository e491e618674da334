"""
Remote storage — the backend persistence API over HTTP.

The backend applies the same upsert and sticky rules server-side; this
class only moves records across the wire through a ResilientClient.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

from kungfu import Result, Ok, Error

from paysync.errors import AppError, ErrorKind
from paysync.pricing import OrderStatus
from paysync.resilience import NO_RETRY, ResilientClient, RetryPolicy
from paysync.status import PaymentStatus
from paysync.store._types import (
    NO_FILTERS,
    OrderRecord,
    StoreError,
    TransactionFilters,
    TransactionRecord,
)


def _store_error(action: str, err: AppError) -> StoreError:
    cause = err.cause if isinstance(err.cause, Exception) else None
    return StoreError(f"Failed to {action}: {err.message}", cause)


class RemoteStorage:
    """One attempt per call unless `retry` says otherwise; callers own the retry loop."""

    def __init__(
        self,
        client: ResilientClient,
        *,
        retry: RetryPolicy = NO_RETRY,
    ) -> None:
        self._client = client
        self._retry = retry

    async def save_order(self, order: OrderRecord) -> Result[OrderRecord, StoreError]:
        result = await self._client.request(
            "PUT", f"/orders/{order.order_id}", json=order.to_dict(), retry=self._retry
        )
        return self._decode(result, "save order", OrderRecord.from_dict, fallback=order)

    async def get_order(self, order_id: str) -> Result[OrderRecord | None, StoreError]:
        result = await self._client.request("GET", f"/orders/{order_id}", retry=self._retry)
        return self._decode_optional(result, "get order", OrderRecord.from_dict)

    async def apply_payment(
        self, order_id: str, payment: PaymentStatus
    ) -> Result[OrderRecord | None, StoreError]:
        result = await self._client.request(
            "POST",
            f"/orders/{order_id}/payment-status",
            json={"payment_status": payment.value},
            retry=self._retry,
        )
        return self._decode_optional(result, "apply payment", OrderRecord.from_dict)

    async def set_order_status(
        self, order_id: str, status: OrderStatus
    ) -> Result[OrderRecord | None, StoreError]:
        result = await self._client.request(
            "POST",
            f"/orders/{order_id}/status",
            json={"status": status.value},
            retry=self._retry,
        )
        return self._decode_optional(result, "set order status", OrderRecord.from_dict)

    async def upsert_transaction(
        self, record: TransactionRecord
    ) -> Result[TransactionRecord, StoreError]:
        result = await self._client.request(
            "PUT",
            f"/payments/transactions/{record.order_id}/log",
            json=record.to_dict(),
            retry=self._retry,
        )
        return self._decode(result, "upsert transaction", TransactionRecord.from_dict, fallback=record)

    async def get_transaction(self, order_id: str) -> Result[TransactionRecord | None, StoreError]:
        result = await self._client.request(
            "GET", f"/payments/transactions/{order_id}/log", retry=self._retry
        )
        return self._decode_optional(result, "get transaction", TransactionRecord.from_dict)

    async def list_transactions(
        self, filters: TransactionFilters = NO_FILTERS
    ) -> Result[list[TransactionRecord], StoreError]:
        result = await self._client.request(
            "GET",
            "/payments/transactions/history",
            params=filters.to_params(),
            retry=self._retry,
        )
        match result:
            case Ok(rows):
                try:
                    records = [TransactionRecord.from_dict(r) for r in rows or []]
                except (KeyError, TypeError, ValueError) as e:
                    return Error(StoreError(f"Failed to list transactions: {e}", e))
                records.sort(key=lambda r: r.created_at, reverse=True)
                return Ok(records)
            case Error(err):
                return Error(_store_error("list transactions", err))

    async def record_retry(
        self, order_id: str, attempt: int, at: datetime
    ) -> Result[None, StoreError]:
        result = await self._client.request(
            "POST",
            f"/payments/transactions/{order_id}/retry",
            json={"retry_count": attempt, "last_retry_at": at.isoformat()},
        )
        match result:
            case Ok(_):
                return Ok(None)
            case Error(err):
                return Error(_store_error("record retry", err))

    @staticmethod
    def _decode[T](
        result: Result[Any, AppError],
        action: str,
        parse: Callable[[Any], T],
        *,
        fallback: T,
    ) -> Result[T, StoreError]:
        match result:
            case Ok(None):
                return Ok(fallback)
            case Ok(body):
                try:
                    return Ok(parse(body))
                except (KeyError, TypeError, ValueError) as e:
                    return Error(StoreError(f"Failed to {action}: bad response {e}", e))
            case Error(err):
                return Error(_store_error(action, err))

    @staticmethod
    def _decode_optional[T](
        result: Result[Any, AppError],
        action: str,
        parse: Callable[[Any], T],
    ) -> Result[T | None, StoreError]:
        match result:
            case Ok(None):
                return Ok(None)
            case Ok(body):
                try:
                    return Ok(parse(body))
                except (KeyError, TypeError, ValueError) as e:
                    return Error(StoreError(f"Failed to {action}: bad response {e}", e))
            case Error(err) if err.kind is ErrorKind.NOT_FOUND:
                return Ok(None)
            case Error(err):
                return Error(_store_error(action, err))


__all__ = ("RemoteStorage",)
