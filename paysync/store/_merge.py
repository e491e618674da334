"""
Write rules shared by every Storage implementation.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from paysync.order import order_status_after_payment
from paysync.status import PaymentStatus, is_terminal, settle
from paysync.store._types import OrderRecord, TransactionRecord


def merge_transaction(
    existing: TransactionRecord | None,
    incoming: TransactionRecord,
) -> TransactionRecord:
    """What a transaction upsert stores, given what is already there."""
    if existing is None:
        return replace(incoming, processed=is_terminal(incoming.payment_status))

    step = settle(existing.payment_status, incoming.payment_status)
    if step.ignored:
        return existing

    return replace(
        incoming,
        id=existing.id,
        created_at=existing.created_at,
        retry_count=max(existing.retry_count, incoming.retry_count),
        last_retry_at=incoming.last_retry_at or existing.last_retry_at,
        payment_status=step.status,
        processed=is_terminal(step.status),
    )


def merge_order_payment(
    order: OrderRecord,
    payment: PaymentStatus,
    now: datetime,
) -> OrderRecord:
    step = settle(order.payment_status, payment)
    if not step.changed:
        return order
    status = order_status_after_payment(order.status, step.status) or order.status
    return replace(order, payment_status=step.status, status=status, updated_at=now)


__all__ = (
    "merge_transaction",
    "merge_order_payment",
)
