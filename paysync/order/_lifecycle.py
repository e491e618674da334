"""
Order lifecycle — which order status moves are legal, and what a
settled payment does to an order.
"""

from __future__ import annotations

from kungfu import Result, Ok, Error

from paysync.errors import AppError, AppErrors
from paysync.pricing import OrderStatus
from paysync.status import PaymentStatus

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.WAITING_DEPOSIT: frozenset({OrderStatus.DEPOSIT_PAID, OrderStatus.CANCELLED}),
    OrderStatus.DEPOSIT_PAID: frozenset({OrderStatus.WAITING_ONSITE_PAYMENT, OrderStatus.CANCELLED}),
    OrderStatus.WAITING_ONSITE_PAYMENT: frozenset({OrderStatus.ONSITE_PAID, OrderStatus.CANCELLED}),
    OrderStatus.ONSITE_PAID: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}


def is_final(status: OrderStatus) -> bool:
    return not ORDER_TRANSITIONS[status]


def advance_order_status(current: OrderStatus, target: OrderStatus) -> Result[OrderStatus, AppError]:
    if target is current:
        return Ok(current)
    if target not in ORDER_TRANSITIONS[current]:
        return Error(
            AppErrors.validation(
                f"Cannot move order from {current.value} to {target.value}", field="status"
            )
        )
    return Ok(target)


def order_status_after_payment(current: OrderStatus, payment: PaymentStatus) -> OrderStatus | None:
    """
    Order status implied by a payment outcome, or None when the order
    does not move.
    """
    match payment:
        case PaymentStatus.PAID if current is OrderStatus.WAITING_DEPOSIT:
            return OrderStatus.DEPOSIT_PAID
        case PaymentStatus.PAID if current is OrderStatus.WAITING_ONSITE_PAYMENT:
            return OrderStatus.ONSITE_PAID
        case PaymentStatus.CANCELLED if current is OrderStatus.WAITING_DEPOSIT:
            return OrderStatus.CANCELLED
        case _:
            return None


__all__ = (
    "ORDER_TRANSITIONS",
    "is_final",
    "advance_order_status",
    "order_status_after_payment",
)
