"""
Checkout — the payment orchestrator state machine.

    from paysync import checkout as Co

    checkout = Co.PaymentOrchestrator(popup, backend, storage, settings=settings)

    await checkout.submit_info(form, subtotal=1_000_000)   # → SELECTING_METHOD
    await checkout.select_method("qris")                   # fee resolved, re-priced
    await checkout.pay()                                   # → PAID | PENDING_CONFIRMATION | FAILED | CLOSED
    await checkout.poll_status()                           # same transition as the webhook
    await checkout.retry()                                 # FAILED | CLOSED → SELECTING_METHOD
"""

from paysync.checkout._types import (
    SYNC_PENDING_WARNING,
    CheckoutState,
    RETRYABLE_STATES,
    CheckoutSession,
)
from paysync.checkout._orchestrator import PaymentOrchestrator

__all__ = (
    "SYNC_PENDING_WARNING",
    "CheckoutState",
    "RETRYABLE_STATES",
    "CheckoutSession",
    "PaymentOrchestrator",
)
