"""
Notification reconciler — turns inbound gateway notifications into
durable transaction and order state.

    signature gate → upsert transaction by order id → settle order payment

Persistence failures are retried under a RetryPolicy; each retry is
recorded on the transaction. When the budget runs out the notification
is logged for an operator and reported as failed.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from datetime import datetime
from typing import Protocol

from kungfu import Result, Ok, Error

from paysync._types import Clock, Sleep
from paysync.errors import AppError, ErrorKind
from paysync.gateway import HttpBackendApi, Notification, ProcessResult
from paysync.logs import PaymentEvent, PaymentEventLog, security_logger
from paysync.resilience import Retries, RetryPolicy, retry
from paysync.status import map_gateway_status
from paysync.store import Storage, TransactionRecord

logger = logging.getLogger(__name__)

_HEX = re.compile(r"^[0-9a-fA-F]+$")


# ═══════════════════════════════════════════════════════════════════════════════
# Signature Verification
# ═══════════════════════════════════════════════════════════════════════════════


class SignatureVerifier(Protocol):
    """Decides whether a notification is authentic."""

    async def verify(self, notification: Notification) -> Result[bool, AppError]: ...


class HexSignatureVerifier:
    """
    Format-only check for running without a backend: the signed fields
    are present and the signature is hex. Proves nothing cryptographically.
    """

    async def verify(self, notification: Notification) -> Result[bool, AppError]:
        if not (
            notification.order_id
            and notification.status_code
            and notification.gross_amount
            and notification.signature_key
        ):
            return Ok(False)
        return Ok(bool(_HEX.match(notification.signature_key)))


class BackendSignatureVerifier:
    """Delegates the check to the backend, which holds the server key."""

    def __init__(self, backend: HttpBackendApi) -> None:
        self._backend = backend

    async def verify(self, notification: Notification) -> Result[bool, AppError]:
        return await self._backend.verify_signature(notification)


# ═══════════════════════════════════════════════════════════════════════════════
# Records
# ═══════════════════════════════════════════════════════════════════════════════


def transaction_from(notification: Notification, *, now: datetime) -> TransactionRecord:
    """A transaction row for `notification`; the store decides what survives."""
    return TransactionRecord(
        id=str(uuid.uuid4()),
        order_id=notification.order_id,
        transaction_id=notification.transaction_id,
        gross_amount=notification.amount,
        payment_type=notification.payment_type,
        transaction_status=notification.transaction_status,
        payment_status=map_gateway_status(notification.transaction_status),
        transaction_time=notification.transaction_time or None,
        fraud_status=notification.fraud_status,
        notification_data=dict(notification.raw),
        created_at=now,
        updated_at=now,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Reconciler
# ═══════════════════════════════════════════════════════════════════════════════


class NotificationReconciler:
    """
    Example:
        reconciler = NotificationReconciler(
            BackendSignatureVerifier(backend),
            storage,
            retry=Retries.WEBHOOK_PERSISTENCE,
        )
        outcome = await reconciler.process(Notification.from_payload(body))

    Processing the same notification twice stores the same row: the
    upsert is keyed by order id and terminal statuses are sticky.
    """

    def __init__(
        self,
        verifier: SignatureVerifier,
        storage: Storage,
        *,
        retry: RetryPolicy = Retries.WEBHOOK_PERSISTENCE,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = datetime.now,
        events: PaymentEventLog | None = None,
    ) -> None:
        self._verifier = verifier
        self._storage = storage
        self._retry = retry
        self._sleep = sleep
        self._clock = clock
        self._events = events if events is not None else PaymentEventLog(clock=clock)

    @property
    def events(self) -> PaymentEventLog:
        return self._events

    async def process(self, notification: Notification) -> ProcessResult:
        order_id = notification.order_id
        self._events.record(
            PaymentEvent.NOTIFICATION_RECEIVED,
            order_id,
            status=notification.transaction_status,
        )

        match await self._verifier.verify(notification):
            case Ok(True):
                pass
            case Ok(False):
                security_logger.warning("Invalid signature for order %s", order_id)
                return self._reject(order_id, "Invalid signature", ErrorKind.SIGNATURE)
            case Error(err):
                security_logger.warning(
                    "Signature verification unavailable for order %s: %s", order_id, err
                )
                return self._reject(
                    order_id, f"Signature verification failed: {err.message}", err.kind
                )

        record = transaction_from(notification, now=self._clock())

        async def persist() -> Result[TransactionRecord, AppError]:
            match await self._storage.upsert_transaction(record):
                case Ok(stored):
                    pass
                case Error(e):
                    return Error(e.to_app_error())
            match await self._storage.apply_payment(order_id, stored.payment_status):
                case Ok(_):
                    return Ok(stored)
                case Error(e):
                    return Error(e.to_app_error())

        async def on_retry(attempt: int, err: AppError, delay: float) -> None:
            match await self._storage.record_retry(order_id, attempt, self._clock()):
                case Error(e):
                    logger.warning("could not record retry %d for %s: %s", attempt, order_id, e.message)
                case Ok(_):
                    pass

        match await retry(
            persist,
            self._retry,
            sleep=self._sleep,
            on_retry=on_retry,
            label=f"notification {order_id}",
        ):
            case Ok(stored):
                self._events.record(
                    PaymentEvent.NOTIFICATION_PROCESSED,
                    order_id,
                    status=stored.payment_status.value,
                    processed=stored.processed,
                )
                return ProcessResult(True, f"Notification processed for order {order_id}")
            case Error(err):
                logger.error(
                    "notification for order %s not persisted after %d retries, "
                    "manual intervention required: %s",
                    order_id,
                    self._retry.max_retries,
                    err,
                )
                return self._reject(order_id, f"Failed to persist notification: {err.message}", err.kind)

    def _reject(self, order_id: str, message: str, kind: ErrorKind) -> ProcessResult:
        self._events.record(PaymentEvent.NOTIFICATION_REJECTED, order_id, reason=message)
        return ProcessResult(False, message, kind)


__all__ = (
    "SignatureVerifier",
    "HexSignatureVerifier",
    "BackendSignatureVerifier",
    "transaction_from",
    "NotificationReconciler",
)
