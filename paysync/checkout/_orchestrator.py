"""
Payment orchestrator — drives one checkout from form to gateway outcome.

Every collaborator is injected: the gateway popup, the backend API, the
storage and the event log. The popup callback and the manual status poll
both go through the same status transition as the webhook, so whichever
signal lands first, a terminal status is never walked back.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any

from kungfu import Result, Ok, Error

from paysync import lift as L
from paysync._types import Clock, Money, Sleep
from paysync.checkout._types import (
    RETRYABLE_STATES,
    SYNC_PENDING_WARNING,
    CheckoutSession,
    CheckoutState,
)
from paysync.config import Settings
from paysync.errors import AppError, AppErrors, ErrorKind
from paysync.gateway import (
    BackendApi,
    CustomerDetails,
    GatewayOutcome,
    GatewayRequest,
    GatewayResult,
    ItemDetail,
    Notification,
    OutcomeKind,
    PaymentGateway,
)
from paysync.logs import PaymentEvent, PaymentEventLog
from paysync.order import OrderForm, prepare
from paysync.pricing import apply_fee, parse_method, resolve_fee
from paysync.resilience import Retries, RetryPolicy, retry
from paysync.status import PaymentStatus, is_terminal, settle
from paysync.store import OrderRecord, Storage
from paysync.voucher import Voucher
from paysync.webhook import transaction_from

logger = logging.getLogger(__name__)

_STATE_FOR_STATUS: dict[PaymentStatus, CheckoutState] = {
    PaymentStatus.PAID: CheckoutState.PAID,
    PaymentStatus.PENDING_CONFIRMATION: CheckoutState.PENDING_CONFIRMATION,
    PaymentStatus.FAILED: CheckoutState.FAILED,
    PaymentStatus.CANCELLED: CheckoutState.FAILED,
}

_FINALIZED = frozenset({PaymentStatus.PAID, PaymentStatus.PENDING_CONFIRMATION})

_NOT_PRICED = AppErrors.validation("Order details have not been submitted", field="state")

_DEFAULT_RAW_STATUS: dict[OutcomeKind, str] = {
    OutcomeKind.SUCCESS: "settlement",
    OutcomeKind.PENDING: "pending",
}


class PaymentOrchestrator:
    """
    One orchestrator per checkout; it owns `session`.

    Example:
        checkout = PaymentOrchestrator(popup, backend, storage, settings=settings)
        await checkout.submit_info(form, subtotal=1_000_000)
        await checkout.select_method("bca_va")
        match await checkout.pay():
            case Ok(session) if session.state is CheckoutState.PAID:
                ...
    """

    def __init__(
        self,
        gateway: PaymentGateway,
        backend: BackendApi,
        storage: Storage,
        *,
        settings: Settings | None = None,
        events: PaymentEventLog | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = datetime.now,
        gateway_retry: RetryPolicy = Retries.GATEWAY,
    ) -> None:
        self._gateway = gateway
        self._backend = backend
        self._storage = storage
        self._settings = settings or Settings()
        self._events = events if events is not None else PaymentEventLog(clock=clock)
        self._sleep = sleep
        self._clock = clock
        self._gateway_retry = gateway_retry
        self.session = CheckoutSession()

    @property
    def events(self) -> PaymentEventLog:
        return self._events

    # ═══════════════════════════════════════════════════════════════════════════
    # Info & Method
    # ═══════════════════════════════════════════════════════════════════════════

    async def submit_info(
        self,
        form: OrderForm,
        subtotal: Money,
        voucher: Voucher | None = None,
        shipping_cost: Money = 0,
    ) -> Result[CheckoutSession, AppError]:
        """
        Validate the form, price the order and persist it.

        Stays in COLLECTING_INFO on any error. Re-submitting from
        SELECTING_METHOD keeps the order id.
        """
        s = self.session
        if (err := self._require(CheckoutState.COLLECTING_INFO, CheckoutState.SELECTING_METHOD)) is not None:
            return Error(err)

        now = self._clock()
        match prepare(
            form,
            subtotal,
            voucher,
            shipping_cost=shipping_cost,
            now=now,
            strict_service_labels=self._settings.strict_service_labels,
            order_id=s.order_id,
        ):
            case Ok(order):
                pass
            case Error(errors):
                return Error(
                    AppError(
                        ErrorKind.VALIDATION,
                        str(errors),
                        details={"fields": errors.fields},
                    )
                )

        if not order.payment_required:
            return Error(
                AppErrors.validation(
                    f"{order.service_type.value} is paid on site, not through the gateway",
                    field="service",
                )
            )

        match await self._storage.save_order(OrderRecord.from_prepared(order, now)):
            case Ok(_):
                pass
            case Error(e):
                return Error(e.to_app_error())

        s.form = form
        s.subtotal = subtotal
        s.shipping_cost = shipping_cost
        s.voucher = voucher
        s.order = order
        s.base_amounts = order.amounts
        s.amounts = order.amounts
        s.method = None
        s.fee = 0
        s.state = CheckoutState.SELECTING_METHOD
        return Ok(s)

    async def select_method(self, method: str) -> Result[CheckoutSession, AppError]:
        """
        Pick a payment method and re-price with its fee.

        The fee is resolved on what is due now (the deposit, when one
        applies) and collected in full with it.
        """
        s = self.session
        if (err := self._require(CheckoutState.SELECTING_METHOD)) is not None:
            return Error(err)
        if s.base_amounts is None:
            return Error(_NOT_PRICED)

        parsed = parse_method(method)
        if parsed is None:
            return Error(AppErrors.validation(f"Unknown payment method: {method}", field="payment_method"))

        fee = resolve_fee(parsed, s.base_amounts.amount_due_now)
        s.method = parsed
        s.fee = fee
        s.amounts = apply_fee(s.base_amounts, fee)
        return Ok(s)

    # ═══════════════════════════════════════════════════════════════════════════
    # Pay
    # ═══════════════════════════════════════════════════════════════════════════

    def build_request(self) -> Result[GatewayRequest, AppError]:
        """Gateway request for the current session. Items always sum to the charge."""
        s = self.session
        order = s.order
        if order is None or s.amounts is None:
            return Error(_NOT_PRICED)
        charge = s.charge

        label = order.service_type.value.replace("_", " ").title()
        if s.amounts.deposit > 0:
            label = f"Deposit {label}"

        fee = min(s.fee, charge)
        items: list[ItemDetail] = []
        if charge - fee > 0:
            items.append(ItemDetail(f"service-{order.service_type.value}", label, charge - fee))
        if fee > 0 and s.method is not None:
            items.append(ItemDetail(f"fee-{s.method.value}", f"Fee {s.method.value}", fee))

        return Ok(GatewayRequest(
            order_id=order.order_id,
            gross_amount=charge,
            item_details=tuple(items),
            customer_details=CustomerDetails(
                first_name=order.first_name,
                last_name=order.last_name,
                email=order.email,
                phone=order.whatsapp,
            ),
            payment_method=s.method.value if s.method else None,
        ))

    async def pay(self) -> Result[CheckoutSession, AppError]:
        """
        Create the transaction, open the gateway and apply its outcome.

        Transport failures of the popup are retried on NETWORK/TIMEOUT
        only. A gateway-reported error is an outcome, not an Error.
        """
        s = self.session
        if (err := self._require(CheckoutState.SELECTING_METHOD)) is not None:
            return Error(err)
        if s.method is None:
            return Error(AppErrors.validation("Choose a payment method", field="payment_method"))
        match self.build_request():
            case Ok(request):
                pass
            case Error(err):
                return Error(err)
        order_id = request.order_id
        s.attempts += 1
        s.status_message = None

        match await self._backend.create_transaction(request):
            case Ok(token):
                s.token = token
                self._events.record(
                    PaymentEvent.TRANSACTION_CREATED,
                    order_id,
                    amount=request.gross_amount,
                    method=s.method.value,
                )
            case Error(err):
                return Error(self._fail(err.message, err))

        s.state = CheckoutState.AWAITING_GATEWAY_RESULT
        self._events.record(PaymentEvent.POPUP_OPENED, order_id, attempt=s.attempts)

        match await retry(
            lambda: L.guarded(lambda: self._gateway.open(token, request)),
            self._gateway_retry,
            sleep=self._sleep,
            label=f"gateway {order_id}",
        ):
            case Ok(outcome):
                await self._apply_outcome(outcome)
                return Ok(s)
            case Error(err):
                return Error(self._fail(err.message, err))

    async def _apply_outcome(self, outcome: GatewayOutcome) -> None:
        s = self.session
        order_id = s.order_id or ""

        match outcome:
            case GatewayOutcome(kind=OutcomeKind.CLOSE):
                s.state = CheckoutState.CLOSED
                self._events.record(PaymentEvent.POPUP_CLOSED, order_id)

            case GatewayOutcome(kind=OutcomeKind.ERROR, result=result):
                message = (result.status_message if result else None) or "Payment failed"
                s.result = result
                self._fail(message)

            case GatewayOutcome(kind=kind, result=result):
                result = result or GatewayResult(order_id, _DEFAULT_RAW_STATUS[kind])
                if not result.transaction_status:
                    result = GatewayResult.from_payload(
                        {**result.raw, "order_id": order_id, "transaction_status": _DEFAULT_RAW_STATUS[kind]}
                    )
                status = await self._record(result)
                s.state = _STATE_FOR_STATUS.get(status, s.state)
                self._events.record(
                    PaymentEvent.PAYMENT_SUCCESS if kind is OutcomeKind.SUCCESS else PaymentEvent.PAYMENT_PENDING,
                    order_id,
                    status=status.value,
                )
                if status in _FINALIZED:
                    await self._finalize(result, status)

    # ═══════════════════════════════════════════════════════════════════════════
    # Poll & Retry
    # ═══════════════════════════════════════════════════════════════════════════

    async def poll_status(self) -> Result[CheckoutSession, AppError]:
        """Ask the backend for the transaction status and apply it."""
        s = self.session
        if s.order is None or s.token is None:
            return Error(AppErrors.validation("No transaction to poll", field="state"))

        match await self._backend.get_transaction_status(s.order.order_id):
            case Ok(result):
                status = await self._record(result)
                s.state = _STATE_FOR_STATUS.get(status, s.state)
                if s.state is CheckoutState.FAILED:
                    s.status_message = result.status_message or f"Payment {result.transaction_status}"
                self._events.record(PaymentEvent.STATUS_POLLED, s.order.order_id, status=status.value)
                return Ok(s)
            case Error(err):
                return Error(err)

    async def retry(self) -> Result[CheckoutSession, AppError]:
        """
        Back to SELECTING_METHOD after a failed or closed attempt.

        The stored order is read first: a webhook may have settled it
        after the popup closed.
        """
        s = self.session
        if (err := self._require(*RETRYABLE_STATES)) is not None:
            return Error(err)
        if s.order_id is not None:
            match await self._storage.get_order(s.order_id):
                case Ok(stored) if stored is not None and is_terminal(stored.payment_status):
                    s.payment_status = stored.payment_status
                case Ok(_):
                    pass
                case Error(e):
                    return Error(e.to_app_error())
        if s.payment_status is not None and is_terminal(s.payment_status):
            return Error(
                AppErrors.payment(
                    f"Payment for {s.order_id} is already {s.payment_status.value}",
                    details={"status": s.payment_status.value},
                )
            )
        if s.attempts >= self._settings.max_checkout_attempts:
            return Error(
                AppErrors.payment(
                    "Maximum payment attempts reached",
                    details={"attempts": s.attempts},
                )
            )
        s.state = CheckoutState.SELECTING_METHOD
        s.status_message = None
        return Ok(s)

    # ═══════════════════════════════════════════════════════════════════════════
    # Internals
    # ═══════════════════════════════════════════════════════════════════════════

    async def _record(self, result: GatewayResult) -> PaymentStatus:
        """
        Push a popup result or poll answer through the store, which applies
        the sticky rule. Falls back to a local settle if the store fails.
        """
        s = self.session
        order_id = s.order_id or result.order_id
        if result.order_id != order_id:
            result = replace(result, order_id=order_id)
        notification = Notification.from_result(result)
        record = transaction_from(notification, now=self._clock())
        if not record.gross_amount:
            record = replace(record, gross_amount=s.charge)

        s.result = result
        status: PaymentStatus
        match await self._storage.upsert_transaction(record):
            case Ok(stored):
                status = stored.payment_status
            case Error(e):
                logger.warning("transaction log for %s not saved: %s", order_id, e.message)
                s.warnings.append(f"transaction log not saved: {e.message}")
                status = settle(s.payment_status, record.payment_status).status

        match await self._storage.apply_payment(order_id, status):
            case Ok(_):
                pass
            case Error(e):
                logger.warning("order %s payment status not saved: %s", order_id, e.message)
                s.warnings.append(f"order status not saved: {e.message}")

        s.payment_status = status
        return status

    async def _finalize(self, result: GatewayResult, status: PaymentStatus) -> None:
        s = self.session
        order = s.order
        if order is None:
            return
        payload: dict[str, Any] = {
            "orderId": order.order_id,
            "paymentStatus": status.value,
            "paymentResult": dict(result.raw) or {"transaction_status": result.transaction_status},
            "customer": {
                "name": order.customer_name,
                "email": order.email,
                "whatsapp": order.whatsapp,
                "company": order.company,
            },
            "service": {
                "type": order.service_type.value,
                "scope": dict(order.scope),
                "paymentMethod": s.method.value if s.method else None,
            },
            "submissionSummary": {**order.to_dict(), **(s.amounts.to_dict() if s.amounts else {})},
        }
        match await self._backend.finalize_checkout(payload):
            case Ok(_):
                pass
            case Error(err):
                if SYNC_PENDING_WARNING not in s.warnings:
                    s.warnings.append(SYNC_PENDING_WARNING)
                self._events.record(PaymentEvent.FINALIZE_FAILED, order.order_id, error=str(err))

    def _fail(self, message: str, err: AppError | None = None) -> AppError:
        s = self.session
        s.state = CheckoutState.FAILED
        s.status_message = message
        self._events.record(
            PaymentEvent.PAYMENT_ERROR,
            s.order_id or "",
            message=message,
            kind=err.kind.value if err else "gateway",
        )
        return err or AppErrors.payment(message)

    def _require(self, *states: CheckoutState) -> AppError | None:
        current = self.session.state
        if current in states:
            return None
        return AppErrors.validation(
            f"Not allowed while {current.value}",
            field="state",
        )


__all__ = ("PaymentOrchestrator",)
