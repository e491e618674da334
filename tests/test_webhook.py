"""
Notification reconciler, request guard and the HTTP ingress.
"""

from __future__ import annotations

import logging
from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from kungfu import Error, Ok

from paysync.config import Settings
from paysync.errors import AppErrors, ErrorKind
from paysync.logs import PaymentEvent
from paysync.order import prepare
from paysync.pricing import OrderStatus
from paysync.resilience import NO_RETRY
from paysync.status import PaymentStatus
from paysync.store import MemoryStorage, OrderRecord, StoreError, TransactionRecord
from paysync.webhook import (
    NOTIFICATIONS_PATH,
    SECURITY_HEADERS,
    HexSignatureVerifier,
    NotificationReconciler,
    RateLimiter,
    RequestGuard,
    create_app,
    notification_errors,
    transaction_from,
)

from tests.conftest import NOW

ORDER_ID = "ORD-1736935200000-042"


class StaticVerifier:
    def __init__(self, answer) -> None:
        self.answer = answer

    async def verify(self, notification):
        return self.answer


class FlakyStorage(MemoryStorage):
    """Memory storage whose transaction writes fail `failures` times."""

    def __init__(self, failures: int, **kwargs) -> None:
        super().__init__(**kwargs)
        self.failures = failures
        self.attempts = 0

    async def upsert_transaction(self, record: TransactionRecord):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            return Error(StoreError("database is locked"))
        return await super().upsert_transaction(record)


async def seed_order(storage, form, payment: PaymentStatus | None = None) -> None:
    match prepare(form, 1_000_000, now=NOW, order_id=ORDER_ID):
        case Ok(prepared):
            await storage.save_order(OrderRecord.from_prepared(prepared, NOW))
        case Error(errors):
            raise AssertionError(str(errors))
    if payment is not None:
        await storage.apply_payment(ORDER_ID, payment)


def reconciler_for(storage, *, verifier=None, sleep=None, clock=None, retry=None):
    kwargs = {}
    if sleep is not None:
        kwargs["sleep"] = sleep
    if clock is not None:
        kwargs["clock"] = clock
    if retry is not None:
        kwargs["retry"] = retry
    return NotificationReconciler(verifier or HexSignatureVerifier(), storage, **kwargs)


# ============================================================================
# Reconciler
# ============================================================================


class TestReconciler:
    async def test_settlement_marks_order_paid(self, storage, form, make_notification, clock):
        await seed_order(storage, form)
        reconciler = reconciler_for(storage, clock=clock)

        result = await reconciler.process(make_notification(status="settlement"))

        assert result.success
        assert result.message == f"Notification processed for order {ORDER_ID}"
        match await storage.get_order(ORDER_ID):
            case Ok(order):
                assert order.payment_status is PaymentStatus.PAID
                assert order.status is OrderStatus.DEPOSIT_PAID
            case Error(e):
                raise AssertionError(e.message)

    async def test_deny_after_pending_fails_the_payment(self, storage, form, make_notification):
        await seed_order(storage, form, PaymentStatus.PENDING_CONFIRMATION)
        reconciler = reconciler_for(storage)
        await reconciler.process(make_notification(status="pending"))

        result = await reconciler.process(make_notification(status="deny"))

        assert result.success
        match await storage.get_transaction(ORDER_ID):
            case Ok(record):
                assert record.transaction_status == "deny"
                assert record.payment_status is PaymentStatus.FAILED
                assert record.processed
            case Error(e):
                raise AssertionError(e.message)
        match await storage.get_order(ORDER_ID):
            case Ok(order):
                assert order.payment_status is PaymentStatus.FAILED
            case Error(e):
                raise AssertionError(e.message)

    async def test_duplicate_notification_is_idempotent(self, storage, form, make_notification):
        await seed_order(storage, form)
        reconciler = reconciler_for(storage)
        notification = make_notification(status="settlement")

        await reconciler.process(notification)
        match await storage.get_transaction(ORDER_ID):
            case Ok(first):
                pass
            case Error(e):
                raise AssertionError(e.message)

        assert (await reconciler.process(notification)).success

        match await storage.list_transactions():
            case Ok(rows):
                assert len(rows) == 1
                assert rows[0].id == first.id
                assert rows[0].payment_status is PaymentStatus.PAID
            case Error(e):
                raise AssertionError(e.message)

    async def test_late_pending_never_downgrades_paid(self, storage, form, make_notification):
        await seed_order(storage, form)
        reconciler = reconciler_for(storage)

        await reconciler.process(make_notification(status="settlement"))
        await reconciler.process(make_notification(status="pending"))

        match await storage.get_order(ORDER_ID):
            case Ok(order):
                assert order.payment_status is PaymentStatus.PAID
            case Error(e):
                raise AssertionError(e.message)

    async def test_notification_without_order_still_logs_transaction(self, storage, make_notification):
        result = await reconciler_for(storage).process(make_notification(status="settlement"))

        assert result.success
        match await storage.get_transaction(ORDER_ID):
            case Ok(record):
                assert record is not None
                assert record.gross_amount == 554_445
            case Error(e):
                raise AssertionError(e.message)

    async def test_invalid_signature_is_rejected(self, storage, form, make_notification, caplog):
        await seed_order(storage, form)
        reconciler = reconciler_for(storage)

        with caplog.at_level(logging.WARNING, logger="paysync.security"):
            result = await reconciler.process(make_notification(signature="not-hex!"))

        assert not result.success
        assert result.kind is ErrorKind.SIGNATURE
        assert "Invalid signature" in caplog.text
        match await storage.get_transaction(ORDER_ID):
            case Ok(record):
                assert record is None
            case Error(e):
                raise AssertionError(e.message)
        assert [e.event for e in reconciler.events][-1] is PaymentEvent.NOTIFICATION_REJECTED

    async def test_verifier_outage_is_reported(self, storage, make_notification):
        verifier = StaticVerifier(Error(AppErrors.network("backend down")))
        result = await reconciler_for(storage, verifier=verifier).process(make_notification())

        assert not result.success
        assert result.kind is ErrorKind.NETWORK

    async def test_persistence_is_retried_and_recorded(self, form, make_notification, sleep, clock):
        storage = FlakyStorage(0, clock=clock)
        await seed_order(storage, form)
        reconciler = reconciler_for(storage, sleep=sleep, clock=clock)
        await reconciler.process(make_notification(status="pending"))

        storage.failures = 2
        result = await reconciler.process(make_notification(status="settlement"))

        assert result.success
        assert sleep.delays == [5.0, 10.0]
        match await storage.get_transaction(ORDER_ID):
            case Ok(record):
                assert record.retry_count == 2
                assert record.last_retry_at == NOW
                assert record.payment_status is PaymentStatus.PAID
            case Error(e):
                raise AssertionError(e.message)

    async def test_exhausted_retries_escalate(self, form, make_notification, sleep, caplog):
        storage = FlakyStorage(100)
        reconciler = reconciler_for(storage, sleep=sleep)

        with caplog.at_level(logging.ERROR, logger="paysync.webhook"):
            result = await reconciler.process(make_notification())

        assert not result.success
        assert result.kind is ErrorKind.PERSISTENCE
        assert storage.attempts == 4
        assert sleep.delays == [5.0, 10.0, 20.0]
        assert "manual intervention required" in caplog.text

    async def test_events_trace_the_notification(self, storage, make_notification):
        reconciler = reconciler_for(storage)
        await reconciler.process(make_notification())

        assert [e.event for e in reconciler.events.events(ORDER_ID)] == [
            PaymentEvent.NOTIFICATION_RECEIVED,
            PaymentEvent.NOTIFICATION_PROCESSED,
        ]


class TestHexSignatureVerifier:
    @staticmethod
    async def verified(notification) -> bool:
        match await HexSignatureVerifier().verify(notification):
            case Ok(answer):
                return answer
            case Error(err):
                raise AssertionError(err)

    async def test_requires_signed_fields(self, make_notification):
        assert await self.verified(make_notification())
        assert not await self.verified(make_notification(signature=""))
        assert not await self.verified(make_notification(status_code=None))
        assert not await self.verified(make_notification(signature="g00d"))

# ============================================================================
# Guard
# ============================================================================


class TestRateLimiter:
    def test_fixed_window(self, monotonic):
        limiter = RateLimiter({"/x": (2, 60.0)}, clock=monotonic)

        assert not limiter.is_limited("/x", "1.2.3.4")
        assert not limiter.is_limited("/x", "1.2.3.4")
        assert limiter.is_limited("/x", "1.2.3.4")
        assert not limiter.is_limited("/x", "5.6.7.8")

        monotonic.advance(61)
        assert not limiter.is_limited("/x", "1.2.3.4")

    def test_unconfigured_endpoint_is_open(self, monotonic):
        limiter = RateLimiter({}, clock=monotonic)
        assert not any(limiter.is_limited("/y", "c") for _ in range(1000))

    def test_cleanup_drops_expired_windows(self, monotonic):
        limiter = RateLimiter({"/x": (5, 10.0)}, clock=monotonic)
        limiter.is_limited("/x", "a")
        limiter.is_limited("/x", "b")
        monotonic.advance(11)
        assert limiter.cleanup() == 2


class TestRequestGuard:
    def test_checks_run_in_order(self, monotonic):
        settings = Settings().with_rate_limit(NOTIFICATIONS_PATH, 1).with_max_request_bytes(10)
        guard = RequestGuard(settings, clock=monotonic)

        first = guard.admit(NOTIFICATIONS_PATH, "c", content_length=50, origin="https://evil.example")
        assert first.status_code == 413

        second = guard.admit(NOTIFICATIONS_PATH, "c", content_length=50, origin="https://evil.example")
        assert second.status_code == 429

    def test_origin_only_checked_when_present(self, monotonic):
        guard = RequestGuard(Settings().with_allowed_origins("https://shop.example"), clock=monotonic)
        assert guard.admit("/any", "c") is None
        assert guard.admit("/any", "c", origin="https://shop.example") is None
        assert guard.admit("/any", "c", origin="https://evil.example").status_code == 403

    def test_client_id(self):
        assert RequestGuard.client_id({"x-forwarded-for": "10.0.0.1, 10.0.0.2"}) == "10.0.0.1"
        assert RequestGuard.client_id({"x-real-ip": "10.0.0.9"}, "127.0.0.1") == "10.0.0.9"
        assert RequestGuard.client_id({}, "127.0.0.1") == "127.0.0.1"
        assert RequestGuard.client_id({}) == "unknown"


class TestNotificationErrors:
    def test_valid_payload(self, make_payload):
        assert notification_errors(make_payload()) == []

    def test_empty_payload(self):
        assert notification_errors({}) == ["Notification data is required"]
        assert notification_errors(None) == ["Notification data is required"]

    def test_missing_fields_are_listed(self, make_payload):
        payload = make_payload()
        del payload["signature_key"]
        payload["payment_type"] = ""
        assert notification_errors(payload) == [
            "Required field 'payment_type' is missing",
            "Required field 'signature_key' is missing",
        ]

    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"order_id": "ord-lower"}, "Invalid order ID in notification"),
            ({"amount": "999"}, "Invalid gross amount in notification"),
            ({"amount": "100000001"}, "Invalid gross amount in notification"),
            ({"amount": "abc"}, "Invalid gross amount in notification"),
            ({"status": "chargeback"}, "Invalid transaction status: chargeback"),
        ],
    )
    def test_bad_values(self, make_payload, overrides, message):
        assert message in notification_errors(make_payload(**overrides))


# ============================================================================
# HTTP ingress
# ============================================================================


class TestNotificationApp:
    @pytest.fixture
    def client_for(self, storage, sleep, monotonic):
        def build(settings: Settings | None = None, *, reconciler=None) -> TestClient:
            reconciler = reconciler or reconciler_for(storage, sleep=sleep)
            guard = RequestGuard(settings or Settings(), clock=monotonic)
            return TestClient(create_app(reconciler, guard))

        return build

    def test_accepts_valid_notification(self, client_for, make_payload):
        response = client_for().post(NOTIFICATIONS_PATH, json=make_payload())

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": f"Notification processed for order {ORDER_ID}",
        }
        for name, value in SECURITY_HEADERS.items():
            assert response.headers[name] == value

    def test_invalid_json(self, client_for):
        response = client_for().post(
            NOTIFICATIONS_PATH, content=b"{not json", headers={"content-type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_invalid_payload_lists_errors(self, client_for, make_payload):
        payload = make_payload(status="chargeback")
        del payload["transaction_id"]

        response = client_for().post(NOTIFICATIONS_PATH, json=payload)

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Invalid notification",
            "errors": [
                "Required field 'transaction_id' is missing",
                "Invalid transaction status: chargeback",
            ],
        }

    def test_bad_signature_is_unauthorized(self, client_for, make_payload):
        response = client_for().post(NOTIFICATIONS_PATH, json=make_payload(signature="zz-not-hex"))
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_foreign_origin_is_forbidden(self, client_for, make_payload):
        response = client_for().post(
            NOTIFICATIONS_PATH, json=make_payload(), headers={"origin": "https://evil.example"}
        )
        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Invalid origin"}

    def test_oversized_body(self, client_for, make_payload):
        response = client_for(Settings().with_max_request_bytes(64)).post(
            NOTIFICATIONS_PATH, json=make_payload()
        )
        assert response.status_code == 413

    def test_rate_limited(self, client_for, make_payload):
        client = client_for(Settings().with_rate_limit(NOTIFICATIONS_PATH, 2))
        codes = [client.post(NOTIFICATIONS_PATH, json=make_payload()).status_code for _ in range(3)]
        assert codes == [200, 200, 429]

    def test_rate_limit_follows_forwarded_client(self, client_for, make_payload):
        client = client_for(Settings().with_rate_limit(NOTIFICATIONS_PATH, 1))
        first = client.post(NOTIFICATIONS_PATH, json=make_payload(), headers={"x-forwarded-for": "1.1.1.1"})
        second = client.post(NOTIFICATIONS_PATH, json=make_payload(), headers={"x-forwarded-for": "2.2.2.2"})
        assert (first.status_code, second.status_code) == (200, 200)

    def test_persistence_failure_is_server_error(self, client_for, make_payload, sleep):
        reconciler = reconciler_for(FlakyStorage(100), sleep=sleep, retry=NO_RETRY)
        response = client_for(reconciler=reconciler).post(NOTIFICATIONS_PATH, json=make_payload())

        assert response.status_code == 500
        assert response.json()["success"] is False

    def test_crashing_reconciler_answers_with_envelope(self, client_for, make_payload):
        class Exploding:
            async def process(self, notification):
                raise RuntimeError("db driver exploded")

        response = client_for(reconciler=Exploding()).post(NOTIFICATIONS_PATH, json=make_payload())

        assert response.status_code == 500
        assert response.json() == {
            "success": False,
            "error": "unknown",
            "message": "Internal server error",
        }

    def test_health(self, client_for):
        response = client_for().get("/health")
        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {"status": "ok"}}
        assert response.headers["X-Frame-Options"] == "DENY"


def test_transaction_time_is_kept_verbatim(make_notification):
    record = transaction_from(make_notification(), now=datetime(2025, 1, 15, 10, 0, 0))
    assert record.transaction_time == "2025-01-15 10:00:00"
    assert record.notification_data["signature_key"] == "a1b2c3d4e5f6"
