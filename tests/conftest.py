"""
Shared fixtures: a frozen clock, a sleeper that never waits, in-memory
storage and scripted gateway/backend fakes.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

import pytest
from kungfu import Error, Ok, Result

from paysync.errors import AppError
from paysync.gateway import (
    GatewayOutcome,
    GatewayRequest,
    GatewayResult,
    Notification,
    ProcessResult,
    TransactionToken,
)
from paysync.order import OrderForm
from paysync.store import MemoryStorage

NOW = datetime(2025, 1, 15, 10, 0, 0)


# ============================================================================
# Time
# ============================================================================


class FrozenClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class ManualMonotonic:
    def __init__(self, start: float = 1_000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class RecordingSleep:
    """Stands in for asyncio.sleep; remembers every requested delay."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


# ============================================================================
# Gateway & Backend fakes
# ============================================================================


class ScriptedGateway:
    """
    Returns (or raises) the scripted items in order. The last item repeats.
    """

    def __init__(self, *script: GatewayOutcome | BaseException) -> None:
        self.script = list(script) or [GatewayOutcome.closed()]
        self.calls: list[tuple[TransactionToken, GatewayRequest]] = []

    async def open(self, token: TransactionToken, request: GatewayRequest) -> GatewayOutcome:
        self.calls.append((token, request))
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, BaseException):
            raise item
        return item


class FakeBackend:
    def __init__(self) -> None:
        self.created: list[GatewayRequest] = []
        self.finalized: list[Mapping[str, Any]] = []
        self.notifications: list[Notification] = []
        self.create_error: AppError | None = None
        self.finalize_error: AppError | None = None
        self.status: GatewayResult | AppError | None = None

    async def create_transaction(self, request: GatewayRequest) -> Result[TransactionToken, AppError]:
        self.created.append(request)
        if self.create_error is not None:
            return Error(self.create_error)
        return Ok(TransactionToken(f"token-{len(self.created)}", "https://pay.example/redirect"))

    async def get_transaction_status(self, order_id: str) -> Result[GatewayResult, AppError]:
        match self.status:
            case GatewayResult() as result:
                return Ok(result)
            case AppError() as err:
                return Error(err)
            case _:
                return Ok(GatewayResult(order_id, "pending"))

    async def finalize_checkout(self, payload: Mapping[str, Any]) -> Result[str, AppError]:
        self.finalized.append(payload)
        if self.finalize_error is not None:
            return Error(self.finalize_error)
        return Ok(str(payload["orderId"]))

    async def handle_notification(self, notification: Notification) -> Result[ProcessResult, AppError]:
        self.notifications.append(notification)
        return Ok(ProcessResult(True, "ok"))


# ============================================================================
# Payload builders
# ============================================================================


def notification_payload(
    order_id: str = "ORD-1736935200000-042",
    status: str = "settlement",
    *,
    amount: str = "554445.00",
    signature: str = "a1b2c3d4e5f6",
    **extra: Any,
) -> dict[str, Any]:
    return {
        "order_id": order_id,
        "transaction_id": f"trx-{order_id}",
        "gross_amount": amount,
        "payment_type": "bank_transfer",
        "transaction_time": "2025-01-15 10:00:00",
        "transaction_status": status,
        "signature_key": signature,
        "status_code": "200",
        **extra,
    }


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def monotonic() -> ManualMonotonic:
    return ManualMonotonic()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def storage(clock: FrozenClock) -> MemoryStorage:
    return MemoryStorage(clock=clock)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def gateway_factory() -> Callable[..., ScriptedGateway]:
    return ScriptedGateway


@pytest.fixture
def make_notification() -> Callable[..., Notification]:
    def build(*args: Any, **kwargs: Any) -> Notification:
        return Notification.from_payload(notification_payload(*args, **kwargs))

    return build


@pytest.fixture
def make_payload() -> Callable[..., dict[str, Any]]:
    return notification_payload


@pytest.fixture
def form() -> OrderForm:
    return OrderForm(
        name="Budi Santoso",
        whatsapp="081234567890",
        service="Website Development",
        email="budi@example.com",
        company="Toko Budi",
        scope={"pages": 5},
    )
