"""Shared infrastructure for examples."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine, Mapping
from typing import Any

from kungfu import Result, Ok, Error

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


# Fake popup
class DemoGateway:
    """Answers every popup with the next scripted outcome."""

    def __init__(self, *outcomes: GatewayOutcome) -> None:
        self.outcomes = list(outcomes)

    async def open(self, token: TransactionToken, request: GatewayRequest) -> GatewayOutcome:
        await asyncio.sleep(0.01)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        print(f"  popup {token.token}: {request.gross_amount:,} IDR -> {outcome.kind.value}")
        return outcome


# Fake backend
class DemoBackend:
    def __init__(self) -> None:
        self.statuses: dict[str, str] = {}
        self.finalized: list[Mapping[str, Any]] = []

    async def create_transaction(self, request: GatewayRequest) -> Result[TransactionToken, AppError]:
        self.statuses[request.order_id] = "pending"
        return Ok(TransactionToken(f"snap-{request.order_id[-3:]}"))

    async def get_transaction_status(self, order_id: str) -> Result[GatewayResult, AppError]:
        return Ok(GatewayResult(order_id, self.statuses.get(order_id, "pending")))

    async def finalize_checkout(self, payload: Mapping[str, Any]) -> Result[str, AppError]:
        self.finalized.append(payload)
        return Ok(str(payload["orderId"]))

    async def handle_notification(self, notification: Notification) -> Result[ProcessResult, AppError]:
        self.statuses[notification.order_id] = notification.transaction_status
        return Ok(ProcessResult(True, "ok"))


def settled(status: str = "settlement") -> GatewayResult:
    return GatewayResult("", status, transaction_id="trx-demo", payment_type="bank_transfer")


def notification(order_id: str, status: str, amount: int) -> Notification:
    return Notification.from_payload({
        "order_id": order_id,
        "transaction_id": f"trx-{order_id}",
        "gross_amount": f"{amount}.00",
        "payment_type": "bank_transfer",
        "transaction_time": "2025-01-15 10:00:00",
        "transaction_status": status,
        "signature_key": "a1b2c3d4e5f6",
        "status_code": "200",
    })


BUDI = OrderForm(
    name="Budi Santoso",
    whatsapp="081234567890",
    service="Website Development",
    email="budi@example.com",
    company="Toko Budi",
    scope={"pages": 5},
)


# Helpers
def banner(title: str) -> None:
    print(f"\n{'─' * 50}\n{title}\n{'─' * 50}")


def show[T](result: Result[T, AppError], describe: Callable[[T], str] = str) -> None:
    match result:
        case Ok(value):
            print(f"  ✓ {describe(value)}")
        case Error(err):
            print(f"  ✗ {err.kind.value}: {err}")


def run(main: Callable[[], Coroutine[object, object, None]]) -> None:
    asyncio.run(main())
