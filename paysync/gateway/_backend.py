"""
Backend persistence API — the server-side collaborator of the checkout.

Every call goes through a ResilientClient with its own retry preset;
every answer is a Result, never an exception.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from kungfu import Result, Ok, Error

from paysync.errors import AppError, AppErrors, ErrorKind
from paysync.gateway._types import (
    GatewayRequest,
    GatewayResult,
    Notification,
    TransactionToken,
)
from paysync.resilience import ResilientClient, Retries
from paysync.store import TransactionFilters, NO_FILTERS


@dataclass(frozen=True, slots=True)
class ProcessResult:
    """
    Answer to a notification: `{success, message}`.

    kind: why it failed, so an HTTP layer can pick the status code.
    """

    success: bool
    message: str
    kind: ErrorKind | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "message": self.message}


class BackendApi(Protocol):
    async def create_transaction(self, request: GatewayRequest) -> Result[TransactionToken, AppError]: ...

    async def get_transaction_status(self, order_id: str) -> Result[GatewayResult, AppError]: ...

    async def finalize_checkout(self, payload: Mapping[str, Any]) -> Result[str, AppError]:
        """Persist customer + service + payment result. Idempotent by order id."""
        ...

    async def handle_notification(self, notification: Notification) -> Result[ProcessResult, AppError]: ...


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP implementation
# ═══════════════════════════════════════════════════════════════════════════════


class HttpBackendApi:
    """
    Example:
        async with httpx.AsyncClient(base_url=settings.backend_url) as http:
            backend = HttpBackendApi(ResilientClient(http, timeout=settings.timeout))
            match await backend.create_transaction(request):
                case Ok(token):
                    ...
    """

    def __init__(self, client: ResilientClient) -> None:
        self._client = client

    async def create_transaction(self, request: GatewayRequest) -> Result[TransactionToken, AppError]:
        result = await self._client.request(
            "POST",
            "/payments/transactions",
            json=request.to_payload(),
            retry=Retries.CREATE_TRANSACTION,
        )
        match result:
            case Ok({"token": str(token), **rest}):
                return Ok(TransactionToken(token=token, redirect_url=rest.get("redirect_url")))
            case Ok(_):
                return Error(AppErrors.api("Transaction token missing from response"))
            case Error(_):
                return result

    async def get_transaction_status(self, order_id: str) -> Result[GatewayResult, AppError]:
        result = await self._client.request(
            "GET",
            f"/payments/transactions/{order_id}",
            retry=Retries.TRANSACTION_STATUS,
        )
        match result:
            case Ok(Mapping() as body):
                return Ok(GatewayResult.from_payload({"order_id": order_id, **body}))
            case Ok(_):
                return Error(AppErrors.api("Malformed transaction status"))
            case Error(_):
                return result

    async def cancel_transaction(self, order_id: str) -> Result[Any, AppError]:
        return await self._client.request("POST", f"/payments/transactions/{order_id}/cancel")

    async def expire_transaction(self, order_id: str) -> Result[Any, AppError]:
        return await self._client.request("POST", f"/payments/transactions/{order_id}/expire")

    async def refund_transaction(
        self, order_id: str, amount: int | None = None, reason: str | None = None
    ) -> Result[Any, AppError]:
        body = {k: v for k, v in {"amount": amount, "reason": reason}.items() if v is not None}
        return await self._client.request(
            "POST", f"/payments/transactions/{order_id}/refund", json=body
        )

    async def verify_signature(self, notification: Notification) -> Result[bool, AppError]:
        result = await self._client.request(
            "POST",
            "/payments/verify-signature",
            json=notification.to_payload(),
            retry=Retries.VERIFY_SIGNATURE,
        )
        match result:
            case Ok({"verified": bool(verified)}):
                return Ok(verified)
            case Ok(_):
                return Ok(False)
            case Error(_):
                return result

    async def handle_notification(self, notification: Notification) -> Result[ProcessResult, AppError]:
        result = await self._client.request(
            "POST",
            "/payments/notifications",
            json=notification.to_payload(),
            retry=Retries.NOTIFICATIONS,
        )
        match result:
            case Ok(_):
                return Ok(ProcessResult(True, f"Notification processed for order {notification.order_id}"))
            case Error(_):
                return result

    async def finalize_checkout(self, payload: Mapping[str, Any]) -> Result[str, AppError]:
        result = await self._client.request(
            "POST", "/orders/checkout/finalize", json=dict(payload)
        )
        match result:
            case Ok({"orderId": str(order_id)}) | Ok({"order_id": str(order_id)}):
                return Ok(order_id)
            case Ok(_):
                return Ok(str(payload.get("orderId") or payload.get("order_id") or ""))
            case Error(_):
                return result

    async def transaction_history(
        self, filters: TransactionFilters = NO_FILTERS
    ) -> Result[list[dict[str, Any]], AppError]:
        result = await self._client.request(
            "GET", "/payments/transactions/history", params=filters.to_params()
        )
        match result:
            case Ok(list() as rows):
                return Ok(rows)
            case Ok(_):
                return Ok([])
            case Error(_):
                return result

    async def export_transactions(self, filters: TransactionFilters = NO_FILTERS) -> Result[str, AppError]:
        return await self._client.request(
            "GET", "/payments/transactions/export", params=filters.to_params(), as_text=True
        )

    async def statistics(self, filters: TransactionFilters = NO_FILTERS) -> Result[dict[str, Any], AppError]:
        result = await self._client.request(
            "GET", "/payments/transactions/statistics", params=filters.to_params()
        )
        match result:
            case Ok(Mapping() as body):
                return Ok(dict(body))
            case Ok(_):
                return Error(AppErrors.api("Malformed statistics"))
            case Error(_):
                return result

    async def health(self) -> Result[bool, AppError]:
        result = await self._client.request("GET", "/health", retry=Retries.HEALTH)
        match result:
            case Ok(_):
                return Ok(True)
            case Error(_):
                return result


__all__ = (
    "ProcessResult",
    "BackendApi",
    "HttpBackendApi",
)
