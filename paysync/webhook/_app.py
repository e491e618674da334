"""
HTTP ingress for gateway notifications.

    POST /payments/notifications   200 | 400 | 401 | 403 | 413 | 429 | 500
    GET  /health
"""

from __future__ import annotations

import json
import logging
from typing import Any

import fastapi
from fastapi.responses import JSONResponse
from kungfu import Ok, Error
from pydantic import BaseModel, ConfigDict, ValidationError

from paysync import lift as L
from paysync.errors import Envelope, ErrorKind
from paysync.gateway import Notification, ProcessResult
from paysync.webhook._guard import SECURITY_HEADERS, Rejection, RequestGuard
from paysync.webhook._reconciler import NotificationReconciler

logger = logging.getLogger(__name__)

NOTIFICATIONS_PATH = "/payments/notifications"


class NotificationIn(BaseModel):
    model_config = ConfigDict(extra="allow")

    order_id: str
    transaction_id: str
    gross_amount: str | int | float
    payment_type: str
    transaction_time: str
    transaction_status: str
    signature_key: str
    status_code: str | int | None = None
    fraud_status: str | None = None
    status_message: str | None = None

    def to_domain(self) -> Notification:
        return Notification.from_payload(self.model_dump(exclude_none=True))


class ProcessOut(BaseModel):
    success: bool
    message: str

    @classmethod
    def from_domain(cls, result: ProcessResult) -> "ProcessOut":
        return cls(success=result.success, message=result.message)


def _status_for(result: ProcessResult) -> int:
    if result.success:
        return 200
    if result.kind is ErrorKind.SIGNATURE:
        return 401
    return 500


def _reject(rejection: Rejection) -> JSONResponse:
    return JSONResponse(rejection.to_dict(), status_code=rejection.status_code)


def create_app(
    reconciler: NotificationReconciler,
    guard: RequestGuard | None = None,
) -> fastapi.FastAPI:
    guard = guard or RequestGuard()
    app = fastapi.FastAPI(title="paysync notifications")

    @app.middleware("http")
    async def security_headers(request: fastapi.Request, call_next: Any) -> Any:
        response = await call_next(request)
        response.headers.update(SECURITY_HEADERS)
        return response

    @app.post(NOTIFICATIONS_PATH)
    async def receive_notification(request: fastapi.Request) -> JSONResponse:
        body = await request.body()
        client = guard.client_id(request.headers, request.client.host if request.client else None)

        rejection = guard.admit(
            NOTIFICATIONS_PATH,
            client,
            content_length=len(body),
            origin=request.headers.get("origin"),
        )
        if rejection is not None:
            return _reject(rejection)

        try:
            payload = json.loads(body or b"null")
        except ValueError:
            return _reject(Rejection(400, "Invalid JSON", "invalid_payload"))

        if (rejection := guard.validate_notification(payload)) is not None:
            return _reject(rejection)

        try:
            notification = NotificationIn.model_validate(payload).to_domain()
        except ValidationError as e:
            errors = tuple(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
            return _reject(Rejection(400, "Invalid notification", "invalid_payload", errors))

        match await L.guarded(lambda: reconciler.process(notification)):
            case Ok(result):
                return JSONResponse(
                    ProcessOut.from_domain(result).model_dump(),
                    status_code=_status_for(result),
                )
            case Error(err):
                logger.error("notification for %s crashed: %s", notification.order_id, err)
                return JSONResponse(
                    Envelope.from_result(Error(err), "Internal server error").to_dict(),
                    status_code=500,
                )

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return Envelope.from_result(Ok({"status": "ok"})).to_dict()

    return app


__all__ = (
    "NOTIFICATIONS_PATH",
    "NotificationIn",
    "ProcessOut",
    "create_app",
)
