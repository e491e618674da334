"""
Error taxonomy — one error type for every component boundary.

    Validation   bad input, reported immediately, never retried
    Network      transient, retried with backoff
    Timeout      a call exceeded its budget, retried and counted by the breaker
    Payment      gateway-reported denial/expiry, terminal
    Signature    webhook authenticity failure, terminal, logged as security event
    Persistence  store write failure, retried then escalated to an operator

Components return `Result[T, AppError]`; `Envelope` renders any such result
in the uniform `{success, data?, error?, message?}` shape.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from kungfu import Result, Ok, Error


# ═══════════════════════════════════════════════════════════════════════════════
# Error Kind
# ═══════════════════════════════════════════════════════════════════════════════


class ErrorKind(Enum):
    """Kinds of failures, with their HTTP-equivalent status."""

    VALIDATION = "validation"
    NETWORK = "network"
    TIMEOUT = "timeout"
    CIRCUIT_OPEN = "circuit_open"
    API = "api"
    PAYMENT = "payment"
    SIGNATURE = "signature"
    PERSISTENCE = "persistence"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE


_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NETWORK: 0,
    ErrorKind.TIMEOUT: 408,
    ErrorKind.CIRCUIT_OPEN: 503,
    ErrorKind.API: 500,
    ErrorKind.PAYMENT: 402,
    ErrorKind.SIGNATURE: 401,
    ErrorKind.PERSISTENCE: 500,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNKNOWN: 500,
}

_RETRYABLE = frozenset({
    ErrorKind.NETWORK,
    ErrorKind.TIMEOUT,
    ErrorKind.API,
    ErrorKind.PERSISTENCE,
})


# ═══════════════════════════════════════════════════════════════════════════════
# AppError
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class AppError:
    """
    A classified failure.

    field: set for validation errors so the caller can tag the input.
    cause: the original exception, kept for logs but never compared.
    """

    kind: ErrorKind
    message: str
    field: str | None = None
    details: Mapping[str, Any] | None = None
    cause: BaseException | None = dataclasses.field(default=None, compare=False, repr=False)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def __str__(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class AppErrors:
    @staticmethod
    def validation(message: str, field: str | None = None) -> AppError:
        return AppError(ErrorKind.VALIDATION, message, field=field)

    @staticmethod
    def network(message: str, cause: BaseException | None = None) -> AppError:
        return AppError(ErrorKind.NETWORK, message, cause=cause)

    @staticmethod
    def timeout(seconds: float | None = None, cause: BaseException | None = None) -> AppError:
        text = f"Request timed out after {seconds:g}s" if seconds else "Request timed out"
        return AppError(ErrorKind.TIMEOUT, text, cause=cause)

    @staticmethod
    def circuit_open() -> AppError:
        return AppError(ErrorKind.CIRCUIT_OPEN, "Circuit breaker is OPEN")

    @staticmethod
    def api(message: str, status: int | None = None, cause: BaseException | None = None) -> AppError:
        details = {"status": status} if status is not None else None
        return AppError(ErrorKind.API, message, details=details, cause=cause)

    @staticmethod
    def payment(message: str, details: Mapping[str, Any] | None = None) -> AppError:
        return AppError(ErrorKind.PAYMENT, message, details=details)

    @staticmethod
    def signature(message: str = "Invalid notification signature") -> AppError:
        return AppError(ErrorKind.SIGNATURE, message)

    @staticmethod
    def persistence(message: str, cause: BaseException | None = None) -> AppError:
        return AppError(ErrorKind.PERSISTENCE, message, cause=cause)

    @staticmethod
    def not_found(entity: str, key: str) -> AppError:
        return AppError(ErrorKind.NOT_FOUND, f"{entity}:{key} not found")

    @staticmethod
    def unknown(cause: BaseException) -> AppError:
        return AppError(ErrorKind.UNKNOWN, str(cause) or type(cause).__name__, cause=cause)


class Failure(Exception):
    """Raise an AppError through code that only speaks exceptions."""

    def __init__(self, error: AppError) -> None:
        super().__init__(str(error))
        self.error = error


# ═══════════════════════════════════════════════════════════════════════════════
# Classification
# ═══════════════════════════════════════════════════════════════════════════════


def classify(exc: BaseException) -> AppError:
    """Map an exception raised by an outbound call onto the taxonomy."""
    match exc:
        case Failure(error=error):
            return error
        case httpx.TimeoutException() | asyncio.TimeoutError():
            return AppErrors.timeout(cause=exc)
        case httpx.HTTPStatusError(response=response):
            return _from_status(response.status_code, _response_message(response), exc)
        case httpx.TransportError() | ConnectionError():
            return AppErrors.network(str(exc) or "Network error", cause=exc)
        case _:
            return AppErrors.unknown(exc)


def _from_status(status: int, message: str, exc: BaseException) -> AppError:
    if status == 404:
        return AppError(ErrorKind.NOT_FOUND, message, cause=exc)
    if status == 408:
        return AppError(ErrorKind.TIMEOUT, message, cause=exc)
    if status == 401:
        return AppError(ErrorKind.SIGNATURE, message, cause=exc)
    if status == 402:
        return AppError(ErrorKind.PAYMENT, message, cause=exc)
    if status == 429 or status >= 500:
        return AppErrors.api(message, status=status, cause=exc)
    return AppError(ErrorKind.VALIDATION, message, cause=exc)


def _response_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, Mapping):
        return str(body.get("error") or body.get("message") or f"HTTP {response.status_code}")
    return f"HTTP {response.status_code}"


# ═══════════════════════════════════════════════════════════════════════════════
# Envelope — uniform response shape
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Envelope[T]:
    success: bool
    data: T | None = None
    error: str | None = None
    message: str | None = None

    @classmethod
    def from_result(cls, result: Result[T, AppError], message: str | None = None) -> Envelope[T]:
        """`message` replaces the error text when the caller must not leak it."""
        match result:
            case Ok(value):
                return cls(success=True, data=value, message=message)
            case Error(err):
                return cls(success=False, error=err.kind.value, message=message or str(err))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = self.data
        if self.error is not None:
            out["error"] = self.error
        if self.message is not None:
            out["message"] = self.message
        return out


def unwrap_envelope(payload: Any) -> Result[Any, AppError]:
    """
    Read a backend `{success, data?, error?}` body.

    Bodies without a `success` key are returned as-is.
    """
    if not isinstance(payload, Mapping) or "success" not in payload:
        return Ok(payload)
    if payload["success"]:
        return Ok(payload.get("data"))
    message = payload.get("message") or payload.get("error") or "Request failed"
    return Error(AppErrors.api(str(message)))


__all__ = (
    "ErrorKind",
    "AppError",
    "AppErrors",
    "Failure",
    "classify",
    "Envelope",
    "unwrap_envelope",
)
