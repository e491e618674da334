"""
Voucher types — the voucher record, error codes and check results.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from paysync._types import Money


class VoucherType(Enum):
    PERCENT = "percent"
    NOMINAL = "nominal"


@dataclass(frozen=True, slots=True)
class Voucher:
    """
    Managed by an external admin process. `used_count` is incremented
    elsewhere, after payment settles; nothing here mutates it.
    """

    code: str
    type: VoucherType
    value: int
    min_spend: Money | None = None
    max_uses: int | None = None
    used_count: int = 0
    valid_until: datetime | None = None
    is_active: bool = True


# ═══════════════════════════════════════════════════════════════════════════════
# Errors — checked in declaration order, first failure wins
# ═══════════════════════════════════════════════════════════════════════════════


class VoucherError(Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    MAX_USES_REACHED = "max_uses_reached"
    MIN_SPEND_NOT_MET = "min_spend_not_met"

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES: dict[VoucherError, str] = {
    VoucherError.NOT_FOUND: "Voucher code not found",
    VoucherError.INACTIVE: "Voucher is not active",
    VoucherError.EXPIRED: "Voucher has expired",
    VoucherError.MAX_USES_REACHED: "Voucher usage limit reached",
    VoucherError.MIN_SPEND_NOT_MET: "Minimum spend not met",
}


@dataclass(frozen=True, slots=True)
class VoucherCheck:
    valid: bool
    error: VoucherError | None = None

    @property
    def message(self) -> str | None:
        return self.error.message if self.error else None


@dataclass(frozen=True, slots=True)
class VoucherApplication:
    valid: bool
    discount: Money | None = None
    error: VoucherError | None = None

    @property
    def message(self) -> str | None:
        return self.error.message if self.error else None


__all__ = (
    "VoucherType",
    "Voucher",
    "VoucherError",
    "VoucherCheck",
    "VoucherApplication",
)
