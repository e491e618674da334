"""
Voucher rules — pure, never raises for well-typed input.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from paysync._types import Money
from paysync.pricing import clamp_discount, round_half_up
from paysync.voucher._types import (
    Voucher,
    VoucherApplication,
    VoucherCheck,
    VoucherError,
    VoucherType,
)


def validate(voucher: Voucher | None, subtotal: Money, now: datetime) -> VoucherCheck:
    """
    Check a voucher against a subtotal at `now`.

    Order: not_found → inactive → expired → max_uses_reached →
    min_spend_not_met. Only the first failure is reported.
    """
    if voucher is None:
        return VoucherCheck(False, VoucherError.NOT_FOUND)
    if not voucher.is_active:
        return VoucherCheck(False, VoucherError.INACTIVE)
    if voucher.valid_until is not None and voucher.valid_until < now:
        return VoucherCheck(False, VoucherError.EXPIRED)
    if voucher.max_uses is not None and voucher.used_count >= voucher.max_uses:
        return VoucherCheck(False, VoucherError.MAX_USES_REACHED)
    if voucher.min_spend is not None and subtotal < voucher.min_spend:
        return VoucherCheck(False, VoucherError.MIN_SPEND_NOT_MET)
    return VoucherCheck(True)


def calculate_discount(voucher: Voucher, subtotal: Money) -> Money:
    """Discount in rupiah, always within [0, subtotal]."""
    if voucher.type is VoucherType.PERCENT:
        raw = round_half_up(Decimal(subtotal) * voucher.value / 100) if subtotal > 0 else 0
    else:
        raw = voucher.value
    return clamp_discount(raw, subtotal)


def apply(voucher: Voucher | None, subtotal: Money, now: datetime) -> VoucherApplication:
    check = validate(voucher, subtotal, now)
    if not check.valid or voucher is None:
        return VoucherApplication(False, error=check.error)
    return VoucherApplication(True, discount=calculate_discount(voucher, subtotal))


class VoucherBook:
    """
    Case-insensitive voucher catalogue.

    Example:
        book = VoucherBook([Voucher("DISC10", VoucherType.PERCENT, 10)])
        book.apply_code("disc10", subtotal=1_000_000, now=datetime.now())
    """

    def __init__(self, vouchers: Iterable[Voucher] = ()) -> None:
        self._vouchers: dict[str, Voucher] = {}
        for voucher in vouchers:
            self.add(voucher)

    def add(self, voucher: Voucher) -> None:
        self._vouchers[_key(voucher.code)] = voucher

    def find(self, code: str | None) -> Voucher | None:
        if not code or not code.strip():
            return None
        return self._vouchers.get(_key(code))

    def apply_code(self, code: str | None, subtotal: Money, now: datetime) -> VoucherApplication:
        return apply(self.find(code), subtotal, now)

    def __len__(self) -> int:
        return len(self._vouchers)


def _key(code: str) -> str:
    return code.strip().casefold()


__all__ = (
    "validate",
    "calculate_discount",
    "apply",
    "VoucherBook",
)
