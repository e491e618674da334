"""
Payment-method surcharges, resolved to absolute rupiah before calculation.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from paysync._types import Money
from paysync.pricing._calculator import round_half_up


class PaymentMethod(Enum):
    CREDIT_CARD = "credit_card"
    GOPAY = "gopay"
    GOPAY_QR = "gopay_qr"
    OVO = "ovo"
    DANA = "dana"
    SHOPEEPAY = "shopeepay"
    LINKAJA = "linkaja"
    QRIS = "qris"
    BCA_VA = "bca_va"
    BNI_VA = "bni_va"
    BRI_VA = "bri_va"
    MANDIRI_VA = "mandiri_va"
    PERMATA_VA = "permata_va"
    CIMB_VA = "cimb_va"
    ALFAMART = "alfamart"
    INDOMARET = "indomaret"
    BCA_KLIKPAY = "bca_klikpay"
    CIMB_CLICKS = "cimb_clicks"
    DANAMON_ONLINE = "danamon_online"


@dataclass(frozen=True, slots=True)
class FeeRule:
    fixed: Money = 0
    percent: Decimal = Decimal(0)

    def resolve(self, base: Money) -> Money:
        if self.percent:
            return round_half_up(Decimal(base) * self.percent / 100)
        return self.fixed


_E_WALLET = FeeRule(fixed=1_000)
_BANK_VA = FeeRule(fixed=4_000)
_RETAIL = FeeRule(fixed=5_000)
_DIRECT_DEBIT = FeeRule(fixed=4_000)

FEE_RULES: Mapping[PaymentMethod, FeeRule] = {
    PaymentMethod.CREDIT_CARD: FeeRule(percent=Decimal("2.5")),
    PaymentMethod.QRIS: FeeRule(percent=Decimal("0.7")),
    PaymentMethod.GOPAY: _E_WALLET,
    PaymentMethod.GOPAY_QR: _E_WALLET,
    PaymentMethod.OVO: _E_WALLET,
    PaymentMethod.DANA: _E_WALLET,
    PaymentMethod.SHOPEEPAY: _E_WALLET,
    PaymentMethod.LINKAJA: _E_WALLET,
    PaymentMethod.BCA_VA: _BANK_VA,
    PaymentMethod.BNI_VA: _BANK_VA,
    PaymentMethod.BRI_VA: _BANK_VA,
    PaymentMethod.MANDIRI_VA: _BANK_VA,
    PaymentMethod.PERMATA_VA: _BANK_VA,
    PaymentMethod.CIMB_VA: _BANK_VA,
    PaymentMethod.ALFAMART: _RETAIL,
    PaymentMethod.INDOMARET: _RETAIL,
    PaymentMethod.BCA_KLIKPAY: _DIRECT_DEBIT,
    PaymentMethod.CIMB_CLICKS: _DIRECT_DEBIT,
    PaymentMethod.DANAMON_ONLINE: _DIRECT_DEBIT,
}


def parse_method(raw: str | PaymentMethod) -> PaymentMethod | None:
    if isinstance(raw, PaymentMethod):
        return raw
    try:
        return PaymentMethod(raw.strip().lower())
    except ValueError:
        return None


def resolve_fee(method: str | PaymentMethod | None, base: Money) -> Money:
    """Surcharge for paying `base` with `method`. Unknown methods cost nothing."""
    if method is None:
        return 0
    parsed = parse_method(method)
    if parsed is None:
        return 0
    return FEE_RULES[parsed].resolve(max(base, 0))


__all__ = (
    "PaymentMethod",
    "FeeRule",
    "FEE_RULES",
    "parse_method",
    "resolve_fee",
)
