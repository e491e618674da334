"""
Voucher — validation and discount rules.

    from paysync import voucher as V

    result = V.apply(voucher, subtotal=1_000_000, now=datetime.now())
    if result.valid:
        discount = result.discount
"""

from paysync.voucher._types import (
    VoucherType,
    Voucher,
    VoucherError,
    VoucherCheck,
    VoucherApplication,
)
from paysync.voucher._validate import (
    validate,
    calculate_discount,
    apply,
    VoucherBook,
)

__all__ = (
    # Types
    "VoucherType",
    "Voucher",
    "VoucherError",
    "VoucherCheck",
    "VoucherApplication",
    # Rules
    "validate",
    "calculate_discount",
    "apply",
    "VoucherBook",
)
