"""
Amount calculator — pure, deterministic, no I/O.

    dpp         = max(subtotal - discount, 0)
    ppn         = round(dpp * 0.11)
    grand_total = dpp + ppn + fee + shipping_cost
    deposit     = round(grand_total * deposit_percent / 100), capped at grand_total
    remaining   = grand_total - deposit

Rounding is half-up to whole rupiah, applied once per derived field.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal

from kungfu import Result, Ok, Error

from paysync._types import Money
from paysync.errors import AppError, AppErrors
from paysync.pricing._types import (
    TAX_RATE,
    Amounts,
    CalculationInput,
    policy_for,
)


def round_half_up(value: Decimal | int) -> Money:
    return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def clamp_discount(discount: Money, subtotal: Money) -> Money:
    return max(0, min(discount, max(subtotal, 0)))


def calculate(data: CalculationInput) -> Amounts:
    """
    Compute every derived amount for an order.

    Negative subtotal/fee/shipping are the caller's to reject
    (`validate_input`); the discount is clamped to [0, subtotal] here.
    """
    policy = policy_for(data.service_type)

    discount = clamp_discount(data.discount, data.subtotal)
    dpp = max(data.subtotal - discount, 0)
    ppn = round_half_up(dpp * TAX_RATE)
    grand_total = max(dpp + ppn + data.fee + data.shipping_cost, 0)

    deposit = 0
    if policy.requires_deposit:
        deposit = min(round_half_up(grand_total * Decimal(policy.deposit_percent) / 100), grand_total)

    return Amounts(
        subtotal=data.subtotal,
        discount=discount,
        dpp=dpp,
        ppn=ppn,
        fee=data.fee,
        shipping_cost=data.shipping_cost,
        grand_total=grand_total,
        deposit=deposit,
        remaining=max(grand_total - deposit, 0),
        status=policy.initial_status,
    )


def validate_input(data: CalculationInput) -> Result[CalculationInput, AppError]:
    """Reject negative money fields before they reach `calculate`."""
    for name in ("subtotal", "discount", "fee", "shipping_cost"):
        if getattr(data, name) < 0:
            return Error(AppErrors.validation(f"{name} must not be negative", field=name))
    return Ok(data)


def apply_fee(amounts: Amounts, fee: Money) -> Amounts:
    """
    Add a payment-method fee to priced amounts.

    The fee is collected in full with the first payment: it joins the
    deposit when one applies, leaving `remaining` unchanged.
    """
    fee = max(fee, 0)
    grand_total = amounts.grand_total + fee
    if amounts.deposit > 0:
        return replace(amounts, fee=amounts.fee + fee, grand_total=grand_total, deposit=amounts.deposit + fee)
    return replace(amounts, fee=amounts.fee + fee, grand_total=grand_total, remaining=grand_total)


__all__ = (
    "round_half_up",
    "clamp_discount",
    "calculate",
    "validate_input",
    "apply_fee",
)
