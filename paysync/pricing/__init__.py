"""
Pricing — amount calculation and payment-method fees.

    from paysync import pricing as P

    fee = P.resolve_fee(P.PaymentMethod.CREDIT_CARD, base=900_000)
    amounts = P.calculate(P.CalculationInput(
        subtotal=1_000_000,
        discount=100_000,
        fee=fee,
        service_type=P.ServiceType.WEBSITE,
    ))
"""

from paysync.pricing._types import (
    TAX_RATE,
    ServiceType,
    OrderStatus,
    PaymentKind,
    ServicePolicy,
    SERVICE_POLICIES,
    policy_for,
    CalculationInput,
    Amounts,
)
from paysync.pricing._calculator import (
    round_half_up,
    clamp_discount,
    calculate,
    validate_input,
    apply_fee,
)
from paysync.pricing._fees import (
    PaymentMethod,
    FeeRule,
    FEE_RULES,
    parse_method,
    resolve_fee,
)

__all__ = (
    # Types
    "TAX_RATE",
    "ServiceType",
    "OrderStatus",
    "PaymentKind",
    "ServicePolicy",
    "SERVICE_POLICIES",
    "policy_for",
    "CalculationInput",
    "Amounts",
    # Calculator
    "round_half_up",
    "clamp_discount",
    "calculate",
    "validate_input",
    "apply_fee",
    # Fees
    "PaymentMethod",
    "FeeRule",
    "FEE_RULES",
    "parse_method",
    "resolve_fee",
)
