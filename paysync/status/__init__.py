"""
Status — gateway vocabulary, payment statuses and the sticky transition rule.

    from paysync import status as S

    step = S.apply_transition(S.PaymentStatus.PAID, "pending")
    assert step.status is S.PaymentStatus.PAID and step.ignored
"""

from paysync.status._transition import (
    GatewayStatus,
    PaymentStatus,
    TERMINAL,
    is_terminal,
    parse_gateway_status,
    map_gateway_status,
    Transition,
    apply_transition,
    settle,
)

__all__ = (
    "GatewayStatus",
    "PaymentStatus",
    "TERMINAL",
    "is_terminal",
    "parse_gateway_status",
    "map_gateway_status",
    "Transition",
    "apply_transition",
    "settle",
)
