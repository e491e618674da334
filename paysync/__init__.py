"""
paysync — order pricing and payment-state reconciliation.

    from paysync import pricing as P      # Amount calculator, fees
    from paysync import voucher as V      # Voucher rules
    from paysync import order as O        # Order assembler
    from paysync import checkout as Co    # Payment orchestrator
    from paysync import webhook as W      # Notification reconciler
    from paysync import resilience as R   # Retry, breaker, timeout
    from paysync import store as St       # Storage implementations
    from paysync import ledger as Lg      # History, exports, statistics
"""

from paysync import pricing
from paysync import voucher
from paysync import order
from paysync import status
from paysync import resilience
from paysync import store
from paysync import gateway
from paysync import webhook
from paysync import checkout
from paysync import ledger
from paysync import lift
from paysync._types import (
    Lazy,
    Pure,
    Money,
)
from paysync.config import Settings
from paysync.errors import AppError, AppErrors, ErrorKind

__version__ = "0.1.0"

__all__ = (
    "pricing",
    "voucher",
    "order",
    "status",
    "resilience",
    "store",
    "gateway",
    "webhook",
    "checkout",
    "ledger",
    "lift",
    "Lazy",
    "Pure",
    "Money",
    "Settings",
    "AppError",
    "AppErrors",
    "ErrorKind",
)
