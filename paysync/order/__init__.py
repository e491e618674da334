"""
Order — intake validation, normalisation and assembly.

    from paysync import order as O

    match O.prepare(form, subtotal=1_000_000, voucher=voucher):
        case Ok(prepared):
            ...
        case Error(errors):
            errors.fields  # {"email": "Invalid email address", ...}
"""

from paysync.order._types import (
    DeliveryMethod,
    Urgency,
    OrderForm,
    ValidationErrors,
    PreparedOrder,
)
from paysync.order._assemble import (
    EMAIL_RE,
    SERVICE_LABELS,
    digits,
    normalize_phone,
    split_name,
    map_service_label,
    generate_order_id,
    validate_form,
    prepare,
)
from paysync.order._lifecycle import (
    ORDER_TRANSITIONS,
    is_final,
    advance_order_status,
    order_status_after_payment,
)

__all__ = (
    # Types
    "DeliveryMethod",
    "Urgency",
    "OrderForm",
    "ValidationErrors",
    "PreparedOrder",
    # Assembly
    "EMAIL_RE",
    "SERVICE_LABELS",
    "digits",
    "normalize_phone",
    "split_name",
    "map_service_label",
    "generate_order_id",
    "validate_form",
    "prepare",
    # Lifecycle
    "ORDER_TRANSITIONS",
    "is_final",
    "advance_order_status",
    "order_status_after_payment",
)
