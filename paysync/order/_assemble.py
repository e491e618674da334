"""
Order assembler — form input + voucher + calculator → PreparedOrder.

No I/O. Either every field validates and a complete order comes back,
or a ValidationErrors listing each bad field does.
"""

from __future__ import annotations

import logging
import random
import re
from datetime import datetime

from kungfu import Result, Ok, Error

from paysync import voucher as V
from paysync._types import Clock, Money
from paysync.errors import AppError, AppErrors
from paysync.order._types import OrderForm, PreparedOrder, ValidationErrors
from paysync.pricing import (
    CalculationInput,
    ServiceType,
    calculate,
    policy_for,
    validate_input,
)

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PHONE_DIGITS = 10

SERVICE_LABELS: dict[str, ServiceType] = {
    "website development": ServiceType.WEBSITE,
    "wordpress development": ServiceType.WORDPRESS,
    "mobile app development": ServiceType.MOBILE,
    "service hp & laptop": ServiceType.SERVICE_DEVICE,
    "photo & video editing": ServiceType.EDITING,
    **{s.value: s for s in ServiceType},
}


# ═══════════════════════════════════════════════════════════════════════════════
# Normalisation
# ═══════════════════════════════════════════════════════════════════════════════


def digits(phone: str) -> str:
    return re.sub(r"\D", "", phone)


def normalize_phone(phone: str) -> str:
    """0812… / 62812… / 812… → +62812…; anything else is returned untouched."""
    cleaned = digits(phone)
    if cleaned.startswith("0"):
        return "+62" + cleaned[1:]
    if cleaned.startswith("62"):
        return "+" + cleaned
    if cleaned.startswith("8"):
        return "+62" + cleaned
    return phone


def split_name(name: str) -> tuple[str, str | None]:
    parts = name.split()
    if not parts:
        return "", None
    return parts[0], " ".join(parts[1:]) or None


def map_service_label(label: str, *, strict: bool = False) -> Result[ServiceType, AppError]:
    """
    Map a form label to a ServiceType.

    Lenient mode (default) falls back to `website` for unknown labels;
    strict mode rejects them.
    """
    key = label.strip().casefold()
    if not key:
        return Error(AppErrors.validation("Service is required", field="service"))

    service = SERVICE_LABELS.get(key)
    if service is not None:
        return Ok(service)

    if strict:
        return Error(AppErrors.validation(f"Unknown service: {label!r}", field="service"))

    logger.warning("unknown service label %r, falling back to website", label)
    return Ok(ServiceType.WEBSITE)


def generate_order_id(clock: Clock = datetime.now, rng: random.Random | None = None) -> str:
    """ORD-<epoch ms>-<3 digits>."""
    millis = int(clock().timestamp() * 1000)
    suffix = (rng or random).randrange(1000)
    return f"ORD-{millis}-{suffix:03d}"


# ═══════════════════════════════════════════════════════════════════════════════
# Validation & Assembly
# ═══════════════════════════════════════════════════════════════════════════════


def validate_form(form: OrderForm) -> list[AppError]:
    errors: list[AppError] = []
    if not form.name.strip():
        errors.append(AppErrors.validation("Name is required", field="name"))
    if form.email and not EMAIL_RE.match(form.email.strip()):
        errors.append(AppErrors.validation("Invalid email address", field="email"))
    if len(digits(form.whatsapp)) < MIN_PHONE_DIGITS:
        errors.append(
            AppErrors.validation(
                f"Phone number needs at least {MIN_PHONE_DIGITS} digits", field="whatsapp"
            )
        )
    if not form.service.strip():
        errors.append(AppErrors.validation("Service is required", field="service"))
    return errors


def prepare(
    form: OrderForm,
    subtotal: Money,
    voucher: V.Voucher | None = None,
    fee: Money = 0,
    shipping_cost: Money = 0,
    *,
    now: datetime | None = None,
    strict_service_labels: bool = False,
    order_id: str | None = None,
) -> Result[PreparedOrder, ValidationErrors]:
    """
    Assemble a complete order ready for persistence.

    A voucher that does not apply never blocks the order: the discount is
    0 and `voucher_error` says why.
    """
    now = now or datetime.now()
    errors = validate_form(form)

    service = ServiceType.WEBSITE
    if form.service.strip():
        match map_service_label(form.service, strict=strict_service_labels):
            case Ok(mapped):
                service = mapped
            case Error(err):
                errors.append(err)

    match validate_input(CalculationInput(subtotal, 0, fee, shipping_cost, service)):
        case Error(err):
            errors.append(err)
        case Ok(_):
            pass

    if errors:
        return Error(ValidationErrors(tuple(errors)))

    discount = 0
    voucher_error: V.VoucherError | None = None
    if voucher is not None or (form.voucher_code and form.voucher_code.strip()):
        applied = V.apply(voucher, subtotal, now)
        discount = applied.discount or 0
        voucher_error = applied.error

    amounts = calculate(CalculationInput(subtotal, discount, fee, shipping_cost, service))
    first, last = split_name(form.name)
    code = voucher.code if voucher is not None else form.voucher_code

    return Ok(
        PreparedOrder(
            order_id=order_id or generate_order_id(lambda: now),
            customer_name=form.name.strip(),
            first_name=first,
            last_name=last,
            whatsapp=normalize_phone(form.whatsapp),
            email=form.email.strip() if form.email else None,
            company=form.company.strip() if form.company else None,
            service_type=service,
            urgency=form.urgency,
            scope=dict(form.scope),
            delivery_method=form.delivery_method,
            schedule_date=form.schedule_date,
            schedule_time=form.schedule_time,
            shipping_cost=shipping_cost,
            voucher_code=code.strip().upper() if code else None,
            voucher_error=voucher_error,
            amounts=amounts,
            payment_required=policy_for(service).uses_gateway,
        )
    )


__all__ = (
    "EMAIL_RE",
    "SERVICE_LABELS",
    "digits",
    "normalize_phone",
    "split_name",
    "map_service_label",
    "generate_order_id",
    "validate_form",
    "prepare",
)
