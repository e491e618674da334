"""
Logging — logger naming and the payment event log.

Modules log through `logging.getLogger(__name__)`; the library never
installs handlers. `configure()` is for scripts and examples.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from paysync._types import Clock

security_logger = logging.getLogger("paysync.security")
_events_logger = logging.getLogger("paysync.events")


def configure(level: int | str = logging.INFO) -> None:
    """Attach a stream handler to the `paysync` logger tree."""
    root = logging.getLogger("paysync")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s")
        )
        root.addHandler(handler)
    root.setLevel(level)


# ═══════════════════════════════════════════════════════════════════════════════
# Payment Events
# ═══════════════════════════════════════════════════════════════════════════════


class PaymentEvent(Enum):
    TRANSACTION_CREATED = "transaction_created"
    POPUP_OPENED = "popup_opened"
    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_ERROR = "payment_error"
    POPUP_CLOSED = "popup_closed"
    STATUS_POLLED = "status_polled"
    FINALIZE_FAILED = "finalize_failed"
    NOTIFICATION_RECEIVED = "notification_received"
    NOTIFICATION_PROCESSED = "notification_processed"
    NOTIFICATION_REJECTED = "notification_rejected"


_LEVELS: dict[PaymentEvent, int] = {
    PaymentEvent.PAYMENT_ERROR: logging.WARNING,
    PaymentEvent.FINALIZE_FAILED: logging.WARNING,
    PaymentEvent.NOTIFICATION_REJECTED: logging.WARNING,
}


@dataclass(frozen=True, slots=True)
class EventRecord:
    event: PaymentEvent
    order_id: str
    at: datetime
    details: dict[str, Any] = field(default_factory=dict)


class PaymentEventLog:
    """
    Bounded in-memory audit trail of payment events.

    Each record is mirrored to the `paysync.events` logger.
    """

    def __init__(self, *, capacity: int = 500, clock: Clock = datetime.now) -> None:
        self._records: deque[EventRecord] = deque(maxlen=capacity)
        self._clock = clock

    def record(self, event: PaymentEvent, order_id: str, **details: Any) -> EventRecord:
        entry = EventRecord(event=event, order_id=order_id, at=self._clock(), details=details)
        self._records.append(entry)
        _events_logger.log(
            _LEVELS.get(event, logging.INFO),
            "%s order=%s %s",
            event.value,
            order_id,
            details or "",
        )
        return entry

    def events(self, order_id: str | None = None) -> list[EventRecord]:
        if order_id is None:
            return list(self._records)
        return [r for r in self._records if r.order_id == order_id]

    def __iter__(self) -> Iterator[EventRecord]:
        return iter(list(self._records))

    def __len__(self) -> int:
        return len(self._records)


__all__ = (
    "security_logger",
    "configure",
    "PaymentEvent",
    "EventRecord",
    "PaymentEventLog",
)
