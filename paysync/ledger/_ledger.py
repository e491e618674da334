"""
Transaction ledger — history, exports and statistics over stored
transactions. Read-only; works against any Storage.
"""

from __future__ import annotations

import csv
import io
import json
from dataclasses import asdict, dataclass

from kungfu import Result, Ok, Error

from paysync.status import GatewayStatus
from paysync.store import NO_FILTERS, Storage, StoreError, TransactionFilters, TransactionRecord

CSV_HEADERS = (
    "ID",
    "Order ID",
    "Transaction ID",
    "Gross Amount",
    "Payment Type",
    "Transaction Status",
    "Transaction Time",
    "Created At",
    "Retry Count",
    "Processed",
)

SUCCESSFUL = frozenset({GatewayStatus.SETTLEMENT.value, GatewayStatus.CAPTURE.value})
FAILED = frozenset({GatewayStatus.DENY.value, GatewayStatus.CANCEL.value, GatewayStatus.EXPIRE.value})
PENDING = GatewayStatus.PENDING.value


@dataclass(frozen=True, slots=True)
class Statistics:
    total: int
    successful: int
    failed: int
    pending: int
    total_amount: int
    success_rate: float
    """Percent of `total`, two decimals. 0 when there are no transactions."""

    @classmethod
    def of(cls, records: list[TransactionRecord]) -> Statistics:
        total = len(records)
        successful = [r for r in records if r.transaction_status in SUCCESSFUL]
        failed = sum(1 for r in records if r.transaction_status in FAILED)
        pending = sum(1 for r in records if r.transaction_status == PENDING)
        rate = round(len(successful) / total * 100, 2) if total else 0.0
        return cls(
            total=total,
            successful=len(successful),
            failed=failed,
            pending=pending,
            total_amount=sum(r.gross_amount for r in successful),
            success_rate=rate,
        )

    def to_dict(self) -> dict[str, int | float]:
        return asdict(self)


class TransactionLedger:
    """
    Example:
        ledger = TransactionLedger(storage)
        match await ledger.statistics(TransactionFilters(status="settlement")):
            case Ok(stats):
                print(stats.success_rate)
    """

    def __init__(self, storage: Storage) -> None:
        self._storage = storage

    async def history(
        self, filters: TransactionFilters = NO_FILTERS
    ) -> Result[list[TransactionRecord], StoreError]:
        """Matching transactions, newest first."""
        match await self._storage.list_transactions(filters):
            case Ok(records):
                return Ok(sorted(records, key=lambda r: r.created_at, reverse=True))
            case Error(_) as err:
                return err

    async def export_csv(self, filters: TransactionFilters = NO_FILTERS) -> Result[str, StoreError]:
        match await self.history(filters):
            case Ok(records):
                buffer = io.StringIO()
                writer = csv.writer(buffer, lineterminator="\n")
                writer.writerow(CSV_HEADERS)
                for r in records:
                    writer.writerow((
                        r.id,
                        r.order_id,
                        r.transaction_id,
                        r.gross_amount,
                        r.payment_type,
                        r.transaction_status,
                        r.transaction_time or "",
                        r.created_at.isoformat(),
                        r.retry_count,
                        "true" if r.processed else "false",
                    ))
                return Ok(buffer.getvalue())
            case Error(_) as err:
                return err

    async def export_json(self, filters: TransactionFilters = NO_FILTERS) -> Result[str, StoreError]:
        match await self.history(filters):
            case Ok(records):
                return Ok(json.dumps([r.to_dict() for r in records], indent=2))
            case Error(_) as err:
                return err

    async def statistics(self, filters: TransactionFilters = NO_FILTERS) -> Result[Statistics, StoreError]:
        match await self._storage.list_transactions(filters):
            case Ok(records):
                return Ok(Statistics.of(records))
            case Error(_) as err:
                return err


__all__ = (
    "CSV_HEADERS",
    "Statistics",
    "TransactionLedger",
)
