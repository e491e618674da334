"""
Transaction history, CSV/JSON exports and statistics.
"""

from __future__ import annotations

import csv
import io
import json
from datetime import timedelta

import pytest
from kungfu import Error, Ok

from paysync.ledger import CSV_HEADERS, Statistics, TransactionLedger
from paysync.status import map_gateway_status
from paysync.store import TransactionFilters, TransactionRecord

from tests.conftest import NOW


def record(i: int, status: str, amount: int = 100_000) -> TransactionRecord:
    at = NOW + timedelta(minutes=i)
    return TransactionRecord(
        id=f"row-{i}",
        order_id=f"ORD-173693520000{i}-00{i}",
        transaction_id=f"trx-{i}",
        gross_amount=amount,
        payment_type="bank_transfer",
        transaction_status=status,
        payment_status=map_gateway_status(status),
        created_at=at,
        updated_at=at,
        transaction_time="2025-01-15 10:00:00",
    )


@pytest.fixture
async def ledger(storage):
    rows = [
        record(0, "settlement", 500_000),
        record(1, "capture", 250_000),
        record(2, "deny"),
        record(3, "expire"),
        record(4, "pending"),
        record(5, "refund"),
    ]
    for row in rows:
        await storage.upsert_transaction(row)
    return TransactionLedger(storage)


class TestHistory:
    async def test_newest_first(self, ledger):
        match await ledger.history():
            case Ok(rows):
                assert [r.id for r in rows] == [f"row-{i}" for i in range(5, -1, -1)]
            case Error(e):
                raise AssertionError(e.message)

    async def test_filtered(self, ledger):
        match await ledger.history(TransactionFilters(status="deny")):
            case Ok(rows):
                assert [r.id for r in rows] == ["row-2"]
            case Error(e):
                raise AssertionError(e.message)


class TestStatistics:
    async def test_counts_and_amount(self, ledger):
        match await ledger.statistics():
            case Ok(stats):
                assert stats == Statistics(
                    total=6,
                    successful=2,
                    failed=2,
                    pending=1,
                    total_amount=750_000,
                    success_rate=33.33,
                )
            case Error(e):
                raise AssertionError(e.message)

    def test_empty(self):
        stats = Statistics.of([])
        assert stats.total == 0
        assert stats.success_rate == 0.0

    async def test_repeated_notification_counts_once(self, storage):
        await storage.upsert_transaction(record(0, "pending"))
        await storage.upsert_transaction(record(0, "settlement", 500_000))
        await storage.upsert_transaction(record(0, "settlement", 500_000))

        match await TransactionLedger(storage).statistics():
            case Ok(stats):
                assert (stats.total, stats.successful, stats.total_amount) == (1, 1, 500_000)
                assert stats.success_rate == 100.0
            case Error(e):
                raise AssertionError(e.message)


class TestExports:
    async def test_csv(self, ledger):
        match await ledger.export_csv(TransactionFilters(status="settlement")):
            case Ok(text):
                rows = list(csv.reader(io.StringIO(text)))
            case Error(e):
                raise AssertionError(e.message)

        assert tuple(rows[0]) == CSV_HEADERS
        assert rows[1] == [
            "row-0",
            "ORD-1736935200000-000",
            "trx-0",
            "500000",
            "bank_transfer",
            "settlement",
            "2025-01-15 10:00:00",
            NOW.isoformat(),
            "0",
            "true",
        ]
        assert len(rows) == 2

    async def test_csv_of_nothing_is_just_headers(self, storage):
        match await TransactionLedger(storage).export_csv():
            case Ok(text):
                assert text == ",".join(CSV_HEADERS) + "\n"
            case Error(e):
                raise AssertionError(e.message)

    async def test_json(self, ledger):
        match await ledger.export_json(TransactionFilters(status="pending")):
            case Ok(text):
                data = json.loads(text)
            case Error(e):
                raise AssertionError(e.message)

        assert len(data) == 1
        assert data[0]["order_id"] == "ORD-1736935200004-004"
        assert data[0]["payment_status"] == "pending_confirmation"
        assert data[0]["processed"] is False
