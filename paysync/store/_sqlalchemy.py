"""
SQLAlchemy storage — async engine, one upsert per write.

Usage:
    session_factory, engine = await create_database("sqlite+aiosqlite:///paysync.db")
    storage = SQLAlchemyStorage(session_factory, dialect=engine.dialect.name)

Upserts use `INSERT … ON CONFLICT (order_id) DO UPDATE` (SQLite and
PostgreSQL), so the orchestrator and the reconciler never race on an
insert-then-update pair.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from kungfu import Result, Ok, Error

from paysync._types import Clock
from paysync.pricing import OrderStatus
from paysync.status import PaymentStatus
from paysync.store._merge import merge_order_payment, merge_transaction
from paysync.store._types import (
    NO_FILTERS,
    OrderRecord,
    StoreError,
    TransactionFilters,
    TransactionRecord,
)


# ═══════════════════════════════════════════════════════════════════════════════
# Tables
# ═══════════════════════════════════════════════════════════════════════════════


class Base(DeclarativeBase):
    pass


class OrderTable(Base):
    __tablename__ = "orders"

    order_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    service_type: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(32), nullable=False)
    grand_total: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_due: Mapped[int] = mapped_column(Integer, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class TransactionTable(Base):
    """One row per order; every notification updates it in place."""

    __tablename__ = "transactions"

    order_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    transaction_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    gross_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_type: Mapped[str] = mapped_column(String(50), nullable=False)
    transaction_status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    payment_status: Mapped[str] = mapped_column(String(32), nullable=False)
    transaction_time: Mapped[str | None] = mapped_column(String(32), nullable=True)
    fraud_status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    notification_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_retry_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


async def create_database(
    url: str = "sqlite+aiosqlite:///:memory:",
) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create tables and return (session_factory, engine)."""
    engine = create_async_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    return async_sessionmaker(engine, expire_on_commit=False), engine


# ═══════════════════════════════════════════════════════════════════════════════
# Row ⇄ Record
# ═══════════════════════════════════════════════════════════════════════════════


def _order_values(order: OrderRecord) -> dict[str, Any]:
    return {
        "order_id": order.order_id,
        "service_type": order.service_type,
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "grand_total": order.grand_total,
        "amount_due": order.amount_due,
        "data": dict(order.data),
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }


def _order_record(row: OrderTable) -> OrderRecord:
    return OrderRecord(
        order_id=row.order_id,
        service_type=row.service_type,
        status=OrderStatus(row.status),
        payment_status=PaymentStatus(row.payment_status),
        grand_total=row.grand_total,
        amount_due=row.amount_due,
        data=row.data or {},
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _transaction_values(record: TransactionRecord) -> dict[str, Any]:
    return {
        "order_id": record.order_id,
        "id": record.id,
        "transaction_id": record.transaction_id,
        "gross_amount": record.gross_amount,
        "payment_type": record.payment_type,
        "transaction_status": record.transaction_status,
        "payment_status": record.payment_status.value,
        "transaction_time": record.transaction_time,
        "fraud_status": record.fraud_status,
        "notification_data": dict(record.notification_data),
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "retry_count": record.retry_count,
        "last_retry_at": record.last_retry_at,
        "processed": record.processed,
    }


def _transaction_record(row: TransactionTable) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        order_id=row.order_id,
        transaction_id=row.transaction_id,
        gross_amount=row.gross_amount,
        payment_type=row.payment_type,
        transaction_status=row.transaction_status,
        payment_status=PaymentStatus(row.payment_status),
        transaction_time=row.transaction_time,
        fraud_status=row.fraud_status,
        notification_data=row.notification_data or {},
        created_at=row.created_at,
        updated_at=row.updated_at,
        retry_count=row.retry_count,
        last_retry_at=row.last_retry_at,
        processed=row.processed,
    )


def _insert(dialect: str, table: type[Base]) -> Any:
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise ValueError(f"Upsert not supported for dialect: {dialect}")


# ═══════════════════════════════════════════════════════════════════════════════
# Storage
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyStorage:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        dialect: str = "sqlite",
        clock: Clock = datetime.now,
        engine: AsyncEngine | None = None,
    ) -> None:
        """
        Args:
            session_factory: SQLAlchemy async session factory
            dialect: `sqlite` or `postgresql`, picks the upsert statement
            clock: timestamps for status updates
            engine: disposed by `close()` when the storage owns it
        """
        self._session_factory = session_factory
        self._dialect = dialect
        self._clock = clock
        self._engine = engine

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    async def save_order(self, order: OrderRecord) -> Result[OrderRecord, StoreError]:
        try:
            values = _order_values(order)
            stmt = _insert(self._dialect, OrderTable).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["order_id"],
                set_={
                    k: stmt.excluded[k]
                    for k in ("service_type", "grand_total", "amount_due", "data", "updated_at")
                },
            )
            async with self._session_factory() as session, session.begin():
                await session.execute(stmt)
                row = await session.get(OrderTable, order.order_id, populate_existing=True)
                if row is None:
                    return Error(StoreError(f"Failed to save order: {order.order_id} missing after upsert"))
                return Ok(_order_record(row))
        except Exception as e:
            return Error(StoreError(f"Failed to save order: {e}", e))

    async def get_order(self, order_id: str) -> Result[OrderRecord | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(OrderTable, order_id)
                return Ok(_order_record(row) if row else None)
        except Exception as e:
            return Error(StoreError(f"Failed to get order: {e}", e))

    async def apply_payment(
        self, order_id: str, payment: PaymentStatus
    ) -> Result[OrderRecord | None, StoreError]:
        try:
            async with self._session_factory() as session, session.begin():
                row = await session.get(OrderTable, order_id, with_for_update=True)
                if row is None:
                    return Ok(None)
                merged = merge_order_payment(_order_record(row), payment, self._clock())
                row.payment_status = merged.payment_status.value
                row.status = merged.status.value
                row.updated_at = merged.updated_at
                return Ok(merged)
        except Exception as e:
            return Error(StoreError(f"Failed to apply payment: {e}", e))

    async def set_order_status(
        self, order_id: str, status: OrderStatus
    ) -> Result[OrderRecord | None, StoreError]:
        try:
            async with self._session_factory() as session, session.begin():
                row = await session.get(OrderTable, order_id, with_for_update=True)
                if row is None:
                    return Ok(None)
                row.status = status.value
                row.updated_at = self._clock()
                return Ok(_order_record(row))
        except Exception as e:
            return Error(StoreError(f"Failed to set order status: {e}", e))

    async def upsert_transaction(
        self, record: TransactionRecord
    ) -> Result[TransactionRecord, StoreError]:
        try:
            async with self._session_factory() as session, session.begin():
                row = await session.get(TransactionTable, record.order_id, with_for_update=True)
                existing = _transaction_record(row) if row else None
                merged = merge_transaction(existing, record)
                if merged is existing:
                    return Ok(merged)

                values = _transaction_values(merged)
                stmt = _insert(self._dialect, TransactionTable).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["order_id"],
                    set_={k: stmt.excluded[k] for k in values if k != "order_id"},
                )
                await session.execute(stmt)
                return Ok(merged)
        except Exception as e:
            return Error(StoreError(f"Failed to upsert transaction: {e}", e))

    async def get_transaction(self, order_id: str) -> Result[TransactionRecord | None, StoreError]:
        try:
            async with self._session_factory() as session:
                row = await session.get(TransactionTable, order_id)
                return Ok(_transaction_record(row) if row else None)
        except Exception as e:
            return Error(StoreError(f"Failed to get transaction: {e}", e))

    async def list_transactions(
        self, filters: TransactionFilters = NO_FILTERS
    ) -> Result[list[TransactionRecord], StoreError]:
        try:
            stmt = select(TransactionTable)
            if filters.order_id:
                stmt = stmt.where(TransactionTable.order_id == filters.order_id)
            if filters.status:
                stmt = stmt.where(TransactionTable.transaction_status == filters.status)
            if filters.start:
                stmt = stmt.where(TransactionTable.created_at >= filters.start)
            if filters.end:
                stmt = stmt.where(TransactionTable.created_at <= filters.end)
            stmt = stmt.order_by(TransactionTable.created_at.desc())

            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
                return Ok([_transaction_record(r) for r in rows])
        except Exception as e:
            return Error(StoreError(f"Failed to list transactions: {e}", e))

    async def record_retry(
        self, order_id: str, attempt: int, at: datetime
    ) -> Result[None, StoreError]:
        try:
            stmt = (
                update(TransactionTable)
                .where(TransactionTable.order_id == order_id)
                .values(retry_count=attempt, last_retry_at=at, updated_at=at)
            )
            async with self._session_factory() as session, session.begin():
                await session.execute(stmt)
            return Ok(None)
        except Exception as e:
            return Error(StoreError(f"Failed to record retry: {e}", e))


__all__ = (
    "Base",
    "OrderTable",
    "TransactionTable",
    "create_database",
    "SQLAlchemyStorage",
)
