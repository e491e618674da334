"""
Store — one Storage interface, three implementations picked at construction.

    from paysync import store as St

    storage = St.MemoryStorage()                         # tests, no backend
    storage = St.SQLAlchemyStorage(session_factory)      # own database
    storage = St.RemoteStorage(resilient_client)         # backend API

Every method returns Result[..., StoreError]:

    match await storage.get_transaction("ORD-1700000000000-001"):
        case Ok(record):
            ...
        case Error(e):
            log.error(e.message)
"""

from paysync.store._types import (
    StoreError,
    OrderRecord,
    TransactionRecord,
    TransactionFilters,
    NO_FILTERS,
    Storage,
)
from paysync.store._merge import (
    merge_transaction,
    merge_order_payment,
)
from paysync.store._memory import MemoryStorage
from paysync.store._sqlalchemy import (
    Base,
    OrderTable,
    TransactionTable,
    create_database,
    SQLAlchemyStorage,
)
from paysync.store._remote import RemoteStorage

__all__ = (
    # Types
    "StoreError",
    "OrderRecord",
    "TransactionRecord",
    "TransactionFilters",
    "NO_FILTERS",
    "Storage",
    # Write rules
    "merge_transaction",
    "merge_order_payment",
    # Implementations
    "MemoryStorage",
    "Base",
    "OrderTable",
    "TransactionTable",
    "create_database",
    "SQLAlchemyStorage",
    "RemoteStorage",
)
