"""
Ledger — transaction history, CSV/JSON export and statistics.

    from paysync import ledger as Lg

    ledger = Lg.TransactionLedger(storage)
    match await ledger.export_csv():
        case Ok(text):
            Path("transactions.csv").write_text(text)
        case Error(e):
            log.error(e.message)
"""

from paysync.ledger._ledger import (
    CSV_HEADERS,
    Statistics,
    TransactionLedger,
)

__all__ = (
    "CSV_HEADERS",
    "Statistics",
    "TransactionLedger",
)
