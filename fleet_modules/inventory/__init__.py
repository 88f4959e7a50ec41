"""
Inventory Module (``fleet_modules.inventory``).

Responsibility
--------------
The stock ledger: catalog items, append-only stock transactions and the
operations that move stock (receipts from purchase orders, withdrawals,
supplier returns, manual adjustments, graded used-stock sales).

Architecture
------------
Layer: **Modules**.  Imports from ``fleet_engines`` and ``fleet_kernel`` but
never the reverse.  ``StockLedgerService`` is the only writer of
``StockItem.quantity``.

Invariants
----------
- quantity == initial_quantity + sum(transaction deltas), per item.
- Stock transactions are never updated or deleted.
- Stock status is derived on read; the stored value is a cache.
"""

from fleet_modules.inventory.config import InventoryConfig
from fleet_modules.inventory.models import (
    GradedSaleLine,
    ReceiptLine,
    StockBalanceReport,
    StockItem,
    StockTransaction,
    StockTransactionType,
)
from fleet_modules.inventory.service import StockLedgerService

__all__ = [
    "StockItem",
    "StockTransaction",
    "StockTransactionType",
    "ReceiptLine",
    "GradedSaleLine",
    "StockBalanceReport",
    "InventoryConfig",
    "StockLedgerService",
]
