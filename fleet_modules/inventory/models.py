"""
Inventory Domain Models (``fleet_modules.inventory.models``).

Responsibility
--------------
Frozen value objects for the stock ledger: stock items, stock transactions,
receipt lines, graded sale lines and balance reports.

Architecture
------------
Layer: **Modules** -- pure domain data structures.  All dataclasses are
``frozen=True``; they carry no session and no I/O and are the only shapes
the ledger service hands back to callers.

Invariants
----------
- ``StockItem.status`` is always derived from quantity and thresholds; it is
  never read from storage.
- Quantities and prices are ``Decimal`` -- never ``float``.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from fleet_engines.stock_status import StockStatus, stock_status


class StockTransactionType(Enum):
    """Kinds of ledger movement."""
    INBOUND_RECEIPT = "inbound_receipt"
    WITHDRAWAL = "withdrawal"
    MANUAL_ADJUSTMENT = "manual_adjustment"
    RETURN_TO_SUPPLIER = "return_to_supplier"
    DISPOSAL_SALE = "disposal_sale"


# Outbound movements can only take stock away.
NEGATIVE_ONLY_TYPES = frozenset({
    StockTransactionType.WITHDRAWAL,
    StockTransactionType.RETURN_TO_SUPPLIER,
    StockTransactionType.DISPOSAL_SALE,
})


@dataclass(frozen=True)
class StockItem:
    """
    A catalog entry with its current quantity.

    ``max_stock`` of None means no cap.  ``initial_quantity`` is the
    quantity the item was created with; together with the transaction
    history it must reproduce ``quantity``.
    """
    id: UUID
    code: str
    name: str
    category: str
    unit: str
    quantity: Decimal
    initial_quantity: Decimal
    min_stock: Decimal
    max_stock: Decimal | None
    unit_price: Decimal
    selling_price: Decimal | None = None
    storage_location: str | None = None
    supplier: str | None = None
    is_revolving_part: bool = False
    is_fungible_used_item: bool = False

    @property
    def status(self) -> StockStatus:
        return stock_status(self.quantity, self.min_stock, self.max_stock)


@dataclass(frozen=True)
class StockTransaction:
    """One append-only ledger movement."""
    id: UUID
    stock_item_id: UUID
    transaction_type: StockTransactionType
    delta: Decimal
    balance_after: Decimal
    occurred_at: datetime
    actor_id: UUID
    unit_price: Decimal = Decimal("0")
    document_number: str | None = None
    reference: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ReceiptLine:
    """
    A line arriving into stock from a purchase order.

    ``stock_item_id`` of None marks a service or non-stock line; it is
    accepted and ignored by the ledger.
    """
    stock_item_id: UUID | None
    quantity: Decimal
    unit_price: Decimal = Decimal("0")
    description: str | None = None

    @property
    def is_stock_line(self) -> bool:
        return self.stock_item_id is not None


@dataclass(frozen=True)
class GradedSaleLine:
    """One grade of a bulk used-stock sale (e.g. grade A at 40 THB/kg)."""
    grade: str
    quantity: Decimal
    unit_price: Decimal

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"Sale quantity must be positive (got {self.quantity})")
        if self.unit_price < 0:
            raise ValueError(f"Sale price cannot be negative (got {self.unit_price})")


@dataclass(frozen=True)
class StockBalanceReport:
    """Ledger balance check for one stock item."""
    stock_item_id: UUID
    initial_quantity: Decimal
    transaction_total: Decimal
    quantity: Decimal
    transaction_count: int

    @property
    def expected_quantity(self) -> Decimal:
        return self.initial_quantity + self.transaction_total

    @property
    def is_balanced(self) -> bool:
        return self.quantity == self.expected_quantity
