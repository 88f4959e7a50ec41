"""
Module: fleet_modules.inventory.orm
Responsibility: SQLAlchemy ORM persistence models for the stock ledger.
    Maps the frozen DTOs from inventory.models to the stock item catalog and
    the append-only stock transaction table.

Architecture position: Modules > Inventory > ORM.  Inherits from TrackedBase
    (fleet_kernel.db.base).

Invariants enforced:
    - All quantity and money fields use Decimal (Numeric(38,9)) -- NEVER float.
    - Enum fields stored as String(50) for portability and readability.
    - stock_items.quantity is written only by StockLedgerService.
    - stock_transactions rows are never updated or deleted
      (fleet_kernel.db.immutability).
    - cached_status is a display cache refreshed on every posting; filters
      recompute the status instead of trusting it.

Failure modes:
    - IntegrityError on duplicate stock code.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fleet_kernel.db.base import TrackedBase


# =============================================================================
# StockItemModel
# =============================================================================

class StockItemModel(TrackedBase):
    """
    ORM model for a catalog stock item.

    Maps to: fleet_modules.inventory.models.StockItem (frozen dataclass).
    """

    __tablename__ = "stock_items"

    __table_args__ = (
        Index("idx_stock_item_name", "name"),
        Index("idx_stock_item_category", "category"),
    )

    code: Mapped[str] = mapped_column(String(100), unique=True)
    name: Mapped[str] = mapped_column(String(255))
    category: Mapped[str] = mapped_column(String(255), default="")
    unit: Mapped[str] = mapped_column(String(50), default="")

    quantity: Mapped[Decimal] = mapped_column()
    initial_quantity: Mapped[Decimal] = mapped_column()
    min_stock: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    max_stock: Mapped[Decimal | None] = mapped_column(nullable=True)

    unit_price: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    selling_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    storage_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    supplier: Mapped[str | None] = mapped_column(String(255), nullable=True)

    is_revolving_part: Mapped[bool] = mapped_column(Boolean, default=False)
    is_fungible_used_item: Mapped[bool] = mapped_column(Boolean, default=False)

    # Advisory only (StockStatus value)
    cached_status: Mapped[str] = mapped_column(String(50), default="normal")

    def to_dto(self):
        """Convert ORM model to frozen StockItem DTO."""
        from fleet_modules.inventory.models import StockItem
        return StockItem(
            id=self.id,
            code=self.code,
            name=self.name,
            category=self.category,
            unit=self.unit,
            quantity=self.quantity,
            initial_quantity=self.initial_quantity,
            min_stock=self.min_stock,
            max_stock=self.max_stock,
            unit_price=self.unit_price,
            selling_price=self.selling_price,
            storage_location=self.storage_location,
            supplier=self.supplier,
            is_revolving_part=self.is_revolving_part,
            is_fungible_used_item=self.is_fungible_used_item,
        )

    def __repr__(self) -> str:
        return f"<StockItemModel {self.code} qty={self.quantity}>"


# =============================================================================
# StockTransactionModel
# =============================================================================

class StockTransactionModel(TrackedBase):
    """
    ORM model for one ledger movement.

    Maps to: fleet_modules.inventory.models.StockTransaction (frozen dataclass).

    Guarantees:
        - delta is signed; balance_after is the item quantity right after
          this movement was applied.
        - document_number ties the movement to its PO, withdrawal slip or
          cash bill.
    """

    __tablename__ = "stock_transactions"

    __table_args__ = (
        Index("idx_stock_txn_item", "stock_item_id", "occurred_at"),
        Index("idx_stock_txn_document", "document_number"),
        Index("idx_stock_txn_type", "transaction_type"),
    )

    stock_item_id: Mapped[UUID] = mapped_column(ForeignKey("stock_items.id"))
    transaction_type: Mapped[str] = mapped_column(String(50))
    delta: Mapped[Decimal] = mapped_column()
    balance_after: Mapped[Decimal] = mapped_column()
    unit_price: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    occurred_at: Mapped[datetime] = mapped_column()
    # Global posting order, allocated from the "stock_transaction" counter
    ledger_sequence: Mapped[int] = mapped_column(unique=True)

    document_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen StockTransaction DTO."""
        from fleet_modules.inventory.models import StockTransaction, StockTransactionType
        return StockTransaction(
            id=self.id,
            stock_item_id=self.stock_item_id,
            transaction_type=StockTransactionType(self.transaction_type),
            delta=self.delta,
            balance_after=self.balance_after,
            occurred_at=self.occurred_at,
            actor_id=self.created_by_id,
            unit_price=self.unit_price,
            document_number=self.document_number,
            reference=self.reference,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return (
            f"<StockTransactionModel {self.id} item={self.stock_item_id} "
            f"{self.transaction_type} delta={self.delta}>"
        )
