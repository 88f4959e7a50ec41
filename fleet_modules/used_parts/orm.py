"""
Module: fleet_modules.used_parts.orm
Responsibility: SQLAlchemy ORM persistence models for removed-part batches
    and their dispositions.

Architecture position: Modules > Used parts > ORM.  Inherits from
    TrackedBase (fleet_kernel.db.base).  Stock items and stock transactions
    are referenced by UUID with NO foreign key, as procurement does.

Invariants enforced:
    - initial_quantity is fixed at creation.
    - Batch status is NOT stored; it is derived from the active dispositions.
    - Dispositions are never deleted; only the revert marker columns may
      change after insert (fleet_kernel.db.immutability).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleet_kernel.db.base import TrackedBase


class UsedPartBatchModel(TrackedBase):
    """A batch of parts removed during one repair."""

    __tablename__ = "used_part_batches"

    __table_args__ = (
        Index("idx_used_part_origin", "origin_stock_item_id"),
        Index("idx_used_part_removal_date", "removal_date"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    initial_quantity: Mapped[Decimal] = mapped_column()
    unit: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    removal_date: Mapped[date] = mapped_column(Date, nullable=False)
    origin_stock_item_id: Mapped[UUID | None]
    repair_order_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    license_plate: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    dispositions: Mapped[list["UsedPartDispositionModel"]] = relationship(
        "UsedPartDispositionModel",
        back_populates="batch",
        lazy="selectin",
        order_by="UsedPartDispositionModel.position",
    )

    def active_quantities(self) -> list[Decimal]:
        return [d.quantity for d in self.dispositions if d.reverted_at is None]

    def to_dto(self):
        from fleet_modules.used_parts.models import UsedPartBatch

        return UsedPartBatch(
            id=self.id,
            name=self.name,
            initial_quantity=self.initial_quantity,
            unit=self.unit,
            removal_date=self.removal_date,
            origin_stock_item_id=self.origin_stock_item_id,
            repair_order_number=self.repair_order_number,
            license_plate=self.license_plate,
            notes=self.notes,
            dispositions=tuple(d.to_dto() for d in self.dispositions),
        )

    def __repr__(self) -> str:
        return f"<UsedPartBatchModel {self.name} initial={self.initial_quantity}>"


class UsedPartDispositionModel(TrackedBase):
    """One disposition of part of a batch."""

    __tablename__ = "used_part_dispositions"

    __table_args__ = (
        UniqueConstraint("batch_id", "position", name="uq_disposition_position"),
        Index("idx_disposition_target", "target_stock_item_id"),
    )

    batch_id: Mapped[UUID] = mapped_column(
        ForeignKey("used_part_batches.id"), nullable=False,
    )
    position: Mapped[int]
    disposition_type: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[Decimal] = mapped_column()
    occurred_at: Mapped[datetime] = mapped_column()
    condition: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Ledger effect (conversions only)
    target_stock_item_id: Mapped[UUID | None]
    stock_transaction_id: Mapped[UUID | None]

    # Sale details
    buyer: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sale_unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)

    storage_location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Revert marker
    reverted_at: Mapped[datetime | None]
    reverted_by_id: Mapped[UUID | None]
    revert_transaction_id: Mapped[UUID | None]

    batch: Mapped["UsedPartBatchModel"] = relationship(
        "UsedPartBatchModel",
        back_populates="dispositions",
    )

    def to_dto(self):
        from fleet_modules.used_parts.models import DispositionType, UsedPartDisposition

        return UsedPartDisposition(
            id=self.id,
            batch_id=self.batch_id,
            disposition_type=DispositionType(self.disposition_type),
            quantity=self.quantity,
            occurred_at=self.occurred_at,
            actor_id=self.created_by_id,
            condition=self.condition,
            target_stock_item_id=self.target_stock_item_id,
            stock_transaction_id=self.stock_transaction_id,
            buyer=self.buyer,
            sale_unit_price=self.sale_unit_price,
            storage_location=self.storage_location,
            notes=self.notes,
            reverted_at=self.reverted_at,
            reverted_by_id=self.reverted_by_id,
            revert_transaction_id=self.revert_transaction_id,
        )

    def __repr__(self) -> str:
        return (
            f"<UsedPartDispositionModel {self.disposition_type} "
            f"qty={self.quantity} reverted={self.reverted_at is not None}>"
        )
