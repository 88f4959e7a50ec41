"""
Used-Part Domain Models.

A batch is a fixed quantity of a part removed from a vehicle during a
repair.  It is consumed by dispositions (sold, scrapped, kept, or
converted into bulk or revolving stock) until nothing remains.  Remaining
quantity and status are derived from the active dispositions.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from fleet_engines.stock_status import (
    UsedPartBatchStatus,
    remaining_quantity,
    used_part_batch_status,
)


class DispositionType(Enum):
    """What happened to part of a batch."""
    CONVERTED_TO_BULK = "converted_to_bulk"
    CONVERTED_TO_REVOLVING_STOCK = "converted_to_revolving_stock"
    DISPOSED = "disposed"
    SOLD = "sold"
    KEPT = "kept"


# Dispositions that post an inbound receipt to the stock ledger
LEDGER_DISPOSITION_TYPES = frozenset({
    DispositionType.CONVERTED_TO_BULK,
    DispositionType.CONVERTED_TO_REVOLVING_STOCK,
})


@dataclass(frozen=True)
class UsedPartDisposition:
    """One recorded disposition of part of a batch."""
    id: UUID
    batch_id: UUID
    disposition_type: DispositionType
    quantity: Decimal
    occurred_at: datetime
    actor_id: UUID
    condition: str | None = None
    target_stock_item_id: UUID | None = None
    stock_transaction_id: UUID | None = None
    buyer: str | None = None
    sale_unit_price: Decimal | None = None
    storage_location: str | None = None
    notes: str | None = None
    reverted_at: datetime | None = None
    reverted_by_id: UUID | None = None
    revert_transaction_id: UUID | None = None

    @property
    def is_reverted(self) -> bool:
        return self.reverted_at is not None

    @property
    def sale_total(self) -> Decimal | None:
        if self.sale_unit_price is None:
            return None
        return self.quantity * self.sale_unit_price


@dataclass(frozen=True)
class UsedPartBatch:
    """
    A removed-part batch with its disposition history.

    ``dispositions`` includes reverted records; only the active ones count
    towards ``disposed_quantity``.
    """
    id: UUID
    name: str
    initial_quantity: Decimal
    unit: str
    removal_date: date
    origin_stock_item_id: UUID | None = None
    repair_order_number: str | None = None
    license_plate: str | None = None
    notes: str | None = None
    dispositions: tuple[UsedPartDisposition, ...] = field(default_factory=tuple)

    @property
    def active_dispositions(self) -> tuple[UsedPartDisposition, ...]:
        return tuple(d for d in self.dispositions if not d.is_reverted)

    @property
    def disposed_quantity(self) -> Decimal:
        return sum((d.quantity for d in self.active_dispositions), Decimal("0"))

    @property
    def remaining_quantity(self) -> Decimal:
        return remaining_quantity(
            self.initial_quantity, (d.quantity for d in self.active_dispositions),
        )

    @property
    def status(self) -> UsedPartBatchStatus:
        return used_part_batch_status(
            self.initial_quantity, (d.quantity for d in self.active_dispositions),
        )
