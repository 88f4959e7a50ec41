"""
Procurement Domain Models.

The nouns of procurement: requisitions, purchase orders, their lines, and
the read models used for drafting orders and spotting broken links.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from fleet_engines.po_financials import POLineInput, POTotals, TaxSettings


class RequisitionStatus(Enum):
    """Requisition lifecycle states."""
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    ORDERED = "ordered"  # linked to a live PO
    RECEIVED = "received"
    CANCELLED = "cancelled"


class POStatus(Enum):
    """Purchase order lifecycle states."""
    DRAFT = "draft"
    ORDERED = "ordered"
    RECEIVED = "received"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class RequisitionLine:
    """
    A line item on a purchase requisition.

    ``stock_item_id`` of None marks a service or non-stock purchase.
    """
    description: str
    quantity: Decimal
    unit_price: Decimal = Decimal("0")
    unit: str = ""
    stock_item_id: UUID | None = None

    @property
    def is_stock_line(self) -> bool:
        return self.stock_item_id is not None

    @property
    def estimated_total(self) -> Decimal:
        return self.quantity * self.unit_price


@dataclass(frozen=True)
class PurchaseRequisition:
    """An internal request to buy goods, approved before ordering."""
    id: UUID
    pr_number: str
    status: RequisitionStatus
    requester: str
    request_date: date
    lines: tuple[RequisitionLine, ...] = field(default_factory=tuple)
    department: str | None = None
    supplier: str | None = None
    required_date: date | None = None
    approved_by_id: UUID | None = None
    approved_at: datetime | None = None
    related_po_number: str | None = None
    notes: str | None = None

    @property
    def estimated_total(self) -> Decimal:
        return sum((line.estimated_total for line in self.lines), Decimal("0"))


@dataclass(frozen=True)
class OrderLineInput:
    """An edited purchase order line supplied when creating an order."""
    description: str
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal = Decimal("0")
    unit: str = ""
    stock_item_id: UUID | None = None

    def to_engine_input(self) -> POLineInput:
        return POLineInput(
            quantity=self.quantity,
            unit_price=self.unit_price,
            discount=self.discount,
        )


@dataclass(frozen=True)
class PurchaseOrderLine:
    """A priced line on a purchase order."""
    description: str
    quantity: Decimal
    unit_price: Decimal
    discount: Decimal
    line_total: Decimal
    unit: str = ""
    stock_item_id: UUID | None = None

    @property
    def is_stock_line(self) -> bool:
        return self.stock_item_id is not None


@dataclass(frozen=True)
class PurchaseOrder:
    """A confirmed order aggregating one or more requisitions."""
    id: UUID
    po_number: str
    status: POStatus
    supplier: str
    order_date: date
    lines: tuple[PurchaseOrderLine, ...]
    tax_settings: TaxSettings
    items_total: Decimal
    net_before_vat: Decimal
    vat_amount: Decimal
    subtotal: Decimal
    wht_amount: Decimal
    total_amount: Decimal
    linked_requisition_ids: tuple[UUID, ...] = field(default_factory=tuple)
    linked_pr_numbers: tuple[str, ...] = field(default_factory=tuple)
    evidence_urls: tuple[str, ...] = field(default_factory=tuple)
    delivery_date: date | None = None
    received_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class DraftPurchaseOrder:
    """
    Proposed order built from selected requisitions, not yet persisted.

    Screens show it for editing before ``create_purchase_order``.
    """
    supplier: str
    lines: tuple[OrderLineInput, ...]
    requisition_ids: tuple[UUID, ...]
    pr_numbers: tuple[str, ...]
    tax_settings: TaxSettings
    totals: POTotals


@dataclass(frozen=True)
class OrphanedRequisition:
    """A requisition whose PO link names an order that does not exist."""
    requisition_id: UUID
    pr_number: str
    status: RequisitionStatus
    related_po_number: str
