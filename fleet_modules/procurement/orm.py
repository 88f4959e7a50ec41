"""
Module: fleet_modules.procurement.orm
Responsibility: SQLAlchemy ORM persistence models for purchase requisitions,
    purchase orders, their lines, the PO-to-requisition links and the goods
    receipt evidence.

Architecture position: Modules > Procurement > ORM.  Inherits from
    TrackedBase (fleet_kernel.db.base).  Stock items owned by the inventory
    module are referenced by UUID with NO foreign key.

Invariants enforced:
    - pr_number and po_number are unique.
    - (purchase_order_id, requisition_id) is unique on the link table.
    - All money and quantity fields use Decimal (Numeric(38,9)).
    - Stored PO totals are exactly what fleet_engines.po_financials returned
      when the order was created.

Failure modes:
    - IntegrityError on duplicate document number.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fleet_kernel.db.base import TrackedBase

# ---------------------------------------------------------------------------
# PurchaseRequisitionModel
# ---------------------------------------------------------------------------


class PurchaseRequisitionModel(TrackedBase):
    """
    A purchase requisition.

    Maps to the ``PurchaseRequisition`` DTO in
    ``fleet_modules.procurement.models``.

    Guarantees:
        - ``related_po_number`` is set exactly while the requisition is
          Ordered or Received.  It is a denormalized pointer; orphan
          detection compares it with the purchase order table.
    """

    __tablename__ = "purchase_requisitions"

    __table_args__ = (
        UniqueConstraint("pr_number", name="uq_pr_number"),
        Index("idx_pr_status", "status"),
        Index("idx_pr_related_po", "related_po_number"),
        Index("idx_pr_request_date", "request_date"),
    )

    pr_number: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    requester: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    supplier: Mapped[str | None] = mapped_column(String(255), nullable=True)
    request_date: Mapped[date] = mapped_column(Date, nullable=False)
    required_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    approved_by_id: Mapped[UUID | None]
    approved_at: Mapped[datetime | None]
    related_po_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["PurchaseRequisitionLineModel"]] = relationship(
        "PurchaseRequisitionLineModel",
        back_populates="requisition",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseRequisitionLineModel.line_number",
    )

    def to_dto(self):
        from fleet_modules.procurement.models import PurchaseRequisition, RequisitionStatus

        return PurchaseRequisition(
            id=self.id,
            pr_number=self.pr_number,
            status=RequisitionStatus(self.status),
            requester=self.requester,
            request_date=self.request_date,
            lines=tuple(line.to_dto() for line in self.lines),
            department=self.department,
            supplier=self.supplier,
            required_date=self.required_date,
            approved_by_id=self.approved_by_id,
            approved_at=self.approved_at,
            related_po_number=self.related_po_number,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<PurchaseRequisitionModel {self.pr_number} [{self.status}]>"


class PurchaseRequisitionLineModel(TrackedBase):
    """A line item on a purchase requisition."""

    __tablename__ = "purchase_requisition_lines"

    __table_args__ = (
        UniqueConstraint("requisition_id", "line_number", name="uq_pr_line_number"),
        Index("idx_pr_line_requisition", "requisition_id"),
    )

    requisition_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_requisitions.id"), nullable=False,
    )
    line_number: Mapped[int]
    stock_item_id: Mapped[UUID | None]
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    quantity: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    unit: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    unit_price: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    requisition: Mapped["PurchaseRequisitionModel"] = relationship(
        "PurchaseRequisitionModel",
        back_populates="lines",
    )

    def to_dto(self):
        from fleet_modules.procurement.models import RequisitionLine

        return RequisitionLine(
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            unit=self.unit,
            stock_item_id=self.stock_item_id,
        )

    def __repr__(self) -> str:
        return f"<PurchaseRequisitionLineModel #{self.line_number} qty={self.quantity}>"


# ---------------------------------------------------------------------------
# PurchaseOrderModel
# ---------------------------------------------------------------------------


class PurchaseOrderModel(TrackedBase):
    """
    A purchase order with its computed financial totals.

    Maps to the ``PurchaseOrder`` DTO in ``fleet_modules.procurement.models``.
    """

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_po_number"),
        Index("idx_po_status", "status"),
        Index("idx_po_supplier", "supplier"),
        Index("idx_po_order_date", "order_date"),
    )

    po_number: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="ordered")
    supplier: Mapped[str] = mapped_column(String(255), nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False)
    delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Tax settings used for the totals below
    vat_rate: Mapped[Decimal] = mapped_column()
    wht_rate: Mapped[Decimal] = mapped_column()
    vat_enabled: Mapped[bool] = mapped_column(Boolean)
    wht_enabled: Mapped[bool] = mapped_column(Boolean)
    price_includes_vat: Mapped[bool] = mapped_column(Boolean)
    manual_vat_adjustment: Mapped[Decimal] = mapped_column(default=Decimal("0"))

    # Totals (fleet_engines.po_financials)
    items_total: Mapped[Decimal] = mapped_column()
    net_before_vat: Mapped[Decimal] = mapped_column()
    vat_amount: Mapped[Decimal] = mapped_column()
    subtotal: Mapped[Decimal] = mapped_column()
    wht_amount: Mapped[Decimal] = mapped_column()
    total_amount: Mapped[Decimal] = mapped_column()

    received_at: Mapped[datetime | None]
    received_by_id: Mapped[UUID | None]
    cancelled_at: Mapped[datetime | None]
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    lines: Mapped[list["PurchaseOrderLineModel"]] = relationship(
        "PurchaseOrderLineModel",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseOrderLineModel.line_number",
    )
    requisition_links: Mapped[list["PurchaseOrderRequisitionLinkModel"]] = relationship(
        "PurchaseOrderRequisitionLinkModel",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="PurchaseOrderRequisitionLinkModel.pr_number",
    )
    evidence: Mapped[list["ReceiptEvidenceModel"]] = relationship(
        "ReceiptEvidenceModel",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ReceiptEvidenceModel.uploaded_at",
    )

    def to_dto(self):
        from fleet_engines.po_financials import TaxSettings
        from fleet_modules.procurement.models import POStatus, PurchaseOrder

        return PurchaseOrder(
            id=self.id,
            po_number=self.po_number,
            status=POStatus(self.status),
            supplier=self.supplier,
            order_date=self.order_date,
            lines=tuple(line.to_dto() for line in self.lines),
            tax_settings=TaxSettings(
                vat_rate=self.vat_rate,
                wht_rate=self.wht_rate,
                vat_enabled=self.vat_enabled,
                wht_enabled=self.wht_enabled,
                price_includes_vat=self.price_includes_vat,
                manual_vat_adjustment=self.manual_vat_adjustment,
            ),
            items_total=self.items_total,
            net_before_vat=self.net_before_vat,
            vat_amount=self.vat_amount,
            subtotal=self.subtotal,
            wht_amount=self.wht_amount,
            total_amount=self.total_amount,
            linked_requisition_ids=tuple(link.requisition_id for link in self.requisition_links),
            linked_pr_numbers=tuple(link.pr_number for link in self.requisition_links),
            evidence_urls=tuple(ev.url for ev in self.evidence),
            delivery_date=self.delivery_date,
            received_at=self.received_at,
            cancelled_at=self.cancelled_at,
            cancel_reason=self.cancel_reason,
            notes=self.notes,
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderModel {self.po_number} [{self.status}] total={self.total_amount}>"


class PurchaseOrderLineModel(TrackedBase):
    """A priced line on a purchase order."""

    __tablename__ = "purchase_order_lines"

    __table_args__ = (
        UniqueConstraint("purchase_order_id", "line_number", name="uq_po_line_number"),
        Index("idx_po_line_order", "purchase_order_id"),
        Index("idx_po_line_stock_item", "stock_item_id"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=False,
    )
    line_number: Mapped[int]
    stock_item_id: Mapped[UUID | None]
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    unit: Mapped[str] = mapped_column(String(50), nullable=False, default="")
    quantity: Mapped[Decimal] = mapped_column()
    unit_price: Mapped[Decimal] = mapped_column()
    discount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    line_total: Mapped[Decimal] = mapped_column()

    purchase_order: Mapped["PurchaseOrderModel"] = relationship(
        "PurchaseOrderModel",
        back_populates="lines",
    )

    def to_dto(self):
        from fleet_modules.procurement.models import PurchaseOrderLine

        return PurchaseOrderLine(
            description=self.description,
            quantity=self.quantity,
            unit_price=self.unit_price,
            discount=self.discount,
            line_total=self.line_total,
            unit=self.unit,
            stock_item_id=self.stock_item_id,
        )

    def __repr__(self) -> str:
        return f"<PurchaseOrderLineModel #{self.line_number} total={self.line_total}>"


class PurchaseOrderRequisitionLinkModel(TrackedBase):
    """
    A requisition aggregated into a purchase order.

    Links are kept after cancellation as history; whether a link is live
    is decided by the order's status.
    """

    __tablename__ = "purchase_order_requisition_links"

    __table_args__ = (
        UniqueConstraint("purchase_order_id", "requisition_id", name="uq_po_requisition_link"),
        Index("idx_po_link_requisition", "requisition_id"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=False,
    )
    requisition_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_requisitions.id"), nullable=False,
    )
    pr_number: Mapped[str] = mapped_column(String(50), nullable=False)

    purchase_order: Mapped["PurchaseOrderModel"] = relationship(
        "PurchaseOrderModel",
        back_populates="requisition_links",
    )

    def __repr__(self) -> str:
        return f"<PurchaseOrderRequisitionLinkModel po={self.purchase_order_id} pr={self.pr_number}>"


class ReceiptEvidenceModel(TrackedBase):
    """A photo or scan proving goods arrived against a purchase order."""

    __tablename__ = "purchase_order_receipt_evidence"

    __table_args__ = (
        Index("idx_po_evidence_order", "purchase_order_id"),
    )

    purchase_order_id: Mapped[UUID] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=False,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    storage_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    uploaded_at: Mapped[datetime]

    purchase_order: Mapped["PurchaseOrderModel"] = relationship(
        "PurchaseOrderModel",
        back_populates="evidence",
    )

    def __repr__(self) -> str:
        return f"<ReceiptEvidenceModel po={self.purchase_order_id} {self.url}>"
