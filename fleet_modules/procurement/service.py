"""
fleet_modules.procurement.service
=================================

Responsibility:
    Drives requisitions and purchase orders through their lifecycles:
    PR draft -> pending approval -> approved -> ordered -> received, and
    PO ordered -> received | cancelled.  Creating an order computes its
    totals with the PO financial engine; receiving it posts inbound
    receipts to the stock ledger; cancelling it releases its requisitions.

Architecture:
    Module layer (fleet_modules).  Composes ``StockLedgerService`` with
    ``auto_commit=False`` and owns the transaction boundary, so a receipt's
    ledger postings and every status change it causes commit or roll back
    together.

Invariants enforced:
    - A requisition belongs to at most one live (not cancelled) purchase
      order at a time.
    - Only Approved requisitions can be ordered.
    - Every status change is looked up in REQUISITION_WORKFLOW or
      PURCHASE_ORDER_WORKFLOW first.
    - Receiving and cancelling are mutually exclusive terminal paths; the
      PO row is locked for both.
    - Document numbers come from locked counters, never from scanning
      existing numbers.

Failure modes:
    - Any exception -> session rolled back, exception re-raised.
    - Notification dispatcher failure -> logged, the committed change stands.

Usage::

    service = ProcurementService(session, clock=clock)
    pr = service.create_requisition("Somchai", lines, actor_id)
    service.submit_requisition(pr.id, actor_id)
    service.approve_requisition(pr.id, approver_id)
    po = service.create_purchase_order([pr.id], actor_id)
    service.receive_purchase_order(po.id, actor_id, evidence_urls=[url])
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleet_engines.po_financials import TaxSettings, compute_po_totals
from fleet_kernel.domain.clock import Clock, SystemClock
from fleet_kernel.exceptions import (
    InvalidStateTransitionError,
    MissingEvidenceError,
    NoRequisitionsSelectedError,
    PurchaseOrderNotFoundError,
    RequisitionAlreadyLinkedError,
    RequisitionNotFoundError,
    RequisitionNotOrphanedError,
)
from fleet_kernel.logging_config import LogContext, get_logger
from fleet_kernel.services.sequence_service import DocumentNumberAllocator
from fleet_modules.inventory.config import InventoryConfig
from fleet_modules.inventory.models import ReceiptLine
from fleet_modules.inventory.service import StockLedgerService
from fleet_modules.procurement.config import ProcurementConfig
from fleet_modules.procurement.models import (
    DraftPurchaseOrder,
    OrderLineInput,
    OrphanedRequisition,
    POStatus,
    PurchaseOrder,
    PurchaseRequisition,
    RequisitionLine,
    RequisitionStatus,
)
from fleet_modules.procurement.orm import (
    PurchaseOrderLineModel,
    PurchaseOrderModel,
    PurchaseOrderRequisitionLinkModel,
    PurchaseRequisitionLineModel,
    PurchaseRequisitionModel,
    ReceiptEvidenceModel,
)
from fleet_modules.procurement.ports import (
    PO_CANCELLED,
    PO_CREATED,
    PO_RECEIVED,
    EvidenceFile,
    EvidenceStore,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    evidence_path,
)
from fleet_modules.procurement.workflows import (
    PURCHASE_ORDER_WORKFLOW,
    REQUISITION_WORKFLOW,
    Workflow,
    find_transition,
)

logger = get_logger("modules.procurement.service")


class ProcurementService:
    """
    Orchestrates the requisition-to-receipt flow.

    Contract:
        Each public mutating method either commits and returns a frozen DTO,
        or rolls back and re-raises.  No method leaves the session with
        uncommitted changes.

    Guarantees:
        - PR/PO link exclusivity (see module docstring).
        - Stored PO totals are exactly the financial engine's output.
        - Notifications are sent after commit and never raise.
        - Clock is injected; ``datetime.now()`` is never called directly.

    Non-goals:
        - Does NOT reverse stock on cancellation; an Ordered PO has not
          touched the ledger yet.
        - Does NOT receive partially; a receipt takes every line in full.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ProcurementConfig | None = None,
        inventory_config: InventoryConfig | None = None,
        notifier: NotificationDispatcher | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ProcurementConfig.with_defaults()
        self._notifier = notifier or LoggingNotificationDispatcher()
        self._numbers = DocumentNumberAllocator(
            session, widths=self._config.sequence_widths,
        )

        # Ledger writes join our unit of work
        self._ledger = StockLedgerService(
            session,
            clock=self._clock,
            config=inventory_config,
            auto_commit=False,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _lock_requisition(self, requisition_id: UUID) -> PurchaseRequisitionModel:
        pr = self._session.execute(
            select(PurchaseRequisitionModel)
            .where(PurchaseRequisitionModel.id == requisition_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if pr is None:
            raise RequisitionNotFoundError(str(requisition_id))
        return pr

    def _lock_purchase_order(self, purchase_order_id: UUID) -> PurchaseOrderModel:
        po = self._session.execute(
            select(PurchaseOrderModel)
            .where(PurchaseOrderModel.id == purchase_order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if po is None:
            raise PurchaseOrderNotFoundError(str(purchase_order_id))
        return po

    @staticmethod
    def _transition(
        workflow: Workflow,
        entity_type: str,
        entity_ref: str,
        model: PurchaseRequisitionModel | PurchaseOrderModel,
        action: str,
        actor_id: UUID,
    ) -> None:
        transition = find_transition(workflow, model.status, action)
        if transition is None:
            raise InvalidStateTransitionError(entity_type, entity_ref, model.status, action)
        logger.debug(
            "workflow_transition_applied",
            extra={
                "workflow": workflow.name,
                "entity_ref": entity_ref,
                "from_state": transition.from_state,
                "to_state": transition.to_state,
                "action": action,
            },
        )
        model.status = transition.to_state
        model.updated_by_id = actor_id

    def _active_link_po_number(self, requisition_id: UUID) -> str | None:
        """PO number of a live order that already aggregates this requisition."""
        return self._session.execute(
            select(PurchaseOrderModel.po_number)
            .join(
                PurchaseOrderRequisitionLinkModel,
                PurchaseOrderRequisitionLinkModel.purchase_order_id == PurchaseOrderModel.id,
            )
            .where(
                PurchaseOrderRequisitionLinkModel.requisition_id == requisition_id,
                PurchaseOrderModel.status != POStatus.CANCELLED.value,
            )
            .limit(1)
        ).scalar_one_or_none()

    def _linked_requisitions(self, po: PurchaseOrderModel) -> list[PurchaseRequisitionModel]:
        return [
            self._lock_requisition(link.requisition_id)
            for link in sorted(po.requisition_links, key=lambda link: str(link.requisition_id))
        ]

    def _notify(self, event: str, payload: dict[str, Any]) -> None:
        try:
            self._notifier.notify(event, payload)
        except Exception:
            logger.warning(
                "procurement_notification_failed",
                extra={"event": event, "payload": payload},
                exc_info=True,
            )

    def _load_approved_requisitions(
        self,
        requisition_ids: Sequence[UUID],
        lock: bool,
    ) -> list[PurchaseRequisitionModel]:
        unique_ids = list(dict.fromkeys(requisition_ids))
        if not unique_ids:
            raise NoRequisitionsSelectedError()

        requisitions = []
        for requisition_id in unique_ids:
            if lock:
                pr = self._lock_requisition(requisition_id)
            else:
                pr = self._session.get(PurchaseRequisitionModel, requisition_id)
                if pr is None:
                    raise RequisitionNotFoundError(str(requisition_id))

            linked_po = pr.related_po_number or self._active_link_po_number(pr.id)
            if linked_po is not None:
                raise RequisitionAlreadyLinkedError(pr.pr_number, linked_po)
            if find_transition(REQUISITION_WORKFLOW, pr.status, "order") is None:
                raise InvalidStateTransitionError(
                    "PurchaseRequisition", pr.pr_number, pr.status, "order",
                )
            requisitions.append(pr)
        return requisitions

    @staticmethod
    def _lines_from_requisitions(
        requisitions: Sequence[PurchaseRequisitionModel],
    ) -> tuple[OrderLineInput, ...]:
        return tuple(
            OrderLineInput(
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                unit=line.unit,
                stock_item_id=line.stock_item_id,
            )
            for pr in requisitions
            for line in pr.lines
        )

    # =========================================================================
    # Requisitions
    # =========================================================================

    def create_requisition(
        self,
        requester: str,
        lines: Sequence[RequisitionLine],
        actor_id: UUID,
        *,
        department: str | None = None,
        supplier: str | None = None,
        required_date=None,
        notes: str | None = None,
    ) -> PurchaseRequisition:
        """
        Record a new Draft requisition under the next PR number.

        Raises:
            ValueError: If ``lines`` is empty or a line quantity is not positive.
        """
        try:
            if not lines:
                raise ValueError("A requisition needs at least one line")
            for line in lines:
                if line.quantity <= 0:
                    raise ValueError(
                        f"Requisition line quantity must be positive (got {line.quantity})"
                    )

            now = self._clock.now()
            pr_number = self._numbers.allocate(self._config.requisition_prefix, now.year)
            pr = PurchaseRequisitionModel(
                id=uuid4(),
                pr_number=pr_number,
                status=REQUISITION_WORKFLOW.initial_state,
                requester=requester,
                department=department,
                supplier=supplier,
                request_date=now.date(),
                required_date=required_date,
                notes=notes,
                created_by_id=actor_id,
            )
            pr.lines = [
                PurchaseRequisitionLineModel(
                    id=uuid4(),
                    line_number=number,
                    stock_item_id=line.stock_item_id,
                    description=line.description,
                    quantity=line.quantity,
                    unit=line.unit,
                    unit_price=line.unit_price,
                    created_by_id=actor_id,
                )
                for number, line in enumerate(lines, start=1)
            ]
            self._session.add(pr)
            self._session.flush()
            dto = pr.to_dto()
            self._session.commit()
            logger.info(
                "requisition_created",
                extra={
                    "pr_number": pr_number,
                    "line_count": len(lines),
                    "requester": requester,
                },
            )
            return dto
        except Exception:
            self._session.rollback()
            raise

    def _requisition_action(
        self,
        requisition_id: UUID,
        action: str,
        actor_id: UUID,
        **changes: Any,
    ) -> PurchaseRequisition:
        try:
            pr = self._lock_requisition(requisition_id)
            self._transition(
                REQUISITION_WORKFLOW, "PurchaseRequisition", pr.pr_number, pr, action, actor_id,
            )
            for name, value in changes.items():
                setattr(pr, name, value)
            self._session.flush()
            dto = pr.to_dto()
            self._session.commit()
            logger.info(
                f"requisition_{action}_committed",
                extra={"pr_number": dto.pr_number, "status": dto.status.value},
            )
            return dto
        except Exception:
            self._session.rollback()
            raise

    def submit_requisition(self, requisition_id: UUID, actor_id: UUID) -> PurchaseRequisition:
        """Draft -> PendingApproval."""
        return self._requisition_action(requisition_id, "submit", actor_id)

    def approve_requisition(self, requisition_id: UUID, approver_id: UUID) -> PurchaseRequisition:
        """PendingApproval -> Approved, recording who approved and when."""
        return self._requisition_action(
            requisition_id, "approve", approver_id,
            approved_by_id=approver_id,
            approved_at=self._clock.now(),
        )

    def cancel_requisition(
        self,
        requisition_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> PurchaseRequisition:
        """
        Cancel a requisition from any non-terminal state.

        An Ordered requisition loses its PO link; the order itself keeps
        its lines and later receipt or cancellation skips this requisition.
        """
        pr_notes = None
        if reason:
            pr = self._session.get(PurchaseRequisitionModel, requisition_id)
            existing = pr.notes if pr is not None else None
            pr_notes = f"{existing}\nCancelled: {reason}" if existing else f"Cancelled: {reason}"
        changes: dict[str, Any] = {"related_po_number": None}
        if pr_notes is not None:
            changes["notes"] = pr_notes
        return self._requisition_action(requisition_id, "cancel", actor_id, **changes)

    def get_requisition(self, requisition_id: UUID) -> PurchaseRequisition:
        pr = self._session.get(PurchaseRequisitionModel, requisition_id)
        if pr is None:
            raise RequisitionNotFoundError(str(requisition_id))
        return pr.to_dto()

    def list_requisitions(
        self,
        status: RequisitionStatus | None = None,
    ) -> list[PurchaseRequisition]:
        stmt = select(PurchaseRequisitionModel).order_by(PurchaseRequisitionModel.pr_number)
        if status is not None:
            stmt = stmt.where(PurchaseRequisitionModel.status == status.value)
        return [pr.to_dto() for pr in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Purchase orders
    # =========================================================================

    def build_draft_order(
        self,
        requisition_ids: Sequence[UUID],
        tax_settings: TaxSettings | None = None,
    ) -> DraftPurchaseOrder:
        """
        Propose an order from the selected requisitions without saving it.

        Lines are the requisitions' lines in selection order; the supplier
        is the first requisition's supplier.

        Raises:
            NoRequisitionsSelectedError: Empty selection.
            RequisitionAlreadyLinkedError: A requisition is on a live PO.
            InvalidStateTransitionError: A requisition is not Approved.
        """
        requisitions = self._load_approved_requisitions(requisition_ids, lock=False)
        settings = tax_settings or self._config.default_tax_settings()
        lines = self._lines_from_requisitions(requisitions)
        totals = compute_po_totals([line.to_engine_input() for line in lines], settings)
        return DraftPurchaseOrder(
            supplier=requisitions[0].supplier or "",
            lines=lines,
            requisition_ids=tuple(pr.id for pr in requisitions),
            pr_numbers=tuple(pr.pr_number for pr in requisitions),
            tax_settings=settings,
            totals=totals,
        )

    def create_purchase_order(
        self,
        requisition_ids: Sequence[UUID],
        actor_id: UUID,
        *,
        lines: Sequence[OrderLineInput] | None = None,
        supplier: str | None = None,
        tax_settings: TaxSettings | None = None,
        delivery_date=None,
        notes: str | None = None,
    ) -> PurchaseOrder:
        """
        Create an Ordered purchase order from Approved requisitions.

        Preconditions:
            - At least one requisition id; every requisition Approved and
              not on another live order.
        Postconditions:
            - PO persisted with status Ordered and the engine's totals.
            - Every source requisition Ordered with ``related_po_number``
              set to the new PO number.
            - ``po.created`` notification sent after commit.
        Raises:
            NoRequisitionsSelectedError, RequisitionNotFoundError,
            RequisitionAlreadyLinkedError, InvalidStateTransitionError.
            ValueError: ``lines`` given but empty.
        """
        try:
            logger.info(
                "purchase_order_creation_started",
                extra={"requisition_count": len(requisition_ids)},
            )
            requisitions = self._load_approved_requisitions(requisition_ids, lock=True)
            if lines is not None and not lines:
                raise ValueError("A purchase order needs at least one line")
            order_lines = tuple(lines) if lines is not None else self._lines_from_requisitions(requisitions)
            settings = tax_settings or self._config.default_tax_settings()
            totals = compute_po_totals(
                [line.to_engine_input() for line in order_lines], settings,
            )

            now = self._clock.now()
            po_number = self._numbers.allocate(self._config.purchase_order_prefix, now.year)

            with LogContext.bind(actor_id=actor_id, document_number=po_number, operation="create_purchase_order"):
                po = PurchaseOrderModel(
                    id=uuid4(),
                    po_number=po_number,
                    status=PURCHASE_ORDER_WORKFLOW.initial_state,
                    supplier=supplier or requisitions[0].supplier or "",
                    order_date=now.date(),
                    delivery_date=delivery_date,
                    vat_rate=settings.vat_rate,
                    wht_rate=settings.wht_rate,
                    vat_enabled=settings.vat_enabled,
                    wht_enabled=settings.wht_enabled,
                    price_includes_vat=settings.price_includes_vat,
                    manual_vat_adjustment=settings.manual_vat_adjustment,
                    items_total=totals.items_total,
                    net_before_vat=totals.net_before_vat,
                    vat_amount=totals.vat_amount,
                    subtotal=totals.subtotal,
                    wht_amount=totals.wht_amount,
                    total_amount=totals.total_amount,
                    notes=notes,
                    created_by_id=actor_id,
                )
                po.lines = [
                    PurchaseOrderLineModel(
                        id=uuid4(),
                        line_number=number,
                        stock_item_id=line.stock_item_id,
                        description=line.description,
                        unit=line.unit,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        discount=line.discount,
                        line_total=line_total,
                        created_by_id=actor_id,
                    )
                    for number, (line, line_total) in enumerate(
                        zip(order_lines, totals.line_totals), start=1,
                    )
                ]
                po.requisition_links = [
                    PurchaseOrderRequisitionLinkModel(
                        id=uuid4(),
                        requisition_id=pr.id,
                        pr_number=pr.pr_number,
                        created_by_id=actor_id,
                    )
                    for pr in requisitions
                ]
                self._transition(
                    PURCHASE_ORDER_WORKFLOW, "PurchaseOrder", po_number, po, "place", actor_id,
                )
                self._session.add(po)

                for pr in requisitions:
                    self._transition(
                        REQUISITION_WORKFLOW, "PurchaseRequisition", pr.pr_number, pr, "order", actor_id,
                    )
                    pr.related_po_number = po_number

                self._session.flush()
                dto = po.to_dto()
                self._session.commit()
                logger.info(
                    "purchase_order_created",
                    extra={
                        "pr_numbers": list(dto.linked_pr_numbers),
                        "line_count": len(dto.lines),
                        "total_amount": str(dto.total_amount),
                    },
                )
        except Exception:
            self._session.rollback()
            logger.warning("purchase_order_creation_rolled_back", exc_info=True)
            raise

        self._notify(PO_CREATED, {
            "po_number": dto.po_number,
            "supplier": dto.supplier,
            "total_amount": str(dto.total_amount),
            "pr_numbers": list(dto.linked_pr_numbers),
        })
        return dto

    def attach_receipt_evidence(
        self,
        purchase_order_id: UUID,
        files: Sequence[EvidenceFile],
        store: EvidenceStore,
        actor_id: UUID,
    ) -> PurchaseOrder:
        """
        Upload delivery photos for an Ordered PO and record their URLs.

        Files go to ``<evidence root>/<po number>/<epoch ms>_<safe name>``.
        Upload errors propagate; nothing is recorded for a failed batch.
        """
        try:
            po = self._lock_purchase_order(purchase_order_id)
            if po.status != POStatus.ORDERED.value:
                raise InvalidStateTransitionError(
                    "PurchaseOrder", po.po_number, po.status, "attach_evidence",
                )
            now = self._clock.now()
            timestamp_ms = int(now.timestamp() * 1000)
            for file in files:
                path = evidence_path(
                    self._config.evidence_path_root, po.po_number, timestamp_ms, file.file_name,
                )
                url = store.upload(file.content, path, file.content_type)
                po.evidence.append(ReceiptEvidenceModel(
                    id=uuid4(),
                    url=url,
                    storage_path=path,
                    uploaded_at=now,
                    created_by_id=actor_id,
                ))
            self._session.flush()
            dto = po.to_dto()
            self._session.commit()
            logger.info(
                "receipt_evidence_attached",
                extra={"po_number": dto.po_number, "file_count": len(files)},
            )
            return dto
        except Exception:
            self._session.rollback()
            raise

    def receive_purchase_order(
        self,
        purchase_order_id: UUID,
        actor_id: UUID,
        *,
        evidence_urls: Sequence[str] = (),
    ) -> PurchaseOrder:
        """
        Receive every line of an Ordered PO into stock.

        Evidence is the PO's attached files plus ``evidence_urls``; at least
        one is required.

        Postconditions:
            - One inbound-receipt transaction per stock line, tagged with
              the PO number; non-stock lines skipped.
            - PO Received; every requisition still Ordered on this PO
              becomes Received.
            - ``po.received`` notification sent after commit.
        Raises:
            PurchaseOrderNotFoundError, MissingEvidenceError,
            InvalidStateTransitionError (PO not Ordered),
            StockItemNotFoundError (a line's stock item no longer exists).
        """
        try:
            po = self._lock_purchase_order(purchase_order_id)
            with LogContext.bind(actor_id=actor_id, document_number=po.po_number, operation="receive_purchase_order"):
                logger.info("purchase_order_receipt_started", extra={"line_count": len(po.lines)})
                if find_transition(PURCHASE_ORDER_WORKFLOW, po.status, "receive") is None:
                    raise InvalidStateTransitionError(
                        "PurchaseOrder", po.po_number, po.status, "receive",
                    )

                now = self._clock.now()
                known_urls = {ev.url for ev in po.evidence}
                for url in evidence_urls:
                    if url and url not in known_urls:
                        po.evidence.append(ReceiptEvidenceModel(
                            id=uuid4(),
                            url=url,
                            uploaded_at=now,
                            created_by_id=actor_id,
                        ))
                        known_urls.add(url)
                if self._config.require_receipt_evidence and not known_urls:
                    raise MissingEvidenceError(po.po_number)

                self._transition(
                    PURCHASE_ORDER_WORKFLOW, "PurchaseOrder", po.po_number, po, "receive", actor_id,
                )
                po.received_at = now
                po.received_by_id = actor_id

                self._ledger.receive_from_order(
                    po.po_number,
                    [
                        ReceiptLine(
                            stock_item_id=line.stock_item_id,
                            quantity=line.quantity,
                            unit_price=line.unit_price,
                            description=line.description,
                        )
                        for line in po.lines
                    ],
                    actor_id,
                )

                for pr in self._linked_requisitions(po):
                    if pr.status != RequisitionStatus.ORDERED.value or pr.related_po_number != po.po_number:
                        logger.warning(
                            "linked_requisition_skipped",
                            extra={"pr_number": pr.pr_number, "status": pr.status},
                        )
                        continue
                    self._transition(
                        REQUISITION_WORKFLOW, "PurchaseRequisition", pr.pr_number, pr, "receive", actor_id,
                    )

                self._session.flush()
                dto = po.to_dto()
                self._session.commit()
                logger.info(
                    "purchase_order_received",
                    extra={"evidence_count": len(dto.evidence_urls)},
                )
        except Exception:
            self._session.rollback()
            logger.warning(
                "purchase_order_receipt_rolled_back",
                extra={"purchase_order_id": str(purchase_order_id)},
                exc_info=True,
            )
            raise

        self._notify(PO_RECEIVED, {
            "po_number": dto.po_number,
            "supplier": dto.supplier,
            "pr_numbers": list(dto.linked_pr_numbers),
        })
        return dto

    def cancel_purchase_order(
        self,
        purchase_order_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> PurchaseOrder:
        """
        Cancel an Ordered PO and release its requisitions.

        Every requisition still Ordered on this PO returns to Approved with
        its PO link cleared.  No stock transaction is created or removed.
        """
        try:
            po = self._lock_purchase_order(purchase_order_id)
            with LogContext.bind(actor_id=actor_id, document_number=po.po_number, operation="cancel_purchase_order"):
                self._transition(
                    PURCHASE_ORDER_WORKFLOW, "PurchaseOrder", po.po_number, po, "cancel", actor_id,
                )
                po.cancelled_at = self._clock.now()
                po.cancel_reason = reason

                released = []
                for pr in self._linked_requisitions(po):
                    if pr.status != RequisitionStatus.ORDERED.value or pr.related_po_number != po.po_number:
                        continue
                    self._transition(
                        REQUISITION_WORKFLOW, "PurchaseRequisition", pr.pr_number, pr, "release", actor_id,
                    )
                    pr.related_po_number = None
                    released.append(pr.pr_number)

                self._session.flush()
                dto = po.to_dto()
                self._session.commit()
                logger.info(
                    "purchase_order_cancelled",
                    extra={"released_pr_numbers": released, "reason": reason},
                )
        except Exception:
            self._session.rollback()
            raise

        self._notify(PO_CANCELLED, {
            "po_number": dto.po_number,
            "reason": reason,
            "pr_numbers": list(dto.linked_pr_numbers),
        })
        return dto

    def get_purchase_order(self, purchase_order_id: UUID) -> PurchaseOrder:
        po = self._session.get(PurchaseOrderModel, purchase_order_id)
        if po is None:
            raise PurchaseOrderNotFoundError(str(purchase_order_id))
        return po.to_dto()

    def find_purchase_order(self, po_number: str) -> PurchaseOrder | None:
        po = self._session.execute(
            select(PurchaseOrderModel).where(PurchaseOrderModel.po_number == po_number)
        ).scalar_one_or_none()
        return po.to_dto() if po else None

    def list_purchase_orders(self, status: POStatus | None = None) -> list[PurchaseOrder]:
        stmt = select(PurchaseOrderModel).order_by(PurchaseOrderModel.po_number)
        if status is not None:
            stmt = stmt.where(PurchaseOrderModel.status == status.value)
        return [po.to_dto() for po in self._session.execute(stmt).scalars()]

    # =========================================================================
    # Drift
    # =========================================================================

    def find_orphaned_requisitions(self) -> list[OrphanedRequisition]:
        """Requisitions whose ``related_po_number`` matches no purchase order."""
        linked = self._session.execute(
            select(PurchaseRequisitionModel)
            .where(PurchaseRequisitionModel.related_po_number.is_not(None))
            .order_by(PurchaseRequisitionModel.pr_number)
        ).scalars().all()
        if not linked:
            return []
        existing = set(self._session.execute(
            select(PurchaseOrderModel.po_number)
            .where(PurchaseOrderModel.po_number.in_({pr.related_po_number for pr in linked}))
        ).scalars())
        orphans = [
            OrphanedRequisition(
                requisition_id=pr.id,
                pr_number=pr.pr_number,
                status=RequisitionStatus(pr.status),
                related_po_number=pr.related_po_number,
            )
            for pr in linked
            if pr.related_po_number not in existing
        ]
        if orphans:
            logger.warning(
                "orphaned_requisitions_found",
                extra={"pr_numbers": [o.pr_number for o in orphans]},
            )
        return orphans

    def repair_orphaned_requisition(
        self,
        requisition_id: UUID,
        actor_id: UUID,
    ) -> PurchaseRequisition:
        """
        Return an orphaned Ordered requisition to Approved and clear its link.

        Raises:
            RequisitionNotOrphanedError: The link is empty or resolves to a PO.
            InvalidStateTransitionError: The requisition is not Ordered.
        """
        try:
            pr = self._lock_requisition(requisition_id)
            if pr.related_po_number is None:
                raise RequisitionNotOrphanedError(pr.pr_number, None)
            resolves = self._session.execute(
                select(PurchaseOrderModel.id)
                .where(PurchaseOrderModel.po_number == pr.related_po_number)
            ).scalar_one_or_none()
            if resolves is not None:
                raise RequisitionNotOrphanedError(pr.pr_number, pr.related_po_number)

            dangling = pr.related_po_number
            self._transition(
                REQUISITION_WORKFLOW, "PurchaseRequisition", pr.pr_number, pr, "repair_orphan", actor_id,
            )
            pr.related_po_number = None
            self._session.flush()
            dto = pr.to_dto()
            self._session.commit()
            logger.warning(
                "orphaned_requisition_repaired",
                extra={"pr_number": dto.pr_number, "dangling_po_number": dangling},
            )
            return dto
        except Exception:
            self._session.rollback()
            raise
