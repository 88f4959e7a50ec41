"""
Procurement Module.

Requisition-to-receipt flow: purchase requisitions are approved and
aggregated into purchase orders, whose totals come from the PO financial
engine; receiving an order posts its stock lines to the inventory ledger.
"""

from fleet_modules.procurement.config import ProcurementConfig
from fleet_modules.procurement.models import (
    DraftPurchaseOrder,
    OrderLineInput,
    OrphanedRequisition,
    POStatus,
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseRequisition,
    RequisitionLine,
    RequisitionStatus,
)
from fleet_modules.procurement.ports import (
    PO_CANCELLED,
    PO_CREATED,
    PO_RECEIVED,
    EvidenceFile,
    EvidenceStore,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
)
from fleet_modules.procurement.service import ProcurementService
from fleet_modules.procurement.workflows import (
    PURCHASE_ORDER_WORKFLOW,
    REQUISITION_WORKFLOW,
)

__all__ = [
    "RequisitionStatus",
    "POStatus",
    "RequisitionLine",
    "PurchaseRequisition",
    "OrderLineInput",
    "PurchaseOrderLine",
    "PurchaseOrder",
    "DraftPurchaseOrder",
    "OrphanedRequisition",
    "ProcurementConfig",
    "EvidenceFile",
    "EvidenceStore",
    "NotificationDispatcher",
    "LoggingNotificationDispatcher",
    "PO_CREATED",
    "PO_RECEIVED",
    "PO_CANCELLED",
    "REQUISITION_WORKFLOW",
    "PURCHASE_ORDER_WORKFLOW",
    "ProcurementService",
]
