"""
Typed Exception Hierarchy for the Fleet Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock and procurement operations fail in a handful of well-understood ways.
Callers (screens, batch jobs, API handlers) need to tell them apart without
parsing message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        tracker.apply_disposition(batch_id, DispositionType.DISPOSED, qty, actor)
    except OverDispositionError as e:
        show_warning(f"Only {e.remaining} {e.unit} left on {e.batch_id}")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FleetKernelError (base)
    |
    +-- ValidationError                   (reported, nothing persisted)
    |   +-- NoRequisitionsSelectedError
    |   +-- InvalidStateTransitionError
    |   +-- RequisitionAlreadyLinkedError
    |   +-- MissingEvidenceError
    |   +-- InvalidTransactionDeltaError
    |   +-- InsufficientStockError
    |   +-- DuplicateStockCodeError
    |   +-- OverDispositionError
    |   +-- InvalidDispositionTargetError
    |
    +-- ReferenceNotFoundError            (reported, operation aborted)
    |   +-- StockItemNotFoundError
    |   +-- RequisitionNotFoundError
    |   +-- PurchaseOrderNotFoundError
    |   +-- UsedPartBatchNotFoundError
    |   +-- DispositionNotFoundError
    |
    +-- DriftError                        (recoverable data drift)
    |   +-- RequisitionNotOrphanedError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|----------------------------------------
Validation   | NO_REQUISITIONS_SELECTED      | Create PO with an empty PR selection
             | INVALID_STATE_TRANSITION      | Workflow has no such transition
             | REQUISITION_ALREADY_LINKED    | PR already belongs to an active PO
             | MISSING_EVIDENCE              | Receive PO without any evidence URL
             | INVALID_TRANSACTION_DELTA     | Zero or wrong-signed ledger delta
             | INSUFFICIENT_STOCK            | Withdraw/return/sell more than on hand
             | DUPLICATE_STOCK_CODE          | Catalog code already in use
             | OVER_DISPOSITION              | Disposition exceeds remaining batch qty
             | INVALID_DISPOSITION_TARGET    | Bulk conversion into a non-bulk item
-------------|-------------------------------|----------------------------------------
Reference    | STOCK_ITEM_NOT_FOUND          | Stock item id does not resolve
             | REQUISITION_NOT_FOUND         | PR id does not resolve
             | PURCHASE_ORDER_NOT_FOUND      | PO id does not resolve
             | USED_PART_BATCH_NOT_FOUND     | Batch id does not resolve
             | DISPOSITION_NOT_FOUND         | Disposition id not on the batch
-------------|-------------------------------|----------------------------------------
Drift        | REQUISITION_NOT_ORPHANED      | Orphan repair on a resolvable link
-------------|-------------------------------|----------------------------------------
Immutability | IMMUTABILITY_VIOLATION        | Update/delete of a ledger transaction

===============================================================================
"""

from decimal import Decimal


class FleetKernelError(Exception):
    """
    Base exception for all fleet kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FLEET_KERNEL_ERROR"


# Validation errors


class ValidationError(FleetKernelError):
    """Base exception for input that fails a business rule."""

    code: str = "VALIDATION_ERROR"


class NoRequisitionsSelectedError(ValidationError):
    """A purchase order was requested from an empty requisition selection."""

    code: str = "NO_REQUISITIONS_SELECTED"

    def __init__(self):
        super().__init__("At least one approved requisition must be selected")


class InvalidStateTransitionError(ValidationError):
    """The workflow does not allow this action from the current state."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, entity_type: str, entity_ref: str, from_state: str, action: str):
        self.entity_type = entity_type
        self.entity_ref = entity_ref
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"{entity_type} {entity_ref}: action '{action}' "
            f"is not allowed from state '{from_state}'"
        )


class RequisitionAlreadyLinkedError(ValidationError):
    """The requisition is already attached to an active purchase order."""

    code: str = "REQUISITION_ALREADY_LINKED"

    def __init__(self, pr_number: str, po_number: str):
        self.pr_number = pr_number
        self.po_number = po_number
        super().__init__(
            f"Requisition {pr_number} is already linked to purchase order {po_number}"
        )


class MissingEvidenceError(ValidationError):
    """Goods receipt was attempted without any attached evidence file."""

    code: str = "MISSING_EVIDENCE"

    def __init__(self, po_number: str):
        self.po_number = po_number
        super().__init__(
            f"Purchase order {po_number} cannot be received without evidence"
        )


class InvalidTransactionDeltaError(ValidationError):
    """Ledger delta is zero or has the wrong sign for its transaction type."""

    code: str = "INVALID_TRANSACTION_DELTA"

    def __init__(self, transaction_type: str, delta: Decimal, reason: str):
        self.transaction_type = transaction_type
        self.delta = delta
        self.reason = reason
        super().__init__(
            f"Invalid delta {delta} for {transaction_type}: {reason}"
        )


class InsufficientStockError(ValidationError):
    """Requested outbound quantity exceeds the quantity on hand."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, stock_item_id: str, requested: Decimal, on_hand: Decimal):
        self.stock_item_id = stock_item_id
        self.requested = requested
        self.on_hand = on_hand
        super().__init__(
            f"Stock item {stock_item_id}: requested {requested}, on hand {on_hand}"
        )


class DuplicateStockCodeError(ValidationError):
    """A catalog entry with this code already exists."""

    code: str = "DUPLICATE_STOCK_CODE"

    def __init__(self, stock_code: str):
        self.stock_code = stock_code
        super().__init__(f"Stock code already exists: {stock_code}")


class OverDispositionError(ValidationError):
    """Disposition quantity would exceed the batch's remaining quantity."""

    code: str = "OVER_DISPOSITION"

    def __init__(
        self,
        batch_id: str,
        requested: Decimal,
        remaining: Decimal,
        unit: str = "",
    ):
        self.batch_id = batch_id
        self.requested = requested
        self.remaining = remaining
        self.unit = unit
        super().__init__(
            f"Used-part batch {batch_id}: cannot dispose {requested}, "
            f"only {remaining} remaining"
        )


class InvalidDispositionTargetError(ValidationError):
    """The stock item chosen to receive a disposition is not eligible."""

    code: str = "INVALID_DISPOSITION_TARGET"

    def __init__(self, stock_item_id: str, reason: str):
        self.stock_item_id = stock_item_id
        self.reason = reason
        super().__init__(f"Stock item {stock_item_id} is not a valid target: {reason}")


# Reference errors


class ReferenceNotFoundError(FleetKernelError):
    """Base exception for identifiers that do not resolve."""

    code: str = "REFERENCE_NOT_FOUND"


class StockItemNotFoundError(ReferenceNotFoundError):
    """Stock item with given ID was not found."""

    code: str = "STOCK_ITEM_NOT_FOUND"

    def __init__(self, stock_item_id: str):
        self.stock_item_id = stock_item_id
        super().__init__(f"Stock item not found: {stock_item_id}")


class RequisitionNotFoundError(ReferenceNotFoundError):
    """Purchase requisition with given ID was not found."""

    code: str = "REQUISITION_NOT_FOUND"

    def __init__(self, requisition_id: str):
        self.requisition_id = requisition_id
        super().__init__(f"Purchase requisition not found: {requisition_id}")


class PurchaseOrderNotFoundError(ReferenceNotFoundError):
    """Purchase order with given ID was not found."""

    code: str = "PURCHASE_ORDER_NOT_FOUND"

    def __init__(self, purchase_order_id: str):
        self.purchase_order_id = purchase_order_id
        super().__init__(f"Purchase order not found: {purchase_order_id}")


class UsedPartBatchNotFoundError(ReferenceNotFoundError):
    """Used-part batch with given ID was not found."""

    code: str = "USED_PART_BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Used-part batch not found: {batch_id}")


class DispositionNotFoundError(ReferenceNotFoundError):
    """Disposition with given ID is not recorded on the batch."""

    code: str = "DISPOSITION_NOT_FOUND"

    def __init__(self, batch_id: str, disposition_id: str):
        self.batch_id = batch_id
        self.disposition_id = disposition_id
        super().__init__(
            f"Disposition {disposition_id} not found on batch {batch_id}"
        )


# Drift errors


class DriftError(FleetKernelError):
    """Base exception for stored references that disagree with each other."""

    code: str = "DRIFT_ERROR"


class RequisitionNotOrphanedError(DriftError):
    """
    Orphan repair was requested for a requisition whose PO link resolves.

    Repair is only for links pointing at a PO number that no longer exists;
    a healthy link must be released by cancelling the PO instead.
    """

    code: str = "REQUISITION_NOT_ORPHANED"

    def __init__(self, pr_number: str, po_number: str | None):
        self.pr_number = pr_number
        self.po_number = po_number
        super().__init__(
            f"Requisition {pr_number} is not orphaned (linked PO: {po_number})"
        )


# Immutability errors


class ImmutabilityError(FleetKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Stock transactions are append-only; a correction is a new transaction.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
