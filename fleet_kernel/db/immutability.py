"""
ORM-Level Append-Only Enforcement for the Stock Ledger.

===============================================================================
WHY THIS EXISTS
===============================================================================

Every change to a stock item's quantity is justified by a stock transaction.
If a transaction could be edited or deleted after the fact, the ledger-balance
invariant (quantity == initial quantity + sum of deltas) could be made to hold
while the history lies.  Corrections are therefore always NEW transactions.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires events before UPDATE/DELETE operations reach the database:

    session.flush()
         |
         v
    [before_update event] --> _check_stock_transaction_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_stock_transaction_delete() --------> ImmutabilityViolationError

If a check fails, the flush aborts and the caller's unit of work rolls back.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity               | When Immutable          | Why
---------------------|-------------------------|--------------------------------
StockTransaction     | ALWAYS (from creation)  | Justifies every quantity change
UsedPartDisposition  | Quantity/type/target    | Feeds the disposed total; revert
                     | ALWAYS                  | is a flag, not an edit

===============================================================================
USAGE
===============================================================================

    from fleet_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect

from fleet_kernel.exceptions import ImmutabilityViolationError
from fleet_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Disposition fields that may still change after creation (revert marker)
DISPOSITION_MUTABLE_FIELDS = frozenset({
    "reverted_at",
    "reverted_by_id",
    "revert_transaction_id",
    "updated_at",
    "updated_by_id",
})


def _check_stock_transaction_immutability(mapper, connection, target):
    """Prevent any updates to StockTransaction records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockTransaction",
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockTransaction",
        entity_id=str(target.id),
        reason="Stock transactions are append-only; post a correcting transaction",
    )


def _check_stock_transaction_delete(mapper, connection, target):
    """Prevent deletion of StockTransaction records."""
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "StockTransaction",
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type="StockTransaction",
        entity_id=str(target.id),
        reason="Stock transactions cannot be deleted",
    )


def _check_disposition_immutability(mapper, connection, target):
    """Allow only the revert marker to change on a disposition."""
    state = inspect(target)
    changed = {
        attr.key
        for attr in state.attrs
        if attr.history.has_changes()
    }
    forbidden = changed - DISPOSITION_MUTABLE_FIELDS
    if not forbidden:
        return

    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "UsedPartDisposition",
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "fields": sorted(forbidden),
        },
    )
    raise ImmutabilityViolationError(
        entity_type="UsedPartDisposition",
        entity_id=str(target.id),
        reason=f"Fields {sorted(forbidden)} cannot change after recording",
    )


def _check_disposition_delete(mapper, connection, target):
    """Prevent deletion of disposition records."""
    raise ImmutabilityViolationError(
        entity_type="UsedPartDisposition",
        entity_id=str(target.id),
        reason="Dispositions are reverted, never deleted",
    )


def _listeners():
    from fleet_modules.inventory.orm import StockTransactionModel
    from fleet_modules.used_parts.orm import UsedPartDispositionModel

    return (
        (StockTransactionModel, "before_update", _check_stock_transaction_immutability),
        (StockTransactionModel, "before_delete", _check_stock_transaction_delete),
        (UsedPartDispositionModel, "before_update", _check_disposition_immutability),
        (UsedPartDispositionModel, "before_delete", _check_disposition_delete),
    )


def register_immutability_listeners():
    """
    Register all append-only enforcement event listeners.

    Call this after all models are imported but before any database
    operations begin.  Idempotent.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove append-only enforcement event listeners.

    WARNING: Only use this in tests where you need to intentionally
    violate immutability rules to verify detection.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
