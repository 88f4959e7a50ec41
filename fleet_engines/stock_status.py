"""
Stock Status Engine - Classify stock levels and used-part batch progress.

Both statuses are derived, never ground truth.  Anything persisted on a row
is a display cache that callers recompute before filtering on it.

Usage:
    from fleet_engines.stock_status import stock_status, StockStatus

    stock_status(Decimal("4"), Decimal("5"), None)   # StockStatus.LOW
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Iterable


class StockStatus(str, Enum):
    """Stock level classification."""

    NORMAL = "normal"
    LOW = "low"
    OUT_OF_STOCK = "out_of_stock"
    OVERSTOCK = "overstock"


class UsedPartBatchStatus(str, Enum):
    """Progress of a used-part batch through its dispositions."""

    PENDING = "pending"
    PARTIALLY_RESOLVED = "partially_resolved"
    FULLY_RESOLVED = "fully_resolved"


def normalize_max_stock(max_stock: Decimal | None) -> Decimal | None:
    """Map the legacy "0 means no cap" convention onto None."""
    if max_stock is None or max_stock <= 0:
        return None
    return max_stock


def stock_status(
    quantity: Decimal,
    min_stock: Decimal,
    max_stock: Decimal | None = None,
) -> StockStatus:
    """
    Classify a stock level.

    Order of checks matters: a non-positive quantity is always out of stock
    (even when negative after an unvalidated withdrawal), and Low wins over
    Overstock when the thresholds are inverted.

    Args:
        quantity: Current quantity on hand.
        min_stock: Reorder threshold; at or below it the item is Low.
        max_stock: Cap above which the item is Overstock; None (or zero)
            means no cap.
    """
    if quantity <= 0:
        return StockStatus.OUT_OF_STOCK
    if quantity <= min_stock:
        return StockStatus.LOW
    cap = normalize_max_stock(max_stock)
    if cap is not None and quantity > cap:
        return StockStatus.OVERSTOCK
    return StockStatus.NORMAL


def remaining_quantity(
    initial_quantity: Decimal,
    disposition_quantities: Iterable[Decimal],
) -> Decimal:
    """Initial quantity minus everything disposed so far."""
    return initial_quantity - sum(disposition_quantities, Decimal("0"))


def used_part_batch_status(
    initial_quantity: Decimal,
    disposition_quantities: Iterable[Decimal],
) -> UsedPartBatchStatus:
    """Derive batch status from its initial quantity and active dispositions."""
    remaining = remaining_quantity(initial_quantity, disposition_quantities)
    if remaining == initial_quantity:
        return UsedPartBatchStatus.PENDING
    if remaining == 0:
        return UsedPartBatchStatus.FULLY_RESOLVED
    return UsedPartBatchStatus.PARTIALLY_RESOLVED
