"""
Fleet Engines - Pure calculation engines for stock and procurement.

Engines are pure functions: no database, no clock, no I/O.  Services feed
them plain values and persist whatever they return.

Engines:
    - stock_status: Stock level classification and used-part batch status
    - po_financials: Purchase order VAT / withholding tax totals
"""

from fleet_engines.po_financials import (
    POLineInput,
    POTotals,
    TaxSettings,
    compute_line_total,
    compute_po_totals,
    round_money,
)
from fleet_engines.stock_status import (
    StockStatus,
    UsedPartBatchStatus,
    normalize_max_stock,
    remaining_quantity,
    stock_status,
    used_part_batch_status,
)

__all__ = [
    # Stock status
    "StockStatus",
    "UsedPartBatchStatus",
    "stock_status",
    "used_part_batch_status",
    "remaining_quantity",
    "normalize_max_stock",
    # PO financials
    "POLineInput",
    "POTotals",
    "TaxSettings",
    "compute_line_total",
    "compute_po_totals",
    "round_money",
]
