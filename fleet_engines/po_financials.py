"""
PO Financial Engine - Purchase order totals with VAT and withholding tax.

Pure functions with no I/O.  Amounts are THB and every intermediate result
is rounded half-up to the satang (0.01) before it feeds the next step, so
totals accumulate exactly the way the legacy purchase order screens did.

Algorithm:
    1. line_total = round(quantity * unit_price - discount)
       items_total = round(sum of line totals)
    2. Prices include VAT: sub = items_total, net = round(sub / (1 + rate/100)),
       vat = round(sub - net)
    3. Prices exclude VAT: net = items_total,
       vat = round(net * rate/100) when VAT is enabled,
       vat = round(vat + manual adjustment), sub = round(net + vat)
    4. wht = round(net * wht_rate/100) when WHT is enabled (always on net)
    5. total = round(sub - wht)

A negative total is returned as-is; flagging implausible orders is up to
the caller.

Usage:
    from fleet_engines.po_financials import POLineInput, TaxSettings, compute_po_totals

    totals = compute_po_totals(
        [POLineInput(quantity=Decimal("10"), unit_price=Decimal("100"))],
        TaxSettings(wht_enabled=True),
    )
    totals.total_amount  # Decimal("1040.00")
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Sequence

from fleet_kernel.logging_config import get_logger

logger = get_logger("engines.po_financials")

SATANG = Decimal("0.01")
HUNDRED = Decimal("100")


def round_money(value: Decimal) -> Decimal:
    """Round half-up to two decimal places."""
    return value.quantize(SATANG, rounding=ROUND_HALF_UP)


class VatMethod(str, Enum):
    """How line prices relate to VAT."""

    EXCLUSIVE = "exclusive"  # VAT added on top of the net amount
    INCLUSIVE = "inclusive"  # VAT already inside the price


@dataclass(frozen=True)
class POLineInput:
    """One priced line of a purchase order."""

    quantity: Decimal
    unit_price: Decimal
    discount: Decimal = Decimal("0")


@dataclass(frozen=True)
class TaxSettings:
    """
    VAT and withholding toggles for one purchase order.

    Rates are percentages (7 means 7%).  ``vat_enabled`` and
    ``price_includes_vat`` are independent switches; when prices include
    VAT the VAT is always backed out of the subtotal.
    """

    vat_rate: Decimal = Decimal("7")
    wht_rate: Decimal = Decimal("3")
    vat_enabled: bool = True
    wht_enabled: bool = False
    price_includes_vat: bool = False
    manual_vat_adjustment: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.vat_rate < 0:
            raise ValueError("VAT rate cannot be negative")
        if self.wht_rate < 0:
            raise ValueError("WHT rate cannot be negative")

    @property
    def vat_method(self) -> VatMethod:
        return VatMethod.INCLUSIVE if self.price_includes_vat else VatMethod.EXCLUSIVE


@dataclass(frozen=True)
class POTotals:
    """Result of a purchase order total calculation."""

    line_totals: tuple[Decimal, ...]
    items_total: Decimal
    net_before_vat: Decimal
    vat_amount: Decimal
    subtotal: Decimal
    wht_amount: Decimal
    total_amount: Decimal

    @property
    def is_negative(self) -> bool:
        return self.total_amount < 0


def compute_line_total(line: POLineInput) -> Decimal:
    """``round(quantity * unit_price - discount)``."""
    return round_money(line.quantity * line.unit_price - line.discount)


def compute_po_totals(
    lines: Sequence[POLineInput],
    settings: TaxSettings | None = None,
) -> POTotals:
    """
    Compute the financial totals of a purchase order.

    Args:
        lines: Priced lines; an empty sequence yields all-zero totals.
        settings: Tax toggles and rates.  Defaults to 7% VAT on top of
            the price and no withholding.

    Returns:
        POTotals with every amount rounded to 0.01.
    """
    settings = settings or TaxSettings()
    t0 = time.monotonic()

    line_totals = tuple(compute_line_total(line) for line in lines)
    items_total = round_money(sum(line_totals, Decimal("0")))

    if settings.price_includes_vat:
        subtotal = items_total
        net = round_money(subtotal / (1 + settings.vat_rate / HUNDRED))
        vat = round_money(subtotal - net)
    else:
        net = items_total
        vat = (
            round_money(net * settings.vat_rate / HUNDRED)
            if settings.vat_enabled
            else Decimal("0.00")
        )
        vat = round_money(vat + settings.manual_vat_adjustment)
        subtotal = round_money(net + vat)

    wht = (
        round_money(net * settings.wht_rate / HUNDRED)
        if settings.wht_enabled
        else Decimal("0.00")
    )
    total = round_money(subtotal - wht)

    logger.debug(
        "po_totals_computed",
        extra={
            "line_count": len(line_totals),
            "vat_method": settings.vat_method.value,
            "net_before_vat": str(net),
            "vat_amount": str(vat),
            "wht_amount": str(wht),
            "total_amount": str(total),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        },
    )
    if total < 0:
        logger.warning(
            "po_total_negative",
            extra={"total_amount": str(total), "items_total": str(items_total)},
        )

    return POTotals(
        line_totals=line_totals,
        items_total=items_total,
        net_before_vat=net,
        vat_amount=vat,
        subtotal=subtotal,
        wht_amount=wht,
        total_amount=total,
    )
