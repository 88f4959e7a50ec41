"""
Tests for Status Derivation.

Covers:
- Stock status thresholds and their precedence
- "No cap" handling of max stock
- Used-part batch status from disposition totals
- Determinism of both functions
"""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from fleet_engines.stock_status import (
    StockStatus,
    UsedPartBatchStatus,
    normalize_max_stock,
    remaining_quantity,
    stock_status,
    used_part_batch_status,
)

quantities = st.decimals(
    min_value=Decimal("-1000"), max_value=Decimal("1000"), places=2,
    allow_nan=False, allow_infinity=False,
)


class TestStockStatus:
    """Threshold classification of a stock level."""

    @pytest.mark.parametrize(
        "quantity, expected",
        [
            ("0", StockStatus.OUT_OF_STOCK),
            ("-3", StockStatus.OUT_OF_STOCK),
            ("1", StockStatus.LOW),
            ("5", StockStatus.LOW),
            ("6", StockStatus.NORMAL),
            ("20", StockStatus.NORMAL),
            ("21", StockStatus.OVERSTOCK),
        ],
    )
    def test_thresholds(self, quantity, expected):
        assert stock_status(Decimal(quantity), Decimal("5"), Decimal("20")) == expected

    def test_no_cap_never_overstock(self):
        assert stock_status(Decimal("10000"), Decimal("5"), None) == StockStatus.NORMAL

    def test_zero_max_means_no_cap(self):
        assert stock_status(Decimal("10000"), Decimal("5"), Decimal("0")) == StockStatus.NORMAL

    def test_low_wins_over_overstock_when_thresholds_inverted(self):
        # min above max: a quantity in between is Low, not Overstock
        assert stock_status(Decimal("15"), Decimal("20"), Decimal("10")) == StockStatus.LOW

    def test_ledger_example_after_withdrawal(self):
        assert stock_status(Decimal("4"), Decimal("5"), Decimal("20")) == StockStatus.LOW

    @given(quantity=quantities, min_stock=quantities, max_stock=st.none() | quantities)
    def test_deterministic(self, quantity, min_stock, max_stock):
        first = stock_status(quantity, min_stock, max_stock)
        assert first == stock_status(quantity, min_stock, max_stock)

    @given(quantity=quantities, min_stock=quantities)
    def test_non_positive_always_out_of_stock(self, quantity, min_stock):
        if quantity <= 0:
            assert stock_status(quantity, min_stock, None) == StockStatus.OUT_OF_STOCK


class TestNormalizeMaxStock:

    @pytest.mark.parametrize("value", [None, Decimal("0"), Decimal("-1")])
    def test_no_cap_values(self, value):
        assert normalize_max_stock(value) is None

    def test_positive_cap_kept(self):
        assert normalize_max_stock(Decimal("12")) == Decimal("12")


class TestUsedPartBatchStatus:
    """Batch progress derived from active dispositions."""

    def test_no_dispositions_is_pending(self):
        assert used_part_batch_status(Decimal("20"), []) == UsedPartBatchStatus.PENDING

    def test_partial(self):
        status = used_part_batch_status(Decimal("20"), [Decimal("5"), Decimal("3")])
        assert status == UsedPartBatchStatus.PARTIALLY_RESOLVED

    def test_fully_resolved(self):
        status = used_part_batch_status(Decimal("20"), [Decimal("20")])
        assert status == UsedPartBatchStatus.FULLY_RESOLVED

    def test_remaining_quantity(self):
        assert remaining_quantity(Decimal("20"), [Decimal("5"), Decimal("3")]) == Decimal("12")

    @given(
        initial=st.integers(min_value=1, max_value=500),
        parts=st.lists(st.integers(min_value=1, max_value=50), max_size=10),
    )
    def test_status_agrees_with_remaining(self, initial, parts):
        taken = []
        for part in parts:
            if sum(taken) + part <= initial:
                taken.append(part)
        quantities_ = [Decimal(q) for q in taken]
        remaining = remaining_quantity(Decimal(initial), quantities_)
        status = used_part_batch_status(Decimal(initial), quantities_)

        assert Decimal("0") <= remaining <= Decimal(initial)
        if remaining == initial:
            assert status == UsedPartBatchStatus.PENDING
        elif remaining == 0:
            assert status == UsedPartBatchStatus.FULLY_RESOLVED
        else:
            assert status == UsedPartBatchStatus.PARTIALLY_RESOLVED
