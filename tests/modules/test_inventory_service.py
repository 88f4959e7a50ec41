"""
Tests for the Stock Ledger (StockLedgerService).

Validates:
- Catalog creation and duplicate codes
- Core posting: sign rules, zero delta, unknown items, no over-withdrawal check
- Validating operations: withdrawal slips, supplier returns, graded sales
- Receipts from purchase orders (aggregation, non-stock lines)
- Derived status on read
- Ledger balance under random posting sequences
"""

from __future__ import annotations

import inspect
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from fleet_engines.stock_status import StockStatus
from fleet_kernel.exceptions import (
    DuplicateStockCodeError,
    InsufficientStockError,
    InvalidDispositionTargetError,
    InvalidTransactionDeltaError,
    StockItemNotFoundError,
)
from fleet_modules.inventory.models import (
    GradedSaleLine,
    ReceiptLine,
    StockTransactionType,
)
from fleet_modules.inventory.service import StockLedgerService


# =============================================================================
# Structural Tests
# =============================================================================


class TestStockLedgerServiceStructure:

    def test_constructor_signature(self):
        params = list(inspect.signature(StockLedgerService.__init__).parameters)
        assert params[:3] == ["self", "session", "clock"]
        assert "auto_commit" in params

    def test_has_public_methods(self):
        expected = [
            "create_stock_item", "post_transaction", "receive_from_order",
            "withdraw_stock", "return_to_supplier", "adjust_stock",
            "sell_fungible_item", "verify_balance", "list_items",
            "transaction_history",
        ]
        for method_name in expected:
            assert callable(getattr(StockLedgerService, method_name))


# =============================================================================
# Catalog
# =============================================================================


class TestCatalog:

    def test_create_item(self, make_item):
        item = make_item(quantity="10", min_stock="5", max_stock="20", code="BRK-001")

        assert item.code == "BRK-001"
        assert item.quantity == Decimal("10")
        assert item.initial_quantity == Decimal("10")
        assert item.status == StockStatus.NORMAL

    def test_zero_max_stored_as_no_cap(self, make_item):
        item = make_item(quantity="100", max_stock="0")

        assert item.max_stock is None
        assert item.status == StockStatus.NORMAL

    def test_duplicate_code_rejected(self, make_item):
        make_item(code="OIL-5W30")
        with pytest.raises(DuplicateStockCodeError) as exc_info:
            make_item(code="OIL-5W30")
        assert exc_info.value.stock_code == "OIL-5W30"

    def test_creation_writes_no_transaction(self, ledger, make_item):
        item = make_item(quantity="7")

        assert ledger.transaction_history(item.id) == []
        assert ledger.verify_balance(item.id).is_balanced

    def test_get_unknown_item(self, ledger):
        with pytest.raises(StockItemNotFoundError):
            ledger.get_item(uuid4())

    def test_find_revolving_item(self, ledger, make_item):
        make_item(code="ALT-01-R", name="Alternator", is_revolving_part=True)
        make_item(code="ALT-01", name="Alternator")

        assert ledger.find_revolving_item(code="ALT-01-R").code == "ALT-01-R"
        assert ledger.find_revolving_item(name="Alternator").code == "ALT-01-R"
        assert ledger.find_revolving_item(code="ALT-01") is None


# =============================================================================
# Core posting
# =============================================================================


class TestPostTransaction:

    def test_receipt_increases_quantity(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="3")
        txn = ledger.post_transaction(
            item.id, StockTransactionType.INBOUND_RECEIPT, Decimal("5"), test_actor_id,
        )

        assert txn.delta == Decimal("5")
        assert txn.balance_after == Decimal("8")
        assert txn.actor_id == test_actor_id
        assert ledger.get_item(item.id).quantity == Decimal("8")

    def test_zero_delta_rejected(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="3")
        with pytest.raises(InvalidTransactionDeltaError):
            ledger.post_transaction(
                item.id, StockTransactionType.MANUAL_ADJUSTMENT, Decimal("0"), test_actor_id,
            )

    @pytest.mark.parametrize(
        "transaction_type",
        [
            StockTransactionType.WITHDRAWAL,
            StockTransactionType.RETURN_TO_SUPPLIER,
            StockTransactionType.DISPOSAL_SALE,
        ],
    )
    def test_outbound_types_must_be_negative(self, ledger, make_item, test_actor_id, transaction_type):
        item = make_item(quantity="3")
        with pytest.raises(InvalidTransactionDeltaError):
            ledger.post_transaction(item.id, transaction_type, Decimal("1"), test_actor_id)
        assert ledger.get_item(item.id).quantity == Decimal("3")

    def test_unknown_item(self, ledger, test_actor_id):
        with pytest.raises(StockItemNotFoundError):
            ledger.post_transaction(
                uuid4(), StockTransactionType.INBOUND_RECEIPT, Decimal("1"), test_actor_id,
            )

    def test_ledger_does_not_block_negative_quantity(self, ledger, make_item, test_actor_id, captured_logs):
        item = make_item(quantity="2")
        txn = ledger.post_transaction(
            item.id, StockTransactionType.WITHDRAWAL, Decimal("-5"), test_actor_id,
        )

        assert txn.balance_after == Decimal("-3")
        assert ledger.get_item(item.id).status == StockStatus.OUT_OF_STOCK
        assert any(r["message"] == "stock_quantity_negative" for r in captured_logs())

    def test_adjust_stock_records_reason(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="10")
        txn = ledger.adjust_stock(item.id, Decimal("-2"), test_actor_id, "stock count")

        assert txn.transaction_type == StockTransactionType.MANUAL_ADJUSTMENT
        assert txn.notes == "stock count"
        assert ledger.get_item(item.id).quantity == Decimal("8")

    def test_history_oldest_first(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="0")
        for delta in ("1", "2", "3"):
            ledger.post_transaction(
                item.id, StockTransactionType.INBOUND_RECEIPT, Decimal(delta), test_actor_id,
            )

        history = ledger.transaction_history(item.id)
        assert [t.delta for t in history] == [Decimal("1"), Decimal("2"), Decimal("3")]
        assert [t.balance_after for t in history] == [Decimal("1"), Decimal("3"), Decimal("6")]


# =============================================================================
# Validating operations
# =============================================================================


class TestWithdrawStock:

    def test_withdrawal_makes_item_low(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="10", min_stock="5", max_stock="20", unit_price="250")
        txn = ledger.withdraw_stock(item.id, Decimal("6"), test_actor_id, reference="RO-2025-0042")

        after = ledger.get_item(item.id)
        assert after.quantity == Decimal("4")
        assert after.status == StockStatus.LOW
        assert txn.transaction_type == StockTransactionType.WITHDRAWAL
        assert txn.delta == Decimal("-6")
        assert txn.unit_price == Decimal("250")
        assert txn.document_number == "WD-2025-00001"
        assert txn.reference == "RO-2025-0042"
        assert len(ledger.transaction_history(item.id)) == 1

    def test_slip_numbers_increment(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="10")
        first = ledger.withdraw_stock(item.id, Decimal("1"), test_actor_id)
        second = ledger.withdraw_stock(item.id, Decimal("1"), test_actor_id)

        assert first.document_number == "WD-2025-00001"
        assert second.document_number == "WD-2025-00002"

    def test_over_withdrawal_rejected(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="3")
        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.withdraw_stock(item.id, Decimal("4"), test_actor_id)

        assert exc_info.value.on_hand == Decimal("3")
        assert ledger.get_item(item.id).quantity == Decimal("3")
        assert ledger.transaction_history(item.id) == []

    def test_non_positive_quantity_rejected(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="3")
        with pytest.raises(InvalidTransactionDeltaError):
            ledger.withdraw_stock(item.id, Decimal("0"), test_actor_id)


class TestReturnToSupplier:

    def test_return(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="5")
        txn = ledger.return_to_supplier(
            item.id, Decimal("2"), test_actor_id, document_number="PO-2025-00003",
        )

        assert txn.transaction_type == StockTransactionType.RETURN_TO_SUPPLIER
        assert txn.delta == Decimal("-2")
        assert ledger.get_item(item.id).quantity == Decimal("3")

    def test_return_more_than_on_hand(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="1")
        with pytest.raises(InsufficientStockError):
            ledger.return_to_supplier(item.id, Decimal("2"), test_actor_id)


class TestSellFungibleItem:

    def test_graded_sale(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="100", is_fungible_used_item=True)
        txn = ledger.sell_fungible_item(
            item.id,
            [
                GradedSaleLine("A", Decimal("10"), Decimal("40")),
                GradedSaleLine("B", Decimal("5"), Decimal("10")),
            ],
            test_actor_id,
            buyer="Scrap Co.",
        )

        assert txn.transaction_type == StockTransactionType.DISPOSAL_SALE
        assert txn.delta == Decimal("-15")
        assert txn.unit_price == Decimal("30.00")
        assert txn.document_number == "CB-2025-0001"
        assert txn.reference == "Scrap Co."
        assert ledger.get_item(item.id).quantity == Decimal("85")

    def test_only_fungible_items(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="100")
        with pytest.raises(InvalidDispositionTargetError):
            ledger.sell_fungible_item(
                item.id, [GradedSaleLine("A", Decimal("1"), Decimal("1"))], test_actor_id,
            )

    def test_sale_beyond_stock(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="3", is_fungible_used_item=True)
        with pytest.raises(InsufficientStockError):
            ledger.sell_fungible_item(
                item.id, [GradedSaleLine("A", Decimal("4"), Decimal("1"))], test_actor_id,
            )

    def test_no_lines(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="3", is_fungible_used_item=True)
        with pytest.raises(InvalidTransactionDeltaError):
            ledger.sell_fungible_item(item.id, [], test_actor_id)

    def test_sale_line_validation(self):
        with pytest.raises(ValueError):
            GradedSaleLine("A", Decimal("0"), Decimal("1"))


# =============================================================================
# Receipts from purchase orders
# =============================================================================


class TestReceiveFromOrder:

    def test_one_transaction_per_stock_line(self, ledger, make_item, test_actor_id):
        filter_item = make_item(quantity="2")
        belt = make_item(quantity="0")

        txns = ledger.receive_from_order(
            "PO-2025-00001",
            [
                ReceiptLine(filter_item.id, Decimal("3"), Decimal("120")),
                ReceiptLine(None, Decimal("1"), Decimal("500"), "Labour"),
                ReceiptLine(belt.id, Decimal("4"), Decimal("90")),
                ReceiptLine(filter_item.id, Decimal("1"), Decimal("120")),
            ],
            test_actor_id,
        )

        assert len(txns) == 3
        assert all(t.document_number == "PO-2025-00001" for t in txns)
        assert [t.balance_after for t in txns if t.stock_item_id == filter_item.id] == [
            Decimal("5"), Decimal("6"),
        ]
        assert ledger.get_item(filter_item.id).quantity == Decimal("6")
        assert ledger.get_item(belt.id).quantity == Decimal("4")
        assert len(ledger.transactions_for_document("PO-2025-00001")) == 3

    def test_unknown_item_posts_nothing(self, ledger, make_item, test_actor_id):
        item = make_item(quantity="2")
        with pytest.raises(StockItemNotFoundError):
            ledger.receive_from_order(
                "PO-2025-00002",
                [
                    ReceiptLine(item.id, Decimal("3")),
                    ReceiptLine(uuid4(), Decimal("1")),
                ],
                test_actor_id,
            )

        assert ledger.get_item(item.id).quantity == Decimal("2")
        assert ledger.transactions_for_document("PO-2025-00002") == []


# =============================================================================
# Derived status and balance
# =============================================================================


class TestListItems:

    def test_filter_uses_derived_status(self, ledger, make_item, test_actor_id):
        low = make_item(quantity="10", min_stock="5", code="A-LOW")
        make_item(quantity="10", min_stock="5", code="B-NORMAL")
        make_item(quantity="0", code="C-OUT")
        make_item(quantity="50", max_stock="20", code="D-OVER")

        ledger.withdraw_stock(low.id, Decimal("6"), test_actor_id)

        assert [i.code for i in ledger.list_items(StockStatus.LOW)] == ["A-LOW"]
        assert [i.code for i in ledger.list_items(StockStatus.OUT_OF_STOCK)] == ["C-OUT"]
        assert [i.code for i in ledger.list_items(StockStatus.OVERSTOCK)] == ["D-OVER"]
        assert len(ledger.list_items()) == 4

    def test_filter_by_category(self, ledger, make_item):
        make_item(code="T-1", category="Tyres")
        make_item(code="O-1", category="Oil")

        assert [i.code for i in ledger.list_items(category="Tyres")] == ["T-1"]


class TestLedgerBalance:

    @settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(
        initial=st.integers(min_value=0, max_value=100),
        moves=st.lists(
            st.tuples(
                st.sampled_from([
                    StockTransactionType.INBOUND_RECEIPT,
                    StockTransactionType.WITHDRAWAL,
                    StockTransactionType.MANUAL_ADJUSTMENT,
                ]),
                st.integers(min_value=1, max_value=30),
                st.booleans(),
            ),
            max_size=15,
        ),
    )
    def test_quantity_equals_initial_plus_deltas(self, ledger, make_item, test_actor_id, initial, moves):
        item = make_item(quantity=str(initial))
        expected = Decimal(initial)
        for transaction_type, amount, negative in moves:
            if transaction_type == StockTransactionType.WITHDRAWAL or (
                transaction_type == StockTransactionType.MANUAL_ADJUSTMENT and negative
            ):
                delta = Decimal(-amount)
            else:
                delta = Decimal(amount)
            ledger.post_transaction(item.id, transaction_type, delta, test_actor_id)
            expected += delta

        report = ledger.verify_balance(item.id)
        assert report.is_balanced
        assert report.quantity == expected
        assert report.transaction_count == len(moves)
