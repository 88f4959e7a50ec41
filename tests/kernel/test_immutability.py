"""
Tests for ORM-level append-only enforcement.

Validates:
- Stock transactions cannot be updated or deleted
- Dispositions accept only the revert marker as an update
- Dispositions cannot be deleted
"""

from decimal import Decimal

import pytest

from fleet_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from fleet_kernel.exceptions import ImmutabilityViolationError
from fleet_modules.inventory.models import StockTransactionType
from fleet_modules.inventory.orm import StockTransactionModel
from fleet_modules.used_parts.models import DispositionType
from fleet_modules.used_parts.orm import UsedPartDispositionModel


@pytest.fixture
def posted_transaction(ledger, make_item, test_actor_id, session):
    item = make_item(quantity="10")
    txn = ledger.post_transaction(
        item.id, StockTransactionType.MANUAL_ADJUSTMENT, Decimal("2"), test_actor_id,
    )
    return session.get(StockTransactionModel, txn.id)


@pytest.fixture
def disposition(used_parts, test_actor_id, session):
    batch = used_parts.record_batch("Brake drum", Decimal("4"), test_actor_id)
    dto = used_parts.apply_disposition(
        batch.id, DispositionType.DISPOSED, Decimal("1"), test_actor_id,
    )
    return session.get(UsedPartDispositionModel, dto.id)


class TestStockTransactionImmutability:

    def test_update_rejected(self, posted_transaction, session):
        posted_transaction.delta = Decimal("200")
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"
        session.rollback()

    def test_delete_rejected(self, posted_transaction, session):
        session.delete(posted_transaction)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_unregistered_listeners_allow_update(self, posted_transaction, session):
        unregister_immutability_listeners()
        try:
            posted_transaction.notes = "edited"
            session.flush()
        finally:
            register_immutability_listeners()
        session.rollback()


class TestDispositionImmutability:

    def test_quantity_update_rejected(self, disposition, session):
        disposition.quantity = Decimal("3")
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_revert_marker_update_allowed(self, disposition, session, deterministic_clock, test_actor_id):
        disposition.reverted_at = deterministic_clock.now()
        disposition.reverted_by_id = test_actor_id
        session.flush()
        session.rollback()

    def test_delete_rejected(self, disposition, session):
        session.delete(disposition)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


def test_register_is_idempotent():
    register_immutability_listeners()
    register_immutability_listeners()
