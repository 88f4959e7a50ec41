"""
Pytest fixtures for the fleet maintenance core test suite.

Provides:
- A fresh in-memory SQLite database per test (all module tables created)
- Deterministic clock and test actor id
- Services wired to the shared session
- Captured structured logs

Environment Variables:
- TEST_DATABASE_URL: run against another database (e.g. PostgreSQL).  Tables
  are created and dropped around every test, so point it at a scratch
  database.
"""

import json
import logging
import os
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from fleet_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from fleet_kernel.db.immutability import register_immutability_listeners
from fleet_kernel.domain.clock import DeterministicClock
from fleet_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from fleet_modules.inventory.service import StockLedgerService
from fleet_modules.procurement.service import ProcurementService
from fleet_modules.used_parts.service import UsedPartService

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

DEFAULT_TEST_URL = "sqlite+pysqlite:///:memory:"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture fleet_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.withdraw_stock(...)
            assert any(r["message"] == "stock_withdrawn" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("fleet_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _immutability_listeners():
    register_immutability_listeners()
    yield


@pytest.fixture
def db_engine():
    """A freshly created schema for every test."""
    eng = init_engine_from_url(os.environ.get("TEST_DATABASE_URL", DEFAULT_TEST_URL))
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    sess = get_session()
    yield sess
    sess.close()


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


# =============================================================================
# Service fixtures
# =============================================================================


class RecordingNotifier:
    """NotificationDispatcher that remembers every event."""

    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def notify(self, event, payload):
        self.events.append((event, payload))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def ledger(session, deterministic_clock) -> StockLedgerService:
    return StockLedgerService(session, clock=deterministic_clock)


@pytest.fixture
def procurement(session, deterministic_clock, notifier) -> ProcurementService:
    return ProcurementService(session, clock=deterministic_clock, notifier=notifier)


@pytest.fixture
def used_parts(session, deterministic_clock) -> UsedPartService:
    return UsedPartService(session, clock=deterministic_clock)


@pytest.fixture
def make_item(ledger, test_actor_id):
    """Factory for catalog items with unique codes."""

    def _make(quantity="0", min_stock="0", max_stock=None, **kwargs):
        code = kwargs.pop("code", f"ITEM-{uuid4().hex[:8]}")
        name = kwargs.pop("name", f"Part {code}")
        if "unit_price" in kwargs:
            kwargs["unit_price"] = Decimal(kwargs["unit_price"])
        return ledger.create_stock_item(
            code, name, test_actor_id,
            quantity=Decimal(quantity),
            min_stock=Decimal(min_stock),
            max_stock=Decimal(max_stock) if max_stock is not None else None,
            **kwargs,
        )

    return _make
