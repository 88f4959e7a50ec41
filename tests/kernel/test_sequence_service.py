"""
Tests for SequenceService and document number allocation.

Validates:
- Monotonic allocation per counter
- Year-scoped document numbers with per-prefix widths
- Rollback returns the number
- Parsing document numbers back into parts
"""

import pytest

from fleet_kernel.services.sequence_service import (
    DocumentNumber,
    DocumentNumberAllocator,
    SequenceService,
    counter_key,
    format_document_number,
    parse_document_number,
)


class TestSequenceService:

    def test_first_value_is_one(self, session):
        assert SequenceService(session).next_value("test") == 1

    def test_strictly_increasing(self, session):
        service = SequenceService(session)
        values = [service.next_value("test") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]

    def test_counters_are_independent(self, session):
        service = SequenceService(session)
        service.next_value("a")
        service.next_value("a")
        assert service.next_value("b") == 1

    def test_current_value_does_not_increment(self, session):
        service = SequenceService(session)
        assert service.current_value("test") is None
        service.next_value("test")
        assert service.current_value("test") == 1
        assert service.current_value("test") == 1

    def test_rollback_returns_value(self, session):
        service = SequenceService(session)
        service.next_value("test")
        session.commit()
        service.next_value("test")
        session.rollback()
        assert service.next_value("test") == 2

    def test_reset_rejects_negative(self, session):
        with pytest.raises(ValueError):
            SequenceService(session).reset("test", -1)


class TestDocumentNumbers:

    def test_format(self):
        assert format_document_number("PO", 2025, 7, 5) == "PO-2025-00007"
        assert format_document_number("CB", 2025, 7, 4) == "CB-2025-0007"

    def test_counter_key(self):
        assert counter_key("PR", 2025) == "PR:2025"

    def test_parse(self):
        assert parse_document_number("PR-2025-00012") == DocumentNumber("PR", 2025, 12)

    def test_parse_prefix_with_dash(self):
        assert parse_document_number("X-Y-2024-001") == DocumentNumber("X-Y", 2024, 1)

    @pytest.mark.parametrize("bad", ["", "PO2025", "PO-25-0001", "PO-2025-ABC", "-2025-0001"])
    def test_parse_malformed(self, bad):
        with pytest.raises(ValueError):
            parse_document_number(bad)


class TestDocumentNumberAllocator:

    def test_allocates_sequentially_with_width(self, session):
        allocator = DocumentNumberAllocator(session, widths={"CB": 4})

        assert allocator.allocate("PO", 2025) == "PO-2025-00001"
        assert allocator.allocate("PO", 2025) == "PO-2025-00002"
        assert allocator.allocate("CB", 2025) == "CB-2025-0001"

    def test_new_year_restarts(self, session):
        allocator = DocumentNumberAllocator(session)

        allocator.allocate("PR", 2025)
        allocator.allocate("PR", 2025)
        assert allocator.allocate("PR", 2026) == "PR-2026-00001"

    def test_seed_continues_after_legacy_numbers(self, session):
        allocator = DocumentNumberAllocator(session)

        allocator.seed("PO", 2025, 41)
        assert allocator.peek("PO", 2025) == 41
        assert allocator.allocate("PO", 2025) == "PO-2025-00042"

    def test_allocation_is_logged(self, session, captured_logs):
        DocumentNumberAllocator(session).allocate("WD", 2025)

        records = [r for r in captured_logs() if r["message"] == "document_number_allocated"]
        assert records[0]["document_number"] == "WD-2025-00001"
