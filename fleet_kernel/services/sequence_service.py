"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing sequence numbers and, on top of them,
    human-readable document numbers of the form ``PREFIX-YYYY-NNNNN``
    (purchase requisitions, purchase orders, withdrawal slips, cash bills).
    Uses a dedicated counter table with row-level locking
    (``SELECT ... FOR UPDATE``) so two concurrent callers can never be
    handed the same number.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by the procurement, inventory and used-part services.

Invariants enforced:
    - Uniqueness and monotonicity per counter: the aggregate-max-plus-one
      scan over existing document numbers is FORBIDDEN; the locked counter
      row is the sole source of truth for the next value.
    - Transactional: an increment is only visible after the caller's
      transaction commits.  Rollback returns the value.
    - Year scoping: the counter key is ``"{prefix}:{year}"`` so numbering
      restarts at 1 every calendar year.

Failure modes:
    - IntegrityError: Concurrent counter creation race (handled via
      savepoint rollback and retry).
    - ValueError from ``parse_document_number`` on a malformed number.
"""

from dataclasses import dataclass

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from fleet_kernel.db.base import Base
from fleet_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    Row-level locking ensures monotonicity under concurrency.
    """

    __tablename__ = "sequence_counters"

    # Counter key (e.g., "PO:2025", "WD:2025")
    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    # Last value handed out
    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Contract:
        Accepts a sequence name and returns the next strictly-monotonic
        integer value.  The increment is transactional -- it is only
        committed when the caller's transaction commits.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()  # Row-level lock
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        This method:
        1. Locks the sequence row (or creates it if not exists)
        2. Increments the counter
        3. Returns the new value

        Preconditions:
            - ``sequence_name`` is a non-empty string.
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer > 0 that is strictly greater than any
              previously returned value for this sequence name.
            - The counter row is locked until the transaction completes.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use of this sequence.  Another session may create it at
            # the same moment; the savepoint keeps the caller's other work.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """
        Get the current value of a sequence without incrementing.

        Returns:
            Current value, or None if sequence doesn't exist.
        """
        counter = self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

        return counter.current_value if counter else None

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Set a sequence to a specific value.

        WARNING: Only for tests and migrations that import legacy numbers.
        Moving a counter backwards re-issues numbers that already exist.
        """
        if value < 0:
            raise ValueError(f"Sequence value must be non-negative, got {value}")

        counter = self._locked_counter(sequence_name)

        if counter is None:
            counter = SequenceCounter(name=sequence_name, current_value=value)
            self._session.add(counter)
        else:
            counter.current_value = value

        self._session.flush()
        logger.info(
            "sequence_reset",
            extra={"sequence_name": sequence_name, "value": value},
        )


# ---------------------------------------------------------------------------
# Document numbers
# ---------------------------------------------------------------------------

DEFAULT_SEQUENCE_WIDTH = 5


@dataclass(frozen=True)
class DocumentNumber:
    """A parsed ``PREFIX-YYYY-NNNNN`` document number."""

    prefix: str
    year: int
    sequence: int


def counter_key(prefix: str, year: int) -> str:
    return f"{prefix}:{year}"


def format_document_number(prefix: str, year: int, sequence: int, width: int) -> str:
    """Render ``PREFIX-YYYY-`` followed by the zero-padded sequence."""
    return f"{prefix}-{year}-{sequence:0{width}d}"


def parse_document_number(number: str) -> DocumentNumber:
    """
    Split a document number back into prefix, year and sequence.

    Raises:
        ValueError: If the number does not have the PREFIX-YYYY-NNN shape.
    """
    parts = number.rsplit("-", 2)
    if len(parts) != 3 or not parts[0]:
        raise ValueError(f"Malformed document number: {number!r}")
    prefix, year_text, seq_text = parts
    if len(year_text) != 4 or not year_text.isdigit() or not seq_text.isdigit():
        raise ValueError(f"Malformed document number: {number!r}")
    return DocumentNumber(prefix=prefix, year=int(year_text), sequence=int(seq_text))


class DocumentNumberAllocator:
    """
    Allocates year-scoped document numbers from locked counters.

    Two allocations for the same prefix and year never return the same
    number, even when the calls come from concurrent sessions.
    """

    def __init__(self, session: Session, widths: dict[str, int] | None = None):
        self._sequences = SequenceService(session)
        self._widths = dict(widths or {})

    def width_for(self, prefix: str) -> int:
        return self._widths.get(prefix, DEFAULT_SEQUENCE_WIDTH)

    def allocate(self, prefix: str, year: int, width: int | None = None) -> str:
        """Reserve the next number for ``prefix`` in ``year``."""
        sequence = self._sequences.next_value(counter_key(prefix, year))
        number = format_document_number(
            prefix, year, sequence, width if width is not None else self.width_for(prefix),
        )
        logger.info(
            "document_number_allocated",
            extra={"prefix": prefix, "year": year, "document_number": number},
        )
        return number

    def peek(self, prefix: str, year: int) -> int:
        """Last sequence handed out for ``prefix`` in ``year`` (0 if none)."""
        return self._sequences.current_value(counter_key(prefix, year)) or 0

    def seed(self, prefix: str, year: int, value: int) -> None:
        """Align a counter with numbers issued before this system existed."""
        self._sequences.reset(counter_key(prefix, year), value)
