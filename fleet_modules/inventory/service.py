"""
Stock Ledger Service (``fleet_modules.inventory.service``).

Responsibility
--------------
Single writer of ``StockItem.quantity``.  Every quantity change goes through
one append-only stock transaction, so at any time::

    quantity == initial_quantity + sum(transaction.delta)

The service also offers the caller-side convenience operations used by the
workshop screens (withdrawal slips, supplier returns, manual adjustments,
graded sales of bulk used stock) and read models (catalog listing by derived
status, transaction history, balance verification).

Architecture
------------
Layer: **Modules**.  Composes ``fleet_engines.stock_status`` (pure status
derivation), ``fleet_engines.po_financials.round_money`` and the kernel
``DocumentNumberAllocator``.

Transaction boundary
--------------------
With ``auto_commit=True`` (the default) every public mutating method commits
on success and rolls back on failure.  The procurement and used-part services
construct the ledger with ``auto_commit=False`` so ledger writes join their
own unit of work; in that mode the ledger only flushes.

Concurrency
-----------
Each posting locks the stock item row (``SELECT ... FOR UPDATE``).  Multi-item
receipts lock items in sorted id order so concurrent receipts cannot
deadlock on each other.

Over-withdrawal
---------------
``post_transaction`` does NOT check the resulting quantity; a negative
quantity is representable.  ``withdraw_stock``, ``return_to_supplier`` and
``sell_fungible_item`` are the validating entry points.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Sequence
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleet_engines.po_financials import round_money
from fleet_engines.stock_status import StockStatus, normalize_max_stock, stock_status
from fleet_kernel.domain.clock import Clock, SystemClock
from fleet_kernel.exceptions import (
    DuplicateStockCodeError,
    InsufficientStockError,
    InvalidDispositionTargetError,
    InvalidTransactionDeltaError,
    StockItemNotFoundError,
)
from fleet_kernel.logging_config import LogContext, get_logger
from fleet_kernel.services.sequence_service import DocumentNumberAllocator, SequenceService
from fleet_modules.inventory.config import InventoryConfig
from fleet_modules.inventory.models import (
    NEGATIVE_ONLY_TYPES,
    GradedSaleLine,
    ReceiptLine,
    StockBalanceReport,
    StockItem,
    StockTransaction,
    StockTransactionType,
)
from fleet_modules.inventory.orm import StockItemModel, StockTransactionModel

logger = get_logger("modules.inventory.service")

LEDGER_SEQUENCE = "stock_transaction"


class StockLedgerService:
    """
    Append-only stock ledger.

    Contract:
        Each public mutating method either commits (or, with
        ``auto_commit=False``, flushes) and returns frozen DTOs, or rolls
        back and re-raises.  No partial posting survives an exception.

    Guarantees:
        - Ledger balance holds for every item after every method.
        - Withdrawal, return and sale deltas are strictly negative; a zero
          delta is rejected for every type.
        - Clock is injected; ``datetime.now()`` is never called directly.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: InventoryConfig | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or InventoryConfig.with_defaults()
        self._auto_commit = auto_commit
        self._sequences = SequenceService(session)
        self._numbers = DocumentNumberAllocator(
            session, widths=self._config.sequence_widths,
        )

    @property
    def config(self) -> InventoryConfig:
        return self._config

    # =========================================================================
    # Unit of work
    # =========================================================================

    def _commit(self) -> None:
        if self._auto_commit:
            self._session.commit()
        else:
            self._session.flush()

    def _rollback(self) -> None:
        if self._auto_commit:
            self._session.rollback()

    # =========================================================================
    # Internals
    # =========================================================================

    def _lock_item(self, stock_item_id: UUID) -> StockItemModel:
        item = self._session.execute(
            select(StockItemModel)
            .where(StockItemModel.id == stock_item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if item is None:
            raise StockItemNotFoundError(str(stock_item_id))
        return item

    @staticmethod
    def _validate_delta(transaction_type: StockTransactionType, delta: Decimal) -> None:
        if delta == 0:
            raise InvalidTransactionDeltaError(
                transaction_type.value, delta, "delta cannot be zero",
            )
        if transaction_type in NEGATIVE_ONLY_TYPES and delta > 0:
            raise InvalidTransactionDeltaError(
                transaction_type.value, delta, "outbound movements must be negative",
            )

    def _append(
        self,
        item: StockItemModel,
        transaction_type: StockTransactionType,
        delta: Decimal,
        balance_after: Decimal,
        actor_id: UUID,
        *,
        unit_price: Decimal | None = None,
        document_number: str | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> StockTransactionModel:
        txn = StockTransactionModel(
            id=uuid4(),
            stock_item_id=item.id,
            transaction_type=transaction_type.value,
            delta=delta,
            balance_after=balance_after,
            unit_price=unit_price if unit_price is not None else item.unit_price,
            occurred_at=self._clock.now(),
            ledger_sequence=self._sequences.next_value(LEDGER_SEQUENCE),
            document_number=document_number,
            reference=reference,
            notes=notes,
            created_by_id=actor_id,
        )
        self._session.add(txn)
        return txn

    @staticmethod
    def _set_quantity(item: StockItemModel, quantity: Decimal, actor_id: UUID) -> None:
        item.quantity = quantity
        item.cached_status = stock_status(
            quantity, item.min_stock, item.max_stock,
        ).value
        item.updated_by_id = actor_id

    def _post(
        self,
        item: StockItemModel,
        transaction_type: StockTransactionType,
        delta: Decimal,
        actor_id: UUID,
        **meta,
    ) -> StockTransactionModel:
        self._validate_delta(transaction_type, delta)
        new_quantity = item.quantity + delta
        self._set_quantity(item, new_quantity, actor_id)
        return self._append(item, transaction_type, delta, new_quantity, actor_id, **meta)

    def _require_on_hand(self, item: StockItemModel, quantity: Decimal) -> None:
        if quantity > item.quantity:
            raise InsufficientStockError(str(item.id), quantity, item.quantity)

    def _require_positive(self, transaction_type: StockTransactionType, quantity: Decimal) -> None:
        if quantity <= 0:
            raise InvalidTransactionDeltaError(
                transaction_type.value, quantity, "quantity must be positive",
            )

    # =========================================================================
    # Catalog
    # =========================================================================

    def create_stock_item(
        self,
        code: str,
        name: str,
        actor_id: UUID,
        *,
        quantity: Decimal = Decimal("0"),
        category: str = "",
        unit: str = "",
        min_stock: Decimal = Decimal("0"),
        max_stock: Decimal | None = None,
        unit_price: Decimal = Decimal("0"),
        selling_price: Decimal | None = None,
        storage_location: str | None = None,
        supplier: str | None = None,
        is_revolving_part: bool = False,
        is_fungible_used_item: bool = False,
    ) -> StockItem:
        """
        Add a catalog entry.

        The creation quantity becomes ``initial_quantity``; no ledger
        transaction is written for it.  A ``max_stock`` of 0 is stored as
        no cap.

        Raises:
            DuplicateStockCodeError: If ``code`` is already in the catalog.
        """
        try:
            existing = self._session.execute(
                select(StockItemModel.id).where(StockItemModel.code == code)
            ).scalar_one_or_none()
            if existing is not None:
                raise DuplicateStockCodeError(code)

            cap = normalize_max_stock(max_stock)
            item = StockItemModel(
                id=uuid4(),
                code=code,
                name=name,
                category=category,
                unit=unit,
                quantity=quantity,
                initial_quantity=quantity,
                min_stock=min_stock,
                max_stock=cap,
                unit_price=unit_price,
                selling_price=selling_price,
                storage_location=storage_location,
                supplier=supplier,
                is_revolving_part=is_revolving_part,
                is_fungible_used_item=is_fungible_used_item,
                cached_status=stock_status(quantity, min_stock, cap).value,
                created_by_id=actor_id,
            )
            self._session.add(item)
            self._session.flush()
            dto = item.to_dto()
            self._commit()
            logger.info(
                "stock_item_created",
                extra={
                    "stock_item_id": str(item.id),
                    "code": code,
                    "quantity": str(quantity),
                },
            )
            return dto
        except Exception:
            self._rollback()
            raise

    def get_item(self, stock_item_id: UUID) -> StockItem:
        item = self._session.get(StockItemModel, stock_item_id)
        if item is None:
            raise StockItemNotFoundError(str(stock_item_id))
        return item.to_dto()

    def find_item_by_code(self, code: str) -> StockItem | None:
        item = self._session.execute(
            select(StockItemModel).where(StockItemModel.code == code)
        ).scalar_one_or_none()
        return item.to_dto() if item else None

    def find_revolving_item(self, *, code: str | None = None, name: str | None = None) -> StockItem | None:
        """Find a revolving-stock item by exact code, else by exact name."""
        stmt = select(StockItemModel).where(StockItemModel.is_revolving_part.is_(True))
        if code is not None:
            stmt = stmt.where(StockItemModel.code == code)
        elif name is not None:
            stmt = stmt.where(StockItemModel.name == name)
        else:
            raise ValueError("code or name is required")
        item = self._session.execute(
            stmt.order_by(StockItemModel.code).limit(1)
        ).scalar_one_or_none()
        return item.to_dto() if item else None

    def list_items(
        self,
        status: StockStatus | None = None,
        *,
        category: str | None = None,
    ) -> list[StockItem]:
        """
        List catalog items ordered by code.

        ``status`` filters on the status derived from the current quantity
        and thresholds, never on the stored cache.
        """
        stmt = select(StockItemModel).order_by(StockItemModel.code)
        if category is not None:
            stmt = stmt.where(StockItemModel.category == category)
        items = [m.to_dto() for m in self._session.execute(stmt).scalars()]
        if status is None:
            return items
        return [item for item in items if item.status == status]

    # =========================================================================
    # Core posting
    # =========================================================================

    def post_transaction(
        self,
        stock_item_id: UUID,
        transaction_type: StockTransactionType,
        delta: Decimal,
        actor_id: UUID,
        *,
        unit_price: Decimal | None = None,
        document_number: str | None = None,
        reference: str | None = None,
        notes: str | None = None,
    ) -> StockTransaction:
        """
        Append one transaction and apply its delta to the item.

        Preconditions:
            - ``delta`` is non-zero; negative for withdrawal, return and
              sale.  The resulting quantity is NOT checked.
        Raises:
            StockItemNotFoundError: Unknown ``stock_item_id``.
            InvalidTransactionDeltaError: Zero or wrong-signed delta.
        """
        try:
            logger.info(
                "stock_transaction_started",
                extra={
                    "stock_item_id": str(stock_item_id),
                    "transaction_type": transaction_type.value,
                    "delta": str(delta),
                    "document_number": document_number,
                },
            )
            self._validate_delta(transaction_type, delta)
            item = self._lock_item(stock_item_id)
            txn = self._post(
                item, transaction_type, delta, actor_id,
                unit_price=unit_price,
                document_number=document_number,
                reference=reference,
                notes=notes,
            )
            self._session.flush()
            dto = txn.to_dto()
            self._commit()
            logger.info(
                "stock_transaction_committed",
                extra={
                    "stock_item_id": str(stock_item_id),
                    "transaction_id": str(dto.id),
                    "balance_after": str(dto.balance_after),
                },
            )
            if dto.balance_after < 0:
                logger.warning(
                    "stock_quantity_negative",
                    extra={
                        "stock_item_id": str(stock_item_id),
                        "balance_after": str(dto.balance_after),
                    },
                )
            return dto
        except Exception:
            self._rollback()
            logger.warning(
                "stock_transaction_rolled_back",
                extra={"stock_item_id": str(stock_item_id)},
                exc_info=True,
            )
            raise

    def receive_from_order(
        self,
        document_number: str,
        lines: Sequence[ReceiptLine],
        actor_id: UUID,
    ) -> list[StockTransaction]:
        """
        Post an inbound receipt for every stock line of a purchase order.

        Lines without a stock item are skipped.  Lines for the same item
        are summed into one quantity change per item, while every source
        line still gets its own transaction (``balance_after`` runs through
        the lines in order).

        Raises:
            StockItemNotFoundError: A line references an unknown item.
            InvalidTransactionDeltaError: A stock line has zero quantity.
        """
        try:
            with LogContext.bind(actor_id=actor_id, document_number=document_number, operation="receive_from_order"):
                stock_lines = [line for line in lines if line.is_stock_line]
                logger.info(
                    "order_receipt_started",
                    extra={
                        "line_count": len(lines),
                        "stock_line_count": len(stock_lines),
                        "skipped_line_count": len(lines) - len(stock_lines),
                    },
                )

                totals: dict[UUID, Decimal] = {}
                for line in stock_lines:
                    self._validate_delta(StockTransactionType.INBOUND_RECEIPT, line.quantity)
                    totals[line.stock_item_id] = (
                        totals.get(line.stock_item_id, Decimal("0")) + line.quantity
                    )

                # Deterministic lock order
                items = {
                    item_id: self._lock_item(item_id)
                    for item_id in sorted(totals, key=str)
                }

                running = {item_id: item.quantity for item_id, item in items.items()}
                txns = []
                for line in stock_lines:
                    item = items[line.stock_item_id]
                    running[line.stock_item_id] += line.quantity
                    txns.append(self._append(
                        item,
                        StockTransactionType.INBOUND_RECEIPT,
                        line.quantity,
                        running[line.stock_item_id],
                        actor_id,
                        unit_price=line.unit_price,
                        document_number=document_number,
                        notes=line.description,
                    ))

                for item_id, item in items.items():
                    self._set_quantity(item, item.quantity + totals[item_id], actor_id)

                self._session.flush()
                dtos = [txn.to_dto() for txn in txns]
                self._commit()
                logger.info(
                    "order_receipt_committed",
                    extra={
                        "transaction_count": len(dtos),
                        "item_count": len(items),
                    },
                )
                return dtos
        except Exception:
            self._rollback()
            logger.warning(
                "order_receipt_rolled_back",
                extra={"document_number": document_number},
                exc_info=True,
            )
            raise

    # =========================================================================
    # Validating convenience operations
    # =========================================================================

    def withdraw_stock(
        self,
        stock_item_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        *,
        reference: str | None = None,
        notes: str | None = None,
    ) -> StockTransaction:
        """
        Issue parts to a job under a new withdrawal slip number.

        ``reference`` is typically the repair order number.  The item's
        current unit price is recorded on the transaction.

        Raises:
            InsufficientStockError: ``quantity`` exceeds the quantity on hand.
        """
        try:
            self._require_positive(StockTransactionType.WITHDRAWAL, quantity)
            item = self._lock_item(stock_item_id)
            self._require_on_hand(item, quantity)
            number = self._numbers.allocate(
                self._config.withdrawal_prefix, self._clock.now().year,
            )
            with LogContext.bind(actor_id=actor_id, document_number=number, operation="withdraw_stock"):
                txn = self._post(
                    item, StockTransactionType.WITHDRAWAL, -quantity, actor_id,
                    document_number=number,
                    reference=reference,
                    notes=notes,
                )
                self._session.flush()
                dto = txn.to_dto()
                self._commit()
                logger.info(
                    "stock_withdrawn",
                    extra={
                        "stock_item_id": str(stock_item_id),
                        "quantity": str(quantity),
                        "balance_after": str(dto.balance_after),
                    },
                )
                return dto
        except Exception:
            self._rollback()
            raise

    def return_to_supplier(
        self,
        stock_item_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        *,
        document_number: str | None = None,
        notes: str | None = None,
    ) -> StockTransaction:
        """Send goods back to the supplier; validated against quantity on hand."""
        try:
            self._require_positive(StockTransactionType.RETURN_TO_SUPPLIER, quantity)
            item = self._lock_item(stock_item_id)
            self._require_on_hand(item, quantity)
            txn = self._post(
                item, StockTransactionType.RETURN_TO_SUPPLIER, -quantity, actor_id,
                document_number=document_number,
                notes=notes,
            )
            self._session.flush()
            dto = txn.to_dto()
            self._commit()
            logger.info(
                "stock_returned_to_supplier",
                extra={
                    "stock_item_id": str(stock_item_id),
                    "quantity": str(quantity),
                    "document_number": document_number,
                },
            )
            return dto
        except Exception:
            self._rollback()
            raise

    def adjust_stock(
        self,
        stock_item_id: UUID,
        delta: Decimal,
        actor_id: UUID,
        reason: str,
    ) -> StockTransaction:
        """Signed manual correction (stock count, damage found on shelf)."""
        return self.post_transaction(
            stock_item_id,
            StockTransactionType.MANUAL_ADJUSTMENT,
            delta,
            actor_id,
            notes=reason,
        )

    def sell_fungible_item(
        self,
        stock_item_id: UUID,
        lines: Sequence[GradedSaleLine],
        actor_id: UUID,
        *,
        buyer: str | None = None,
        notes: str | None = None,
    ) -> StockTransaction:
        """
        Sell bulk used stock in several grades under one cash bill.

        Posts a single disposal-sale transaction for the summed quantity at
        the weighted-average unit price.

        Raises:
            InvalidDispositionTargetError: Item is not a fungible used-stock item.
            InvalidTransactionDeltaError: No sale lines.
            InsufficientStockError: Summed quantity exceeds quantity on hand.
        """
        try:
            if not lines:
                raise InvalidTransactionDeltaError(
                    StockTransactionType.DISPOSAL_SALE.value,
                    Decimal("0"),
                    "at least one sale line is required",
                )
            item = self._lock_item(stock_item_id)
            if not item.is_fungible_used_item:
                raise InvalidDispositionTargetError(
                    str(stock_item_id), "only fungible used-stock items can be sold by grade",
                )

            total_quantity = sum((line.quantity for line in lines), Decimal("0"))
            total_value = sum(
                (round_money(line.quantity * line.unit_price) for line in lines),
                Decimal("0"),
            )
            self._require_on_hand(item, total_quantity)
            average_price = round_money(total_value / total_quantity)

            number = self._numbers.allocate(
                self._config.sale_bill_prefix, self._clock.now().year,
            )
            grade_summary = "; ".join(
                f"{line.grade}: {line.quantity} @ {line.unit_price}" for line in lines
            )
            txn = self._post(
                item, StockTransactionType.DISPOSAL_SALE, -total_quantity, actor_id,
                unit_price=average_price,
                document_number=number,
                reference=buyer,
                notes=f"{grade_summary} ({notes})" if notes else grade_summary,
            )
            self._session.flush()
            dto = txn.to_dto()
            self._commit()
            logger.info(
                "fungible_stock_sold",
                extra={
                    "stock_item_id": str(stock_item_id),
                    "document_number": number,
                    "quantity": str(total_quantity),
                    "total_value": str(total_value),
                    "average_price": str(average_price),
                },
            )
            return dto
        except Exception:
            self._rollback()
            raise

    # =========================================================================
    # Read models
    # =========================================================================

    def transaction_history(self, stock_item_id: UUID) -> list[StockTransaction]:
        """All transactions for an item, oldest first."""
        rows = self._session.execute(
            select(StockTransactionModel)
            .where(StockTransactionModel.stock_item_id == stock_item_id)
            .order_by(StockTransactionModel.ledger_sequence)
        ).scalars()
        return [row.to_dto() for row in rows]

    def transactions_for_document(self, document_number: str) -> list[StockTransaction]:
        rows = self._session.execute(
            select(StockTransactionModel)
            .where(StockTransactionModel.document_number == document_number)
            .order_by(StockTransactionModel.ledger_sequence)
        ).scalars()
        return [row.to_dto() for row in rows]

    def verify_balance(self, stock_item_id: UUID) -> StockBalanceReport:
        """Compare the stored quantity with initial quantity plus all deltas."""
        item = self._session.get(StockItemModel, stock_item_id)
        if item is None:
            raise StockItemNotFoundError(str(stock_item_id))
        # Summed in Python so SQLite's float SUM cannot blur the comparison
        deltas = list(self._session.execute(
            select(StockTransactionModel.delta)
            .where(StockTransactionModel.stock_item_id == stock_item_id)
        ).scalars())
        report = StockBalanceReport(
            stock_item_id=stock_item_id,
            initial_quantity=item.initial_quantity,
            transaction_total=sum(deltas, Decimal("0")),
            quantity=item.quantity,
            transaction_count=len(deltas),
        )
        if not report.is_balanced:
            logger.error(
                "stock_ledger_imbalance_detected",
                extra={
                    "stock_item_id": str(stock_item_id),
                    "quantity": str(report.quantity),
                    "expected_quantity": str(report.expected_quantity),
                },
            )
        return report
