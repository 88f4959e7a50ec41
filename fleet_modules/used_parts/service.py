"""
fleet_modules.used_parts.service
================================

Responsibility:
    Tracks removed-part batches through their dispositions.  Conversions
    into bulk or revolving stock post inbound receipts to the stock ledger;
    sales, scrapping and keeping the part have no ledger effect.

Architecture:
    Module layer (fleet_modules).  Composes ``StockLedgerService`` with
    ``auto_commit=False``; a disposition, its ledger receipt and (when
    needed) a newly created revolving-stock item commit as one unit.

Invariants enforced:
    - Sum of active disposition quantities never exceeds the batch's
      initial quantity.  The batch row is locked while checking.
    - Remaining quantity and status are derived, never stored.
    - A disposition is reverted by marking it, never by deleting it; its
      ledger receipt is compensated by a negative manual adjustment.
"""

from __future__ import annotations

import re
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from fleet_engines.stock_status import UsedPartBatchStatus, remaining_quantity
from fleet_kernel.domain.clock import Clock, SystemClock
from fleet_kernel.exceptions import (
    DispositionNotFoundError,
    InvalidDispositionTargetError,
    InvalidStateTransitionError,
    OverDispositionError,
    StockItemNotFoundError,
    UsedPartBatchNotFoundError,
)
from fleet_kernel.logging_config import LogContext, get_logger
from fleet_modules.inventory.config import InventoryConfig
from fleet_modules.inventory.models import StockItem, StockTransactionType
from fleet_modules.inventory.service import StockLedgerService
from fleet_modules.used_parts.models import (
    LEDGER_DISPOSITION_TYPES,
    DispositionType,
    UsedPartBatch,
    UsedPartDisposition,
)
from fleet_modules.used_parts.orm import UsedPartBatchModel, UsedPartDispositionModel

logger = get_logger("modules.used_parts.service")

_WHITESPACE = re.compile(r"\s+")


class UsedPartService:
    """
    Records batches and applies or reverts their dispositions.

    Contract:
        Each public mutating method either commits and returns a frozen DTO,
        or rolls back and re-raises.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        inventory_config: InventoryConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = StockLedgerService(
            session,
            clock=self._clock,
            config=inventory_config,
            auto_commit=False,
        )
        self._config = self._ledger.config

    # =========================================================================
    # Internals
    # =========================================================================

    def _lock_batch(self, batch_id: UUID) -> UsedPartBatchModel:
        batch = self._session.execute(
            select(UsedPartBatchModel)
            .where(UsedPartBatchModel.id == batch_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if batch is None:
            raise UsedPartBatchNotFoundError(str(batch_id))
        return batch

    def generated_revolving_code(self, name: str) -> str:
        """Code for a revolving mirror of a batch with no origin item."""
        stem = _WHITESPACE.sub("", name)[: self._config.revolving_generated_code_length]
        return f"{stem.upper()}{self._config.revolving_code_suffix}"

    def _origin_item(self, batch: UsedPartBatchModel) -> StockItem | None:
        if batch.origin_stock_item_id is None:
            return None
        try:
            return self._ledger.get_item(batch.origin_stock_item_id)
        except StockItemNotFoundError:
            logger.warning(
                "used_part_origin_item_missing",
                extra={
                    "batch_id": str(batch.id),
                    "origin_stock_item_id": str(batch.origin_stock_item_id),
                },
            )
            return None

    def _free_code(self, code: str) -> str:
        """``code``, or ``code`` plus the lowest free number from 2 up."""
        candidate = code
        number = 1
        while self._ledger.find_item_by_code(candidate) is not None:
            number += 1
            candidate = f"{code}{number}"
        return candidate

    def _resolve_revolving_mirror(
        self,
        batch: UsedPartBatchModel,
        origin: StockItem | None,
        actor_id: UUID,
    ) -> StockItem:
        """
        Find the revolving-stock item mirroring this part, creating it if absent.

        With an origin item the mirror code is fixed, so a catalog item that
        already holds it without being revolving stock is an error.  Without
        one the mirror is matched by name and a generated code that is
        already taken gets a numeric suffix (ALTERNATOR-R2).
        """
        if origin is not None:
            code = f"{origin.code}{self._config.revolving_code_suffix}"
            existing = self._ledger.find_item_by_code(code)
            if existing is not None:
                if not existing.is_revolving_part:
                    raise InvalidDispositionTargetError(
                        str(existing.id),
                        f"mirror code {code} is held by {existing.name!r}, "
                        "which is not revolving stock",
                    )
                return existing
        else:
            mirror = self._ledger.find_revolving_item(name=batch.name)
            if mirror is not None:
                return mirror
            code = self._free_code(self.generated_revolving_code(batch.name))

        if origin is not None:
            mirror = self._ledger.create_stock_item(
                code, origin.name, actor_id,
                category=origin.category,
                unit=origin.unit,
                min_stock=origin.min_stock,
                max_stock=origin.max_stock,
                unit_price=origin.unit_price,
                selling_price=origin.selling_price,
                storage_location=origin.storage_location,
                supplier=origin.supplier,
                is_revolving_part=True,
            )
        else:
            mirror = self._ledger.create_stock_item(
                code, batch.name, actor_id,
                category=self._config.revolving_default_category,
                unit=batch.unit,
                is_revolving_part=True,
            )
        logger.info(
            "revolving_mirror_created",
            extra={"batch_id": str(batch.id), "code": mirror.code},
        )
        return mirror

    def _receive_into_stock(
        self,
        batch: UsedPartBatchModel,
        disposition_type: DispositionType,
        quantity: Decimal,
        target_stock_item_id: UUID | None,
        actor_id: UUID,
        notes: str | None,
    ) -> tuple[UUID, UUID]:
        """Post the inbound receipt for a conversion; returns (item id, txn id)."""
        if disposition_type is DispositionType.CONVERTED_TO_BULK:
            if target_stock_item_id is None:
                raise InvalidDispositionTargetError("none", "bulk conversion needs a target item")
            target = self._ledger.get_item(target_stock_item_id)
            if not target.is_fungible_used_item:
                raise InvalidDispositionTargetError(str(target.id), "item is not bulk used stock")
            unit_price = None
        else:
            origin = self._origin_item(batch)
            if target_stock_item_id is not None:
                target = self._ledger.get_item(target_stock_item_id)
                if not target.is_revolving_part:
                    raise InvalidDispositionTargetError(str(target.id), "item is not revolving stock")
            else:
                target = self._resolve_revolving_mirror(batch, origin, actor_id)
            unit_price = origin.unit_price if origin is not None else Decimal("0")

        txn = self._ledger.post_transaction(
            target.id,
            StockTransactionType.INBOUND_RECEIPT,
            quantity,
            actor_id,
            unit_price=unit_price,
            reference=f"used-part:{batch.id}",
            notes=notes,
        )
        return target.id, txn.id

    # =========================================================================
    # Batches
    # =========================================================================

    def record_batch(
        self,
        name: str,
        initial_quantity: Decimal,
        actor_id: UUID,
        *,
        unit: str = "",
        removal_date=None,
        origin_stock_item_id: UUID | None = None,
        repair_order_number: str | None = None,
        license_plate: str | None = None,
        notes: str | None = None,
    ) -> UsedPartBatch:
        """
        Register parts removed during a repair.

        Raises:
            ValueError: Non-positive ``initial_quantity``.
            StockItemNotFoundError: ``origin_stock_item_id`` does not resolve.
        """
        try:
            if initial_quantity <= 0:
                raise ValueError(
                    f"Batch quantity must be positive (got {initial_quantity})"
                )
            if origin_stock_item_id is not None:
                self._ledger.get_item(origin_stock_item_id)

            batch = UsedPartBatchModel(
                id=uuid4(),
                name=name,
                initial_quantity=initial_quantity,
                unit=unit,
                removal_date=removal_date or self._clock.today(),
                origin_stock_item_id=origin_stock_item_id,
                repair_order_number=repair_order_number,
                license_plate=license_plate,
                notes=notes,
                created_by_id=actor_id,
            )
            batch.dispositions = []
            self._session.add(batch)
            self._session.flush()
            dto = batch.to_dto()
            self._session.commit()
            logger.info(
                "used_part_batch_recorded",
                extra={
                    "batch_id": str(dto.id),
                    "initial_quantity": str(initial_quantity),
                    "repair_order_number": repair_order_number,
                },
            )
            return dto
        except Exception:
            self._session.rollback()
            raise

    def get_batch(self, batch_id: UUID) -> UsedPartBatch:
        batch = self._session.get(UsedPartBatchModel, batch_id)
        if batch is None:
            raise UsedPartBatchNotFoundError(str(batch_id))
        return batch.to_dto()

    def list_batches(self, status: UsedPartBatchStatus | None = None) -> list[UsedPartBatch]:
        """Batches by removal date; ``status`` filters on the derived status."""
        stmt = select(UsedPartBatchModel).order_by(
            UsedPartBatchModel.removal_date, UsedPartBatchModel.name,
        )
        batches = [m.to_dto() for m in self._session.execute(stmt).scalars()]
        if status is None:
            return batches
        return [b for b in batches if b.status == status]

    # =========================================================================
    # Dispositions
    # =========================================================================

    def apply_disposition(
        self,
        batch_id: UUID,
        disposition_type: DispositionType,
        quantity: Decimal,
        actor_id: UUID,
        *,
        condition: str | None = None,
        target_stock_item_id: UUID | None = None,
        buyer: str | None = None,
        sale_unit_price: Decimal | None = None,
        storage_location: str | None = None,
        notes: str | None = None,
    ) -> UsedPartDisposition:
        """
        Record a disposition of ``quantity`` units of a batch.

        Conversions receive the quantity into stock: bulk conversions into
        ``target_stock_item_id`` (which must be bulk used stock), revolving
        conversions into the part's revolving mirror, created at quantity 0
        first when it does not exist yet.

        Raises:
            ValueError: Non-positive quantity or negative sale price.
            UsedPartBatchNotFoundError: Unknown batch.
            OverDispositionError: ``quantity`` exceeds the remaining quantity.
            InvalidDispositionTargetError: Ineligible or missing target item.
        """
        try:
            if quantity <= 0:
                raise ValueError(f"Disposition quantity must be positive (got {quantity})")
            if sale_unit_price is not None and sale_unit_price < 0:
                raise ValueError(f"Sale price cannot be negative (got {sale_unit_price})")

            batch = self._lock_batch(batch_id)
            with LogContext.bind(actor_id=actor_id, operation="apply_disposition"):
                remaining = remaining_quantity(batch.initial_quantity, batch.active_quantities())
                if quantity > remaining:
                    raise OverDispositionError(str(batch.id), quantity, remaining, batch.unit)

                stock_item_id = None
                transaction_id = None
                if disposition_type in LEDGER_DISPOSITION_TYPES:
                    stock_item_id, transaction_id = self._receive_into_stock(
                        batch, disposition_type, quantity, target_stock_item_id, actor_id, notes,
                    )

                disposition = UsedPartDispositionModel(
                    id=uuid4(),
                    position=len(batch.dispositions) + 1,
                    disposition_type=disposition_type.value,
                    quantity=quantity,
                    occurred_at=self._clock.now(),
                    condition=condition,
                    target_stock_item_id=stock_item_id,
                    stock_transaction_id=transaction_id,
                    buyer=buyer if disposition_type is DispositionType.SOLD else None,
                    sale_unit_price=sale_unit_price if disposition_type is DispositionType.SOLD else None,
                    storage_location=storage_location,
                    notes=notes,
                    created_by_id=actor_id,
                )
                batch.dispositions.append(disposition)
                batch.updated_by_id = actor_id
                self._session.flush()
                dto = disposition.to_dto()
                self._session.commit()
                logger.info(
                    "disposition_applied",
                    extra={
                        "batch_id": str(batch_id),
                        "disposition_type": disposition_type.value,
                        "quantity": str(quantity),
                        "remaining": str(remaining - quantity),
                        "stock_item_id": str(stock_item_id) if stock_item_id else None,
                    },
                )
                return dto
        except Exception:
            self._session.rollback()
            logger.warning(
                "disposition_rolled_back",
                extra={"batch_id": str(batch_id), "disposition_type": disposition_type.value},
                exc_info=True,
            )
            raise

    def revert_disposition(
        self,
        batch_id: UUID,
        disposition_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> UsedPartDisposition:
        """
        Undo a disposition without deleting it.

        The disposition is marked reverted and stops counting towards the
        disposed total.  When it fed a stock item, a negative manual
        adjustment of the same quantity is posted against that item.
        """
        try:
            batch = self._lock_batch(batch_id)
            disposition = next(
                (d for d in batch.dispositions if d.id == disposition_id), None,
            )
            if disposition is None:
                raise DispositionNotFoundError(str(batch_id), str(disposition_id))
            if disposition.reverted_at is not None:
                raise InvalidStateTransitionError(
                    "UsedPartDisposition", str(disposition_id), "reverted", "revert",
                )

            revert_txn_id = None
            if disposition.target_stock_item_id is not None:
                txn = self._ledger.post_transaction(
                    disposition.target_stock_item_id,
                    StockTransactionType.MANUAL_ADJUSTMENT,
                    -disposition.quantity,
                    actor_id,
                    reference=f"revert:{disposition.id}",
                    notes=reason,
                )
                revert_txn_id = txn.id

            disposition.reverted_at = self._clock.now()
            disposition.reverted_by_id = actor_id
            disposition.revert_transaction_id = revert_txn_id
            disposition.updated_by_id = actor_id
            self._session.flush()
            dto = disposition.to_dto()
            self._session.commit()
            logger.info(
                "disposition_reverted",
                extra={
                    "batch_id": str(batch_id),
                    "disposition_id": str(disposition_id),
                    "quantity": str(dto.quantity),
                    "reason": reason,
                },
            )
            return dto
        except Exception:
            self._session.rollback()
            raise
