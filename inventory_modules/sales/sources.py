"""
Stock sources for non-composite sales.

Responsibility:
    A sold product is taken from the first source that holds it.  Two
    implementations exist:

    - ``InventoryBackedSource`` -- a registered InventoryItem, through the
      ledger, with a SALE movement.
    - ``LegacyBatchBackedSource`` -- the newest ``production_batches`` row
      for the product that still has stock.  Older products were never
      registered as inventory items and are sold from here.

Invariants enforced:
    - Neither source lets a quantity go below zero.  Both decrement with a
      conditional single-statement UPDATE.
    - Quantities are converted to the stored unit before deduction;
      incompatible units are reported as UNIT_MISMATCH, never ignored.

Failure modes:
    A source that cannot cover the quantity returns a SourceDeduction with
    outcome INSUFFICIENT; nothing is written.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol, runtime_checkable

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from inventory_kernel.domain.actors import Actor
from inventory_kernel.domain.dtos import LedgerStatus, MovementType
from inventory_kernel.domain.units import convert
from inventory_kernel.exceptions import IncompatibleUnitsError, InsufficientStockError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.production_batch import ProductionBatch
from inventory_kernel.services.ledger_service import InventoryLedgerService
from inventory_modules.sales.models import LineOutcome, SourceDeduction
from inventory_modules.sales.resolver import IngredientResolver

logger = get_logger("modules.sales.sources")


@runtime_checkable
class StockSource(Protocol):
    """Somewhere sellable stock of a product can be taken from."""

    name: str

    def holds(self, product_name: str, category: str | None = None) -> bool:
        ...

    def deduct(
        self,
        product_name: str,
        category: str | None,
        quantity: Decimal,
        unit: str,
        reference_id: str,
        actor: Actor,
        notes: str | None = None,
    ) -> SourceDeduction:
        ...


def _unit_mismatch(source: str, product_name: str, quantity: Decimal, unit: str,
                   exc: IncompatibleUnitsError) -> SourceDeduction:
    logger.error(
        "sale_unit_mismatch",
        extra={
            "source": source,
            "product_name": product_name,
            "from_unit": exc.from_unit,
            "to_unit": exc.to_unit,
        },
    )
    return SourceDeduction(
        source=source,
        product_name=product_name,
        outcome=LineOutcome.UNIT_MISMATCH,
        quantity=quantity,
        unit=unit,
        error=str(exc),
        error_code=exc.code,
    )


class InventoryBackedSource:
    """Takes stock from a registered inventory item via the ledger."""

    name = "inventory"

    def __init__(self, ledger: InventoryLedgerService, resolver: IngredientResolver):
        self._ledger = ledger
        self._resolver = resolver

    def holds(self, product_name: str, category: str | None = None) -> bool:
        return self._resolver.resolve(product_name, category) is not None

    def deduct(
        self,
        product_name: str,
        category: str | None,
        quantity: Decimal,
        unit: str,
        reference_id: str,
        actor: Actor,
        notes: str | None = None,
    ) -> SourceDeduction:
        item = self._resolver.resolve(product_name, category)
        if item is None:
            return SourceDeduction(
                source=self.name,
                product_name=product_name,
                outcome=LineOutcome.MISSING,
                quantity=quantity,
                unit=unit,
                error=f"No inventory item found for {product_name}",
            )
        try:
            amount = convert(quantity, unit, item.unit)
        except IncompatibleUnitsError as exc:
            return _unit_mismatch(self.name, product_name, quantity, unit, exc)

        result = self._ledger.consume(
            item.id, amount, MovementType.SALE, "SALE", reference_id, actor, notes,
        )
        if result.is_success:
            return SourceDeduction(
                source=self.name,
                product_name=product_name,
                outcome=LineOutcome.DEDUCTED,
                quantity=amount,
                unit=item.unit,
                record_id=item.id,
                movement_id=result.movement.id,
            )
        outcome = (
            LineOutcome.INSUFFICIENT
            if result.status == LedgerStatus.INSUFFICIENT_STOCK
            else LineOutcome.REJECTED
        )
        return SourceDeduction(
            source=self.name,
            product_name=product_name,
            outcome=outcome,
            quantity=amount,
            unit=item.unit,
            record_id=item.id,
            error=str(result.error),
            error_code=result.error.code,
        )


class LegacyBatchBackedSource:
    """Takes stock from the newest production batch that still has some.

    Legacy batches carry no movement trail; each decrement is logged as
    ``legacy_batch_decremented`` instead.
    """

    name = "legacy_batch"

    def __init__(self, session: Session):
        self.session = session

    def _latest_batch(self, product_name: str) -> ProductionBatch | None:
        return self.session.execute(
            select(ProductionBatch)
            .where(
                func.lower(ProductionBatch.product_name) == product_name.strip().lower(),
                ProductionBatch.quantity_remaining > 0,
            )
            .order_by(ProductionBatch.produced_at.desc(), ProductionBatch.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def holds(self, product_name: str, category: str | None = None) -> bool:
        return self._latest_batch(product_name) is not None

    def deduct(
        self,
        product_name: str,
        category: str | None,
        quantity: Decimal,
        unit: str,
        reference_id: str,
        actor: Actor,
        notes: str | None = None,
    ) -> SourceDeduction:
        batch = self._latest_batch(product_name)
        if batch is None:
            return SourceDeduction(
                source=self.name,
                product_name=product_name,
                outcome=LineOutcome.MISSING,
                quantity=quantity,
                unit=unit,
                error=f"No production batch with stock for {product_name}",
            )
        try:
            amount = convert(quantity, unit, batch.unit)
        except IncompatibleUnitsError as exc:
            return _unit_mismatch(self.name, product_name, quantity, unit, exc)

        remaining = self.session.execute(
            update(ProductionBatch)
            .where(
                ProductionBatch.id == batch.id,
                ProductionBatch.quantity_remaining >= amount,
            )
            .values(
                quantity_remaining=ProductionBatch.quantity_remaining - amount,
                updated_by_id=actor.actor_id,
            )
            .returning(ProductionBatch.quantity_remaining)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

        if remaining is None:
            self.session.refresh(batch)
            error = InsufficientStockError(
                str(batch.id), amount, batch.quantity_remaining, batch.unit, product_name,
            )
            logger.warning(
                "legacy_batch_insufficient",
                extra={
                    "batch_id": str(batch.id),
                    "batch_number": batch.batch_number,
                    "requested": str(amount),
                    "available": str(batch.quantity_remaining),
                },
            )
            return SourceDeduction(
                source=self.name,
                product_name=product_name,
                outcome=LineOutcome.INSUFFICIENT,
                quantity=amount,
                unit=batch.unit,
                record_id=batch.id,
                error=str(error),
                error_code=error.code,
            )

        logger.info(
            "legacy_batch_decremented",
            extra={
                "batch_id": str(batch.id),
                "batch_number": batch.batch_number,
                "product_name": product_name,
                "quantity": str(amount),
                "quantity_remaining": str(remaining),
                "reference_id": reference_id,
                "actor_id": str(actor.actor_id),
            },
        )
        return SourceDeduction(
            source=self.name,
            product_name=product_name,
            outcome=LineOutcome.DEDUCTED,
            quantity=amount,
            unit=batch.unit,
            record_id=batch.id,
        )
