"""
Production Service (``inventory_modules.production.service``).

Responsibility
--------------
Completes a production batch: every ingredient is consumed with a
PRODUCTION_CONSUME movement, then the finished product is replenished with
a PRODUCTION_OUTPUT movement at cost = total ingredient cost / output
quantity.

Architecture
------------
Layer: **Modules** -- orchestration over ``InventoryLedgerService``.

Invariants
----------
- All-or-nothing.  Every ingredient is checked before anything is
  consumed; a shortfall found then, or one that appears between the check
  and the conditional UPDATE, raises and rolls the whole batch back.
- Each ``complete_batch`` call owns its transaction boundary.

Failure Modes
-------------
- ``InsufficientStockError`` -- an ingredient cannot cover the batch.
- ``InventoryItemNotFoundError`` / ``InventoryItemInactiveError`` -- an
  ingredient or the output item is unknown or deactivated.
- ``IncompatibleUnitsError`` -- an ingredient quantity is in a unit of a
  different family from the item.
- Any exception rolls back before re-raising.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_kernel.domain.actors import Actor
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import InventoryItemInfo, MovementRecord, MovementType
from inventory_kernel.domain.units import convert
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    InventoryItemInactiveError,
    InventoryItemNotFoundError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.selectors.inventory_selector import InventorySelector
from inventory_kernel.services.base import as_quantity
from inventory_kernel.services.ledger_service import CostPolicy, InventoryLedgerService
from inventory_modules.production.models import BatchIngredient, ProductionResult

logger = get_logger("modules.production.service")

_COST_QUANTUM = Decimal("0.000000001")
REFERENCE_TYPE = "PRODUCTION_BATCH"


class ProductionService:
    """
    Batch completion.

    Contract
    --------
    Commits on success, rolls back on any failure.

    Non-goals
    ---------
    - Does NOT schedule or plan production.
    - Does NOT write legacy ``production_batches`` rows; finished goods are
      registered inventory items.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        cost_policy: CostPolicy | str = CostPolicy.LAST_COST,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._ledger = InventoryLedgerService(session, self._clock, cost_policy=cost_policy)
        self._selector = InventorySelector(session)

    def complete_batch(
        self,
        batch_reference: str,
        output_item_id: UUID,
        output_quantity: Decimal | int,
        ingredients: Sequence[BatchIngredient],
        actor: Actor,
        notes: str | None = None,
    ) -> ProductionResult:
        """
        Consume ``ingredients`` and book ``output_quantity`` of the output item.

        Postconditions:
            - One PRODUCTION_CONSUME movement per distinct ingredient item.
            - One PRODUCTION_OUTPUT movement on the output item.
            - Session committed.

        Raises:
            InsufficientStockError: an ingredient cannot cover the batch.
            InvalidQuantityError: output or ingredient quantity <= 0.
        """
        produced = as_quantity(output_quantity)
        if produced <= 0:
            raise InvalidQuantityError(produced)
        if not ingredients:
            raise ValueError("A production batch needs at least one ingredient")

        with LogContext.bind(reference_id=batch_reference, actor_id=str(actor.actor_id)):
            try:
                self._require_active(output_item_id)
                needs = self._check_ingredients(ingredients)

                consumed: list[MovementRecord] = []
                total_cost = Decimal("0")
                for item, amount in needs:
                    result = self._ledger.consume(
                        item.id,
                        amount,
                        MovementType.PRODUCTION_CONSUME,
                        REFERENCE_TYPE,
                        batch_reference,
                        actor,
                        notes,
                    )
                    if not result.is_success:
                        raise result.error
                    consumed.append(result.movement)
                    total_cost += amount * (result.movement.unit_cost or Decimal("0"))

                unit_cost = (total_cost / produced).quantize(_COST_QUANTUM)
                output = self._ledger.replenish(
                    output_item_id,
                    produced,
                    unit_cost,
                    batch_reference,
                    actor,
                    notes,
                    movement_type=MovementType.PRODUCTION_OUTPUT,
                    reference_type=REFERENCE_TYPE,
                )
                if not output.is_success:
                    raise output.error

                self._session.commit()
            except Exception:
                self._session.rollback()
                logger.warning(
                    "production_batch_rolled_back",
                    extra={"batch_reference": batch_reference},
                    exc_info=True,
                )
                raise

            logger.info(
                "production_batch_completed",
                extra={
                    "batch_reference": batch_reference,
                    "output_item_id": str(output_item_id),
                    "output_quantity": str(produced),
                    "total_cost": str(total_cost),
                    "unit_cost": str(unit_cost),
                    "ingredient_count": len(consumed),
                },
            )
            return ProductionResult(
                batch_reference=batch_reference,
                output_item_id=output_item_id,
                output_quantity=produced,
                total_cost=total_cost,
                unit_cost=unit_cost,
                consumed=tuple(consumed),
                output=output.movement,
            )

    def _require_active(self, item_id: UUID) -> InventoryItemInfo:
        item = self._selector.get_item(item_id)
        if item is None:
            raise InventoryItemNotFoundError(str(item_id))
        if not item.is_active:
            raise InventoryItemInactiveError(str(item_id), item.name)
        return item

    def _check_ingredients(
        self, ingredients: Sequence[BatchIngredient]
    ) -> list[tuple[InventoryItemInfo, Decimal]]:
        """Sum needs per item (first-seen order) and verify every one fits."""
        items: dict[UUID, InventoryItemInfo] = {}
        needs: dict[UUID, Decimal] = {}
        for ingredient in ingredients:
            item = items.get(ingredient.inventory_item_id) or self._require_active(
                ingredient.inventory_item_id
            )
            amount = as_quantity(ingredient.quantity)
            if amount <= 0:
                raise InvalidQuantityError(amount)
            if ingredient.unit is not None:
                amount = convert(amount, ingredient.unit, item.unit)
            items[item.id] = item
            needs[item.id] = needs.get(item.id, Decimal("0")) + amount

        for item_id, amount in needs.items():
            item = items[item_id]
            if amount > item.available_quantity:
                raise InsufficientStockError(
                    str(item_id), amount, item.available_quantity, item.unit, item.name,
                )
        return [(items[item_id], amount) for item_id, amount in needs.items()]
