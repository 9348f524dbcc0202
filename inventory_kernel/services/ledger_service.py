"""
InventoryLedgerService -- canonical on-hand quantities and the movement trail.

Responsibility:
    Owns ``InventoryItem.available_quantity``.  Every change goes through
    ``consume``, ``replenish`` or ``apply_adjustment`` and appends exactly
    one ``InventoryMovement`` carrying the before/after quantities.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the sale deduction
    engine, production batch completion, and the approval gate.

Invariants enforced:
    - available_quantity never goes negative.  Decrements are a single
      ``UPDATE ... SET q = q - :n WHERE id = :id AND q >= :n RETURNING q``,
      so two sessions that read the same starting quantity cannot both
      decrement from it.  There is no read-modify-write in Python.
    - available_quantity == initial_quantity + sum(quantity_delta).
      quantity_before/after on the movement come from the value the
      database returned for this very UPDATE.
    - A failed operation writes nothing: no quantity change, no movement.

Failure modes:
    Expected business conditions are returned in ``LedgerResult``:
    - INSUFFICIENT_STOCK (InsufficientStockError)
    - ITEM_NOT_FOUND (InventoryItemNotFoundError)
    - ITEM_INACTIVE (InventoryItemInactiveError)
    - INVALID_STATE (adjustment not approved)
    Programming errors raise: InvalidQuantityError, InvalidMovementTypeError,
    UnknownUnitError, InvalidAdjustmentError.

Audit relevance:
    Every applied change logs ``stock_consumed`` / ``stock_replenished`` /
    ``stock_adjusted`` with the movement id.  ``verify_item`` recomputes
    the movement sum and raises LedgerDriftError on mismatch.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import update

from inventory_kernel.domain.actors import Actor
from inventory_kernel.domain.dtos import (
    CONSUMING_MOVEMENT_TYPES,
    REPLENISHING_MOVEMENT_TYPES,
    InventoryItemInfo,
    LedgerResult,
    LedgerStatus,
    MovementType,
    StockAdjustmentInfo,
)
from inventory_kernel.domain.units import normalize_unit
from inventory_kernel.domain.workflow import AdjustmentStatus
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidAdjustmentError,
    InvalidMovementTypeError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    InventoryItemInactiveError,
    InventoryItemNotFoundError,
    LedgerDriftError,
)
from inventory_kernel.invariants import InventoryInvariant
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.models.movement import InventoryMovement
from inventory_kernel.services.base import BaseService, as_quantity

logger = get_logger("services.ledger")

ZERO = Decimal("0")
_DRIFT_TOLERANCE = Decimal("0.000001")


class CostPolicy(str, Enum):
    """How replenishment updates ``cost_per_unit``."""

    LAST_COST = "last_cost"
    WEIGHTED_AVERAGE = "weighted_average"


class InventoryLedgerService(BaseService[InventoryItem]):
    """
    The only writer of on-hand quantities.

    Contract:
        Each public mutation is one logical step inside the caller's
        transaction: the conditional UPDATE and the movement INSERT are
        flushed together, and the caller commits or rolls back both.

    Guarantees:
        - Per-item serialization is delegated to the database through
          conditional single-statement updates.
        - Operations on different items are independent.

    Non-goals:
        - Does NOT commit.
        - Does NOT decide what to do on a shortfall; callers do.
    """

    def __init__(self, session, clock=None, cost_policy: CostPolicy | str = CostPolicy.LAST_COST):
        super().__init__(session, clock)
        self._cost_policy = CostPolicy(cost_policy)

    @property
    def cost_policy(self) -> CostPolicy:
        return self._cost_policy

    # =========================================================================
    # Item registration
    # =========================================================================

    def register_item(
        self,
        name: str,
        category: str,
        unit: str,
        actor: Actor,
        initial_quantity: Decimal | int = 0,
        cost_per_unit: Decimal | int = 0,
        price_per_unit: Decimal | int = 0,
        minimum_stock_level: Decimal | int = 0,
        expiration_date: date | None = None,
    ) -> InventoryItemInfo:
        """Create an item with its opening quantity.

        The opening quantity is the base of the movement-sum invariant,
        so no movement is written for it.
        """
        opening = as_quantity(initial_quantity)
        if opening < ZERO:
            raise InvalidQuantityError(opening, "opening quantity must not be negative")
        if not name or not name.strip():
            raise ValueError("Inventory item name is required")

        now = self._clock.now()
        item = InventoryItem(
            name=name.strip(),
            category=category,
            unit=normalize_unit(unit),
            available_quantity=opening,
            initial_quantity=opening,
            cost_per_unit=as_quantity(cost_per_unit),
            price_per_unit=as_quantity(price_per_unit),
            minimum_stock_level=as_quantity(minimum_stock_level),
            expiration_date=expiration_date,
            is_active=True,
            created_at=now,
            updated_at=now,
            created_by_id=actor.actor_id,
        )
        self.session.add(item)
        self.session.flush()

        logger.info(
            "item_registered",
            extra={
                "item_id": str(item.id),
                "item_name": item.name,
                "unit": item.unit,
                "initial_quantity": str(opening),
                "actor_id": str(actor.actor_id),
            },
        )
        return item.to_dto()

    def deactivate_item(self, item_id: UUID, actor: Actor) -> InventoryItemInfo:
        """Stop an item from moving stock.  Its history is kept."""
        item = self.session.get(InventoryItem, item_id)
        if item is None:
            raise InventoryItemNotFoundError(str(item_id))
        if item.is_active:
            item.is_active = False
            item.touch(actor.actor_id, self._clock.now())
            self.session.flush()
            logger.info(
                "item_deactivated",
                extra={"item_id": str(item_id), "actor_id": str(actor.actor_id)},
            )
        return item.to_dto()

    def set_expiration_date(
        self,
        item_id: UUID,
        expiration_date: date | None,
        actor: Actor,
    ) -> InventoryItemInfo:
        """Record the best-before of the stock on hand (None clears it)."""
        item = self.session.get(InventoryItem, item_id)
        if item is None:
            raise InventoryItemNotFoundError(str(item_id))
        item.expiration_date = expiration_date
        item.touch(actor.actor_id, self._clock.now())
        self.session.flush()
        logger.info(
            "item_expiration_set",
            extra={
                "item_id": str(item_id),
                "expiration_date": expiration_date,
                "actor_id": str(actor.actor_id),
            },
        )
        return item.to_dto()

    # =========================================================================
    # Movements
    # =========================================================================

    def consume(
        self,
        item_id: UUID,
        quantity: Decimal | int,
        movement_type: MovementType,
        reference_type: str | None,
        reference_id: str | None,
        actor: Actor,
        notes: str | None = None,
    ) -> LedgerResult:
        """Decrement stock for a sale or production consumption.

        Returns INSUFFICIENT_STOCK (with no mutation and no movement) when
        ``quantity`` exceeds the on-hand quantity at the moment of the
        UPDATE.

        Raises:
            InvalidQuantityError: quantity <= 0.
            InvalidMovementTypeError: movement_type is not SALE or
                PRODUCTION_CONSUME.
        """
        amount = self._positive(quantity)
        movement_type = MovementType(movement_type)
        if movement_type not in CONSUMING_MOVEMENT_TYPES:
            raise InvalidMovementTypeError(movement_type.value, "consume")

        return self._decrement(
            item_id, amount, movement_type, reference_type, reference_id, actor, notes,
        )

    def replenish(
        self,
        item_id: UUID,
        quantity: Decimal | int,
        unit_cost: Decimal | int | None,
        reference_number: str | None,
        actor: Actor,
        notes: str | None = None,
        movement_type: MovementType = MovementType.REPLENISH,
        reference_type: str | None = None,
    ) -> LedgerResult:
        """Increment stock from a delivery or a production run.

        ``unit_cost`` (per stored unit) updates ``cost_per_unit`` according
        to the configured CostPolicy.  None leaves the cost unchanged.

        Raises:
            InvalidQuantityError: quantity <= 0 or unit_cost < 0.
            InvalidMovementTypeError: movement_type is not REPLENISH or
                PRODUCTION_OUTPUT.
        """
        amount = self._positive(quantity)
        movement_type = MovementType(movement_type)
        if movement_type not in REPLENISHING_MOVEMENT_TYPES:
            raise InvalidMovementTypeError(movement_type.value, "replenish")
        cost = None
        if unit_cost is not None:
            cost = as_quantity(unit_cost)
            if cost < ZERO:
                raise InvalidQuantityError(cost, "unit cost must not be negative")

        return self._increment(
            item_id,
            amount,
            movement_type,
            reference_type or movement_type.value,
            reference_number,
            actor,
            notes,
            unit_cost=cost,
        )

    def apply_adjustment(self, adjustment: StockAdjustmentInfo, actor: Actor) -> LedgerResult:
        """Apply an approved adjustment as an ADJUSTMENT movement.

        The delta ``quantity_after - quantity_before`` is applied to the
        current on-hand quantity.  A decrease that no longer fits (stock
        was consumed since the count) comes back as INSUFFICIENT_STOCK.
        """
        status = AdjustmentStatus(adjustment.status)
        if status != AdjustmentStatus.APPROVED:
            error = InvalidStateTransitionError(
                "StockAdjustment", str(adjustment.id), status.value, "apply",
            )
            logger.warning(
                "adjustment_not_applicable",
                extra={"adjustment_id": str(adjustment.id), "status": status.value},
            )
            return LedgerResult.failed(
                LedgerStatus.INVALID_STATE, adjustment.inventory_item_id, error,
            )

        delta = adjustment.quantity_after - adjustment.quantity_before
        if delta == ZERO:
            raise InvalidAdjustmentError("quantity_after equals quantity_before")

        notes = adjustment.reason
        if adjustment.notes:
            notes = f"{adjustment.reason} | {adjustment.notes}"

        if delta < ZERO:
            return self._decrement(
                adjustment.inventory_item_id,
                -delta,
                MovementType.ADJUSTMENT,
                "STOCK_ADJUSTMENT",
                adjustment.reference_number,
                actor,
                notes,
                unit_cost=adjustment.unit_cost,
            )
        return self._increment(
            adjustment.inventory_item_id,
            delta,
            MovementType.ADJUSTMENT,
            "STOCK_ADJUSTMENT",
            adjustment.reference_number,
            actor,
            notes,
            unit_cost=None,
            movement_unit_cost=adjustment.unit_cost,
        )

    # =========================================================================
    # Verification
    # =========================================================================

    def verify_item(self, item_id: UUID) -> Decimal:
        """Check available == initial + sum(deltas) and return available.

        Raises:
            InventoryItemNotFoundError: unknown item.
            LedgerDriftError: the movement trail does not explain on-hand.
        """
        from inventory_kernel.selectors.inventory_selector import InventorySelector

        item = self.session.get(InventoryItem, item_id, populate_existing=True)
        if item is None:
            raise InventoryItemNotFoundError(str(item_id))
        reconstructed = InventorySelector(self.session).reconstruct_quantity(item_id)
        if abs(reconstructed - item.available_quantity) > _DRIFT_TOLERANCE:
            logger.critical(
                "ledger_drift_detected",
                extra={
                    "invariant": InventoryInvariant.MOVEMENT_COMPLETENESS.value,
                    "item_id": str(item_id),
                    "available": str(item.available_quantity),
                    "reconstructed": str(reconstructed),
                },
            )
            raise LedgerDriftError(str(item_id), item.available_quantity, reconstructed)
        return item.available_quantity

    # =========================================================================
    # Internals
    # =========================================================================

    def _positive(self, quantity) -> Decimal:
        amount = as_quantity(quantity)
        if amount <= ZERO:
            raise InvalidQuantityError(amount)
        return amount

    def _decrement(
        self,
        item_id: UUID,
        amount: Decimal,
        movement_type: MovementType,
        reference_type: str | None,
        reference_id: str | None,
        actor: Actor,
        notes: str | None,
        unit_cost: Decimal | None = None,
    ) -> LedgerResult:
        row = self.session.execute(
            update(InventoryItem)
            .where(
                InventoryItem.id == item_id,
                InventoryItem.is_active.is_(True),
                InventoryItem.available_quantity >= amount,
            )
            .values(available_quantity=InventoryItem.available_quantity - amount)
            .returning(InventoryItem.available_quantity, InventoryItem.cost_per_unit)
            .execution_options(synchronize_session=False)
        ).one_or_none()

        if row is None:
            return self._rejected(item_id, amount, movement_type)

        quantity_after = row.available_quantity
        return self._record(
            item_id,
            movement_type,
            delta=-amount,
            quantity_before=quantity_after + amount,
            quantity_after=quantity_after,
            unit_cost=unit_cost if unit_cost is not None else row.cost_per_unit,
            reference_type=reference_type,
            reference_id=reference_id,
            actor=actor,
            notes=notes,
            event="stock_adjusted" if movement_type == MovementType.ADJUSTMENT else "stock_consumed",
        )

    def _increment(
        self,
        item_id: UUID,
        amount: Decimal,
        movement_type: MovementType,
        reference_type: str | None,
        reference_id: str | None,
        actor: Actor,
        notes: str | None,
        unit_cost: Decimal | None,
        movement_unit_cost: Decimal | None = None,
    ) -> LedgerResult:
        values: dict = {
            "available_quantity": InventoryItem.available_quantity + amount,
        }
        if unit_cost is not None:
            if self._cost_policy == CostPolicy.WEIGHTED_AVERAGE:
                # SET expressions see pre-update values on both backends
                values["cost_per_unit"] = (
                    InventoryItem.available_quantity * InventoryItem.cost_per_unit
                    + amount * unit_cost
                ) / (InventoryItem.available_quantity + amount)
            else:
                values["cost_per_unit"] = unit_cost

        row = self.session.execute(
            update(InventoryItem)
            .where(
                InventoryItem.id == item_id,
                InventoryItem.is_active.is_(True),
            )
            .values(**values)
            .returning(InventoryItem.available_quantity, InventoryItem.cost_per_unit)
            .execution_options(synchronize_session=False)
        ).one_or_none()

        if row is None:
            return self._rejected(item_id, amount, movement_type)

        quantity_after = row.available_quantity
        if movement_unit_cost is None:
            movement_unit_cost = unit_cost if unit_cost is not None else row.cost_per_unit
        return self._record(
            item_id,
            movement_type,
            delta=amount,
            quantity_before=quantity_after - amount,
            quantity_after=quantity_after,
            unit_cost=movement_unit_cost,
            reference_type=reference_type,
            reference_id=reference_id,
            actor=actor,
            notes=notes,
            event="stock_adjusted" if movement_type == MovementType.ADJUSTMENT else "stock_replenished",
        )

    def _record(
        self,
        item_id: UUID,
        movement_type: MovementType,
        *,
        delta: Decimal,
        quantity_before: Decimal,
        quantity_after: Decimal,
        unit_cost: Decimal | None,
        reference_type: str | None,
        reference_id: str | None,
        actor: Actor,
        notes: str | None,
        event: str,
    ) -> LedgerResult:
        now = self._clock.now()
        movement = InventoryMovement(
            inventory_item_id=item_id,
            movement_type=movement_type.value,
            quantity_delta=delta,
            quantity_before=quantity_before,
            quantity_after=quantity_after,
            unit_cost=unit_cost,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            created_at=now,
            updated_at=now,
            created_by_id=actor.actor_id,
        )
        self.session.add(movement)
        self.session.flush()
        self._expire_cached_item(item_id)

        logger.info(
            event,
            extra={
                "item_id": str(item_id),
                "movement_id": str(movement.id),
                "movement_type": movement_type.value,
                "quantity_delta": str(delta),
                "quantity_before": str(quantity_before),
                "quantity_after": str(quantity_after),
                "reference_type": reference_type,
                "reference_id": reference_id,
                "actor_id": str(actor.actor_id),
            },
        )
        return LedgerResult.applied(movement.to_dto())

    def _rejected(
        self,
        item_id: UUID,
        amount: Decimal,
        movement_type: MovementType,
    ) -> LedgerResult:
        """Work out why a conditional UPDATE matched no row."""
        item = self.session.get(InventoryItem, item_id, populate_existing=True)
        if item is None:
            error = InventoryItemNotFoundError(str(item_id))
            status = LedgerStatus.ITEM_NOT_FOUND
        elif not item.is_active:
            error = InventoryItemInactiveError(str(item_id), item.name)
            status = LedgerStatus.ITEM_INACTIVE
        else:
            error = InsufficientStockError(
                str(item_id), amount, item.available_quantity, item.unit, item.name,
            )
            status = LedgerStatus.INSUFFICIENT_STOCK

        logger.warning(
            "stock_insufficient" if status == LedgerStatus.INSUFFICIENT_STOCK else "stock_movement_rejected",
            extra={
                "item_id": str(item_id),
                "movement_type": movement_type.value,
                "requested": str(amount),
                "status": status.value,
                "error_code": error.code,
            },
        )
        return LedgerResult.failed(status, item_id, error)

    def _expire_cached_item(self, item_id: UUID) -> None:
        key = self.session.identity_key(InventoryItem, item_id)
        cached = self.session.identity_map.get(key)
        if cached is not None:
            self.session.expire(cached, ["available_quantity", "cost_per_unit"])
