"""
CompositeDeductionEngine -- sundae (composite item) stock deduction.

Responsibility:
    Resolves a sold composite item through the RecipeCatalog into its
    ingredient lines and consumes each one from the ledger.

Architecture position:
    Modules > Sales.  Uses the ledger (kernel service), the recipe catalog
    and the ingredient resolver.  Does not commit; SaleDeductionService
    owns the transaction.

Invariants enforced:
    - Ingredients are processed one at a time, in recipe order, so the
      lists in DeductionResult are deterministic.
    - One ingredient's failure never stops the others.
    - A unit mismatch between recipe and inventory record is reported as
      an error on that line and logged at ERROR; the unconverted quantity
      is never deducted.

Failure modes:
    - RecipeNotFoundError (raised) -- the caller falls back to category
      deduction.
    - Missing / insufficient / mismatched ingredients are returned in the
      DeductionResult.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from uuid import UUID

from inventory_kernel.domain.actors import Actor
from inventory_kernel.domain.dtos import LedgerStatus, MovementType
from inventory_kernel.domain.units import convert, format_quantity
from inventory_kernel.exceptions import IncompatibleUnitsError, InvalidQuantityError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.base import as_quantity
from inventory_kernel.services.ledger_service import InventoryLedgerService
from inventory_modules.sales.models import (
    AvailabilityCheck,
    DeductionResult,
    IngredientDeduction,
    IngredientShortfall,
    LineOutcome,
)
from inventory_modules.sales.recipes import RecipeCatalog
from inventory_modules.sales.resolver import IngredientResolver

logger = get_logger("modules.sales.deduction")


class CompositeDeductionEngine:
    """Deducts the ingredients of composite menu items."""

    def __init__(
        self,
        catalog: RecipeCatalog,
        resolver: IngredientResolver,
        ledger: InventoryLedgerService,
    ):
        self._catalog = catalog
        self._resolver = resolver
        self._ledger = ledger

    def deduct_composite_ingredients(
        self,
        composite_name: str,
        units_sold: Decimal | int,
        reference_id: str,
        actor: Actor,
    ) -> DeductionResult:
        """Consume every ingredient of ``units_sold`` x ``composite_name``.

        Returns a DeductionResult whose ``success`` is true only if every
        ingredient line was deducted.

        Raises:
            RecipeNotFoundError: no recipe for ``composite_name``.
            InvalidQuantityError: ``units_sold`` <= 0.
        """
        recipe = self._catalog.get_recipe(composite_name)
        units = as_quantity(units_sold)
        if units <= 0:
            raise InvalidQuantityError(units)

        lines: list[IngredientDeduction] = []
        notes = f"Sundae: {units} x {recipe.name}"

        for line in recipe.lines:
            needed = line.quantity * units
            item = self._resolver.resolve(line.ingredient, line.category)
            if item is None:
                logger.warning(
                    "composite_ingredient_missing",
                    extra={"composite": recipe.name, "ingredient": line.ingredient},
                )
                lines.append(IngredientDeduction(
                    ingredient=line.ingredient,
                    outcome=LineOutcome.MISSING,
                    quantity=needed,
                    unit=line.unit,
                    error=f"No inventory item found for {line.ingredient}",
                ))
                continue

            try:
                amount = convert(needed, line.unit, item.unit)
            except IncompatibleUnitsError as exc:
                logger.error(
                    "composite_unit_mismatch",
                    extra={
                        "composite": recipe.name,
                        "ingredient": line.ingredient,
                        "item_id": str(item.id),
                        "recipe_unit": line.unit,
                        "item_unit": item.unit,
                    },
                )
                lines.append(IngredientDeduction(
                    ingredient=line.ingredient,
                    outcome=LineOutcome.UNIT_MISMATCH,
                    quantity=needed,
                    unit=line.unit,
                    inventory_item_id=item.id,
                    error=f"{line.ingredient}: {exc}",
                    error_code=exc.code,
                ))
                continue

            result = self._ledger.consume(
                item.id, amount, MovementType.SALE, "SALE", reference_id, actor, notes,
            )
            if result.is_success:
                lines.append(IngredientDeduction(
                    ingredient=line.ingredient,
                    outcome=LineOutcome.DEDUCTED,
                    quantity=amount,
                    unit=item.unit,
                    inventory_item_id=item.id,
                    movement_id=result.movement.id,
                ))
            else:
                lines.append(IngredientDeduction(
                    ingredient=line.ingredient,
                    outcome=(
                        LineOutcome.INSUFFICIENT
                        if result.status == LedgerStatus.INSUFFICIENT_STOCK
                        else LineOutcome.REJECTED
                    ),
                    quantity=amount,
                    unit=item.unit,
                    inventory_item_id=item.id,
                    error=str(result.error),
                    error_code=result.error.code,
                ))

        deduction = DeductionResult(
            composite_name=recipe.name,
            units_sold=units,
            success=all(line.is_success for line in lines),
            deducted_ingredients=tuple(l.ingredient for l in lines if l.is_success),
            missing_ingredients=tuple(
                l.ingredient for l in lines if l.outcome == LineOutcome.MISSING
            ),
            errors=tuple(l.error for l in lines if l.error),
            lines=tuple(lines),
        )

        log = logger.info if deduction.success else logger.warning
        log(
            "composite_deduction_completed" if deduction.success else "composite_deduction_partial",
            extra={
                "composite": recipe.name,
                "units_sold": str(units),
                "reference_id": reference_id,
                "deducted": list(deduction.deducted_ingredients),
                "missing": list(deduction.missing_ingredients),
                "error_count": len(deduction.errors),
            },
        )
        return deduction

    def check_availability(self, composite_name: str, units: Decimal | int) -> AvailabilityCheck:
        """Read-only: could ``units`` of ``composite_name`` be sold right now?

        Needs for the same inventory item across several lines are summed.

        Raises:
            RecipeNotFoundError: no recipe for ``composite_name``.
        """
        recipe = self._catalog.get_recipe(composite_name)
        wanted = as_quantity(units)
        if wanted <= 0:
            raise InvalidQuantityError(wanted)

        needs: dict[UUID, Decimal] = defaultdict(Decimal)
        items = {}
        labels: dict[UUID, list[str]] = defaultdict(list)
        missing: list[str] = []
        errors: list[str] = []

        for line in recipe.lines:
            item = self._resolver.resolve(line.ingredient, line.category)
            if item is None:
                missing.append(line.ingredient)
                continue
            try:
                needs[item.id] += convert(line.quantity * wanted, line.unit, item.unit)
            except IncompatibleUnitsError as exc:
                errors.append(f"{line.ingredient}: {exc}")
                continue
            items[item.id] = item
            labels[item.id].append(line.ingredient)

        shortfalls = []
        for item_id, needed in needs.items():
            item = items[item_id]
            if needed > item.available_quantity:
                shortfalls.append(IngredientShortfall(
                    ingredient=" + ".join(labels[item_id]),
                    needed=needed,
                    available=item.available_quantity,
                    unit=item.unit,
                ))
                errors.append(
                    f"{item.name}: need {format_quantity(needed, item.unit)}, "
                    f"have {format_quantity(item.available_quantity, item.unit)}"
                )

        return AvailabilityCheck(
            composite_name=recipe.name,
            units=wanted,
            can_fulfil=not shortfalls and not missing and not errors,
            shortfalls=tuple(shortfalls),
            missing_ingredients=tuple(missing),
            errors=tuple(errors),
        )
