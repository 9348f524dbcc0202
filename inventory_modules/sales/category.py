"""
SimpleCategoryDeduction -- fallback for menu items without a recipe.

A closed table (``category_deductions.yaml``) gives a fixed per-unit
quantity for a handful of categories: a scoop of a flavour is 100 g, a
milkshake or juice is 250 ml.  Anything else is UnsupportedCategoryError,
reported in the result rather than raised, because a sale of an
untracked item is not a stock problem.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from inventory_config.schema import CategoryDeduction
from inventory_kernel.domain.actors import Actor
from inventory_kernel.exceptions import InvalidQuantityError, UnsupportedCategoryError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.base import as_quantity
from inventory_modules.sales.models import CategoryDeductionResult
from inventory_modules.sales.sources import StockSource

logger = get_logger("modules.sales.category")


class SimpleCategoryDeduction:
    """Per-category deduction against the first source holding the product."""

    def __init__(self, deductions: Iterable[CategoryDeduction], sources: Sequence[StockSource]):
        self._table = {d.category.strip().lower(): d for d in deductions}
        self._sources = tuple(sources)

    def deduction_for(self, category: str) -> CategoryDeduction:
        """Raises UnsupportedCategoryError for categories outside the table."""
        entry = self._table.get(category.strip().lower())
        if entry is None:
            raise UnsupportedCategoryError(category)
        return entry

    def supports(self, category: str) -> bool:
        return category.strip().lower() in self._table

    def deduct(
        self,
        product_name: str,
        category: str,
        units_sold: Decimal | int,
        reference_id: str,
        actor: Actor,
    ) -> CategoryDeductionResult:
        units = as_quantity(units_sold)
        if units <= 0:
            raise InvalidQuantityError(units)

        try:
            rule = self.deduction_for(category)
        except UnsupportedCategoryError as exc:
            logger.info(
                "category_deduction_unsupported",
                extra={"product_name": product_name, "category": category},
            )
            return CategoryDeductionResult(
                product_name=product_name,
                category=category,
                units_sold=units,
                success=False,
                error=str(exc),
                error_code=exc.code,
            )

        quantity = rule.quantity * units
        source = next((s for s in self._sources if s.holds(product_name, category)), None)
        if source is None:
            logger.warning(
                "category_deduction_no_source",
                extra={"product_name": product_name, "category": category, "reference_id": reference_id},
            )
            return CategoryDeductionResult(
                product_name=product_name,
                category=category,
                units_sold=units,
                success=False,
                quantity=quantity,
                unit=rule.unit,
                error=f"No stock source holds {product_name}",
            )

        outcome = source.deduct(
            product_name,
            category,
            quantity,
            rule.unit,
            reference_id,
            actor,
            notes=f"Sale: {units} x {product_name}",
        )
        logger.info(
            "category_deduction_completed" if outcome.is_success else "category_deduction_failed",
            extra={
                "product_name": product_name,
                "category": category,
                "source": source.name,
                "quantity": str(outcome.quantity),
                "unit": outcome.unit,
                "outcome": outcome.outcome.value,
                "reference_id": reference_id,
            },
        )
        return CategoryDeductionResult(
            product_name=product_name,
            category=category,
            units_sold=units,
            success=outcome.is_success,
            source=source.name,
            quantity=outcome.quantity,
            unit=outcome.unit,
            error=outcome.error,
            error_code=outcome.error_code,
        )
