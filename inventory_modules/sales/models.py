"""
Sales Domain Models (``inventory_modules.sales.models``).

Responsibility
--------------
Frozen value objects describing what happened to stock when something
was sold: per-ingredient outcomes of a composite deduction, the outcome
of a category fallback deduction, and the order-level report.

Architecture
------------
Layer: **Modules** -- pure data.  No database identity, no I/O.

Invariants
----------
- ``DeductionResult.success`` is true only when every ingredient line
  was deducted.
- Ingredient order in every tuple follows recipe order.
- Quantities are ``Decimal``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID


class LineOutcome(str, Enum):
    """What happened to one ingredient or one fallback line."""

    DEDUCTED = "deducted"
    INSUFFICIENT = "insufficient"
    MISSING = "missing"
    REJECTED = "rejected"
    UNIT_MISMATCH = "unit_mismatch"


@dataclass(frozen=True)
class IngredientDeduction:
    """Outcome for one recipe line."""

    ingredient: str
    outcome: LineOutcome
    quantity: Decimal  # in the inventory item's unit when resolved, else the recipe unit
    unit: str
    inventory_item_id: UUID | None = None
    movement_id: UUID | None = None
    error: str | None = None
    error_code: str | None = None

    @property
    def is_success(self) -> bool:
        return self.outcome == LineOutcome.DEDUCTED


@dataclass(frozen=True)
class DeductionResult:
    """Aggregated outcome of one composite (recipe) deduction."""

    composite_name: str
    units_sold: Decimal
    success: bool
    deducted_ingredients: tuple[str, ...]
    missing_ingredients: tuple[str, ...]
    errors: tuple[str, ...]
    lines: tuple[IngredientDeduction, ...] = ()

    @property
    def is_partial(self) -> bool:
        return not self.success and bool(self.deducted_ingredients)


@dataclass(frozen=True)
class IngredientShortfall:
    """One ingredient that cannot cover a requested sale."""

    ingredient: str
    needed: Decimal
    available: Decimal
    unit: str


@dataclass(frozen=True)
class AvailabilityCheck:
    """Read-only answer to "can we sell N of this composite?"."""

    composite_name: str
    units: Decimal
    can_fulfil: bool
    shortfalls: tuple[IngredientShortfall, ...] = ()
    missing_ingredients: tuple[str, ...] = ()
    errors: tuple[str, ...] = ()


@dataclass(frozen=True)
class SourceDeduction:
    """Outcome of taking stock from one StockSource."""

    source: str
    product_name: str
    outcome: LineOutcome
    quantity: Decimal
    unit: str
    record_id: UUID | None = None  # inventory item id or production batch id
    movement_id: UUID | None = None
    error: str | None = None
    error_code: str | None = None

    @property
    def is_success(self) -> bool:
        return self.outcome == LineOutcome.DEDUCTED


@dataclass(frozen=True)
class CategoryDeductionResult:
    """Outcome of the per-category fallback for a non-composite item."""

    product_name: str
    category: str
    units_sold: Decimal
    success: bool
    source: str | None = None
    quantity: Decimal | None = None
    unit: str | None = None
    error: str | None = None
    error_code: str | None = None


@dataclass(frozen=True)
class SaleLine:
    """One sold line of an order."""

    product_name: str
    category: str
    quantity: Decimal | int = 1


class SaleLineKind(str, Enum):
    COMPOSITE = "composite"
    CATEGORY = "category"


@dataclass(frozen=True)
class SaleLineResult:
    """Per-line outcome inside an order report."""

    line: SaleLine
    kind: SaleLineKind
    success: bool
    composite: DeductionResult | None = None
    category: CategoryDeductionResult | None = None

    @property
    def errors(self) -> tuple[str, ...]:
        if self.composite is not None:
            return self.composite.errors
        if self.category is not None and self.category.error:
            return (self.category.error,)
        return ()


@dataclass(frozen=True)
class OrderDeductionReport:
    """Stock outcome of a whole order.

    ``sale_may_complete`` is governed by the shop's
    ``block_sale_on_shortfall`` policy.  When it is false the order's
    deductions were rolled back.
    """

    order_id: str
    lines: tuple[SaleLineResult, ...]
    success: bool
    sale_may_complete: bool
    committed: bool

    @property
    def shortfalls(self) -> tuple[SaleLineResult, ...]:
        return tuple(line for line in self.lines if not line.success)
