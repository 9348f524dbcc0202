"""
Sales Module (``inventory_modules.sales``).

Responsibility
--------------
Sale-time stock deduction: the recipe catalog, the composite (sundae)
deduction engine, the per-category fallback with its two stock sources,
and the order-level service that owns the transaction.

Architecture
------------
Layer: **Modules**.  Imports from ``inventory_kernel`` and
``inventory_config``; never the reverse.
"""

from inventory_modules.sales.category import SimpleCategoryDeduction
from inventory_modules.sales.deduction import CompositeDeductionEngine
from inventory_modules.sales.models import (
    AvailabilityCheck,
    CategoryDeductionResult,
    DeductionResult,
    IngredientDeduction,
    LineOutcome,
    OrderDeductionReport,
    SaleLine,
    SaleLineResult,
)
from inventory_modules.sales.recipes import RecipeCatalog
from inventory_modules.sales.resolver import IngredientResolver
from inventory_modules.sales.service import SaleDeductionService
from inventory_modules.sales.sources import (
    InventoryBackedSource,
    LegacyBatchBackedSource,
    StockSource,
)

__all__ = [
    "RecipeCatalog",
    "IngredientResolver",
    "CompositeDeductionEngine",
    "SimpleCategoryDeduction",
    "StockSource",
    "InventoryBackedSource",
    "LegacyBatchBackedSource",
    "SaleDeductionService",
    "SaleLine",
    "SaleLineResult",
    "DeductionResult",
    "IngredientDeduction",
    "CategoryDeductionResult",
    "AvailabilityCheck",
    "OrderDeductionReport",
    "LineOutcome",
]
