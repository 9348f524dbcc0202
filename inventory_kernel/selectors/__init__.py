"""Read-only selectors for the inventory kernel."""

from inventory_kernel.selectors.base import BaseSelector
from inventory_kernel.selectors.inventory_selector import InventorySelector
from inventory_kernel.selectors.stock_take_selector import (
    AdjustmentFilters,
    StockTakeFilters,
    StockTakeSelector,
)

__all__ = [
    "BaseSelector",
    "InventorySelector",
    "StockTakeSelector",
    "StockTakeFilters",
    "AdjustmentFilters",
]
