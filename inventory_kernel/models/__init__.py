"""ORM models for the inventory kernel."""

from inventory_kernel.models.adjustment import StockAdjustment
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.models.movement import InventoryMovement
from inventory_kernel.models.production_batch import ProductionBatch
from inventory_kernel.models.reference_counter import ReferenceCounter
from inventory_kernel.models.stock_take import StockTake, StockTakeItem


def import_all_models() -> None:
    """Ensure every table is registered on Base.metadata.

    The imports above do the work; this exists so create_tables() has an
    explicit call site.
    """


__all__ = [
    "InventoryItem",
    "InventoryMovement",
    "StockTake",
    "StockTakeItem",
    "StockAdjustment",
    "ReferenceCounter",
    "ProductionBatch",
    "import_all_models",
]
