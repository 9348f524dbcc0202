"""
Inventory Modules.

Thin orchestration layers over the inventory kernel.  Each module
composes kernel services (ledger, selectors) with values taken from
``inventory_config`` and owns its own transaction boundary.

Modules:
- sales: recipe catalog, composite (sundae) deduction, category fallback,
  stock sources and order-level deduction
- production: batch completion (ingredient consumption + finished output)
- stock_control: configured deliveries, stock takes and adjustment approval

The kernel never imports from this package.
"""

from inventory_modules import production, sales, stock_control

__all__ = ["sales", "production", "stock_control"]
