"""
Production Module (``inventory_modules.production``).

Responsibility
--------------
Completes production batches: consumes the ingredients and books the
finished product into stock at the ingredients' cost.

Architecture
------------
Layer: **Modules**.  Thin orchestration over the kernel ledger.
"""

from inventory_modules.production.models import BatchIngredient, ProductionResult
from inventory_modules.production.service import ProductionService

__all__ = ["ProductionService", "BatchIngredient", "ProductionResult"]
