"""
IngredientResolver -- recipe ingredient name to a live InventoryItem.

Resolution order:
    1. The explicit ingredient map from configuration, when it names the
       ingredient.
    2. Exact, case-insensitive name match among active items.

The category hint only chooses among several same-name items.  It never
excludes the single match.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.orm import Session

from inventory_config.schema import IngredientMapping
from inventory_kernel.domain.dtos import InventoryItemInfo
from inventory_kernel.logging_config import get_logger
from inventory_kernel.selectors.inventory_selector import InventorySelector

logger = get_logger("modules.sales.resolver")


class IngredientResolver:
    """Looks up the inventory item that backs an ingredient or product."""

    def __init__(self, session: Session, mappings: Iterable[IngredientMapping] = ()):
        self._selector = InventorySelector(session)
        self._mappings = {m.ingredient.strip().lower(): m for m in mappings}

    def target_name(self, ingredient: str) -> str:
        mapping = self._mappings.get(ingredient.strip().lower())
        return mapping.inventory_item_name if mapping else ingredient

    def resolve(self, ingredient: str, category: str | None = None) -> InventoryItemInfo | None:
        """Return the active item for ``ingredient`` or None."""
        mapping = self._mappings.get(ingredient.strip().lower())
        name = ingredient
        if mapping is not None:
            name = mapping.inventory_item_name
            category = mapping.inventory_category or category

        candidates = self._selector.find_items_by_name(name, active_only=True)
        if not candidates:
            return None
        if len(candidates) > 1 and category:
            wanted = category.strip().lower()
            preferred = [c for c in candidates if c.category.lower() == wanted]
            if preferred:
                return preferred[0]
            logger.debug(
                "ingredient_category_hint_unmatched",
                extra={"ingredient": ingredient, "category": category, "candidates": len(candidates)},
            )
        return candidates[0]
