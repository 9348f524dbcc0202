"""
Recipe Catalog -- composite menu item name to ordered ingredient lines.

Read-only lookup built from ``ShopConfiguration.recipes``.  Matching is
exact and case-insensitive on the trimmed name.
"""

from __future__ import annotations

from collections.abc import Iterable

from inventory_config.schema import Recipe, ShopConfiguration
from inventory_kernel.exceptions import RecipeNotFoundError


class RecipeCatalog:
    """Immutable recipe lookup.

    Guarantees:
        - ``names()`` preserves configuration order.
        - ``get_recipe`` never returns None; unknown names raise
          RecipeNotFoundError so callers can fall back.
    """

    def __init__(self, recipes: Iterable[Recipe]):
        self._recipes: dict[str, Recipe] = {}
        for recipe in recipes:
            if recipe.key in self._recipes:
                raise ValueError(f"Duplicate recipe name: {recipe.name!r}")
            self._recipes[recipe.key] = recipe

    @classmethod
    def from_config(cls, config: ShopConfiguration) -> RecipeCatalog:
        return cls(config.recipes)

    def get_recipe(self, name: str) -> Recipe:
        recipe = self._recipes.get(name.strip().lower())
        if recipe is None:
            raise RecipeNotFoundError(name)
        return recipe

    def is_composite(self, name: str) -> bool:
        return name.strip().lower() in self._recipes

    def names(self) -> tuple[str, ...]:
        return tuple(r.name for r in self._recipes.values())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.is_composite(name)

    def __len__(self) -> int:
        return len(self._recipes)
