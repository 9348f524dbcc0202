"""
Shop configuration schema.

Defines the human-authored, reviewable configuration of one shop.  YAML
fragments are parsed into these types by the loader, checked by the
validator, and handed to callers as a single frozen ``ShopConfiguration``
by ``get_active_config()``.

Everything here is declarative data.  No type in this module touches the
database or the kernel services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Recipes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RecipeLine:
    """One ingredient of a composite menu item, per unit sold."""

    ingredient: str
    quantity: Decimal
    unit: str
    category: str | None = None  # disambiguation hint, not a filter


@dataclass(frozen=True)
class Recipe:
    """A composite menu item and its ordered ingredient lines."""

    name: str
    lines: tuple[RecipeLine, ...]
    description: str | None = None

    @property
    def key(self) -> str:
        return self.name.strip().lower()


# ---------------------------------------------------------------------------
# Category fallback and ingredient mapping
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CategoryDeduction:
    """Fixed per-unit deduction for a non-composite menu category."""

    category: str
    quantity: Decimal
    unit: str


@dataclass(frozen=True)
class IngredientMapping:
    """Explicit link from a recipe ingredient name to an inventory item.

    Resolved once at configuration time so sale-time lookups do not depend
    on free-text name matching.
    """

    ingredient: str
    inventory_item_name: str
    inventory_category: str | None = None


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------

COST_POLICIES: frozenset[str] = frozenset({"last_cost", "weighted_average"})


@dataclass(frozen=True)
class Policies:
    """Approval, costing and sale-completion policies."""

    approver_roles: tuple[str, ...] = ("manager", "admin")
    self_approval_roles: tuple[str, ...] = ("admin",)
    cost_policy: str = "last_cost"
    block_sale_on_shortfall: bool = False
    stock_take_prefix: str = "ST"
    adjustment_prefix: str = "ADJ"
    reference_width: int = 6
    default_location: str = "main"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ShopConfiguration:
    """The complete, validated configuration for one shop.

    ``checksum`` is a SHA-256 digest over the parsed fragment data and
    identifies exactly which configuration a process ran with.
    """

    config_id: str
    version: int
    recipes: tuple[Recipe, ...] = ()
    category_deductions: tuple[CategoryDeduction, ...] = ()
    ingredient_map: tuple[IngredientMapping, ...] = ()
    policies: Policies = field(default_factory=Policies)
    checksum: str = ""

    def category_deduction(self, category: str) -> CategoryDeduction | None:
        wanted = category.strip().lower()
        for entry in self.category_deductions:
            if entry.category.lower() == wanted:
                return entry
        return None
