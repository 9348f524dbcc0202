"""
Shared fixtures for module tests.

DESIGN RULE: Every fixture is opt-in.  No autouse.  Each test explicitly
declares the stock it depends on in its function signature.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from inventory_config import Recipe, RecipeLine, get_active_config
from inventory_kernel.models.production_batch import ProductionBatch
from inventory_kernel.selectors.inventory_selector import InventorySelector
from inventory_modules.sales.deduction import CompositeDeductionEngine
from inventory_modules.sales.recipes import RecipeCatalog
from inventory_modules.sales.resolver import IngredientResolver


@pytest.fixture
def shop_config():
    """The packaged default configuration set."""
    return get_active_config()


@pytest.fixture
def resolver(session, shop_config):
    return IngredientResolver(session, shop_config.ingredient_map)


@pytest.fixture
def three_line_catalog():
    """Chocolate Sundae reduced to chocolate, sauce and a cherry."""
    return RecipeCatalog([
        Recipe(
            name="Chocolate Sundae",
            lines=(
                RecipeLine("Chocolate", Decimal("200"), "g", "Flavors"),
                RecipeLine("Chocolate Sauce", Decimal("30"), "ml", "Toppings"),
                RecipeLine("Cherry", Decimal("1"), "pcs", "Toppings"),
            ),
        ),
    ])


@pytest.fixture
def make_engine(resolver, ledger):
    """Factory fixture: a CompositeDeductionEngine over a given catalog."""

    def _make(catalog: RecipeCatalog) -> CompositeDeductionEngine:
        return CompositeDeductionEngine(catalog, resolver, ledger)

    return _make


@pytest.fixture
def legacy_batch(session, deterministic_clock, admin):
    """Factory fixture: insert a legacy production batch row."""

    def _create(
        batch_number: str,
        product_name: str,
        remaining: Decimal | int,
        unit: str = "g",
        produced_at: datetime | None = None,
    ) -> ProductionBatch:
        now = deterministic_clock.now()
        batch = ProductionBatch(
            batch_number=batch_number,
            product_name=product_name,
            unit=unit,
            quantity_produced=Decimal(remaining),
            quantity_remaining=Decimal(remaining),
            produced_at=produced_at or now,
            created_at=now,
            updated_at=now,
            created_by_id=admin.actor_id,
        )
        session.add(batch)
        session.flush()
        return batch

    return _create


@pytest.fixture
def fresh_quantity(session_factory):
    """Read an item's committed quantity through a separate session."""

    def _read(item_id) -> Decimal:
        other = session_factory()
        try:
            return InventorySelector(other).get_item(item_id).available_quantity
        finally:
            other.rollback()
            other.close()

    return _read

