"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads the YAML fragments of one configuration set and parses them into
``inventory_config.schema`` dataclasses.  Runtime callers do not use this
module directly; the single public entry point is
``inventory_config.get_active_config()``.

Architecture position
---------------------
**Config layer**.  No dependency on kernel services, models or modules.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Quantities are parsed through ``str`` into ``Decimal``; YAML floats never
  reach the ledger as binary floats.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  fragment data.

Failure modes
-------------
* Missing ``root.yaml``  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unparseable quantity  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    CategoryDeduction,
    IngredientMapping,
    Policies,
    Recipe,
    RecipeLine,
    ShopConfiguration,
)

FRAGMENT_FILES = (
    "recipes.yaml",
    "category_deductions.yaml",
    "ingredient_map.yaml",
    "policies.yaml",
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_quantity(value: Any) -> Decimal:
    """Parse a YAML scalar into Decimal via its string form."""
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse quantity from {value!r}")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Cannot parse quantity from {value!r}") from exc


def parse_recipe(data: dict[str, Any]) -> Recipe:
    """Parse a ``Recipe`` from a dict."""
    return Recipe(
        name=str(data["name"]).strip(),
        description=data.get("description"),
        lines=tuple(
            RecipeLine(
                ingredient=str(line["ingredient"]).strip(),
                quantity=parse_quantity(line["quantity"]),
                unit=str(line["unit"]),
                category=line.get("category"),
            )
            for line in data.get("ingredients", [])
        ),
    )


def parse_category_deduction(category: str, data: dict[str, Any]) -> CategoryDeduction:
    return CategoryDeduction(
        category=category,
        quantity=parse_quantity(data["quantity"]),
        unit=str(data["unit"]),
    )


def parse_ingredient_mapping(data: dict[str, Any]) -> IngredientMapping:
    return IngredientMapping(
        ingredient=str(data["ingredient"]).strip(),
        inventory_item_name=str(data["inventory_item"]).strip(),
        inventory_category=data.get("category"),
    )


def parse_policies(data: dict[str, Any]) -> Policies:
    """Parse ``Policies``; absent keys keep their schema defaults."""
    approval = data.get("approval", {})
    ledger = data.get("ledger", {})
    sales = data.get("sales", {})
    references = data.get("references", {})
    stock_take = data.get("stock_take", {})
    defaults = Policies()
    return Policies(
        approver_roles=tuple(approval.get("approver_roles", defaults.approver_roles)),
        self_approval_roles=tuple(
            approval.get("self_approval_roles", defaults.self_approval_roles)
        ),
        cost_policy=str(ledger.get("cost_policy", defaults.cost_policy)),
        block_sale_on_shortfall=bool(
            sales.get("block_sale_on_shortfall", defaults.block_sale_on_shortfall)
        ),
        stock_take_prefix=str(references.get("stock_take_prefix", defaults.stock_take_prefix)),
        adjustment_prefix=str(references.get("adjustment_prefix", defaults.adjustment_prefix)),
        reference_width=int(references.get("width", defaults.reference_width)),
        default_location=str(stock_take.get("default_location", defaults.default_location)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 over the raw fragment data."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def load_configuration_set(fragment_dir: Path) -> ShopConfiguration:
    """
    Load every fragment in ``fragment_dir`` into a ``ShopConfiguration``.

    ``root.yaml`` is required and names the set.  The other fragments are
    optional; a missing fragment contributes nothing.
    """
    root = load_yaml_file(fragment_dir / "root.yaml")
    raw: dict[str, Any] = {"root": root}
    for name in FRAGMENT_FILES:
        path = fragment_dir / name
        raw[name] = load_yaml_file(path) if path.exists() else {}

    recipes = tuple(parse_recipe(r) for r in raw["recipes.yaml"].get("recipes", []))
    deductions = tuple(
        parse_category_deduction(category, entry)
        for category, entry in raw["category_deductions.yaml"].get("categories", {}).items()
    )
    mappings = tuple(
        parse_ingredient_mapping(m) for m in raw["ingredient_map.yaml"].get("mappings", [])
    )
    policies = parse_policies(raw["policies.yaml"])

    return ShopConfiguration(
        config_id=str(root["config_id"]),
        version=int(root.get("version", 1)),
        recipes=recipes,
        category_deductions=deductions,
        ingredient_map=mappings,
        policies=policies,
        checksum=compute_checksum(raw),
    )
