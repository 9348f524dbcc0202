"""
Configuration Validator (``inventory_config.validator``).

Responsibility
--------------
Validates a ``ShopConfiguration`` before it is handed to any service, so
that a bad recipe or policy is caught when the shop starts rather than in
the middle of a sale.

Architecture position
---------------------
**Config layer**.  Uses only the pure unit table from
``inventory_kernel.domain.units``.

Invariants enforced
-------------------
* Every unit named in a recipe line or category deduction is a supported
  unit.
* Recipe and category quantities are strictly positive.
* Recipe names are unique (case-insensitive) and every recipe has lines.
* The cost policy is one of ``COST_POLICIES``.
* At least one approver role is configured.

Failure modes
-------------
* Errors  -> ``get_active_config()`` raises ``ValueError`` listing all of
  them.
* Warnings  -> logged, configuration is still usable.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from inventory_config.schema import COST_POLICIES, ShopConfiguration
from inventory_kernel.domain.units import SUPPORTED_UNITS, normalize_unit
from inventory_kernel.exceptions import UnknownUnitError


@dataclass
class ConfigValidationResult:
    """
    Result of configuration validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def _check_unit(unit: str, where: str, result: ConfigValidationResult) -> None:
    try:
        normalize_unit(unit)
    except UnknownUnitError:
        result.add_error(
            f"{where}: unknown unit {unit!r} (supported: {', '.join(SUPPORTED_UNITS)})"
        )


def validate_configuration(config: ShopConfiguration) -> ConfigValidationResult:
    """Validate a configuration; collects every problem instead of stopping at the first."""
    result = ConfigValidationResult()

    _validate_recipes(config, result)
    _validate_category_deductions(config, result)
    _validate_ingredient_map(config, result)
    _validate_policies(config, result)

    return result


def _validate_recipes(config: ShopConfiguration, result: ConfigValidationResult) -> None:
    seen: set[str] = set()
    for recipe in config.recipes:
        if not recipe.name:
            result.add_error("Recipe with empty name")
            continue
        if recipe.key in seen:
            result.add_error(f"Duplicate recipe name: {recipe.name!r}")
        seen.add(recipe.key)

        if not recipe.lines:
            result.add_error(f"Recipe {recipe.name!r} has no ingredient lines")
        for line in recipe.lines:
            where = f"Recipe {recipe.name!r} ingredient {line.ingredient!r}"
            _check_unit(line.unit, where, result)
            if line.quantity <= 0:
                result.add_error(f"{where}: quantity must be positive, got {line.quantity}")


def _validate_category_deductions(
    config: ShopConfiguration, result: ConfigValidationResult
) -> None:
    seen: set[str] = set()
    for entry in config.category_deductions:
        where = f"Category deduction {entry.category!r}"
        if entry.category.lower() in seen:
            result.add_error(f"Duplicate category deduction: {entry.category!r}")
        seen.add(entry.category.lower())
        _check_unit(entry.unit, where, result)
        if entry.quantity <= 0:
            result.add_error(f"{where}: quantity must be positive, got {entry.quantity}")

    recipe_keys = {r.key for r in config.recipes}
    for entry in config.category_deductions:
        if entry.category.lower() in recipe_keys:
            result.add_warning(
                f"Category {entry.category!r} has the same name as a recipe; "
                "the recipe takes precedence"
            )


def _validate_ingredient_map(config: ShopConfiguration, result: ConfigValidationResult) -> None:
    seen: set[str] = set()
    used = {line.ingredient.lower() for r in config.recipes for line in r.lines}
    for mapping in config.ingredient_map:
        key = mapping.ingredient.lower()
        if key in seen:
            result.add_error(f"Ingredient {mapping.ingredient!r} is mapped more than once")
        seen.add(key)
        if not mapping.inventory_item_name:
            result.add_error(f"Ingredient {mapping.ingredient!r} maps to an empty item name")
        if key not in used:
            result.add_warning(
                f"Ingredient mapping {mapping.ingredient!r} is not used by any recipe"
            )


def _validate_policies(config: ShopConfiguration, result: ConfigValidationResult) -> None:
    policies = config.policies
    if policies.cost_policy not in COST_POLICIES:
        result.add_error(
            f"Unknown cost policy {policies.cost_policy!r} "
            f"(expected one of {sorted(COST_POLICIES)})"
        )
    if not policies.approver_roles:
        result.add_error("At least one approver role must be configured")
    for role in policies.self_approval_roles:
        if role.lower() not in {r.lower() for r in policies.approver_roles}:
            result.add_warning(
                f"Self-approval role {role!r} is not an approver role and has no effect"
            )
    if policies.reference_width < 1:
        result.add_error(f"Reference width must be positive, got {policies.reference_width}")
    if not policies.stock_take_prefix or not policies.adjustment_prefix:
        result.add_error("Reference prefixes must not be empty")
