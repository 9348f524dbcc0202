"""
Shop Configuration Package (``inventory_config``).

Responsibility
--------------
Provides the single public entrypoint for runtime configuration:
``get_active_config()``.  All other modules in this package (loader,
schema, validator) are build/test tooling; services receive the values
they need (recipes, roles, policies) from the returned
``ShopConfiguration`` as plain constructor arguments.

Architecture position
---------------------
**Config layer** -- sits beside the kernel.  The kernel never imports
this package; ``inventory_modules`` reads it and passes values down.

Invariants enforced
-------------------
* Every returned configuration has passed ``validate_configuration``.
* An ``INVENTORY_CONFIG_TRACE`` log entry is emitted on every successful
  load, carrying the checksum.

Failure modes
-------------
* ``FileNotFoundError`` -- the configuration set directory or its
  ``root.yaml`` does not exist.
* ``ValueError`` -- validation failed; the message lists every error.
"""

from __future__ import annotations

import logging
from pathlib import Path

from inventory_config.loader import load_configuration_set
from inventory_config.schema import (
    CategoryDeduction,
    IngredientMapping,
    Policies,
    Recipe,
    RecipeLine,
    ShopConfiguration,
)
from inventory_config.validator import validate_configuration

_logger = logging.getLogger("inventory_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets" / "default"

__all__ = [
    "get_active_config",
    "ShopConfiguration",
    "Recipe",
    "RecipeLine",
    "CategoryDeduction",
    "IngredientMapping",
    "Policies",
]


def get_active_config(config_dir: Path | str | None = None) -> ShopConfiguration:
    """The ONLY public configuration entrypoint.

    Contract:
        No service reads configuration files or environment variables for
        recipes, roles or policies.  They flow from this function.

    Guarantees:
        - The returned ``ShopConfiguration`` is frozen and valid.
        - An ``INVENTORY_CONFIG_TRACE`` log entry is emitted.

    Non-goals:
        - Does NOT cache.  Callers hold the returned object for as long as
          they need it.

    Args:
        config_dir: Directory of one configuration set (containing
            ``root.yaml``).  Defaults to the packaged ``sets/default``.

    Raises:
        FileNotFoundError: If the directory or ``root.yaml`` is missing.
        ValueError: If configuration validation fails.
    """
    fragment_dir = Path(config_dir) if config_dir is not None else _DEFAULT_CONFIG_DIR
    if not fragment_dir.is_dir():
        raise FileNotFoundError(f"Configuration set directory not found: {fragment_dir}")

    config = load_configuration_set(fragment_dir)

    validation = validate_configuration(config)
    if not validation.is_valid:
        raise ValueError(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in validation.errors)
        )
    for warning in validation.warnings:
        _logger.warning(
            "config_validation_warning",
            extra={"config_id": config.config_id, "warning": warning},
        )

    _logger.info(
        "INVENTORY_CONFIG_TRACE",
        extra={
            "trace_type": "INVENTORY_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "recipe_count": len(config.recipes),
            "category_count": len(config.category_deductions),
            "mapping_count": len(config.ingredient_map),
            "cost_policy": config.policies.cost_policy,
            "block_sale_on_shortfall": config.policies.block_sale_on_shortfall,
        },
    )
    return config
