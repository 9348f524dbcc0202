"""
Production Domain Models (``inventory_modules.production.models``).

Frozen value objects for a production batch: what it consumes and what it
produced.  No database identity, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from inventory_kernel.domain.dtos import MovementRecord


@dataclass(frozen=True)
class BatchIngredient:
    """One ingredient consumed by a batch.

    ``unit`` defaults to the inventory item's stored unit.
    """

    inventory_item_id: UUID
    quantity: Decimal | int
    unit: str | None = None


@dataclass(frozen=True)
class ProductionResult:
    """Outcome of a completed batch."""

    batch_reference: str
    output_item_id: UUID
    output_quantity: Decimal
    total_cost: Decimal
    unit_cost: Decimal
    consumed: tuple[MovementRecord, ...]
    output: MovementRecord
