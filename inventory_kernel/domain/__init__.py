"""Pure domain layer: units, lifecycles, DTOs and variance arithmetic."""

from inventory_kernel.domain.actors import SYSTEM_ACTOR, Actor
from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    ApprovalOutcome,
    ApprovalResult,
    InventoryItemInfo,
    LedgerResult,
    LedgerStatus,
    MovementRecord,
    MovementType,
    StockAdjustmentInfo,
    StockTakeDetail,
    StockTakeInfo,
    StockTakeItemInfo,
    VarianceReport,
)
from inventory_kernel.domain.units import UnitFamily, convert
from inventory_kernel.domain.workflow import (
    AdjustmentStatus,
    AdjustmentType,
    StockTakeStatus,
)

__all__ = [
    "Actor",
    "SYSTEM_ACTOR",
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "UnitFamily",
    "convert",
    "MovementType",
    "LedgerStatus",
    "LedgerResult",
    "InventoryItemInfo",
    "MovementRecord",
    "StockTakeStatus",
    "StockTakeInfo",
    "StockTakeItemInfo",
    "StockTakeDetail",
    "VarianceReport",
    "AdjustmentStatus",
    "AdjustmentType",
    "StockAdjustmentInfo",
    "ApprovalOutcome",
    "ApprovalResult",
]
