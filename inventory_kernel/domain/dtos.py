"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable data structures returned by the ledger, the stock-take
    workflow, the approval gate and the selectors.  ORM rows never leave
    the kernel; every public operation hands back one of these.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - All quantities and money values are ``Decimal``.
    - ``LedgerResult.movement`` is set iff ``status == APPLIED``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from inventory_kernel.domain.workflow import (
    AdjustmentStatus,
    AdjustmentType,
    StockTakeStatus,
)


class MovementType(str, Enum):
    """Why an inventory quantity changed."""

    SALE = "SALE"
    PRODUCTION_CONSUME = "PRODUCTION_CONSUME"
    PRODUCTION_OUTPUT = "PRODUCTION_OUTPUT"
    ADJUSTMENT = "ADJUSTMENT"
    REPLENISH = "REPLENISH"


CONSUMING_MOVEMENT_TYPES: frozenset[MovementType] = frozenset({
    MovementType.SALE,
    MovementType.PRODUCTION_CONSUME,
})

REPLENISHING_MOVEMENT_TYPES: frozenset[MovementType] = frozenset({
    MovementType.REPLENISH,
    MovementType.PRODUCTION_OUTPUT,
})


# =========================================================================
# Inventory
# =========================================================================


@dataclass(frozen=True)
class InventoryItemInfo:
    """Read-only view of an inventory item."""

    id: UUID
    name: str
    category: str
    unit: str
    available_quantity: Decimal
    initial_quantity: Decimal
    cost_per_unit: Decimal
    price_per_unit: Decimal
    minimum_stock_level: Decimal
    is_active: bool
    expiration_date: date | None = None

    @property
    def is_low_stock(self) -> bool:
        return self.available_quantity <= self.minimum_stock_level


@dataclass(frozen=True)
class MovementRecord:
    """One immutable row of the movement ledger."""

    id: UUID
    inventory_item_id: UUID
    movement_type: MovementType
    quantity_delta: Decimal
    quantity_before: Decimal
    quantity_after: Decimal
    unit_cost: Decimal | None
    reference_type: str | None
    reference_id: str | None
    created_by: UUID
    created_at: datetime
    notes: str | None = None


class LedgerStatus(str, Enum):
    """Outcome of a ledger operation."""

    APPLIED = "applied"
    INSUFFICIENT_STOCK = "insufficient_stock"
    ITEM_NOT_FOUND = "item_not_found"
    ITEM_INACTIVE = "item_inactive"
    INVALID_STATE = "invalid_state"


@dataclass(frozen=True)
class LedgerResult:
    """Result of consume / replenish / apply_adjustment.

    Expected business conditions (not enough stock, unknown item, an
    adjustment that is not approved) come back here instead of being
    raised.  ``error`` holds the typed exception describing the
    condition so callers can report it.
    """

    status: LedgerStatus
    item_id: UUID
    movement: MovementRecord | None = None
    error: Exception | None = None

    @property
    def is_success(self) -> bool:
        return self.status == LedgerStatus.APPLIED

    @property
    def quantity_after(self) -> Decimal | None:
        return self.movement.quantity_after if self.movement else None

    @classmethod
    def applied(cls, movement: MovementRecord) -> LedgerResult:
        return cls(
            status=LedgerStatus.APPLIED,
            item_id=movement.inventory_item_id,
            movement=movement,
        )

    @classmethod
    def failed(cls, status: LedgerStatus, item_id: UUID, error: Exception) -> LedgerResult:
        return cls(status=status, item_id=item_id, error=error)


# =========================================================================
# Stock takes
# =========================================================================


@dataclass(frozen=True)
class StockTakeInfo:
    """Read-only view of a stock-take session."""

    id: UUID
    reference_number: str
    title: str
    description: str | None
    status: StockTakeStatus
    location: str
    initiated_by: UUID
    initiated_at: datetime
    started_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    total_items_counted: int
    total_variance_value: Decimal
    notes: str | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None

    @property
    def is_approved(self) -> bool:
        return self.approved_by is not None


@dataclass(frozen=True)
class StockTakeItemInfo:
    """Snapshot + count for one inventory item within a stock take."""

    id: UUID
    stock_take_id: UUID
    inventory_item_id: UUID
    item_name: str
    item_category: str
    unit: str
    system_quantity: Decimal
    physical_quantity: Decimal | None
    unit_cost: Decimal
    variance_quantity: Decimal | None
    variance_value: Decimal | None
    counted_by: UUID | None
    counted_at: datetime | None
    notes: str | None = None

    @property
    def is_counted(self) -> bool:
        return self.physical_quantity is not None

    @property
    def has_variance(self) -> bool:
        return bool(self.variance_quantity)


@dataclass(frozen=True)
class StockTakeDetail:
    """A stock take together with all of its items."""

    stock_take: StockTakeInfo
    items: tuple[StockTakeItemInfo, ...] = ()


@dataclass(frozen=True)
class VarianceReport:
    """Aggregated variance for one stock take.

    ``variance_items`` lists counted items with a non-zero variance,
    ordered by item name then id.
    """

    stock_take: StockTakeInfo
    total_items: int
    items_counted: int
    items_with_variance: int
    positive_variances: int
    negative_variances: int
    total_variance_value: Decimal
    variance_items: tuple[StockTakeItemInfo, ...] = field(default_factory=tuple)


# =========================================================================
# Adjustments
# =========================================================================


@dataclass(frozen=True)
class StockAdjustmentInfo:
    """Read-only view of a stock adjustment."""

    id: UUID
    reference_number: str
    stock_take_id: UUID | None
    inventory_item_id: UUID
    adjustment_type: AdjustmentType
    quantity_before: Decimal
    quantity_after: Decimal
    unit_cost: Decimal
    reason: str
    status: AdjustmentStatus
    created_by: UUID
    created_at: datetime
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    rejected_by: UUID | None = None
    rejected_at: datetime | None = None
    rejection_reason: str | None = None
    notes: str | None = None

    @property
    def adjustment_quantity(self) -> Decimal:
        return self.quantity_after - self.quantity_before

    @property
    def adjustment_value(self) -> Decimal:
        return self.adjustment_quantity * self.unit_cost


class ApprovalOutcome(str, Enum):
    """Outcome of ApprovalGate.approve."""

    APPROVED = "approved"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class ApprovalResult:
    """Result of approving an adjustment.

    ``ROLLED_BACK`` means the ledger refused the movement; the adjustment
    is back in ``pending`` and ``ledger_result`` says why.
    """

    outcome: ApprovalOutcome
    adjustment: StockAdjustmentInfo
    ledger_result: LedgerResult

    @property
    def is_success(self) -> bool:
        return self.outcome == ApprovalOutcome.APPROVED

    @property
    def movement(self) -> MovementRecord | None:
        return self.ledger_result.movement


# =========================================================================
# Statistics
# =========================================================================


@dataclass(frozen=True)
class MovementTotals:
    """Signed total and count of movements of one type in a date range."""

    movement_type: MovementType
    movement_count: int
    total_delta: Decimal


@dataclass(frozen=True)
class StockTakeStats:
    """Dashboard figures for the stock-take screens."""

    total_stock_takes: int
    active_stock_takes: int
    completed_this_month: int
    pending_adjustments: int
    total_variance_this_month: Decimal
