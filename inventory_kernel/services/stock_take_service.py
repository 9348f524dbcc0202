"""
StockTakeWorkflowService -- counting sessions from draft to adjustments.

Responsibility:
    Runs the stock-take lifecycle: create a draft, snapshot every active
    item at start, record physical counts, complete (caching the total
    variance), sign off, cancel, report, and turn variances into pending
    adjustments for the approval gate.

Architecture position:
    Kernel > Services.  Reads inventory items; never writes
    available_quantity (only the ledger does, after approval).

Invariants enforced:
    - Lifecycle follows STOCK_TAKE_WORKFLOW; every rejected action raises
      InvalidStateTransitionError before anything is written.
    - The snapshot is taken at start(), not at create().
    - Counts can only be recorded while the session is in_progress.
    - Uncounted items carry no variance and add zero to the cached total.
    - Adjustments are generated at most once per stock take, and only
      after completion.
    - Only a completed stock take can be signed off, once, by an approver
      role.  Sign-off does not change the status.

Failure modes:
    - StockTakeNotFoundError / StockTakeItemNotFoundError: unknown ids.
    - InvalidStateTransitionError: action not allowed in current status.
    - InvalidQuantityError: negative physical count.
    - AdjustmentsAlreadyGeneratedError: second generation attempt.
    - ApprovalPrivilegeError: sign-off by a role that is not an approver.
    - StockTakeAlreadyApprovedError: second sign-off.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from inventory_kernel.domain.actors import Actor
from inventory_kernel.domain.dtos import (
    StockAdjustmentInfo,
    StockTakeDetail,
    StockTakeInfo,
    StockTakeItemInfo,
    VarianceReport,
)
from inventory_kernel.domain.variance import (
    build_variance_report,
    compute_variance,
    total_variance_value,
)
from inventory_kernel.domain.workflow import (
    STOCK_TAKE_WORKFLOW,
    StockTakeStatus,
    classify_adjustment,
)
from inventory_kernel.domain.units import format_quantity
from inventory_kernel.exceptions import (
    AdjustmentsAlreadyGeneratedError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    StockTakeAlreadyApprovedError,
    StockTakeItemNotFoundError,
    StockTakeNotFoundError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.adjustment import StockAdjustment
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.models.stock_take import StockTake, StockTakeItem
from inventory_kernel.services.approval_gate import (
    DEFAULT_APPROVER_ROLES,
    create_pending_adjustment,
    require_approver_role,
)
from inventory_kernel.services.base import BaseService, as_quantity
from inventory_kernel.services.reference_service import ReferenceNumberService

logger = get_logger("services.stock_take")

VARIANCE_ADJUSTMENT_REASON = "Stock take variance"


class StockTakeWorkflowService(BaseService[StockTake]):
    """
    Stateful counting session over the inventory.

    Contract:
        Every method takes the acting ``Actor`` explicitly and returns
        frozen DTOs.  The caller owns the transaction.

    Non-goals:
        - Does NOT approve or apply adjustments (AdjustmentApprovalGate).
        - Does NOT list or filter sessions (StockTakeSelector).
    """

    def __init__(
        self,
        session,
        clock=None,
        references: ReferenceNumberService | None = None,
        default_location: str = "main",
        approver_roles: tuple[str, ...] = DEFAULT_APPROVER_ROLES,
    ):
        super().__init__(session, clock)
        self._references = references or ReferenceNumberService(session)
        self._default_location = default_location
        self._approver_roles = tuple(approver_roles)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def create(
        self,
        title: str,
        actor: Actor,
        description: str | None = None,
        location: str | None = None,
        notes: str | None = None,
    ) -> StockTakeInfo:
        """Persist a ``draft`` stock take with a fresh reference number."""
        if not title or not title.strip():
            raise ValueError("Stock take title is required")

        now = self._clock.now()
        stock_take = StockTake(
            reference_number=self._references.next_reference(ReferenceNumberService.STOCK_TAKE),
            title=title.strip(),
            description=description,
            status=StockTakeStatus.DRAFT.value,
            location=location or self._default_location,
            initiated_at=now,
            total_items_counted=0,
            total_variance_value=Decimal("0"),
            notes=notes,
            created_at=now,
            updated_at=now,
            created_by_id=actor.actor_id,
        )
        self.session.add(stock_take)
        self.session.flush()

        logger.info(
            "stock_take_created",
            extra={
                "stock_take_id": str(stock_take.id),
                "reference_number": stock_take.reference_number,
                "location": stock_take.location,
                "actor_id": str(actor.actor_id),
            },
        )
        return stock_take.to_dto()

    def start(self, stock_take_id: UUID, actor: Actor) -> StockTakeDetail:
        """Move to ``in_progress`` and snapshot every active item."""
        stock_take = self._load(stock_take_id, for_update=True)
        self._check_transition(stock_take, "start")

        now = self._clock.now()
        items = self.session.execute(
            select(InventoryItem)
            .where(InventoryItem.is_active.is_(True))
            .order_by(InventoryItem.name, InventoryItem.id)
            .execution_options(populate_existing=True)
        ).scalars().all()

        for item in items:
            self.session.add(StockTakeItem(
                stock_take_id=stock_take.id,
                inventory_item_id=item.id,
                item_name=item.name,
                item_category=item.category,
                unit=item.unit,
                system_quantity=item.available_quantity,
                unit_cost=item.cost_per_unit,
                physical_quantity=None,
                created_at=now,
                updated_at=now,
                created_by_id=actor.actor_id,
            ))

        stock_take.status = StockTakeStatus.IN_PROGRESS.value
        stock_take.started_at = now
        stock_take.started_by_id = actor.actor_id
        stock_take.touch(actor.actor_id, now)
        self.session.flush()
        self.session.expire(stock_take, ["items"])

        with LogContext.bind(stock_take_id=str(stock_take.id)):
            logger.info(
                "stock_take_started",
                extra={
                    "reference_number": stock_take.reference_number,
                    "item_count": len(items),
                    "actor_id": str(actor.actor_id),
                },
            )
        return self._detail(stock_take)

    def record_count(
        self,
        stock_take_item_id: UUID,
        physical_quantity: Decimal | int,
        actor: Actor,
        notes: str | None = None,
    ) -> StockTakeItemInfo:
        """Record (or re-record) the physical count for one item."""
        item = self.session.get(StockTakeItem, stock_take_item_id)
        if item is None:
            raise StockTakeItemNotFoundError(str(stock_take_item_id))
        stock_take = self._load(item.stock_take_id, for_update=True)
        self._check_transition(stock_take, "record_count")

        counted = as_quantity(physical_quantity)
        if counted < 0:
            raise InvalidQuantityError(counted, "physical count must not be negative")

        variance_quantity, variance_value = compute_variance(
            item.system_quantity, counted, item.unit_cost,
        )
        item.physical_quantity = counted
        item.variance_quantity = variance_quantity
        item.variance_value = variance_value
        item.counted_by_id = actor.actor_id
        item.counted_at = self._clock.now()
        item.touch(actor.actor_id, item.counted_at)
        if notes is not None:
            item.notes = notes
        self.session.flush()

        with LogContext.bind(stock_take_id=str(stock_take.id)):
            logger.info(
                "stock_count_recorded",
                extra={
                    "stock_take_item_id": str(item.id),
                    "item_name": item.item_name,
                    "system_quantity": str(item.system_quantity),
                    "physical_quantity": str(counted),
                    "variance_quantity": str(variance_quantity),
                    "actor_id": str(actor.actor_id),
                },
            )
        return item.to_dto()

    def complete(self, stock_take_id: UUID, actor: Actor) -> StockTakeInfo:
        """Move to ``completed`` and cache the variance totals."""
        stock_take = self._load(stock_take_id, for_update=True)
        self._check_transition(stock_take, "complete")

        items = [i.to_dto() for i in self._items(stock_take.id)]
        counted = [i for i in items if i.is_counted]

        stock_take.status = StockTakeStatus.COMPLETED.value
        stock_take.completed_at = self._clock.now()
        stock_take.completed_by_id = actor.actor_id
        stock_take.total_items_counted = len(counted)
        stock_take.total_variance_value = total_variance_value(counted)
        stock_take.touch(actor.actor_id, stock_take.completed_at)
        self.session.flush()

        with LogContext.bind(stock_take_id=str(stock_take.id)):
            logger.info(
                "stock_take_completed",
                extra={
                    "reference_number": stock_take.reference_number,
                    "items_counted": len(counted),
                    "items_uncounted": len(items) - len(counted),
                    "total_variance_value": str(stock_take.total_variance_value),
                    "actor_id": str(actor.actor_id),
                },
            )
        return stock_take.to_dto()

    def approve(self, stock_take_id: UUID, approver: Actor) -> StockTakeInfo:
        """Sign off a completed count.  Records who and when; status is unchanged."""
        stock_take = self._load(stock_take_id, for_update=True)
        if StockTakeStatus(stock_take.status) != StockTakeStatus.COMPLETED:
            logger.warning(
                "stock_take_transition_rejected",
                extra={
                    "stock_take_id": str(stock_take.id),
                    "status": stock_take.status,
                    "action": "approve",
                },
            )
            raise InvalidStateTransitionError(
                "StockTake", str(stock_take.id), stock_take.status, "approve",
            )
        require_approver_role(approver, self._approver_roles, "StockTake", stock_take.id)
        if stock_take.approved_by_id is not None:
            raise StockTakeAlreadyApprovedError(str(stock_take.id), str(stock_take.approved_by_id))

        stock_take.approved_by_id = approver.actor_id
        stock_take.approved_at = self._clock.now()
        stock_take.touch(approver.actor_id, stock_take.approved_at)
        self.session.flush()

        with LogContext.bind(stock_take_id=str(stock_take.id)):
            logger.info(
                "stock_take_approved",
                extra={
                    "reference_number": stock_take.reference_number,
                    "total_variance_value": str(stock_take.total_variance_value),
                    "actor_id": str(approver.actor_id),
                },
            )
        return stock_take.to_dto()

    def cancel(self, stock_take_id: UUID, actor: Actor, reason: str | None = None) -> StockTakeInfo:
        """Abandon a draft or in-progress stock take."""
        stock_take = self._load(stock_take_id, for_update=True)
        self._check_transition(stock_take, "cancel")

        stock_take.status = StockTakeStatus.CANCELLED.value
        stock_take.cancelled_at = self._clock.now()
        stock_take.cancelled_by_id = actor.actor_id
        stock_take.touch(actor.actor_id, stock_take.cancelled_at)
        if reason:
            stock_take.notes = f"{stock_take.notes}\n{reason}" if stock_take.notes else reason
        self.session.flush()

        logger.info(
            "stock_take_cancelled",
            extra={
                "stock_take_id": str(stock_take.id),
                "reference_number": stock_take.reference_number,
                "reason": reason,
                "actor_id": str(actor.actor_id),
            },
        )
        return stock_take.to_dto()

    # =========================================================================
    # Read side
    # =========================================================================

    def get_stock_take_with_items(self, stock_take_id: UUID) -> StockTakeDetail:
        return self._detail(self._load(stock_take_id))

    def generate_variance_report(self, stock_take_id: UUID) -> VarianceReport:
        """Aggregate variances.  Read-only; repeated calls agree."""
        stock_take = self._load(stock_take_id)
        return build_variance_report(
            stock_take.to_dto(),
            (i.to_dto() for i in self._items(stock_take.id)),
        )

    # =========================================================================
    # Adjustment generation
    # =========================================================================

    def create_adjustments_from_stock_take(
        self,
        stock_take_id: UUID,
        actor: Actor,
    ) -> list[StockAdjustmentInfo]:
        """One pending adjustment per counted item with non-zero variance.

        Does not touch the ledger; each adjustment still needs approval.
        """
        stock_take = self._load(stock_take_id, for_update=True)
        if StockTakeStatus(stock_take.status) != StockTakeStatus.COMPLETED:
            raise InvalidStateTransitionError(
                "StockTake", str(stock_take.id), stock_take.status, "create_adjustments",
            )

        existing = self.session.execute(
            select(func.count(StockAdjustment.id))
            .where(StockAdjustment.stock_take_id == stock_take.id)
        ).scalar_one()
        if existing:
            raise AdjustmentsAlreadyGeneratedError(str(stock_take.id), existing)

        created: list[StockAdjustmentInfo] = []
        for item in self._items(stock_take.id):
            if item.physical_quantity is None or not item.variance_quantity:
                continue
            adjustment = create_pending_adjustment(
                self.session,
                self._references,
                self._clock,
                inventory_item_id=item.inventory_item_id,
                adjustment_type=classify_adjustment(item.system_quantity, item.physical_quantity),
                quantity_before=item.system_quantity,
                quantity_after=item.physical_quantity,
                unit_cost=item.unit_cost,
                reason=VARIANCE_ADJUSTMENT_REASON,
                actor=actor,
                notes=(
                    f"Variance: {format_quantity(item.variance_quantity, item.unit)} "
                    f"| Stock Take: {stock_take.reference_number}"
                ),
                stock_take_id=stock_take.id,
                stock_take_item_id=item.id,
            )
            created.append(adjustment.to_dto())

        with LogContext.bind(stock_take_id=str(stock_take.id)):
            logger.info(
                "stock_take_adjustments_created",
                extra={
                    "reference_number": stock_take.reference_number,
                    "adjustment_count": len(created),
                    "actor_id": str(actor.actor_id),
                },
            )
        return created

    # =========================================================================
    # Internals
    # =========================================================================

    def _load(self, stock_take_id: UUID, for_update: bool = False) -> StockTake:
        stmt = select(StockTake).where(StockTake.id == stock_take_id)
        if for_update:
            stmt = stmt.with_for_update()
        stock_take = self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if stock_take is None:
            raise StockTakeNotFoundError(str(stock_take_id))
        return stock_take

    def _items(self, stock_take_id: UUID) -> list[StockTakeItem]:
        return list(self.session.execute(
            select(StockTakeItem)
            .where(StockTakeItem.stock_take_id == stock_take_id)
            .order_by(StockTakeItem.item_name, StockTakeItem.id)
        ).scalars())

    def _detail(self, stock_take: StockTake) -> StockTakeDetail:
        return StockTakeDetail(
            stock_take=stock_take.to_dto(),
            items=tuple(i.to_dto() for i in self._items(stock_take.id)),
        )

    def _check_transition(self, stock_take: StockTake, action: str) -> None:
        if STOCK_TAKE_WORKFLOW.transition_for(stock_take.status, action) is None:
            logger.warning(
                "stock_take_transition_rejected",
                extra={
                    "stock_take_id": str(stock_take.id),
                    "status": stock_take.status,
                    "action": action,
                },
            )
            raise InvalidStateTransitionError(
                "StockTake", str(stock_take.id), stock_take.status, action,
            )
