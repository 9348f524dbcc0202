"""
AdjustmentApprovalGate -- second-actor approval of inventory corrections.

Responsibility:
    Holds variance-driven and manual adjustments in ``pending`` until a
    privileged actor approves or rejects them.  Approval applies the
    adjustment through the ledger; rejection has no ledger effect.

Architecture position:
    Kernel > Services.  Composes InventoryLedgerService and
    ReferenceNumberService.

Invariants enforced:
    - Only ``pending`` adjustments can be decided; ``approved`` and
      ``rejected`` are terminal.
    - Approver holds one of the approver roles (manager / admin by
      default) and is not the creator, unless their role is allowed to
      self-approve.
    - Approval and ledger application are all-or-nothing: when the ledger
      refuses the movement the adjustment is put back to ``pending``
      with approved_by / approved_at cleared.
    - Concurrent approvals of the same adjustment cannot both apply: the
      pending -> approved claim is a conditional UPDATE.

Failure modes:
    - AdjustmentNotFoundError: unknown id.
    - InvalidStateTransitionError: adjustment is not pending.
    - ApprovalPrivilegeError: approver's role is not allowed.
    - SelfApprovalError: creator approving their own adjustment.
    All raised before any mutation.
"""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update

from inventory_kernel.domain.actors import Actor
from inventory_kernel.domain.dtos import (
    ApprovalOutcome,
    ApprovalResult,
    StockAdjustmentInfo,
)
from inventory_kernel.domain.workflow import (
    ADJUSTMENT_WORKFLOW,
    AdjustmentStatus,
    AdjustmentType,
)
from inventory_kernel.exceptions import (
    AdjustmentNotFoundError,
    ApprovalPrivilegeError,
    InvalidAdjustmentError,
    InvalidStateTransitionError,
    InventoryItemNotFoundError,
    SelfApprovalError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.adjustment import StockAdjustment
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.services.base import BaseService, as_quantity
from inventory_kernel.services.ledger_service import InventoryLedgerService
from inventory_kernel.services.reference_service import ReferenceNumberService

logger = get_logger("services.approval_gate")

DEFAULT_APPROVER_ROLES: tuple[str, ...] = ("manager", "admin")
DEFAULT_SELF_APPROVAL_ROLES: tuple[str, ...] = ("admin",)


def require_approver_role(
    actor: Actor,
    approver_roles: tuple[str, ...],
    entity_type: str,
    entity_id: UUID,
) -> None:
    """Raise ApprovalPrivilegeError unless ``actor`` holds an approver role."""
    if not actor.has_role(approver_roles):
        logger.warning(
            "approval_privilege_denied",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "actor_id": str(actor.actor_id),
                "actor_role": actor.role,
            },
        )
        raise ApprovalPrivilegeError(str(actor.actor_id), actor.role, approver_roles)


def create_pending_adjustment(
    session,
    references: ReferenceNumberService,
    clock,
    *,
    inventory_item_id: UUID,
    adjustment_type: AdjustmentType,
    quantity_before: Decimal,
    quantity_after: Decimal,
    unit_cost: Decimal,
    reason: str,
    actor: Actor,
    notes: str | None = None,
    stock_take_id: UUID | None = None,
    stock_take_item_id: UUID | None = None,
) -> StockAdjustment:
    """Insert one ``pending`` adjustment row and flush it."""
    now = clock.now()
    adjustment = StockAdjustment(
        reference_number=references.next_reference(ReferenceNumberService.ADJUSTMENT),
        stock_take_id=stock_take_id,
        stock_take_item_id=stock_take_item_id,
        inventory_item_id=inventory_item_id,
        adjustment_type=AdjustmentType(adjustment_type).value,
        quantity_before=quantity_before,
        quantity_after=quantity_after,
        unit_cost=unit_cost,
        reason=reason,
        notes=notes,
        status=AdjustmentStatus.PENDING.value,
        created_at=now,
        updated_at=now,
        created_by_id=actor.actor_id,
    )
    session.add(adjustment)
    session.flush()
    logger.info(
        "adjustment_requested",
        extra={
            "adjustment_id": str(adjustment.id),
            "reference_number": adjustment.reference_number,
            "item_id": str(inventory_item_id),
            "adjustment_type": adjustment.adjustment_type,
            "quantity_before": str(quantity_before),
            "quantity_after": str(quantity_after),
            "stock_take_id": str(stock_take_id) if stock_take_id else None,
            "actor_id": str(actor.actor_id),
        },
    )
    return adjustment


class AdjustmentApprovalGate(BaseService[StockAdjustment]):
    """
    Two-actor control in front of ``InventoryLedgerService.apply_adjustment``.

    Contract:
        ``approve`` returns an ApprovalResult.  ``APPROVED`` carries the
        ledger movement; ``ROLLED_BACK`` carries the ledger's refusal and
        the adjustment is ``pending`` again.

    Non-goals:
        - Does NOT commit.
        - Does NOT authenticate actors; roles are taken as given.
    """

    def __init__(
        self,
        session,
        ledger: InventoryLedgerService,
        clock=None,
        references: ReferenceNumberService | None = None,
        approver_roles: tuple[str, ...] = DEFAULT_APPROVER_ROLES,
        self_approval_roles: tuple[str, ...] = DEFAULT_SELF_APPROVAL_ROLES,
    ):
        super().__init__(session, clock)
        self._ledger = ledger
        self._references = references or ReferenceNumberService(session)
        self._approver_roles = tuple(approver_roles)
        self._self_approval_roles = tuple(self_approval_roles)

    # =========================================================================
    # Requests
    # =========================================================================

    def request_adjustment(
        self,
        item_id: UUID,
        adjustment_type: AdjustmentType | str,
        quantity_after: Decimal | int,
        reason: str,
        actor: Actor,
        notes: str | None = None,
        stock_take_id: UUID | None = None,
    ) -> StockAdjustmentInfo:
        """Propose a manual correction to the current on-hand quantity.

        quantity_before is the item's available quantity right now.

        Raises:
            InventoryItemNotFoundError: unknown item.
            InvalidAdjustmentError: negative target, no change, or a
                direction that contradicts ``adjustment_type``.
        """
        adjustment_type = AdjustmentType(adjustment_type)
        target = as_quantity(quantity_after)
        if not reason or not reason.strip():
            raise InvalidAdjustmentError("a reason is required")

        item = self.session.get(InventoryItem, item_id, populate_existing=True)
        if item is None:
            raise InventoryItemNotFoundError(str(item_id))
        current = item.available_quantity

        if target < 0:
            raise InvalidAdjustmentError("quantity_after must not be negative")
        if target == current:
            raise InvalidAdjustmentError("quantity_after equals the current quantity")
        if adjustment_type == AdjustmentType.INCREASE and target < current:
            raise InvalidAdjustmentError("an increase must raise the quantity")
        if adjustment_type == AdjustmentType.DECREASE and target > current:
            raise InvalidAdjustmentError("a decrease must lower the quantity")

        adjustment = create_pending_adjustment(
            self.session,
            self._references,
            self._clock,
            inventory_item_id=item_id,
            adjustment_type=adjustment_type,
            quantity_before=current,
            quantity_after=target,
            unit_cost=item.cost_per_unit,
            reason=reason.strip(),
            actor=actor,
            notes=notes,
            stock_take_id=stock_take_id,
        )
        return adjustment.to_dto()

    # =========================================================================
    # Decisions
    # =========================================================================

    def approve(self, adjustment_id: UUID, approver: Actor) -> ApprovalResult:
        """Approve a pending adjustment and apply it to the ledger."""
        adjustment = self._load(adjustment_id)
        self._check_transition(adjustment, "approve")
        self._check_privilege(approver, adjustment_id)
        if (
            approver.actor_id == adjustment.created_by_id
            and not approver.has_role(self._self_approval_roles)
        ):
            logger.warning(
                "self_approval_blocked",
                extra={"adjustment_id": str(adjustment_id), "actor_id": str(approver.actor_id)},
            )
            raise SelfApprovalError(str(adjustment_id), str(approver.actor_id))

        now = self._clock.now()
        claimed = self.session.execute(
            update(StockAdjustment)
            .where(
                StockAdjustment.id == adjustment_id,
                StockAdjustment.status == AdjustmentStatus.PENDING.value,
            )
            .values(
                status=AdjustmentStatus.APPROVED.value,
                approved_by_id=approver.actor_id,
                approved_at=now,
                updated_by_id=approver.actor_id,
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        if claimed != 1:
            # decided by another session since we loaded it
            self.session.refresh(adjustment)
            raise InvalidStateTransitionError(
                "StockAdjustment", str(adjustment_id), adjustment.status, "approve",
            )

        approved = replace(
            adjustment.to_dto(),
            status=AdjustmentStatus.APPROVED,
            approved_by=approver.actor_id,
            approved_at=now,
        )
        try:
            ledger_result = self._ledger.apply_adjustment(approved, approver)
        except Exception:
            self._release(adjustment_id)
            raise

        if not ledger_result.is_success:
            self._release(adjustment_id)
            self.session.refresh(adjustment)
            logger.warning(
                "adjustment_rolled_back",
                extra={
                    "adjustment_id": str(adjustment_id),
                    "reference_number": adjustment.reference_number,
                    "ledger_status": ledger_result.status.value,
                    "error": str(ledger_result.error),
                    "actor_id": str(approver.actor_id),
                },
            )
            return ApprovalResult(
                outcome=ApprovalOutcome.ROLLED_BACK,
                adjustment=adjustment.to_dto(),
                ledger_result=ledger_result,
            )

        self.session.execute(
            update(StockAdjustment)
            .where(StockAdjustment.id == adjustment_id)
            .values(movement_id=ledger_result.movement.id)
            .execution_options(synchronize_session=False)
        )
        self.session.refresh(adjustment)

        logger.info(
            "adjustment_approved",
            extra={
                "adjustment_id": str(adjustment_id),
                "reference_number": adjustment.reference_number,
                "movement_id": str(ledger_result.movement.id),
                "quantity_after": str(ledger_result.movement.quantity_after),
                "actor_id": str(approver.actor_id),
            },
        )
        return ApprovalResult(
            outcome=ApprovalOutcome.APPROVED,
            adjustment=adjustment.to_dto(),
            ledger_result=ledger_result,
        )

    def reject(self, adjustment_id: UUID, actor: Actor, reason: str) -> StockAdjustmentInfo:
        """Reject a pending adjustment.  Terminal; the ledger is untouched."""
        adjustment = self._load(adjustment_id)
        self._check_transition(adjustment, "reject")
        self._check_privilege(actor, adjustment_id)

        adjustment.status = AdjustmentStatus.REJECTED.value
        adjustment.rejected_by_id = actor.actor_id
        adjustment.rejected_at = self._clock.now()
        adjustment.rejection_reason = reason
        adjustment.touch(actor.actor_id, adjustment.rejected_at)
        self.session.flush()

        logger.info(
            "adjustment_rejected",
            extra={
                "adjustment_id": str(adjustment_id),
                "reference_number": adjustment.reference_number,
                "reason": reason,
                "actor_id": str(actor.actor_id),
            },
        )
        return adjustment.to_dto()

    def get_adjustment(self, adjustment_id: UUID) -> StockAdjustmentInfo:
        return self._load(adjustment_id, for_update=False).to_dto()

    # =========================================================================
    # Internals
    # =========================================================================

    def _load(self, adjustment_id: UUID, for_update: bool = True) -> StockAdjustment:
        stmt = select(StockAdjustment).where(StockAdjustment.id == adjustment_id)
        if for_update:
            stmt = stmt.with_for_update()
        adjustment = self.session.execute(
            stmt.execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if adjustment is None:
            raise AdjustmentNotFoundError(str(adjustment_id))
        return adjustment

    def _check_transition(self, adjustment: StockAdjustment, action: str) -> None:
        if ADJUSTMENT_WORKFLOW.transition_for(adjustment.status, action) is None:
            logger.warning(
                "adjustment_transition_rejected",
                extra={
                    "adjustment_id": str(adjustment.id),
                    "status": adjustment.status,
                    "action": action,
                },
            )
            raise InvalidStateTransitionError(
                "StockAdjustment", str(adjustment.id), adjustment.status, action,
            )

    def _check_privilege(self, actor: Actor, adjustment_id: UUID) -> None:
        require_approver_role(actor, self._approver_roles, "StockAdjustment", adjustment_id)

    def _release(self, adjustment_id: UUID) -> None:
        """Undo the pending -> approved claim of an unapplied approval."""
        self.session.execute(
            update(StockAdjustment)
            .where(
                StockAdjustment.id == adjustment_id,
                StockAdjustment.status == AdjustmentStatus.APPROVED.value,
                StockAdjustment.movement_id.is_(None),
            )
            .values(
                status=AdjustmentStatus.PENDING.value,
                approved_by_id=None,
                approved_at=None,
            )
            .execution_options(synchronize_session=False)
        )
