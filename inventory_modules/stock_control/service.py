"""
Stock Control Service (``inventory_modules.stock_control.service``).

Responsibility
--------------
Runs the back-office side of the shop: registering and replenishing
items, counting stock, and deciding the adjustments a count produces.
This is a **thin glue layer**; the rules live in the kernel's
``InventoryLedgerService``, ``StockTakeWorkflowService`` and
``AdjustmentApprovalGate``.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper.

1. Builds ``ReferenceNumberService`` from the configured prefixes and width.
2. Builds the ledger with the configured cost policy.
3. Builds the approval gate with the configured approver and
   self-approval roles, and the stock-take workflow with the same
   approver roles for count sign-off.

Invariants
----------
- Each public method owns its transaction boundary.  Kernel services only
  flush; this service calls ``session.commit()`` on success and
  ``session.rollback()`` on failure.
- A ``ROLLED_BACK`` approval is still committed: the adjustment's return
  to ``pending`` is the recorded outcome.

Failure Modes
-------------
- Kernel exceptions (``InvalidStateTransitionError``,
  ``ApprovalPrivilegeError``, ``SelfApprovalError``, ...) roll back and
  propagate unchanged.
- A ledger refusal from ``replenish`` rolls back and is returned.

Usage::

    control = StockControlService(session, get_active_config(), clock)
    take = control.create_stock_take("Monthly count", actor=manager)
    detail = control.start_stock_take(take.id, actor=manager)
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from inventory_config.schema import ShopConfiguration
from inventory_kernel.domain.actors import Actor
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    ApprovalResult,
    InventoryItemInfo,
    LedgerResult,
    StockAdjustmentInfo,
    StockTakeDetail,
    StockTakeInfo,
    StockTakeItemInfo,
    VarianceReport,
)
from inventory_kernel.domain.workflow import AdjustmentType
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.services.approval_gate import AdjustmentApprovalGate
from inventory_kernel.services.ledger_service import InventoryLedgerService
from inventory_kernel.services.reference_service import ReferenceNumberService
from inventory_kernel.services.stock_take_service import StockTakeWorkflowService

logger = get_logger("modules.stock_control.service")

T = TypeVar("T")


class StockControlService:
    """
    Configured stock-control operations.

    Contract
    --------
    Receives a SQLAlchemy ``Session``, the active ``ShopConfiguration`` and
    an optional ``Clock``.  Every public method commits on success and
    rolls back on failure.

    Non-goals
    ---------
    - Does NOT authenticate actors; roles are taken as given.
    - Does NOT take stock for sales (``SaleDeductionService``).
    """

    def __init__(
        self,
        session: Session,
        config: ShopConfiguration,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        policies = config.policies

        references = ReferenceNumberService(
            session,
            prefixes={
                ReferenceNumberService.STOCK_TAKE: policies.stock_take_prefix,
                ReferenceNumberService.ADJUSTMENT: policies.adjustment_prefix,
            },
            width=policies.reference_width,
        )
        self._ledger = InventoryLedgerService(
            session, self._clock, cost_policy=policies.cost_policy,
        )
        self._workflow = StockTakeWorkflowService(
            session,
            self._clock,
            references=references,
            default_location=policies.default_location,
            approver_roles=policies.approver_roles,
        )
        self._gate = AdjustmentApprovalGate(
            session,
            self._ledger,
            self._clock,
            references=references,
            approver_roles=policies.approver_roles,
            self_approval_roles=policies.self_approval_roles,
        )

    # =========================================================================
    # Items
    # =========================================================================

    def register_item(
        self,
        name: str,
        category: str,
        unit: str,
        actor: Actor,
        initial_quantity: Decimal | int = 0,
        cost_per_unit: Decimal | int = 0,
        price_per_unit: Decimal | int = 0,
        minimum_stock_level: Decimal | int = 0,
        expiration_date: date | None = None,
    ) -> InventoryItemInfo:
        return self._run(
            "register_item",
            actor,
            lambda: self._ledger.register_item(
                name,
                category,
                unit,
                actor,
                initial_quantity=initial_quantity,
                cost_per_unit=cost_per_unit,
                price_per_unit=price_per_unit,
                minimum_stock_level=minimum_stock_level,
                expiration_date=expiration_date,
            ),
        )

    def set_expiration_date(
        self,
        item_id: UUID,
        expiration_date: date | None,
        actor: Actor,
    ) -> InventoryItemInfo:
        return self._run(
            "set_expiration_date",
            actor,
            lambda: self._ledger.set_expiration_date(item_id, expiration_date, actor),
        )

    def receive_delivery(
        self,
        item_id: UUID,
        quantity: Decimal | int,
        unit_cost: Decimal | int | None,
        reference_number: str | None,
        actor: Actor,
        notes: str | None = None,
    ) -> LedgerResult:
        """
        Book a supplier delivery as a REPLENISH movement.

        Postconditions:
            - Committed when the ledger applied the movement, rolled back
              otherwise (unknown or inactive item).
        """
        with LogContext.bind(reference_id=reference_number, actor_id=str(actor.actor_id)):
            try:
                result = self._ledger.replenish(
                    item_id, quantity, unit_cost, reference_number, actor, notes,
                )
                if result.is_success:
                    self._session.commit()
                else:
                    self._session.rollback()
                return result
            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Stock takes
    # =========================================================================

    def create_stock_take(
        self,
        title: str,
        actor: Actor,
        description: str | None = None,
        location: str | None = None,
        notes: str | None = None,
    ) -> StockTakeInfo:
        return self._run(
            "create_stock_take",
            actor,
            lambda: self._workflow.create(title, actor, description, location, notes),
        )

    def start_stock_take(self, stock_take_id: UUID, actor: Actor) -> StockTakeDetail:
        return self._run(
            "start_stock_take", actor, lambda: self._workflow.start(stock_take_id, actor),
        )

    def record_count(
        self,
        stock_take_item_id: UUID,
        physical_quantity: Decimal | int,
        actor: Actor,
        notes: str | None = None,
    ) -> StockTakeItemInfo:
        return self._run(
            "record_count",
            actor,
            lambda: self._workflow.record_count(stock_take_item_id, physical_quantity, actor, notes),
        )

    def complete_stock_take(
        self,
        stock_take_id: UUID,
        actor: Actor,
        generate_adjustments: bool = True,
    ) -> tuple[StockTakeInfo, list[StockAdjustmentInfo]]:
        """
        Complete a count and, by default, raise its pending adjustments.

        Both steps commit together or not at all.
        """

        def _complete() -> tuple[StockTakeInfo, list[StockAdjustmentInfo]]:
            info = self._workflow.complete(stock_take_id, actor)
            adjustments: list[StockAdjustmentInfo] = []
            if generate_adjustments:
                adjustments = self._workflow.create_adjustments_from_stock_take(
                    stock_take_id, actor,
                )
            return info, adjustments

        return self._run("complete_stock_take", actor, _complete)

    def approve_stock_take(self, stock_take_id: UUID, approver: Actor) -> StockTakeInfo:
        return self._run(
            "approve_stock_take", approver, lambda: self._workflow.approve(stock_take_id, approver),
        )

    def cancel_stock_take(
        self,
        stock_take_id: UUID,
        actor: Actor,
        reason: str | None = None,
    ) -> StockTakeInfo:
        return self._run(
            "cancel_stock_take", actor, lambda: self._workflow.cancel(stock_take_id, actor, reason),
        )

    def variance_report(self, stock_take_id: UUID) -> VarianceReport:
        return self._workflow.generate_variance_report(stock_take_id)

    # =========================================================================
    # Adjustments
    # =========================================================================

    def request_adjustment(
        self,
        item_id: UUID,
        adjustment_type: AdjustmentType | str,
        quantity_after: Decimal | int,
        reason: str,
        actor: Actor,
        notes: str | None = None,
    ) -> StockAdjustmentInfo:
        return self._run(
            "request_adjustment",
            actor,
            lambda: self._gate.request_adjustment(
                item_id, adjustment_type, quantity_after, reason, actor, notes,
            ),
        )

    def approve_adjustment(self, adjustment_id: UUID, approver: Actor) -> ApprovalResult:
        return self._run(
            "approve_adjustment", approver, lambda: self._gate.approve(adjustment_id, approver),
        )

    def reject_adjustment(
        self,
        adjustment_id: UUID,
        actor: Actor,
        reason: str,
    ) -> StockAdjustmentInfo:
        return self._run(
            "reject_adjustment", actor, lambda: self._gate.reject(adjustment_id, actor, reason),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _run(self, operation: str, actor: Actor, call: Callable[[], T]) -> T:
        with LogContext.bind(actor_id=str(actor.actor_id)):
            try:
                result = call()
                self._session.commit()
                return result
            except Exception:
                self._session.rollback()
                logger.warning(
                    "stock_control_rolled_back",
                    extra={"operation": operation},
                    exc_info=True,
                )
                raise
