"""
Sale Deduction Service (``inventory_modules.sales.service``).

Responsibility
--------------
Takes stock for a completed order.  Each sold line is routed to the
composite engine when a recipe exists, otherwise to the category
fallback.  This is a **thin glue layer**; the deduction rules live in
``deduction.py`` and ``category.py``.

Architecture
------------
Layer: **Modules** -- stateful orchestration wrapper over the kernel
ledger.

Invariants
----------
- Each ``deduct_order`` call owns its transaction boundary: commit on
  completion, rollback on any store fault.
- When ``block_sale_on_shortfall`` is set and any line falls short, the
  whole order's deductions are rolled back and ``sale_may_complete`` is
  false.  Otherwise the sale completes and the shortfall is logged.

Failure Modes
-------------
- Store faults (SQLAlchemy errors) roll back and re-raise.
- Programming errors (non-positive quantity) roll back and re-raise.

Usage::

    service = SaleDeductionService(session, get_active_config(), clock)
    report = service.deduct_order(
        order_id="SO-1042",
        lines=[SaleLine("Chocolate Sundae", "Sundaes", 2), SaleLine("Vanilla", "Flavors", 3)],
        actor=clerk,
    )
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session

from inventory_config.schema import ShopConfiguration
from inventory_kernel.domain.actors import Actor
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.services.ledger_service import InventoryLedgerService
from inventory_modules.sales.category import SimpleCategoryDeduction
from inventory_modules.sales.deduction import CompositeDeductionEngine
from inventory_modules.sales.models import (
    OrderDeductionReport,
    SaleLine,
    SaleLineKind,
    SaleLineResult,
)
from inventory_modules.sales.recipes import RecipeCatalog
from inventory_modules.sales.resolver import IngredientResolver
from inventory_modules.sales.sources import InventoryBackedSource, LegacyBatchBackedSource

logger = get_logger("modules.sales.service")


class SaleDeductionService:
    """
    Order-level stock deduction.

    Contract
    --------
    Receives a SQLAlchemy ``Session``, the active ``ShopConfiguration`` and
    an optional ``Clock``.  Every public method commits on success and
    rolls back on failure.

    Non-goals
    ---------
    - Does NOT mark orders complete; it reports whether they may be.
    - Does NOT price or invoice anything.
    """

    def __init__(
        self,
        session: Session,
        config: ShopConfiguration,
        clock: Clock | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._block_on_shortfall = config.policies.block_sale_on_shortfall

        self._ledger = InventoryLedgerService(
            session, self._clock, cost_policy=config.policies.cost_policy,
        )
        resolver = IngredientResolver(session, config.ingredient_map)
        self._catalog = RecipeCatalog.from_config(config)
        self._engine = CompositeDeductionEngine(self._catalog, resolver, self._ledger)
        self._fallback = SimpleCategoryDeduction(
            config.category_deductions,
            (InventoryBackedSource(self._ledger, resolver), LegacyBatchBackedSource(session)),
        )

    @property
    def catalog(self) -> RecipeCatalog:
        return self._catalog

    @property
    def engine(self) -> CompositeDeductionEngine:
        return self._engine

    def deduct_order(
        self,
        order_id: str,
        lines: Sequence[SaleLine],
        actor: Actor,
    ) -> OrderDeductionReport:
        """
        Deduct stock for every line of an order.

        Postconditions:
            - One SALE movement per deducted ingredient / product.
            - Session committed unless the order was blocked or a fault
              occurred.

        Raises:
            Exception: Propagates store faults after rolling back.
        """
        with LogContext.bind(reference_id=order_id, actor_id=str(actor.actor_id)):
            try:
                results = tuple(self._deduct_line(order_id, line, actor) for line in lines)
                success = all(r.success for r in results)
                may_complete = success or not self._block_on_shortfall

                if may_complete:
                    self._session.commit()
                else:
                    self._session.rollback()
            except Exception:
                self._session.rollback()
                logger.exception("order_deduction_failed", extra={"order_id": order_id})
                raise

            report = OrderDeductionReport(
                order_id=order_id,
                lines=results,
                success=success,
                sale_may_complete=may_complete,
                committed=may_complete,
            )
            if success:
                logger.info(
                    "order_deduction_completed",
                    extra={"order_id": order_id, "line_count": len(results)},
                )
            else:
                logger.warning(
                    "order_deduction_shortfall",
                    extra={
                        "order_id": order_id,
                        "line_count": len(results),
                        "failed_lines": [r.line.product_name for r in report.shortfalls],
                        "errors": [e for r in report.shortfalls for e in r.errors],
                        "sale_may_complete": may_complete,
                    },
                )
            return report

    def _deduct_line(self, order_id: str, line: SaleLine, actor: Actor) -> SaleLineResult:
        if self._catalog.is_composite(line.product_name):
            result = self._engine.deduct_composite_ingredients(
                line.product_name, line.quantity, order_id, actor,
            )
            return SaleLineResult(
                line=line,
                kind=SaleLineKind.COMPOSITE,
                success=result.success,
                composite=result,
            )

        result = self._fallback.deduct(
            line.product_name, line.category, line.quantity, order_id, actor,
        )
        return SaleLineResult(
            line=line,
            kind=SaleLineKind.CATEGORY,
            success=result.success,
            category=result,
        )
