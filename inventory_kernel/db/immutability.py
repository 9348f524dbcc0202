"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The movement table is the audit trail of every gram of stock. Stock-take
snapshots are the baseline variances are measured against. Approved and
rejected adjustments are decisions someone signed. None of these may be
edited after the fact; corrections are new rows.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database. The listeners below inspect attribute history and raise
ImmutabilityViolationError before any SQL is sent:

    session.flush()
         |
         v
    [before_update] --> _check_*() --> ImmutabilityViolationError
    [before_delete] --> _check_*() -----------^
         |
         v
    SQL sent to database (only if checks pass)

The ledger changes available_quantity through single-statement UPDATEs
(not through the unit of work), so these listeners never see those
writes. Assigning available_quantity on an ORM object is blocked.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | Rule
------------------|----------------------------------------------------------
InventoryMovement | Never updated, never deleted
InventoryItem     | initial_quantity / available_quantity never assigned via
                  | the ORM; never deleted (deactivate instead)
StockTake         | Frozen once completed or cancelled, apart from the one-time
                  | sign-off of a completed count; never deleted
StockTakeItem     | Snapshot columns frozen; count columns change only while
                  | the parent stock take is in_progress; never deleted
StockAdjustment   | Frozen once approved or rejected; never deleted

updated_at / updated_by_id are audit metadata and may always change.

===============================================================================
USAGE
===============================================================================

    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # create_tables() calls this

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect, select
from sqlalchemy.orm.attributes import get_history

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.invariants import InventoryInvariant
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

_STOCK_TAKE_SIGN_OFF_FIELDS = frozenset({"approved_by_id", "approved_at"})

_STOCK_TAKE_ITEM_SNAPSHOT_FIELDS = frozenset({
    "stock_take_id",
    "inventory_item_id",
    "item_name",
    "item_category",
    "unit",
    "system_quantity",
    "unit_cost",
})


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    invariant = (
        InventoryInvariant.MOVEMENT_IMMUTABILITY
        if entity_type == "InventoryMovement"
        else InventoryInvariant.SNAPSHOT_IMMUTABILITY
        if entity_type == "StockTakeItem"
        else InventoryInvariant.ONE_WAY_LIFECYCLE
    )
    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": invariant.value,
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _changed_fields(target) -> list[str]:
    return [
        attr.key
        for attr in inspect(target).attrs
        if attr.key not in _AUDIT_FIELDS and attr.history.has_changes()
    ]


def _status_before_update(target) -> str:
    """Status as stored in the database before this flush."""
    history = get_history(target, "status")
    if history.deleted:
        old = history.deleted[0]
    else:
        old = target.status
    return old.value if hasattr(old, "value") else old


# ---------------------------------------------------------------------------
# InventoryMovement: append-only
# ---------------------------------------------------------------------------


def _check_movement_update(mapper, connection, target):
    _block("InventoryMovement", target, "UPDATE", "Inventory movements are append-only")


def _check_movement_delete(mapper, connection, target):
    _block("InventoryMovement", target, "DELETE", "Inventory movements cannot be deleted")


# ---------------------------------------------------------------------------
# InventoryItem: quantities owned by the ledger
# ---------------------------------------------------------------------------


def _check_inventory_item_update(mapper, connection, target):
    for field in ("initial_quantity", "available_quantity"):
        if get_history(target, field).has_changes():
            _block(
                "InventoryItem", target, "UPDATE",
                f"{field} can only change through ledger movements",
                field=field,
            )


def _check_inventory_item_delete(mapper, connection, target):
    _block(
        "InventoryItem", target, "DELETE",
        "Inventory items are deactivated, never deleted",
    )


# ---------------------------------------------------------------------------
# StockTake: frozen once terminal
# ---------------------------------------------------------------------------


def _check_stock_take_update(mapper, connection, target):
    old_status = _status_before_update(target)
    if old_status in ("completed", "cancelled"):
        changed = _changed_fields(target)
        if old_status == "completed" and _is_first_sign_off(target, changed):
            return
        if changed:
            _block(
                "StockTake", target, "UPDATE",
                f"Cannot modify field '{changed[0]}' on {old_status} stock take",
                field=changed[0],
            )


def _is_first_sign_off(target, changed: list[str]) -> bool:
    """Only the sign-off columns changed, and they were unset before."""
    if not changed or not set(changed) <= _STOCK_TAKE_SIGN_OFF_FIELDS:
        return False
    return not any(
        value is not None
        for field in _STOCK_TAKE_SIGN_OFF_FIELDS
        for value in get_history(target, field).deleted
    )


def _check_stock_take_delete(mapper, connection, target):
    _block("StockTake", target, "DELETE", "Stock takes cannot be deleted")


# ---------------------------------------------------------------------------
# StockTakeItem: snapshot frozen, counts only while in progress
# ---------------------------------------------------------------------------


def _check_stock_take_item_update(mapper, connection, target):
    from inventory_kernel.models.stock_take import StockTake

    changed = _changed_fields(target)
    for field in changed:
        if field in _STOCK_TAKE_ITEM_SNAPSHOT_FIELDS:
            _block(
                "StockTakeItem", target, "UPDATE",
                f"Snapshot field '{field}' is immutable",
                field=field,
            )

    if changed:
        parent_status = connection.execute(
            select(StockTake.status).where(StockTake.id == target.stock_take_id)
        ).scalar_one_or_none()
        if parent_status != "in_progress":
            _block(
                "StockTakeItem", target, "UPDATE",
                f"Counts can only change while the stock take is in progress "
                f"(status: {parent_status})",
                field=changed[0],
            )


def _check_stock_take_item_delete(mapper, connection, target):
    _block("StockTakeItem", target, "DELETE", "Stock take items cannot be deleted")


# ---------------------------------------------------------------------------
# StockAdjustment: frozen once terminal
# ---------------------------------------------------------------------------


def _check_adjustment_update(mapper, connection, target):
    old_status = _status_before_update(target)
    if old_status in ("approved", "rejected"):
        changed = _changed_fields(target)
        if changed:
            _block(
                "StockAdjustment", target, "UPDATE",
                f"Cannot modify field '{changed[0]}' on {old_status} adjustment",
                field=changed[0],
            )


def _check_adjustment_delete(mapper, connection, target):
    _block("StockAdjustment", target, "DELETE", "Stock adjustments cannot be deleted")


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def _listeners():
    from inventory_kernel.models.adjustment import StockAdjustment
    from inventory_kernel.models.inventory_item import InventoryItem
    from inventory_kernel.models.movement import InventoryMovement
    from inventory_kernel.models.stock_take import StockTake, StockTakeItem

    return (
        (InventoryMovement, "before_update", _check_movement_update),
        (InventoryMovement, "before_delete", _check_movement_delete),
        (InventoryItem, "before_update", _check_inventory_item_update),
        (InventoryItem, "before_delete", _check_inventory_item_delete),
        (StockTake, "before_update", _check_stock_take_update),
        (StockTake, "before_delete", _check_stock_take_delete),
        (StockTakeItem, "before_update", _check_stock_take_item_update),
        (StockTakeItem, "before_delete", _check_stock_take_item_delete),
        (StockAdjustment, "before_update", _check_adjustment_update),
        (StockAdjustment, "before_delete", _check_adjustment_delete),
    )


def register_immutability_listeners() -> None:
    """
    Register all immutability enforcement event listeners.

    Idempotent: already-registered listeners are skipped.
    """
    for target, event_name, fn in _listeners():
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that must violate the rules on purpose.
    """
    for target, event_name, fn in _listeners():
        if event.contains(target, event_name, fn):
            event.remove(target, event_name, fn)
