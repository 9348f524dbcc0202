"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock errors have to be handled precisely. A sale that runs short on cherries
is an everyday event; an inventory item stored in "pcs" that a recipe tries
to deduct in grams is a data problem. Callers must be able to tell the two
apart without parsing message strings.

Every exception therefore:
  1. Has its own class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA (ids, quantities) as attributes

Example:
    result = ledger.consume(item_id, Decimal("30"), MovementType.SALE, ...)
    if not result.is_success and isinstance(result.error, InsufficientStockError):
        notify(f"only {result.error.available} {result.error.unit} left")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- UnitError
    |   +-- UnknownUnitError
    |   +-- IncompatibleUnitsError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- InventoryItemNotFoundError
    |   +-- InventoryItemInactiveError
    |   +-- InvalidQuantityError
    |   +-- InvalidMovementTypeError
    |
    +-- WorkflowError
    |   +-- InvalidStateTransitionError
    |   +-- StockTakeNotFoundError
    |   +-- StockTakeItemNotFoundError
    |   +-- AdjustmentsAlreadyGeneratedError
    |   +-- StockTakeAlreadyApprovedError
    |
    +-- ApprovalError
    |   +-- ApprovalPrivilegeError
    |   +-- SelfApprovalError
    |   +-- AdjustmentNotFoundError
    |   +-- InvalidAdjustmentError
    |
    +-- CatalogError
    |   +-- RecipeNotFoundError
    |   +-- UnsupportedCategoryError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- IntegrityError
        +-- LedgerDriftError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                          | When Raised
-------------|-------------------------------|--------------------------------------
Unit         | UNKNOWN_UNIT                  | Unit string not in any unit family
             | INCOMPATIBLE_UNITS            | Conversion across families (g -> pcs)
-------------|-------------------------------|--------------------------------------
Stock        | INSUFFICIENT_STOCK            | Consumption exceeds on-hand quantity
             | INVENTORY_ITEM_NOT_FOUND      | Item id doesn't exist
             | INVENTORY_ITEM_INACTIVE       | Item deactivated
             | INVALID_QUANTITY              | Zero / negative movement quantity
             | INVALID_MOVEMENT_TYPE         | Movement type not valid for operation
-------------|-------------------------------|--------------------------------------
Workflow     | INVALID_STATE_TRANSITION      | Action not allowed in current status
             | STOCK_TAKE_NOT_FOUND          | Stock-take id doesn't exist
             | STOCK_TAKE_ITEM_NOT_FOUND     | Stock-take item id doesn't exist
             | ADJUSTMENTS_ALREADY_GENERATED | Stock-take already produced adjustments
             | STOCK_TAKE_ALREADY_APPROVED   | Completed stock-take already signed off
-------------|-------------------------------|--------------------------------------
Approval     | APPROVAL_PRIVILEGE            | Approver role not allowed
             | SELF_APPROVAL                 | Creator approving own adjustment
             | ADJUSTMENT_NOT_FOUND          | Adjustment id doesn't exist
             | INVALID_ADJUSTMENT            | Adjustment request is malformed
-------------|-------------------------------|--------------------------------------
Catalog      | RECIPE_NOT_FOUND              | No recipe for composite item name
             | UNSUPPORTED_CATEGORY          | No fallback deduction for category
-------------|-------------------------------|--------------------------------------
Immutability | IMMUTABILITY_VIOLATION        | Modifying an append-only record
-------------|-------------------------------|--------------------------------------
Integrity    | LEDGER_DRIFT                  | On-hand != initial + sum(movements)

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Recoverable conditions (InsufficientStockError, RecipeNotFoundError) are
   returned inside result objects by the ledger and the deduction engine, or
   raised and caught one level up. Callers decide whether to skip, fall back
   or report.

2. Programming / data errors (IncompatibleUnitsError, InvalidQuantityError,
   InvalidMovementTypeError) are raised and must not be absorbed silently.

3. Workflow and approval errors are raised before any mutation, so catching
   them never requires cleanup.

4. LedgerDriftError and ImmutabilityViolationError mean the audit trail is
   no longer trustworthy. Stop and investigate.
"""

from decimal import Decimal


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Unit conversion exceptions


class UnitError(InventoryKernelError):
    """Base exception for unit handling errors."""

    code: str = "UNIT_ERROR"


class UnknownUnitError(UnitError):
    """Unit string does not belong to any supported unit family."""

    code: str = "UNKNOWN_UNIT"

    def __init__(self, unit: str):
        self.unit = unit
        super().__init__(f"Unknown unit: {unit!r}")


class IncompatibleUnitsError(UnitError):
    """
    Conversion requested between two different unit families.

    Indicates a data-integrity problem: a recipe and an inventory record
    disagree about what kind of quantity an ingredient is.
    """

    code: str = "INCOMPATIBLE_UNITS"

    def __init__(self, from_unit: str, to_unit: str):
        self.from_unit = from_unit
        self.to_unit = to_unit
        super().__init__(f"Cannot convert {from_unit!r} to {to_unit!r}")


# Stock exceptions


class StockError(InventoryKernelError):
    """Base exception for ledger stock errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Requested consumption exceeds the item's available quantity."""

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        item_id: str,
        requested: Decimal,
        available: Decimal,
        unit: str = "",
        item_name: str | None = None,
    ):
        self.item_id = item_id
        self.requested = requested
        self.available = available
        self.unit = unit
        self.item_name = item_name
        label = item_name or item_id
        super().__init__(
            f"Insufficient stock for {label}: "
            f"requested {requested}{unit}, available {available}{unit}"
        )


class InventoryItemNotFoundError(StockError):
    """Inventory item with given ID was not found."""

    code: str = "INVENTORY_ITEM_NOT_FOUND"

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Inventory item not found: {item_id}")


class InventoryItemInactiveError(StockError):
    """Inventory item is deactivated and cannot move stock."""

    code: str = "INVENTORY_ITEM_INACTIVE"

    def __init__(self, item_id: str, item_name: str | None = None):
        self.item_id = item_id
        self.item_name = item_name
        super().__init__(f"Inventory item is inactive: {item_name or item_id}")


class InvalidQuantityError(StockError):
    """Movement quantity is zero, negative or otherwise unusable."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: Decimal, reason: str = "must be positive"):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity}: {reason}")


class InvalidMovementTypeError(StockError):
    """Movement type is not valid for the requested ledger operation."""

    code: str = "INVALID_MOVEMENT_TYPE"

    def __init__(self, movement_type: str, operation: str):
        self.movement_type = movement_type
        self.operation = operation
        super().__init__(
            f"Movement type {movement_type} is not valid for {operation}"
        )


# Workflow exceptions


class WorkflowError(InventoryKernelError):
    """Base exception for stock-take workflow errors."""

    code: str = "WORKFLOW_ERROR"


class InvalidStateTransitionError(WorkflowError):
    """Action is not permitted from the entity's current status."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, entity_type: str, entity_id: str, current_status: str, action: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} {entity_id} in status '{current_status}'"
        )


class StockTakeNotFoundError(WorkflowError):
    """Stock-take with given ID was not found."""

    code: str = "STOCK_TAKE_NOT_FOUND"

    def __init__(self, stock_take_id: str):
        self.stock_take_id = stock_take_id
        super().__init__(f"Stock take not found: {stock_take_id}")


class StockTakeItemNotFoundError(WorkflowError):
    """Stock-take item with given ID was not found."""

    code: str = "STOCK_TAKE_ITEM_NOT_FOUND"

    def __init__(self, stock_take_item_id: str):
        self.stock_take_item_id = stock_take_item_id
        super().__init__(f"Stock take item not found: {stock_take_item_id}")


class AdjustmentsAlreadyGeneratedError(WorkflowError):
    """Stock-take has already produced its variance adjustments."""

    code: str = "ADJUSTMENTS_ALREADY_GENERATED"

    def __init__(self, stock_take_id: str, existing_count: int):
        self.stock_take_id = stock_take_id
        self.existing_count = existing_count
        super().__init__(
            f"Stock take {stock_take_id} already has {existing_count} adjustment(s)"
        )


class StockTakeAlreadyApprovedError(WorkflowError):
    """Completed stock-take has already been signed off."""

    code: str = "STOCK_TAKE_ALREADY_APPROVED"

    def __init__(self, stock_take_id: str, approved_by: str):
        self.stock_take_id = stock_take_id
        self.approved_by = approved_by
        super().__init__(f"Stock take {stock_take_id} was already approved by {approved_by}")


# Approval exceptions


class ApprovalError(InventoryKernelError):
    """Base exception for adjustment approval errors."""

    code: str = "APPROVAL_ERROR"


class ApprovalPrivilegeError(ApprovalError):
    """Actor's role may not decide adjustments or sign off stock takes."""

    code: str = "APPROVAL_PRIVILEGE"

    def __init__(self, actor_id: str, actor_role: str, required_roles: tuple[str, ...]):
        self.actor_id = actor_id
        self.actor_role = actor_role
        self.required_roles = required_roles
        super().__init__(
            f"Actor {actor_id} with role '{actor_role}' is not an approver "
            f"(requires one of: {', '.join(required_roles)})"
        )


class SelfApprovalError(ApprovalError):
    """Actor attempted to approve an adjustment they created."""

    code: str = "SELF_APPROVAL"

    def __init__(self, adjustment_id: str, actor_id: str):
        self.adjustment_id = adjustment_id
        self.actor_id = actor_id
        super().__init__(
            f"Actor {actor_id} cannot approve adjustment {adjustment_id} they created"
        )


class AdjustmentNotFoundError(ApprovalError):
    """Stock adjustment with given ID was not found."""

    code: str = "ADJUSTMENT_NOT_FOUND"

    def __init__(self, adjustment_id: str):
        self.adjustment_id = adjustment_id
        super().__init__(f"Stock adjustment not found: {adjustment_id}")


class InvalidAdjustmentError(ApprovalError):
    """Adjustment request is malformed (zero change, wrong direction, ...)."""

    code: str = "INVALID_ADJUSTMENT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid adjustment: {reason}")


# Catalog exceptions


class CatalogError(InventoryKernelError):
    """Base exception for recipe and category lookups."""

    code: str = "CATALOG_ERROR"


class RecipeNotFoundError(CatalogError):
    """No recipe is defined for the composite item name."""

    code: str = "RECIPE_NOT_FOUND"

    def __init__(self, item_name: str):
        self.item_name = item_name
        super().__init__(f"No recipe found for {item_name}")


class UnsupportedCategoryError(CatalogError):
    """Menu category has no fallback deduction rule."""

    code: str = "UNSUPPORTED_CATEGORY"

    def __init__(self, category: str):
        self.category = category
        super().__init__(f"No deduction rule for category {category!r}")


# Immutability exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted modification of an immutable record.

    Movements are append-only; snapshots, completed stock-takes and
    terminal adjustments are frozen.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


# Integrity exceptions


class IntegrityError(InventoryKernelError):
    """Base exception for ledger integrity failures."""

    code: str = "INTEGRITY_ERROR"


class LedgerDriftError(IntegrityError):
    """On-hand quantity no longer matches initial quantity plus movements."""

    code: str = "LEDGER_DRIFT"

    def __init__(self, item_id: str, available: Decimal, reconstructed: Decimal):
        self.item_id = item_id
        self.available = available
        self.reconstructed = reconstructed
        super().__init__(
            f"Ledger drift on item {item_id}: on-hand {available}, "
            f"initial + movements {reconstructed}"
        )
