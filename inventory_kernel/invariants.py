"""
Inventory Kernel Invariants.

Structural guarantees of the reconciliation core.  No configuration
fragment or policy switch may turn them off; configuration only picks
*how* costs are averaged or *who* may approve.

Enforcement lives in the ledger service, the stock-take workflow, the
approval gate and the ORM immutability listeners.  This module names
them so logs and tests can refer to them.
"""

from enum import Enum, unique


@unique
class InventoryInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    NON_NEGATIVE_STOCK = "non_negative_stock"
    """available_quantity never drops below zero.  Enforced by the
    ledger's conditional UPDATE and a CHECK constraint."""

    MOVEMENT_COMPLETENESS = "movement_completeness"
    """available_quantity == initial_quantity + sum(quantity_delta).
    Every ledger change writes exactly one movement; verify_item checks
    the sum."""

    MOVEMENT_IMMUTABILITY = "movement_immutability"
    """Movements are append-only.  Enforced by ORM listeners
    (inventory_kernel.db.immutability)."""

    SNAPSHOT_IMMUTABILITY = "snapshot_immutability"
    """Stock-take snapshot columns never change and counts change only
    while the session is in progress."""

    ONE_WAY_LIFECYCLE = "one_way_lifecycle"
    """Stock takes and adjustments never leave a terminal state."""

    TWO_ACTOR_APPROVAL = "two_actor_approval"
    """Adjustments are approved by a privileged actor distinct from the
    creator, and approval is undone if the ledger refuses it."""


ALL_INVENTORY_INVARIANTS: frozenset[InventoryInvariant] = frozenset(InventoryInvariant)

# The kernel package may not import from these packages.
# Checked by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "inventory_config",
    "inventory_modules",
)
