"""
Kernel Boundary Contract.

Tests that enforce the layering of the inventory packages:

1. inventory_kernel/** may NOT import inventory_config or
   inventory_modules.  The kernel never depends upward.

2. inventory_config/** may NOT import inventory_modules.

3. inventory_kernel/domain/** stays pure: no SQLAlchemy, no sessions.

4. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST; they cannot break anything.
"""

import ast
import glob
from pathlib import Path

from inventory_kernel.invariants import (
    ALL_INVENTORY_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    InventoryInvariant,
)

REPO_ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[str]:
    """Return all .py files under a top-level package."""
    return sorted(glob.glob(str(REPO_ROOT / package / "**" / "*.py"), recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(Path(filepath).read_text(), filename=filepath)

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    relative = Path(filepath).relative_to(REPO_ROOT)
                    found.append(f"  {relative}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:

    def test_packages_exist(self):
        assert _python_files("inventory_kernel")
        assert _python_files("inventory_config")

    def test_kernel_does_not_import_upward(self):
        violations = _violations("inventory_kernel", FORBIDDEN_KERNEL_IMPORTS)
        assert not violations, (
            "Kernel boundary violation: inventory_kernel/** must not import "
            "configuration or modules:\n" + "\n".join(violations)
        )

    def test_config_does_not_import_modules(self):
        violations = _violations("inventory_config", ("inventory_modules",))
        assert not violations, "\n".join(violations)


class TestDomainPurity:

    def test_domain_has_no_persistence_imports(self):
        violations = _violations(
            "inventory_kernel/domain",
            ("sqlalchemy", "inventory_kernel.db", "inventory_kernel.models"),
        )
        assert not violations, (
            "inventory_kernel/domain/** must stay free of I/O:\n" + "\n".join(violations)
        )


class TestInvariantDeclaration:

    def test_invariants_declared(self):
        assert len(ALL_INVENTORY_INVARIANTS) == len(InventoryInvariant)
        assert InventoryInvariant.NON_NEGATIVE_STOCK in ALL_INVENTORY_INVARIANTS
        assert InventoryInvariant.TWO_ACTOR_APPROVAL in ALL_INVENTORY_INVARIANTS
