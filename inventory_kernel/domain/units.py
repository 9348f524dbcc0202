"""
Unit conversion helper (``inventory_kernel.domain.units``).

Responsibility
--------------
Pure conversion between the three closed unit families the shop stocks:

    mass    g, kg     (1 kg = 1000 g)
    volume  ml, L     (1 L  = 1000 ml)
    count   pcs

Architecture position
---------------------
**Kernel domain layer** -- pure functions, ZERO I/O.

Invariants enforced
-------------------
* Converting across families raises ``IncompatibleUnitsError``.  The
  unconverted quantity is never returned as a silent fallback.
* Unit strings outside the table raise ``UnknownUnitError``.
* All arithmetic is ``Decimal``; floats are rejected.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from inventory_kernel.exceptions import IncompatibleUnitsError, UnknownUnitError


class UnitFamily(str, Enum):
    """Physical dimension of a stocked quantity."""

    MASS = "mass"
    VOLUME = "volume"
    COUNT = "count"


# canonical unit -> (family, factor to the family's base unit)
_UNITS: dict[str, tuple[UnitFamily, Decimal]] = {
    "g": (UnitFamily.MASS, Decimal("1")),
    "kg": (UnitFamily.MASS, Decimal("1000")),
    "ml": (UnitFamily.VOLUME, Decimal("1")),
    "L": (UnitFamily.VOLUME, Decimal("1000")),
    "pcs": (UnitFamily.COUNT, Decimal("1")),
}

# lowercase spelling -> canonical unit
_ALIASES: dict[str, str] = {
    "g": "g",
    "gram": "g",
    "grams": "g",
    "kg": "kg",
    "kilogram": "kg",
    "kilograms": "kg",
    "ml": "ml",
    "milliliter": "ml",
    "milliliters": "ml",
    "l": "L",
    "liter": "L",
    "liters": "L",
    "litre": "L",
    "litres": "L",
    "pcs": "pcs",
    "pc": "pcs",
    "piece": "pcs",
    "pieces": "pcs",
    "count": "pcs",
    "unit": "pcs",
    "units": "pcs",
}

SUPPORTED_UNITS: tuple[str, ...] = tuple(_UNITS)


def normalize_unit(unit: str) -> str:
    """Return the canonical spelling of ``unit``.

    Raises:
        UnknownUnitError: unit is not in any family.
    """
    if not isinstance(unit, str):
        raise UnknownUnitError(repr(unit))
    key = unit.strip()
    if key in _UNITS:
        return key
    canonical = _ALIASES.get(key.lower())
    if canonical is None:
        raise UnknownUnitError(unit)
    return canonical


def unit_family(unit: str) -> UnitFamily:
    """Family of ``unit`` (mass, volume or count)."""
    return _UNITS[normalize_unit(unit)][0]


def is_compatible(first: str, second: str) -> bool:
    """True when both units belong to the same family."""
    return unit_family(first) is unit_family(second)


def convert(quantity: Decimal | int | str, from_unit: str, to_unit: str) -> Decimal:
    """Convert ``quantity`` from ``from_unit`` to ``to_unit``.

    Examples:
        convert(Decimal("0.2"), "kg", "g")  -> Decimal("200.0")
        convert(30, "ml", "L")              -> Decimal("0.03")

    Raises:
        IncompatibleUnitsError: units belong to different families.
        UnknownUnitError: either unit is not supported.
        TypeError: quantity is a float.
    """
    if isinstance(quantity, float):
        raise TypeError("convert() requires Decimal, int or str quantities, not float")
    amount = quantity if isinstance(quantity, Decimal) else Decimal(quantity)

    source = normalize_unit(from_unit)
    target = normalize_unit(to_unit)
    source_family, source_factor = _UNITS[source]
    target_family, target_factor = _UNITS[target]

    if source_family is not target_family:
        raise IncompatibleUnitsError(from_unit, to_unit)
    if source == target:
        return amount
    return amount * source_factor / target_factor


def format_quantity(quantity: Decimal, unit: str) -> str:
    """Render ``quantity`` without trailing zeros, e.g. ``400g``."""
    text = f"{quantity.normalize():f}" if quantity else "0"
    return f"{text}{unit}"
