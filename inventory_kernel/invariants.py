"""
Kernel Invariants Contract.

These invariants are structural law for every InventoryItem row.  They are
enforced by the engines before any write, re-checked by the ledger store
when counters change, and backed by database CHECK constraints.  No
configuration may relax them.
"""

from enum import Enum, unique


@unique
class InventoryInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    AVAILABLE_IS_DERIVED = "available_is_derived"
    """quantity_available == quantity_total - quantity_reserved."""

    RESERVED_WITHIN_TOTAL = "reserved_within_total"
    """quantity_total >= quantity_reserved."""

    NON_NEGATIVE_RESERVED = "non_negative_reserved"
    """quantity_reserved >= 0."""

    NON_NEGATIVE_AVAILABLE = "non_negative_available"
    """quantity_available >= 0."""

    ALL_OR_NOTHING_RESERVATION = "all_or_nothing_reservation"
    """An order's active reservations cover all of its line items or none.
    Enforced by ReservationEngine validating every line before writing."""

    SINGLE_ACTIVE_RESERVATION = "single_active_reservation"
    """At most one active reservation per order item.  Enforced by the
    idempotency re-check under lock and a partial unique index."""


# All invariants as a frozenset for programmatic checks.
ALL_INVENTORY_INVARIANTS: frozenset[InventoryInvariant] = frozenset(
    InventoryInvariant
)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "inventory_services",
    "inventory_config",
)


def counter_violations(
    quantity_total: int,
    quantity_reserved: int,
    quantity_available: int,
) -> list[InventoryInvariant]:
    """Return the counter invariants broken by the given values (empty if none)."""
    violations: list[InventoryInvariant] = []
    if quantity_available != quantity_total - quantity_reserved:
        violations.append(InventoryInvariant.AVAILABLE_IS_DERIVED)
    if quantity_total < quantity_reserved:
        violations.append(InventoryInvariant.RESERVED_WITHIN_TOTAL)
    if quantity_reserved < 0:
        violations.append(InventoryInvariant.NON_NEGATIVE_RESERVED)
    if quantity_available < 0:
        violations.append(InventoryInvariant.NON_NEGATIVE_AVAILABLE)
    return violations
