"""
Order lifecycle integration ("Model C" auto-reserve).

Responsibility:
    Encodes the 11-state order status machine and maps status changes to
    inventory actions: NEW/RESERVED reserve stock, CANCELLED/RETURNED
    release it, every other status leaves reservations untouched.

Architecture position:
    Services -- orchestration over the kernel engines.  The Orders
    subsystem owns the status column; this module only decides what a new
    status means for inventory.

Invariants enforced:
    - Only transitions listed in ALLOWED_TRANSITIONS are accepted when the
      previous status is known.
    - DELIVERED does not deduct stock; the reservation stays in place.

Failure modes:
    - InvalidStatusTransitionError for a disallowed transition.
    - Kernel errors from the engines propagate unchanged (the job layer
      classifies them as retryable or permanent).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from inventory_kernel.domain.dtos import ReservationInfo
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.order import OrderStatus
from inventory_kernel.services.reservation_engine import (
    CANCELLED_REASON,
    RETURNED_REASON,
    ReservationEngine,
)

logger = get_logger("services.order_lifecycle")


# Allowed status transitions (from -> set of valid next states)
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.NEW: frozenset({
        OrderStatus.RESERVED, OrderStatus.CANCELLED, OrderStatus.FAILED,
    }),
    OrderStatus.RESERVED: frozenset({
        OrderStatus.READY_TO_SHIP, OrderStatus.CANCELLED, OrderStatus.FAILED,
    }),
    OrderStatus.READY_TO_SHIP: frozenset({
        OrderStatus.LABEL_CREATED, OrderStatus.CANCELLED,
    }),
    OrderStatus.LABEL_CREATED: frozenset({
        OrderStatus.PICKED_UP, OrderStatus.CANCELLED,
    }),
    OrderStatus.PICKED_UP: frozenset({
        OrderStatus.IN_TRANSIT, OrderStatus.FAILED,
    }),
    OrderStatus.IN_TRANSIT: frozenset({
        OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED, OrderStatus.FAILED,
    }),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({
        OrderStatus.DELIVERED, OrderStatus.FAILED,
    }),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURNED}),
    OrderStatus.CANCELLED: frozenset(),  # Terminal
    OrderStatus.FAILED: frozenset({
        OrderStatus.IN_TRANSIT, OrderStatus.CANCELLED, OrderStatus.RETURNED,
    }),
    OrderStatus.RETURNED: frozenset(),  # Terminal
}

_RESERVE_STATUSES = frozenset({OrderStatus.NEW, OrderStatus.RESERVED})
_RELEASE_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.RETURNED})


class InvalidStatusTransitionError(ValueError):
    """The Orders subsystem reported a transition the state machine forbids."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, from_status: OrderStatus, to_status: OrderStatus):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid order status transition: {from_status.value} -> {to_status.value}"
        )


def can_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    """Check if a status transition is valid."""
    return to_status in ALLOWED_TRANSITIONS.get(from_status, frozenset())


def valid_next_statuses(status: OrderStatus) -> frozenset[OrderStatus]:
    return ALLOWED_TRANSITIONS.get(status, frozenset())


def is_terminal_status(status: OrderStatus) -> bool:
    return not ALLOWED_TRANSITIONS.get(status)


def should_reserve_inventory(status: OrderStatus) -> bool:
    return status in _RESERVE_STATUSES


def should_release_inventory(status: OrderStatus) -> bool:
    return status in _RELEASE_STATUSES


def release_reason_for_status(status: OrderStatus) -> str:
    """Release reason recorded on reservations for a releasing status."""
    if status == OrderStatus.RETURNED:
        return RETURNED_REASON
    if status == OrderStatus.CANCELLED:
        return CANCELLED_REASON
    raise ValueError(f"Status {status.value} does not release inventory")


class InventoryAction(str, Enum):
    """What a status change did to inventory."""

    RESERVED = "reserved"
    RELEASED = "released"
    NONE = "none"


@dataclass(frozen=True)
class LifecycleOutcome:
    """Result of applying one order status change to inventory."""

    order_id: str
    status: OrderStatus
    action: InventoryAction
    reservations: tuple[ReservationInfo, ...] = ()
    reason: str | None = None


class OrderLifecycleService:
    """
    Applies order status changes to inventory.

    Contract:
        Safe to call more than once for the same change: reserve and
        release are idempotent in the kernel.
    """

    def __init__(self, reservation_engine: ReservationEngine):
        self._reservations = reservation_engine

    def handle_status_change(
        self,
        order_id: UUID | str,
        organization_id: str,
        new_status: OrderStatus | str,
        previous_status: OrderStatus | str | None = None,
    ) -> LifecycleOutcome:
        """
        Reserve or release stock for an order that moved to ``new_status``.

        Args:
            previous_status: If given, the transition is validated first.

        Raises:
            InvalidStatusTransitionError: previous -> new is not allowed.
            ValueError: unknown status name.
        """
        new_status = OrderStatus(new_status)
        if previous_status is not None:
            previous_status = OrderStatus(previous_status)
            if not can_transition(previous_status, new_status):
                raise InvalidStatusTransitionError(previous_status, new_status)

        with LogContext.bind(organization_id=organization_id, order_id=order_id):
            if should_reserve_inventory(new_status):
                reservations = self._reservations.reserve_stock_for_order(
                    order_id, organization_id,
                )
                outcome = LifecycleOutcome(
                    order_id=str(order_id),
                    status=new_status,
                    action=InventoryAction.RESERVED,
                    reservations=tuple(reservations),
                )
            elif should_release_inventory(new_status):
                reason = release_reason_for_status(new_status)
                released = self._reservations.release_stock_for_order(
                    order_id, organization_id, reason,
                )
                outcome = LifecycleOutcome(
                    order_id=str(order_id),
                    status=new_status,
                    action=InventoryAction.RELEASED,
                    reservations=tuple(released),
                    reason=reason,
                )
            else:
                outcome = LifecycleOutcome(
                    order_id=str(order_id),
                    status=new_status,
                    action=InventoryAction.NONE,
                )

            logger.info(
                "order_status_applied",
                extra={
                    "status": new_status.value,
                    "previous_status": previous_status.value if previous_status else None,
                    "inventory_action": outcome.action.value,
                    "reservation_count": len(outcome.reservations),
                },
            )
            return outcome
