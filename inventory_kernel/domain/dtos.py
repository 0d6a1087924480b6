"""
DTOs -- Immutable results returned by the engines and selectors.

Responsibility:
    Defines the frozen data structures that cross the kernel boundary:
    ReservationInfo, InventoryItemInfo, AdjustmentInfo, and the query
    results InventoryItemDetail, InventorySummary and InventoryPage.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    from_model() class methods exist as boundary converters but are only
    invoked from the service and selector layers.

Invariants enforced:
    - Engines and selectors return DTOs, never ORM entities, so callers
      cannot mutate counters outside a ledger transaction.
    - Timestamps are always timezone-aware UTC (SQLite hands back naive
      values; they are normalized here).

Failure modes:
    - ValueError on InventoryPage with a non-positive page or limit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from inventory_kernel.models.adjustment import InventoryAdjustment
    from inventory_kernel.models.inventory_item import InventoryItem
    from inventory_kernel.models.reservation import InventoryReservation


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class ReservationInfo:
    """
    One order item's claim on stock.

    Guarantees:
        - quantity_reserved > 0.
        - is_active is True iff released_at is None.
    """

    id: UUID
    inventory_item_id: UUID
    sku_id: str
    order_id: UUID
    order_item_id: UUID
    quantity_reserved: int
    reserved_at: datetime
    released_at: datetime | None = None
    reason: str | None = None

    @property
    def is_active(self) -> bool:
        return self.released_at is None

    @classmethod
    def from_model(
        cls, reservation: InventoryReservation, sku_id: str,
    ) -> ReservationInfo:
        return cls(
            id=reservation.id,
            inventory_item_id=reservation.inventory_item_id,
            sku_id=sku_id,
            order_id=reservation.order_id,
            order_item_id=reservation.order_item_id,
            quantity_reserved=reservation.quantity_reserved,
            reserved_at=_as_utc(reservation.reserved_at),
            released_at=_as_utc(reservation.released_at),
            reason=reservation.reason,
        )


@dataclass(frozen=True)
class InventoryItemInfo:
    """Snapshot of one SKU's counters and reorder settings."""

    id: UUID
    organization_id: str
    sku_id: str
    quantity_total: int
    quantity_reserved: int
    quantity_available: int
    reorder_point: int | None = None
    reorder_quantity: int | None = None
    location_bin: str | None = None

    @property
    def is_low_stock(self) -> bool:
        return (
            self.reorder_point is not None
            and self.quantity_available <= self.reorder_point
        )

    @property
    def is_out_of_stock(self) -> bool:
        return self.quantity_available == 0

    @classmethod
    def from_model(cls, item: InventoryItem) -> InventoryItemInfo:
        return cls(
            id=item.id,
            organization_id=item.organization_id,
            sku_id=item.sku_id,
            quantity_total=item.quantity_total,
            quantity_reserved=item.quantity_reserved,
            quantity_available=item.quantity_available,
            reorder_point=item.reorder_point,
            reorder_quantity=item.reorder_quantity,
            location_bin=item.location_bin,
        )


@dataclass(frozen=True)
class AdjustmentInfo:
    """One row of the append-only adjustment log."""

    id: UUID
    inventory_item_id: UUID
    actor_id: str
    adjustment_type: str
    quantity_change: int
    reason: str
    created_at: datetime
    reference_type: str | None = None
    reference_id: str | None = None
    notes: str | None = None

    @classmethod
    def from_model(cls, adjustment: InventoryAdjustment) -> AdjustmentInfo:
        return cls(
            id=adjustment.id,
            inventory_item_id=adjustment.inventory_item_id,
            actor_id=adjustment.actor_id,
            adjustment_type=str(getattr(adjustment.type, "value", adjustment.type)),
            quantity_change=adjustment.quantity_change,
            reason=adjustment.reason,
            created_at=_as_utc(adjustment.created_at),
            reference_type=adjustment.reference_type,
            reference_id=adjustment.reference_id,
            notes=adjustment.notes,
        )


@dataclass(frozen=True)
class InventoryItemDetail:
    """An item with its active reservations and most recent adjustments."""

    item: InventoryItemInfo
    active_reservations: tuple[ReservationInfo, ...]
    recent_adjustments: tuple[AdjustmentInfo, ...]


@dataclass(frozen=True)
class InventorySummary:
    """Organization-wide stock aggregates."""

    organization_id: str
    total_items: int
    total_quantity: int
    total_reserved: int
    total_available: int
    low_stock_count: int
    out_of_stock_count: int


@dataclass(frozen=True)
class InventoryPage:
    """One page of a filtered inventory listing."""

    items: tuple[InventoryItemInfo, ...]
    total: int
    page: int
    limit: int

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if self.limit < 1:
            raise ValueError(f"limit must be >= 1, got {self.limit}")

    @property
    def total_pages(self) -> int:
        return -(-self.total // self.limit)
