"""Pure domain types for the inventory kernel: clock and DTOs."""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.dtos import (
    AdjustmentInfo,
    InventoryItemDetail,
    InventoryItemInfo,
    InventoryPage,
    InventorySummary,
    ReservationInfo,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "AdjustmentInfo",
    "InventoryItemDetail",
    "InventoryItemInfo",
    "InventoryPage",
    "InventorySummary",
    "ReservationInfo",
]
