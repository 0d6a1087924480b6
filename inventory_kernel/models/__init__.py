"""Domain models for the inventory kernel."""

from inventory_kernel.models.adjustment import AdjustmentType, InventoryAdjustment
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.models.order import Order, OrderItem, OrderStatus
from inventory_kernel.models.reservation import (
    ACTIVE_RESERVATION_INDEX,
    InventoryReservation,
)

__all__ = [
    "AdjustmentType",
    "InventoryAdjustment",
    "InventoryItem",
    "InventoryReservation",
    "ACTIVE_RESERVATION_INDEX",
    "Order",
    "OrderItem",
    "OrderStatus",
]
