"""
Module: inventory_kernel.models.order
Responsibility: Read-side ORM mapping of the Orders subsystem tables that the
    reservation engine consumes: order identity, organization scoping, status,
    and line items {sku_id, quantity}.
Architecture position: Kernel > Models.  May import from db/ only.

The Orders subsystem owns these rows (channel import, status transitions,
timeline).  The kernel only reads them; it never creates, updates, or
deletes an order.
"""

from __future__ import annotations

from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TimestampedBase, UUIDString


class OrderStatus(str, Enum):
    """Order lifecycle status, as maintained by the Orders subsystem."""

    NEW = "NEW"
    RESERVED = "RESERVED"
    READY_TO_SHIP = "READY_TO_SHIP"
    LABEL_CREATED = "LABEL_CREATED"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"
    RETURNED = "RETURNED"


class Order(TimestampedBase):
    """An imported sales-channel order."""

    __tablename__ = "orders"

    __table_args__ = (
        Index("idx_order_organization", "organization_id"),
        Index("idx_order_org_number", "organization_id", "order_number"),
    )

    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)

    order_number: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        String(30),
        nullable=False,
        default=OrderStatus.NEW,
    )

    # Actor attribution for the adjustments written on reserve/release
    created_by_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    updated_by_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    items: Mapped[list[OrderItem]] = relationship(
        back_populates="order",
        lazy="selectin",
        order_by="OrderItem.sku_id",
    )

    def __repr__(self) -> str:
        return f"<Order {self.order_number} ({self.status})>"


class OrderItem(TimestampedBase):
    """One order line: a quantity of one SKU."""

    __tablename__ = "order_items"

    __table_args__ = (
        Index("idx_order_item_order", "order_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id"),
        nullable=False,
    )

    sku_id: Mapped[str] = mapped_column(String(100), nullable=False)

    quantity: Mapped[int] = mapped_column(nullable=False)

    order: Mapped[Order] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<OrderItem {self.sku_id} x{self.quantity}>"
