"""
Module: inventory_kernel.models.reservation
Responsibility: ORM persistence for stock reservations held by order items.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - quantity_reserved > 0 (CHECK constraint).
    - At most one ACTIVE (released_at IS NULL) reservation per order item,
      via a partial unique index.  A concurrent duplicate insert fails with
      IntegrityError, which the ledger store reports as a retryable conflict.
    - Rows are never deleted; release sets released_at and reason once.

Audit relevance:
    The reservation row is the audit trail of one order item's claim on
    stock: when it was reserved, when and why it was released.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from inventory_kernel.models.inventory_item import InventoryItem

ACTIVE_RESERVATION_INDEX = "uq_reservation_active_order_item"


class InventoryReservation(Base):
    """A claim on available stock for one order item."""

    __tablename__ = "inventory_reservations"

    __table_args__ = (
        CheckConstraint(
            "quantity_reserved > 0",
            name="ck_reservation_quantity_positive",
        ),
        Index(
            ACTIVE_RESERVATION_INDEX,
            "order_item_id",
            unique=True,
            postgresql_where=text("released_at IS NULL"),
            sqlite_where=text("released_at IS NULL"),
        ),
        Index("idx_reservation_item", "inventory_item_id"),
        Index("idx_reservation_order", "order_id"),
        Index("idx_reservation_reserved_at", "reserved_at"),
    )

    inventory_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=False,
    )

    order_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    order_item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    quantity_reserved: Mapped[int] = mapped_column(nullable=False)

    reserved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    released_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Set only on release ("cancelled", "returned", ...)
    reason: Mapped[str | None] = mapped_column(String(100), nullable=True)

    inventory_item: Mapped[InventoryItem] = relationship(
        back_populates="reservations",
    )

    @property
    def is_active(self) -> bool:
        return self.released_at is None

    def __repr__(self) -> str:
        state = "active" if self.is_active else f"released ({self.reason})"
        return (
            f"<InventoryReservation {self.id}: order_item={self.order_item_id} "
            f"qty={self.quantity_reserved} {state}>"
        )
