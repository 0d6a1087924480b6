"""
Module: inventory_kernel.models.adjustment
Responsibility: Append-only audit log of every stock movement.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Append-only: the kernel only ever INSERTs adjustment rows.
    - Provenance: actor_id, type and reason are NOT NULL.

Audit relevance:
    One row per counter change: SALE on reserve, RETURN/CORRECTION on
    release, and the caller-supplied type on manual adjustments.  The
    optional reference_type/reference_id correlate a row with the order or
    shipment that caused it.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from inventory_kernel.models.inventory_item import InventoryItem


class AdjustmentType(str, Enum):
    """Kind of stock movement recorded by an adjustment row."""

    SALE = "SALE"
    RETURN = "RETURN"
    PURCHASE = "PURCHASE"
    DAMAGE = "DAMAGE"
    LOSS = "LOSS"
    CORRECTION = "CORRECTION"
    TRANSFER = "TRANSFER"


class InventoryAdjustment(Base):
    """One immutable stock movement."""

    __tablename__ = "inventory_adjustments"

    __table_args__ = (
        Index("idx_adjustment_org", "organization_id"),
        Index("idx_adjustment_item_created", "inventory_item_id", "created_at"),
        Index("idx_adjustment_reference", "reference_type", "reference_id"),
    )

    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)

    inventory_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_items.id"),
        nullable=False,
    )

    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)

    type: Mapped[AdjustmentType] = mapped_column(String(20), nullable=False)

    # Signed: negative for stock leaving availability
    quantity_change: Mapped[int] = mapped_column(nullable=False)

    reason: Mapped[str] = mapped_column(String(1000), nullable=False)

    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    inventory_item: Mapped[InventoryItem] = relationship(
        back_populates="adjustments",
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryAdjustment {self.type} {self.quantity_change:+d} "
            f"item={self.inventory_item_id}>"
        )
