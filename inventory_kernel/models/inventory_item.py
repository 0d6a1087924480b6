"""
Module: inventory_kernel.models.inventory_item
Responsibility: ORM persistence for per-(organization, SKU) stock counters.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced (CHECK constraints, defense in depth behind the engines):
    - quantity_available = quantity_total - quantity_reserved
    - quantity_total >= quantity_reserved
    - quantity_reserved >= 0
    - quantity_available >= 0
    - One row per (organization_id, sku_id).

Failure modes:
    - IntegrityError on a duplicate (organization_id, sku_id).
    - IntegrityError if a write would violate a counter constraint.  The
      engines validate first, so this only fires on a programming error.

Audit relevance:
    Counters are mutated exclusively by the reservation and adjustment
    engines under a row lock.  Every mutation is paired with an
    InventoryAdjustment row in the same transaction.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import TimestampedBase

if TYPE_CHECKING:
    from inventory_kernel.models.adjustment import InventoryAdjustment
    from inventory_kernel.models.reservation import InventoryReservation


class InventoryItem(TimestampedBase):
    """
    Stock counters for one SKU within one organization.

    Contract:
        quantity_available is stored (for indexed low-stock queries) but is
        always derived: every write sets it to total - reserved.
    """

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "sku_id", name="uq_inventory_item_org_sku"
        ),
        CheckConstraint(
            "quantity_available = quantity_total - quantity_reserved",
            name="ck_inventory_item_available_derived",
        ),
        CheckConstraint(
            "quantity_total >= quantity_reserved",
            name="ck_inventory_item_reserved_within_total",
        ),
        CheckConstraint(
            "quantity_reserved >= 0",
            name="ck_inventory_item_reserved_non_negative",
        ),
        CheckConstraint(
            "quantity_available >= 0",
            name="ck_inventory_item_available_non_negative",
        ),
        Index("idx_inventory_item_org", "organization_id"),
        Index("idx_inventory_item_org_available", "organization_id", "quantity_available"),
    )

    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)

    sku_id: Mapped[str] = mapped_column(String(100), nullable=False)

    quantity_total: Mapped[int] = mapped_column(nullable=False, default=0)

    quantity_reserved: Mapped[int] = mapped_column(nullable=False, default=0)

    quantity_available: Mapped[int] = mapped_column(nullable=False, default=0)

    reorder_point: Mapped[int | None] = mapped_column(nullable=True)

    reorder_quantity: Mapped[int | None] = mapped_column(nullable=True)

    location_bin: Mapped[str | None] = mapped_column(String(50), nullable=True)

    reservations: Mapped[list[InventoryReservation]] = relationship(
        back_populates="inventory_item",
        lazy="raise_on_sql",
    )

    adjustments: Mapped[list[InventoryAdjustment]] = relationship(
        back_populates="inventory_item",
        lazy="raise_on_sql",
    )

    @property
    def is_low_stock(self) -> bool:
        return self.reorder_point is not None and self.quantity_available <= self.reorder_point

    @property
    def is_out_of_stock(self) -> bool:
        return self.quantity_available == 0

    def __repr__(self) -> str:
        return (
            f"<InventoryItem {self.sku_id}: total={self.quantity_total} "
            f"reserved={self.quantity_reserved} available={self.quantity_available}>"
        )
