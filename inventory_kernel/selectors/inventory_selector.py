"""
Module: inventory_kernel.selectors.inventory_selector
Responsibility: Read-only inventory views: a SKU with its active reservations
    and recent adjustments, the low-stock list, the organization summary, and
    the paginated, filterable item listing.
Architecture position: Kernel > Selectors.  May import from models/, domain/dtos
    and selectors/base.py.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Organization scoping on every query; another organization's SKU is
      indistinguishable from a missing one.
    - One low-stock rule everywhere: reorder_point IS NOT NULL AND
      quantity_available <= reorder_point.

Failure modes:
    - InventoryItemNotFoundError from find_by_sku_id.
    - ValueError on a non-positive page or limit.
"""

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import (
    AdjustmentInfo,
    InventoryItemDetail,
    InventoryItemInfo,
    InventoryPage,
    InventorySummary,
    ReservationInfo,
)
from inventory_kernel.exceptions import InventoryItemNotFoundError
from inventory_kernel.models.adjustment import InventoryAdjustment
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.models.reservation import InventoryReservation
from inventory_kernel.selectors.base import BaseSelector

DEFAULT_RECENT_ADJUSTMENTS = 10
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def _low_stock_condition():
    return and_(
        InventoryItem.reorder_point.is_not(None),
        InventoryItem.quantity_available <= InventoryItem.reorder_point,
    )


class InventorySelector(BaseSelector):
    """
    Selector for inventory state.

    Contract:
        Reads only; results are DTOs built from committed rows.
    """

    def __init__(
        self,
        session: Session,
        recent_adjustment_limit: int = DEFAULT_RECENT_ADJUSTMENTS,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
    ):
        super().__init__(session)
        self.recent_adjustment_limit = recent_adjustment_limit
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size

    def find_by_sku_id(
        self,
        organization_id: str,
        sku_id: str,
        adjustment_limit: int | None = None,
    ) -> InventoryItemDetail:
        """
        Item, its active reservations (oldest first) and its most recent
        adjustments (newest first).

        Raises:
            InventoryItemNotFoundError: SKU not tracked for the organization.
        """
        item = self.session.execute(
            select(InventoryItem).where(
                InventoryItem.organization_id == organization_id,
                InventoryItem.sku_id == sku_id,
            )
        ).scalar_one_or_none()
        if item is None:
            raise InventoryItemNotFoundError(sku_id, organization_id)

        reservations = self.session.execute(
            select(InventoryReservation)
            .where(
                InventoryReservation.inventory_item_id == item.id,
                InventoryReservation.released_at.is_(None),
            )
            .order_by(InventoryReservation.reserved_at, InventoryReservation.order_item_id)
        ).scalars()

        limit = adjustment_limit if adjustment_limit is not None else self.recent_adjustment_limit
        adjustments = self.session.execute(
            select(InventoryAdjustment)
            .where(InventoryAdjustment.inventory_item_id == item.id)
            .order_by(InventoryAdjustment.created_at.desc(), InventoryAdjustment.id.desc())
            .limit(limit)
        ).scalars()

        return InventoryItemDetail(
            item=InventoryItemInfo.from_model(item),
            active_reservations=tuple(
                ReservationInfo.from_model(r, item.sku_id) for r in reservations
            ),
            recent_adjustments=tuple(AdjustmentInfo.from_model(a) for a in adjustments),
        )

    def get_low_stock_items(self, organization_id: str) -> list[InventoryItemInfo]:
        """Items at or below their reorder point, least available first."""
        rows = self.session.execute(
            select(InventoryItem)
            .where(InventoryItem.organization_id == organization_id)
            .where(_low_stock_condition())
            .order_by(InventoryItem.quantity_available, InventoryItem.sku_id)
        ).scalars()
        return [InventoryItemInfo.from_model(item) for item in rows]

    def get_summary(self, organization_id: str) -> InventorySummary:
        """Aggregate counters for one organization, computed in SQL."""
        row = self.session.execute(
            select(
                func.count(InventoryItem.id),
                func.coalesce(func.sum(InventoryItem.quantity_total), 0),
                func.coalesce(func.sum(InventoryItem.quantity_reserved), 0),
                func.coalesce(func.sum(InventoryItem.quantity_available), 0),
                func.coalesce(func.sum(case((_low_stock_condition(), 1), else_=0)), 0),
                func.coalesce(
                    func.sum(case((InventoryItem.quantity_available == 0, 1), else_=0)), 0,
                ),
            ).where(InventoryItem.organization_id == organization_id)
        ).one()

        return InventorySummary(
            organization_id=organization_id,
            total_items=int(row[0]),
            total_quantity=int(row[1]),
            total_reserved=int(row[2]),
            total_available=int(row[3]),
            low_stock_count=int(row[4]),
            out_of_stock_count=int(row[5]),
        )

    def find_all(
        self,
        organization_id: str,
        page: int = 1,
        limit: int | None = None,
        search: str | None = None,
        low_stock: bool = False,
        out_of_stock: bool = False,
    ) -> InventoryPage:
        """
        Paginated listing ordered by sku_id.

        Args:
            search: Case-insensitive substring of sku_id or location_bin.
            low_stock: Only items at or below their reorder point.
            out_of_stock: Only items with nothing available.
            limit: Page size, capped at max_page_size.  Defaults to
                default_page_size.
        """
        if limit is None:
            limit = self.default_page_size
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        limit = min(limit, self.max_page_size)

        filters = [InventoryItem.organization_id == organization_id]
        if search:
            filters.append(
                or_(
                    InventoryItem.sku_id.icontains(search, autoescape=True),
                    InventoryItem.location_bin.icontains(search, autoescape=True),
                )
            )
        if low_stock:
            filters.append(_low_stock_condition())
        if out_of_stock:
            filters.append(InventoryItem.quantity_available == 0)

        total = self.session.execute(
            select(func.count(InventoryItem.id)).where(*filters)
        ).scalar_one()

        rows = self.session.execute(
            select(InventoryItem)
            .where(*filters)
            .order_by(InventoryItem.sku_id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars()

        return InventoryPage(
            items=tuple(InventoryItemInfo.from_model(item) for item in rows),
            total=int(total),
            page=page,
            limit=limit,
        )
