"""Tests for the kernel DTOs and the deterministic clock."""

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.domain.dtos import (
    InventoryItemInfo,
    InventoryPage,
    ReservationInfo,
)


def _item(**overrides) -> InventoryItemInfo:
    values = dict(
        id=uuid4(),
        organization_id="org-1",
        sku_id="SKU-A",
        quantity_total=10,
        quantity_reserved=4,
        quantity_available=6,
    )
    values.update(overrides)
    return InventoryItemInfo(**values)


class TestInventoryItemInfo:

    def test_frozen(self):
        item = _item()
        with pytest.raises(FrozenInstanceError):
            item.quantity_total = 99

    def test_low_stock_requires_reorder_point(self):
        assert not _item(quantity_available=0, reorder_point=None).is_low_stock

    @pytest.mark.parametrize(
        "available,reorder_point,expected",
        [(5, 5, True), (4, 5, True), (6, 5, False), (0, 0, True)],
    )
    def test_low_stock_at_or_below_point(self, available, reorder_point, expected):
        item = _item(quantity_available=available, reorder_point=reorder_point)
        assert item.is_low_stock is expected

    def test_out_of_stock(self):
        assert _item(quantity_reserved=10, quantity_available=0).is_out_of_stock
        assert not _item().is_out_of_stock


class TestReservationInfo:

    def test_active_until_released(self):
        now = datetime(2024, 1, 1, tzinfo=timezone.utc)
        info = ReservationInfo(
            id=uuid4(),
            inventory_item_id=uuid4(),
            sku_id="SKU-A",
            order_id=uuid4(),
            order_item_id=uuid4(),
            quantity_reserved=2,
            reserved_at=now,
        )
        assert info.is_active
        released = ReservationInfo(**{**info.__dict__, "released_at": now, "reason": "cancelled"})
        assert not released.is_active


class TestInventoryPage:

    @pytest.mark.parametrize("total,limit,pages", [(0, 50, 0), (1, 50, 1), (50, 50, 1), (51, 50, 2)])
    def test_total_pages(self, total, limit, pages):
        assert InventoryPage(items=(), total=total, page=1, limit=limit).total_pages == pages

    def test_rejects_bad_paging(self):
        with pytest.raises(ValueError):
            InventoryPage(items=(), total=0, page=0, limit=10)
        with pytest.raises(ValueError):
            InventoryPage(items=(), total=0, page=1, limit=0)


class TestDeterministicClock:

    def test_fixed_until_advanced(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now()
        assert clock.now().tzinfo is not None

    def test_advance_and_tick(self):
        start = datetime(2025, 6, 1, 8, 0, tzinfo=timezone.utc)
        clock = DeterministicClock(start)
        clock.advance(30)
        assert clock.tick() == start + timedelta(seconds=31)

    def test_set_time_resets_offset(self):
        clock = DeterministicClock()
        clock.advance(100)
        target = datetime(2030, 1, 1, tzinfo=timezone.utc)
        clock.set_time(target)
        assert clock.now() == target
