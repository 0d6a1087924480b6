"""
Order lifecycle integration tests.

Tests cover:
- The status transition table
- Which statuses reserve, release, or leave stock alone
- OrderLifecycleService end to end against the reservation engine
"""

import pytest

from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.models.order import OrderStatus
from inventory_services.order_lifecycle import (
    ALLOWED_TRANSITIONS,
    InvalidStatusTransitionError,
    InventoryAction,
    OrderLifecycleService,
    can_transition,
    is_terminal_status,
    release_reason_for_status,
    should_release_inventory,
    should_reserve_inventory,
    valid_next_statuses,
)


class TestTransitionTable:

    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(OrderStatus)

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (OrderStatus.NEW, OrderStatus.RESERVED),
            (OrderStatus.RESERVED, OrderStatus.READY_TO_SHIP),
            (OrderStatus.READY_TO_SHIP, OrderStatus.LABEL_CREATED),
            (OrderStatus.LABEL_CREATED, OrderStatus.PICKED_UP),
            (OrderStatus.PICKED_UP, OrderStatus.IN_TRANSIT),
            (OrderStatus.IN_TRANSIT, OrderStatus.OUT_FOR_DELIVERY),
            (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED),
            (OrderStatus.DELIVERED, OrderStatus.RETURNED),
            (OrderStatus.FAILED, OrderStatus.IN_TRANSIT),
            (OrderStatus.NEW, OrderStatus.CANCELLED),
        ],
    )
    def test_allowed(self, from_status, to_status):
        assert can_transition(from_status, to_status)

    @pytest.mark.parametrize(
        "from_status,to_status",
        [
            (OrderStatus.NEW, OrderStatus.DELIVERED),
            (OrderStatus.CANCELLED, OrderStatus.NEW),
            (OrderStatus.RETURNED, OrderStatus.RESERVED),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
            (OrderStatus.PICKED_UP, OrderStatus.CANCELLED),
        ],
    )
    def test_forbidden(self, from_status, to_status):
        assert not can_transition(from_status, to_status)

    def test_terminal_statuses(self):
        terminal = {s for s in OrderStatus if is_terminal_status(s)}
        assert terminal == {OrderStatus.CANCELLED, OrderStatus.RETURNED}

    def test_valid_next_statuses(self):
        assert valid_next_statuses(OrderStatus.DELIVERED) == frozenset({OrderStatus.RETURNED})


class TestInventoryRules:

    def test_reserving_statuses(self):
        assert {s for s in OrderStatus if should_reserve_inventory(s)} == {
            OrderStatus.NEW,
            OrderStatus.RESERVED,
        }

    def test_releasing_statuses(self):
        assert {s for s in OrderStatus if should_release_inventory(s)} == {
            OrderStatus.CANCELLED,
            OrderStatus.RETURNED,
        }

    def test_release_reasons(self):
        assert release_reason_for_status(OrderStatus.CANCELLED) == "cancelled"
        assert release_reason_for_status(OrderStatus.RETURNED) == "returned"
        with pytest.raises(ValueError):
            release_reason_for_status(OrderStatus.DELIVERED)


class TestOrderLifecycleService:

    @pytest.fixture
    def lifecycle(self, reservation_engine):
        return OrderLifecycleService(reservation_engine)

    def test_new_order_reserves(self, lifecycle, create_item, create_order, item_counters, org_id):
        create_item("SKU-A", total=10)
        order_id = create_order([("SKU-A", 4)])

        outcome = lifecycle.handle_status_change(order_id, org_id, OrderStatus.NEW)

        assert outcome.action == InventoryAction.RESERVED
        assert outcome.order_id == str(order_id)
        assert len(outcome.reservations) == 1
        assert item_counters(org_id, "SKU-A") == (10, 4, 6)

    def test_reserved_status_is_idempotent_after_new(
        self, lifecycle, create_item, create_order, item_counters, org_id,
    ):
        create_item("SKU-A", total=10)
        order_id = create_order([("SKU-A", 4)])

        first = lifecycle.handle_status_change(order_id, org_id, "NEW")
        second = lifecycle.handle_status_change(
            order_id, org_id, "RESERVED", previous_status="NEW",
        )

        assert [r.id for r in second.reservations] == [r.id for r in first.reservations]
        assert item_counters(org_id, "SKU-A") == (10, 4, 6)

    def test_shipping_statuses_leave_stock_reserved(
        self, lifecycle, create_item, create_order, item_counters, org_id,
    ):
        create_item("SKU-A", total=10)
        order_id = create_order([("SKU-A", 4)])
        lifecycle.handle_status_change(order_id, org_id, OrderStatus.NEW)

        path = [
            OrderStatus.RESERVED,
            OrderStatus.READY_TO_SHIP,
            OrderStatus.LABEL_CREATED,
            OrderStatus.PICKED_UP,
            OrderStatus.IN_TRANSIT,
            OrderStatus.OUT_FOR_DELIVERY,
            OrderStatus.DELIVERED,
        ]
        previous = OrderStatus.NEW
        for status in path:
            outcome = lifecycle.handle_status_change(order_id, org_id, status, previous)
            previous = status

        assert outcome.action == InventoryAction.NONE
        assert item_counters(org_id, "SKU-A") == (10, 4, 6)

    def test_cancel_releases(self, lifecycle, create_item, create_order, item_counters, org_id):
        create_item("SKU-A", total=10)
        order_id = create_order([("SKU-A", 4)])
        lifecycle.handle_status_change(order_id, org_id, OrderStatus.NEW)

        outcome = lifecycle.handle_status_change(
            order_id, org_id, OrderStatus.CANCELLED, OrderStatus.NEW,
        )

        assert outcome.action == InventoryAction.RELEASED
        assert outcome.reason == "cancelled"
        assert len(outcome.reservations) == 1
        assert item_counters(org_id, "SKU-A") == (10, 0, 10)

    def test_return_after_delivery_releases(
        self, lifecycle, create_item, create_order, adjustment_log, deterministic_clock, org_id,
    ):
        create_item("SKU-A", total=10)
        order_id = create_order([("SKU-A", 4)])
        lifecycle.handle_status_change(order_id, org_id, OrderStatus.NEW)
        deterministic_clock.advance(3600)

        outcome = lifecycle.handle_status_change(
            order_id, org_id, OrderStatus.RETURNED, OrderStatus.DELIVERED,
        )

        assert outcome.reason == "returned"
        assert adjustment_log("SKU-A")[-1].adjustment_type == "RETURN"

    def test_invalid_transition_rejected_before_any_write(
        self, lifecycle, create_item, create_order, item_counters, org_id,
    ):
        create_item("SKU-A", total=10)
        order_id = create_order([("SKU-A", 4)])

        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            lifecycle.handle_status_change(
                order_id, org_id, OrderStatus.NEW, OrderStatus.CANCELLED,
            )

        assert exc_info.value.code == "INVALID_STATUS_TRANSITION"
        assert item_counters(org_id, "SKU-A") == (10, 0, 10)

    def test_unknown_status_name(self, lifecycle, org_id):
        with pytest.raises(ValueError):
            lifecycle.handle_status_change("any", org_id, "SHIPPED")

    def test_engine_errors_propagate(self, lifecycle, create_item, create_order, org_id):
        create_item("SKU-A", total=1)
        order_id = create_order([("SKU-A", 4)])

        with pytest.raises(InsufficientStockError):
            lifecycle.handle_status_change(order_id, org_id, OrderStatus.NEW)

    def test_status_change_logged(
        self, lifecycle, create_item, create_order, captured_logs, org_id,
    ):
        create_item("SKU-A", total=10)
        order_id = create_order([("SKU-A", 1)])

        lifecycle.handle_status_change(order_id, org_id, OrderStatus.NEW)

        (record,) = [r for r in captured_logs() if r["message"] == "order_status_applied"]
        assert record["status"] == "NEW"
        assert record["inventory_action"] == "reserved"
        assert record["previous_status"] is None
