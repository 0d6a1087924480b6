"""Tests for runtime wiring (inventory_services/runtime.py)."""

import pytest

from inventory_config.schema import InventorySettings
from inventory_kernel.db.engine import init_engine_from_url
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.models.order import OrderStatus
from inventory_services import InventoryAction, JobStatus, build_runtime


@pytest.fixture
def runtime(db_engine, db):
    """A runtime bound to the test database; the suite's engine is restored after."""
    url = db_engine.url.render_as_string(hide_password=False)
    settings = InventorySettings(
        database_url=url,
        lock_timeout_seconds=2.0,
        system_actor_id="runtime-bot",
        recent_adjustment_limit=3,
        default_page_size=2,
        max_page_size=50,
    )
    yield build_runtime(settings, clock=DeterministicClock())
    init_engine_from_url(url, pool_size=30, max_overflow=20, pool_timeout=10)


class TestBuildRuntime:

    def test_wiring(self, runtime, is_postgres):
        assert runtime.engine.dialect.name == ("postgresql" if is_postgres else "sqlite")
        assert runtime.store.lock_timeout_seconds == 2.0
        assert runtime.store.uses_process_locks is not is_postgres
        assert runtime.jobs.job_names

    def test_end_to_end_through_lifecycle(self, runtime, create_order, org_id):
        runtime.adjustments.create_item(org_id, "SKU-A", "user-ops", initial_quantity=10)
        order_id = create_order([("SKU-A", 4)])

        outcome = runtime.lifecycle.handle_status_change(order_id, org_id, OrderStatus.NEW)

        assert outcome.action == InventoryAction.RESERVED
        with runtime.selector() as selector:
            detail = selector.find_by_sku_id(org_id, "SKU-A")
        assert detail.item.quantity_available == 6
        # Order has no users; the configured system actor is recorded on the SALE
        actors = {a.adjustment_type: a.actor_id for a in detail.recent_adjustments}
        assert actors == {"PURCHASE": "user-ops", "SALE": "runtime-bot"}

    def test_selector_uses_configured_limits(self, runtime, org_id):
        runtime.adjustments.create_item(org_id, "SKU-A", "user-ops")
        for _ in range(5):
            runtime.adjustments.adjust_stock("SKU-A", 1, "count", "user-ops", org_id)

        with runtime.selector() as selector:
            detail = selector.find_by_sku_id(org_id, "SKU-A")
            page = selector.find_all(org_id, limit=1000)

        assert len(detail.recent_adjustments) == 3
        assert page.limit == 50

    def test_selector_uses_configured_default_page_size(self, runtime, org_id):
        for sku in ("SKU-A", "SKU-B", "SKU-C", "SKU-D"):
            runtime.adjustments.create_item(org_id, sku, "user-ops")

        with runtime.selector() as selector:
            page = selector.find_all(org_id)

        assert page.limit == 2
        assert [i.sku_id for i in page.items] == ["SKU-A", "SKU-B"]
        assert page.total_pages == 2

    def test_jobs_wired(self, runtime, create_order, org_id):
        runtime.adjustments.create_item(org_id, "SKU-A", "user-ops", initial_quantity=2)
        order_id = create_order([("SKU-A", 1)])

        result = runtime.jobs.process(
            "reserve-inventory", {"order_id": str(order_id), "organization_id": org_id},
        )

        assert result.status == JobStatus.SUCCEEDED
