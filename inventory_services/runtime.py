"""
Runtime wiring.

Builds the object graph for one process from InventorySettings: engine,
session factory, ledger store, both engines, the lifecycle service and the
job handler.  All kernel wiring happens here; no kernel class constructs
its own dependencies.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from inventory_config.schema import InventorySettings
from inventory_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.logging_config import configure_logging, get_logger
from inventory_kernel.selectors.inventory_selector import InventorySelector
from inventory_kernel.services.adjustment_engine import AdjustmentEngine
from inventory_kernel.services.ledger_store import LedgerStore
from inventory_kernel.services.reservation_engine import ReservationEngine
from inventory_services.jobs import InventoryJobHandler
from inventory_services.order_lifecycle import OrderLifecycleService

logger = get_logger("services.runtime")


@dataclass
class InventoryRuntime:
    """Everything a worker or API process needs to serve inventory calls."""

    settings: InventorySettings
    engine: Engine
    session_factory: sessionmaker[Session]
    store: LedgerStore
    reservations: ReservationEngine
    adjustments: AdjustmentEngine
    lifecycle: OrderLifecycleService
    jobs: InventoryJobHandler

    @contextmanager
    def selector(self) -> Iterator[InventorySelector]:
        """Query layer over a read-only snapshot session."""
        with self.store.snapshot() as session:
            yield InventorySelector(
                session,
                recent_adjustment_limit=self.settings.recent_adjustment_limit,
                default_page_size=self.settings.default_page_size,
                max_page_size=self.settings.max_page_size,
            )


def build_runtime(
    settings: InventorySettings,
    clock: Clock | None = None,
    create_schema: bool = False,
) -> InventoryRuntime:
    """
    Initialize the database engine and wire the kernel services.

    Args:
        settings: Validated settings (see inventory_config.get_active_settings).
        clock: Time source; SystemClock in production.
        create_schema: Create missing tables (embedded/dev setups).
    """
    configure_logging(level=settings.log_level)
    engine = init_engine_from_url(
        settings.database_url,
        echo=settings.echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_timeout=settings.pool_timeout,
        busy_timeout_seconds=settings.busy_timeout_seconds,
    )
    if create_schema:
        create_tables()

    session_factory = get_session_factory()
    store = LedgerStore(
        session_factory,
        clock=clock or SystemClock(),
        lock_timeout_seconds=settings.lock_timeout_seconds,
    )
    reservations = ReservationEngine(store, system_actor_id=settings.system_actor_id)
    adjustments = AdjustmentEngine(store)

    runtime = InventoryRuntime(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        store=store,
        reservations=reservations,
        adjustments=adjustments,
        lifecycle=OrderLifecycleService(reservations),
        jobs=InventoryJobHandler(reservations, adjustments),
    )
    logger.info(
        "runtime_built",
        extra={
            "dialect": engine.dialect.name,
            "process_locks": store.uses_process_locks,
            "lock_timeout_seconds": settings.lock_timeout_seconds,
        },
    )
    return runtime
