"""
inventory_services -- orchestration over the inventory kernel.

Responsibility:
    Order lifecycle integration, queued job handling, and runtime wiring.
    This is the layer that reads settings and constructs kernel services.

Architecture position:
    Services -- stateful orchestration over the kernel.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        inventory_services/ -> inventory_kernel/   (allowed)
        inventory_services/ -> inventory_config/   (allowed)
        inventory_kernel/   -> inventory_services/ (FORBIDDEN)
"""

from inventory_services.jobs import InventoryJobHandler, JobResult, JobStatus
from inventory_services.order_lifecycle import (
    InventoryAction,
    LifecycleOutcome,
    OrderLifecycleService,
)
from inventory_services.runtime import InventoryRuntime, build_runtime

__all__ = [
    "InventoryAction",
    "InventoryJobHandler",
    "InventoryRuntime",
    "JobResult",
    "JobStatus",
    "LifecycleOutcome",
    "OrderLifecycleService",
    "build_runtime",
]
