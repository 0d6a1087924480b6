"""Kernel services: the ledger store and the two write engines."""

from inventory_kernel.services.adjustment_engine import (
    AdjustmentEngine,
    parse_adjustment_type,
)
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.ledger_store import (
    LedgerStore,
    LedgerTransaction,
    is_conflict_error,
)
from inventory_kernel.services.reservation_engine import (
    CANCELLED_REASON,
    RETURNED_REASON,
    ReservationEngine,
)

__all__ = [
    "AdjustmentEngine",
    "BaseService",
    "CANCELLED_REASON",
    "LedgerStore",
    "LedgerTransaction",
    "RETURNED_REASON",
    "ReservationEngine",
    "is_conflict_error",
    "parse_adjustment_type",
]
