"""
Inventory job handler.

Contract:
    ``InventoryJobHandler.process(job_name, payload)`` runs one queued
    inventory job and classifies the outcome for the queue transport:
    SUCCEEDED, RETRY (retryable kernel errors only) or FAILED (permanent,
    never retried).  The handler itself never retries.

Jobs:
    reserve-inventory     {order_id, organization_id}
    release-reservation   {order_id, organization_id, reason="cancelled"}
    adjust-stock          {sku_id, delta, reason, actor_id, organization_id,
                           type="CORRECTION", reference_type, reference_id, notes}

Invariants enforced:
    - Delivery is at-least-once; reserve and release are idempotent in the
      kernel, so a redelivered job is a no-op.
    - Only errors with ``retryable = True`` map to RETRY.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from inventory_kernel.exceptions import InventoryKernelError
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.services.adjustment_engine import AdjustmentEngine
from inventory_kernel.services.reservation_engine import (
    CANCELLED_REASON,
    ReservationEngine,
)

logger = get_logger("services.jobs")

RESERVE_INVENTORY = "reserve-inventory"
RELEASE_RESERVATION = "release-reservation"
ADJUST_STOCK = "adjust-stock"

UNKNOWN_JOB = "UNKNOWN_JOB"
INVALID_PAYLOAD = "INVALID_PAYLOAD"


class JobStatus(str, Enum):
    """Outcome of one job execution."""

    SUCCEEDED = "succeeded"
    RETRY = "retry"  # Transient; the transport should redeliver
    FAILED = "failed"  # Permanent for this payload


@dataclass(frozen=True)
class JobResult:
    """Result returned to the queue transport."""

    job_name: str
    status: JobStatus
    result_data: dict[str, Any] | None = None
    error_code: str | None = None
    error_message: str | None = None
    details: dict[str, Any] | None = None
    duration_ms: float = 0.0

    @property
    def should_retry(self) -> bool:
        return self.status == JobStatus.RETRY


class InvalidJobPayloadError(ValueError):
    """Payload is missing a required field or has a wrongly typed one."""

    def __init__(self, job_name: str, message: str):
        self.job_name = job_name
        super().__init__(f"{job_name}: {message}")


def _require(payload: Mapping[str, Any], job_name: str, key: str) -> Any:
    value = payload.get(key)
    if value is None or value == "":
        raise InvalidJobPayloadError(job_name, f"missing required field '{key}'")
    return value


def _error_details(exc: InventoryKernelError) -> dict[str, Any]:
    """Structured attributes of a kernel error (sku_id, available, ...)."""
    return {key: value for key, value in vars(exc).items() if not key.startswith("_")}


class InventoryJobHandler:
    """
    Dispatches inventory jobs to the kernel engines.

    Contract:
        - ``process()`` never raises for kernel or payload errors; it
          returns a classified JobResult.  Unexpected exceptions propagate
          so the transport's own failure handling sees them.
    """

    def __init__(
        self,
        reservation_engine: ReservationEngine,
        adjustment_engine: AdjustmentEngine,
    ):
        self._reservations = reservation_engine
        self._adjustments = adjustment_engine
        self._handlers: dict[str, Callable[[Mapping[str, Any]], dict[str, Any]]] = {
            RESERVE_INVENTORY: self._reserve_inventory,
            RELEASE_RESERVATION: self._release_reservation,
            ADJUST_STOCK: self._adjust_stock,
        }

    @property
    def job_names(self) -> tuple[str, ...]:
        return tuple(sorted(self._handlers))

    def process(
        self,
        job_name: str,
        payload: Mapping[str, Any],
        job_id: str | None = None,
    ) -> JobResult:
        with LogContext.bind(job_id=job_id):
            t0 = time.monotonic()
            handler = self._handlers.get(job_name)
            if handler is None:
                logger.warning("job_unknown", extra={"job_name": job_name})
                return JobResult(
                    job_name=job_name,
                    status=JobStatus.FAILED,
                    error_code=UNKNOWN_JOB,
                    error_message=f"Unknown job type: {job_name}",
                )

            logger.info("job_started", extra={"job_name": job_name})
            try:
                result_data = handler(payload)
            except InventoryKernelError as exc:
                status = JobStatus.RETRY if exc.retryable else JobStatus.FAILED
                logger.warning(
                    "job_retry_scheduled" if exc.retryable else "job_failed",
                    extra={"job_name": job_name, "error_code": exc.code},
                )
                return JobResult(
                    job_name=job_name,
                    status=status,
                    error_code=exc.code,
                    error_message=str(exc),
                    details=_error_details(exc),
                    duration_ms=_elapsed_ms(t0),
                )
            except ValueError as exc:
                logger.warning(
                    "job_failed",
                    extra={"job_name": job_name, "error_code": INVALID_PAYLOAD},
                )
                return JobResult(
                    job_name=job_name,
                    status=JobStatus.FAILED,
                    error_code=INVALID_PAYLOAD,
                    error_message=str(exc),
                    duration_ms=_elapsed_ms(t0),
                )

            logger.info(
                "job_succeeded",
                extra={"job_name": job_name, "duration_ms": _elapsed_ms(t0)},
            )
            return JobResult(
                job_name=job_name,
                status=JobStatus.SUCCEEDED,
                result_data=result_data,
                duration_ms=_elapsed_ms(t0),
            )

    def _reserve_inventory(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        order_id = _require(payload, RESERVE_INVENTORY, "order_id")
        organization_id = _require(payload, RESERVE_INVENTORY, "organization_id")
        reservations = self._reservations.reserve_stock_for_order(
            order_id, organization_id,
        )
        return {
            "order_id": str(order_id),
            "reservations": len(reservations),
            "reservation_ids": [str(r.id) for r in reservations],
        }

    def _release_reservation(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        order_id = _require(payload, RELEASE_RESERVATION, "order_id")
        organization_id = _require(payload, RELEASE_RESERVATION, "organization_id")
        reason = payload.get("reason") or CANCELLED_REASON
        released = self._reservations.release_stock_for_order(
            order_id, organization_id, reason,
        )
        return {
            "order_id": str(order_id),
            "released": len(released),
            "reason": reason,
        }

    def _adjust_stock(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        delta = _require(payload, ADJUST_STOCK, "delta")
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise InvalidJobPayloadError(ADJUST_STOCK, f"delta must be an integer, got {delta!r}")
        item = self._adjustments.adjust_stock(
            sku_id=_require(payload, ADJUST_STOCK, "sku_id"),
            delta=delta,
            reason=_require(payload, ADJUST_STOCK, "reason"),
            actor_id=_require(payload, ADJUST_STOCK, "actor_id"),
            organization_id=_require(payload, ADJUST_STOCK, "organization_id"),
            adjustment_type=payload.get("type") or "CORRECTION",
            reference_type=payload.get("reference_type"),
            reference_id=payload.get("reference_id"),
            notes=payload.get("notes"),
        )
        return {
            "sku_id": item.sku_id,
            "quantity_total": item.quantity_total,
            "quantity_reserved": item.quantity_reserved,
            "quantity_available": item.quantity_available,
        }


def _elapsed_ms(t0: float) -> float:
    return round((time.monotonic() - t0) * 1000, 2)
