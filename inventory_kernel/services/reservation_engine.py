"""
ReservationEngine -- reserve and release stock for whole orders.

Responsibility:
    Turns order lifecycle events into reservation rows and counter
    changes.  Reserve claims stock for every line item of an order;
    release returns it.  Both are idempotent under duplicate delivery.

Architecture position:
    Kernel > Services -- imperative shell.  Writes exclusively through
    LedgerStore, one transaction per call.

Invariants enforced:
    - All-or-nothing: every line is validated before the first write, so
      an order is either fully reserved or left untouched.
    - Single active reservation per order item: check-then-act.  The
      existence check runs again after every row lock is held, so the
      loser of a race observes the winner's committed reservations and
      returns them instead of reserving twice.
    - Deadlock freedom: rows are locked through LedgerStore.lock_items
      (sorted sku_id order) by both reserve and release.

Failure modes:
    - OrderNotFoundError: order missing or owned by another organization.
    - InvalidQuantityError: a line quantity is not positive.
    - InventoryItemNotFoundError: a line's SKU is not tracked.
    - InsufficientStockError: available < required (summed per SKU).
    - TransactionConflictError: lock timeout or lost race (retryable).

Audit relevance:
    Every reservation is paired with a SALE adjustment (quantity_change
    -qty); every release with RETURN or CORRECTION (+qty).  Both carry
    reference_type "order" and the order id.
"""

from __future__ import annotations

import time
from collections import Counter
from uuid import UUID

from inventory_kernel.domain.dtos import ReservationInfo
from inventory_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    InventoryItemNotFoundError,
    TransactionConflictError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.adjustment import AdjustmentType
from inventory_kernel.services.ledger_store import LedgerStore, LedgerTransaction

logger = get_logger("services.reservation_engine")

RETURNED_REASON = "returned"
CANCELLED_REASON = "cancelled"
ORDER_REFERENCE_TYPE = "order"
DEFAULT_SYSTEM_ACTOR = "system"


class ReservationEngine:
    """
    Reserves and releases stock for orders.

    Contract:
        Each public call is one LedgerStore transaction.  The engine never
        retries; a TransactionConflictError is for the caller to retry.

    Guarantees:
        - Calling reserve twice returns the same reservations and changes
          nothing the second time.
        - Calling release with nothing active returns [] and changes
          nothing.
    """

    def __init__(
        self,
        store: LedgerStore,
        system_actor_id: str = DEFAULT_SYSTEM_ACTOR,
    ):
        self._store = store
        self._system_actor_id = system_actor_id

    def reserve_stock_for_order(
        self, order_id: UUID | str, organization_id: str,
    ) -> list[ReservationInfo]:
        """
        Reserve every line item of an order.

        Returns:
            The order's active reservations, ordered by (sku_id,
            order_item_id).  If the order was already reserved these are
            the existing rows.
        """
        with LogContext.bind(organization_id=organization_id, order_id=order_id):
            logger.info("reserve_started")
            t0 = time.monotonic()
            with self._store.transaction("reserve_stock_for_order") as txn:
                reservations = self._reserve(txn, order_id, organization_id)
            logger.info(
                "reserve_completed",
                extra={
                    "reservation_count": len(reservations),
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return reservations

    def release_stock_for_order(
        self, order_id: UUID | str, organization_id: str, reason: str,
    ) -> list[ReservationInfo]:
        """
        Release every active reservation of an order.

        Args:
            reason: Recorded on each reservation; "returned" logs RETURN
                adjustments, anything else logs CORRECTION.

        Returns:
            The reservations released by this call ([] if none were active).
        """
        with LogContext.bind(organization_id=organization_id, order_id=order_id):
            logger.info("release_started", extra={"reason": reason})
            t0 = time.monotonic()
            with self._store.transaction("release_stock_for_order") as txn:
                released = self._release(txn, order_id, organization_id, reason)
            logger.info(
                "release_completed",
                extra={
                    "reason": reason,
                    "released_count": len(released),
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return released

    def _reserve(
        self, txn: LedgerTransaction, order_id: UUID | str, organization_id: str,
    ) -> list[ReservationInfo]:
        order = txn.load_order(order_id, organization_id)

        existing = txn.active_reservations_for_order(order.id, organization_id)
        if existing:
            logger.info(
                "reserve_skipped_already_reserved",
                extra={"reservation_count": len(existing)},
            )
            return [_to_info(r) for r in existing]

        lines = sorted(order.items, key=lambda line: (line.sku_id, str(line.id)))
        if not lines:
            logger.info("reserve_skipped_no_items")
            return []

        for line in lines:
            if line.quantity <= 0:
                raise InvalidQuantityError(str(line.id), line.quantity)

        items = txn.lock_items(organization_id, (line.sku_id for line in lines))

        # Re-check under the locks: a concurrent duplicate may have won.
        existing = txn.active_reservations_for_order(order.id, organization_id)
        if existing:
            logger.info(
                "reserve_skipped_already_reserved",
                extra={"reservation_count": len(existing), "after_lock": True},
            )
            return [_to_info(r) for r in existing]

        required: Counter[str] = Counter()
        for line in lines:
            required[line.sku_id] += line.quantity

        for sku_id, item in items.items():
            if item is None:
                raise InventoryItemNotFoundError(sku_id, organization_id)
            if item.quantity_available < required[sku_id]:
                logger.warning(
                    "reserve_rejected_insufficient_stock",
                    extra={
                        "sku_id": sku_id,
                        "available": item.quantity_available,
                        "required": required[sku_id],
                    },
                )
                raise InsufficientStockError(
                    sku_id, item.quantity_available, required[sku_id],
                )

        actor_id = order.created_by_id or order.updated_by_id or self._system_actor_id
        created: list[ReservationInfo] = []
        for line in lines:
            item = items[line.sku_id]
            reservation = txn.create_reservation(item, order.id, line.id, line.quantity)
            txn.update_item(
                item, quantity_reserved=item.quantity_reserved + line.quantity,
            )
            txn.append_adjustment(
                item,
                actor_id=actor_id,
                adjustment_type=AdjustmentType.SALE,
                quantity_change=-line.quantity,
                reason="Reserved for order",
                reference_type=ORDER_REFERENCE_TYPE,
                reference_id=str(order.id),
                notes=f"Reserved {line.quantity} units for order {order.order_number}",
            )
            logger.info(
                "reservation_created",
                extra={
                    "sku_id": item.sku_id,
                    "order_item_id": str(line.id),
                    "quantity": line.quantity,
                    "quantity_available": item.quantity_available,
                },
            )
            created.append(ReservationInfo.from_model(reservation, item.sku_id))
        return created

    def _release(
        self,
        txn: LedgerTransaction,
        order_id: UUID | str,
        organization_id: str,
        reason: str,
    ) -> list[ReservationInfo]:
        order = txn.load_order(order_id, organization_id)

        existing = txn.active_reservations_for_order(order.id, organization_id)
        if not existing:
            logger.info("release_skipped_no_active_reservations")
            return []

        sku_ids = {line.sku_id for line in order.items}
        sku_ids.update(r.inventory_item.sku_id for r in existing)
        items = txn.lock_items(organization_id, sku_ids)

        active = txn.active_reservations_for_order(order.id, organization_id)
        if not active:
            logger.info(
                "release_skipped_no_active_reservations", extra={"after_lock": True},
            )
            return []

        adjustment_type = (
            AdjustmentType.RETURN if reason == RETURNED_REASON
            else AdjustmentType.CORRECTION
        )
        actor_id = order.updated_by_id or order.created_by_id or self._system_actor_id
        released: list[ReservationInfo] = []
        for reservation in active:
            sku_id = reservation.inventory_item.sku_id
            item = items.get(sku_id)
            if item is None:
                # Reserved on a SKU outside the lock set after the pre-check
                raise TransactionConflictError(
                    "release_stock_for_order",
                    f"active reservation on unlocked SKU {sku_id}",
                )
            quantity = reservation.quantity_reserved
            txn.release_reservation(reservation, reason)
            txn.update_item(item, quantity_reserved=item.quantity_reserved - quantity)
            txn.append_adjustment(
                item,
                actor_id=actor_id,
                adjustment_type=adjustment_type,
                quantity_change=quantity,
                reason=f"Released from {reason} order",
                reference_type=ORDER_REFERENCE_TYPE,
                reference_id=str(order.id),
                notes=(
                    f"Released {quantity} units from order "
                    f"{order.order_number} ({reason})"
                ),
            )
            logger.info(
                "reservation_released",
                extra={
                    "sku_id": sku_id,
                    "order_item_id": str(reservation.order_item_id),
                    "quantity": quantity,
                    "quantity_available": item.quantity_available,
                },
            )
            released.append(ReservationInfo.from_model(reservation, sku_id))
        return released


def _to_info(reservation) -> ReservationInfo:
    return ReservationInfo.from_model(reservation, reservation.inventory_item.sku_id)
