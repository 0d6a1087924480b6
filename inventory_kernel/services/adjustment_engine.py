"""
AdjustmentEngine -- manual and external stock deltas.

Responsibility:
    Applies purchases, damage, loss, corrections, transfers and returns
    to a SKU's total stock, and manages the lifecycle of inventory item
    rows (start tracking, reorder settings).

Architecture position:
    Kernel > Services -- imperative shell.  Writes exclusively through
    LedgerStore, one transaction per call.

Invariants enforced:
    Validation runs inside the row lock, in this order:
    - new_total = total + delta must be >= 0          (NegativeInventoryError)
    - new_total must be >= quantity_reserved          (BelowReservedQuantityError)
    - new_total - quantity_reserved must be >= 0      (NegativeAvailableError)
    Stock already promised to open orders can never be adjusted away.

Failure modes:
    - InventoryItemNotFoundError: SKU not tracked for the organization.
    - InvalidAdjustmentTypeError: unknown adjustment type.
    - InventoryItemAlreadyExistsError: create_item on a tracked SKU.
    - TransactionConflictError: lock timeout (retryable).

Audit relevance:
    Each successful adjust_stock appends exactly one adjustment row with
    the caller's type, reason, actor and optional reference.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from inventory_kernel.domain.dtos import InventoryItemInfo
from inventory_kernel.exceptions import (
    BelowReservedQuantityError,
    InvalidAdjustmentTypeError,
    InvalidQuantityError,
    InventoryItemAlreadyExistsError,
    InventoryItemNotFoundError,
    NegativeAvailableError,
    NegativeInventoryError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.adjustment import AdjustmentType
from inventory_kernel.services.ledger_store import LedgerStore

logger = get_logger("services.adjustment_engine")

# Sentinel for "leave this setting unchanged" in update_item_settings
_UNSET = object()


def parse_adjustment_type(value: AdjustmentType | str) -> AdjustmentType:
    """Coerce a type name ("purchase", "PURCHASE") to AdjustmentType."""
    if isinstance(value, AdjustmentType):
        return value
    try:
        return AdjustmentType(str(value).upper())
    except ValueError:
        raise InvalidAdjustmentTypeError(str(value)) from None


class AdjustmentEngine:
    """
    Applies stock deltas with invariant checks.

    Contract:
        Each public call is one LedgerStore transaction; on any failure the
        item and the adjustment log are unchanged.
    """

    def __init__(self, store: LedgerStore):
        self._store = store

    def adjust_stock(
        self,
        sku_id: str,
        delta: int,
        reason: str,
        actor_id: str,
        organization_id: str,
        adjustment_type: AdjustmentType | str = AdjustmentType.CORRECTION,
        reference_type: str | None = None,
        reference_id: str | None = None,
        notes: str | None = None,
    ) -> InventoryItemInfo:
        """
        Add ``delta`` (signed) to a SKU's total stock.

        Returns:
            The item's counters after the adjustment.
        """
        adjustment_type = parse_adjustment_type(adjustment_type)

        with LogContext.bind(organization_id=organization_id, actor_id=actor_id):
            logger.info(
                "adjust_started",
                extra={
                    "sku_id": sku_id,
                    "delta": delta,
                    "adjustment_type": adjustment_type.value,
                },
            )
            with self._store.transaction("adjust_stock") as txn:
                item = txn.get_item_for_update(organization_id, sku_id)
                if item is None:
                    raise InventoryItemNotFoundError(sku_id, organization_id)

                new_total = item.quantity_total + delta
                if new_total < 0:
                    logger.warning(
                        "adjust_rejected_negative_inventory",
                        extra={"sku_id": sku_id, "current_total": item.quantity_total},
                    )
                    raise NegativeInventoryError(sku_id, item.quantity_total, delta)

                if new_total < item.quantity_reserved:
                    logger.warning(
                        "adjust_rejected_below_reserved",
                        extra={
                            "sku_id": sku_id,
                            "current_total": item.quantity_total,
                            "current_reserved": item.quantity_reserved,
                        },
                    )
                    raise BelowReservedQuantityError(
                        sku_id, item.quantity_total, item.quantity_reserved, delta,
                    )

                new_available = new_total - item.quantity_reserved
                if new_available < 0:
                    raise NegativeAvailableError(sku_id, new_available)

                txn.update_item(item, quantity_total=new_total)
                txn.append_adjustment(
                    item,
                    actor_id=actor_id,
                    adjustment_type=adjustment_type,
                    quantity_change=delta,
                    reason=reason,
                    reference_type=reference_type,
                    reference_id=reference_id,
                    notes=notes,
                )
                result = InventoryItemInfo.from_model(item)

            logger.info(
                "stock_adjusted",
                extra={
                    "sku_id": sku_id,
                    "delta": delta,
                    "adjustment_type": adjustment_type.value,
                    "quantity_total": result.quantity_total,
                    "quantity_available": result.quantity_available,
                },
            )
            return result

    def create_item(
        self,
        organization_id: str,
        sku_id: str,
        actor_id: str,
        initial_quantity: int = 0,
        reorder_point: int | None = None,
        reorder_quantity: int | None = None,
        location_bin: str | None = None,
    ) -> InventoryItemInfo:
        """
        Start tracking a SKU.

        A positive ``initial_quantity`` is recorded as a PURCHASE adjustment
        so the log accounts for every unit on hand.
        """
        if initial_quantity < 0:
            raise InvalidQuantityError(sku_id, initial_quantity)

        with LogContext.bind(organization_id=organization_id, actor_id=actor_id):
            try:
                with self._store.transaction("create_item") as txn:
                    if txn.get_item_for_update(organization_id, sku_id) is not None:
                        raise InventoryItemAlreadyExistsError(sku_id, organization_id)

                    item = txn.add_item(
                        organization_id,
                        sku_id,
                        reorder_point=reorder_point,
                        reorder_quantity=reorder_quantity,
                        location_bin=location_bin,
                    )
                    if initial_quantity > 0:
                        txn.update_item(item, quantity_total=initial_quantity)
                        txn.append_adjustment(
                            item,
                            actor_id=actor_id,
                            adjustment_type=AdjustmentType.PURCHASE,
                            quantity_change=initial_quantity,
                            reason="Initial stock",
                            reference_type="manual",
                        )
                    result = InventoryItemInfo.from_model(item)
            except IntegrityError:
                # Concurrent create won the unique (organization_id, sku_id) race
                raise InventoryItemAlreadyExistsError(sku_id, organization_id) from None

            logger.info(
                "inventory_item_created",
                extra={"sku_id": sku_id, "initial_quantity": initial_quantity},
            )
            return result

    def update_item_settings(
        self,
        organization_id: str,
        sku_id: str,
        reorder_point=_UNSET,
        reorder_quantity=_UNSET,
        location_bin=_UNSET,
    ) -> InventoryItemInfo:
        """
        Change non-quantity fields.  Omitted arguments are left unchanged;
        pass None to clear a setting.
        """
        for name, value in (
            ("reorder_point", reorder_point),
            ("reorder_quantity", reorder_quantity),
        ):
            if value is not _UNSET and value is not None and value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")

        with self._store.transaction("update_item_settings") as txn:
            item = txn.get_item_for_update(organization_id, sku_id)
            if item is None:
                raise InventoryItemNotFoundError(sku_id, organization_id)
            if reorder_point is not _UNSET:
                item.reorder_point = reorder_point
            if reorder_quantity is not _UNSET:
                item.reorder_quantity = reorder_quantity
            if location_bin is not _UNSET:
                item.location_bin = location_bin
            txn.session.flush()
            result = InventoryItemInfo.from_model(item)

        logger.info(
            "inventory_item_settings_updated",
            extra={"organization_id": organization_id, "sku_id": sku_id},
        )
        return result
