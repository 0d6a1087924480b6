"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock errors are handled by job runners, webhook handlers and operator
screens that must react differently to each failure. Every error therefore:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (sku, quantities, ids) as attributes
  4. Declares whether it is RETRYABLE

Example - RIGHT way to handle errors:
    try:
        reservations.reserve_stock_for_order(order_id, org_id)
    except InsufficientStockError as e:
        notify(f"SKU {e.sku_id}: {e.available} available, {e.required} required")
    except TransactionConflictError:
        requeue_job()  # the only retryable class

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- NotFoundError
    |   +-- OrderNotFoundError
    |   +-- InventoryItemNotFoundError
    |
    +-- ReservationError
    |   +-- InsufficientStockError
    |   +-- InvalidQuantityError
    |
    +-- AdjustmentError
    |   +-- NegativeInventoryError
    |   +-- BelowReservedQuantityError
    |   +-- NegativeAvailableError
    |   +-- InvalidAdjustmentTypeError
    |
    +-- InventoryItemAlreadyExistsError
    |
    +-- InvariantViolationError
    |
    +-- ConcurrencyError
        +-- TransactionConflictError   (retryable)

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                       | When Raised
-------------|----------------------------|--------------------------------------
Not found    | ORDER_NOT_FOUND            | Order missing or owned by another org
             | INVENTORY_ITEM_NOT_FOUND   | No item for (org, sku)
-------------|----------------------------|--------------------------------------
Reservation  | INSUFFICIENT_STOCK         | available < required for some SKU
             | INVALID_QUANTITY           | Order line quantity <= 0
-------------|----------------------------|--------------------------------------
Adjustment   | NEGATIVE_INVENTORY         | new total < 0
             | BELOW_RESERVED_QUANTITY    | new total < reserved
             | NEGATIVE_AVAILABLE         | new total - reserved < 0
             | INVALID_ADJUSTMENT_TYPE    | Unknown adjustment type
-------------|----------------------------|--------------------------------------
Item         | INVENTORY_ITEM_EXISTS      | SKU already tracked for the org
-------------|----------------------------|--------------------------------------
Invariant    | INVARIANT_VIOLATION        | Counter check failed before write
-------------|----------------------------|--------------------------------------
Concurrency  | TRANSACTION_CONFLICT       | Lock timeout, deadlock, serialization
             |                            | failure, duplicate active reservation

===============================================================================
RETRY POLICY
===============================================================================

Only ``retryable = True`` classes may be retried automatically by the caller
(job queue, webhook redelivery).  Everything else is permanent for the given
input; retrying it blindly produces the same failure.
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses define a ``code`` class attribute for machine-readable
    identification and a ``retryable`` flag for the calling layer.
    """

    code: str = "INVENTORY_KERNEL_ERROR"
    retryable: bool = False


# Not-found exceptions


class NotFoundError(InventoryKernelError):
    """Base exception for missing (or cross-tenant) records."""

    code: str = "NOT_FOUND"


class OrderNotFoundError(NotFoundError):
    """Order does not exist within the given organization."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str, organization_id: str):
        self.order_id = order_id
        self.organization_id = organization_id
        super().__init__(f"Order not found: {order_id}")


class InventoryItemNotFoundError(NotFoundError):
    """No inventory item tracks this SKU within the given organization."""

    code: str = "INVENTORY_ITEM_NOT_FOUND"

    def __init__(self, sku_id: str, organization_id: str):
        self.sku_id = sku_id
        self.organization_id = organization_id
        super().__init__(f"Inventory item not found for SKU: {sku_id}")


# Reservation exceptions


class ReservationError(InventoryKernelError):
    """Base exception for reserve/release failures."""

    code: str = "RESERVATION_ERROR"


class InsufficientStockError(ReservationError):
    """
    Not enough available stock to reserve an order.

    Raised for the first SKU (in lock order) that falls short.  The whole
    order stays unreserved.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, sku_id: str, available: int, required: int):
        self.sku_id = sku_id
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient stock for SKU {sku_id}. "
            f"Available: {available}, Required: {required}"
        )


class InvalidQuantityError(ReservationError):
    """Order line quantity is not a positive integer."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, order_item_id: str, quantity: int):
        self.order_item_id = order_item_id
        self.quantity = quantity
        super().__init__(
            f"Order item {order_item_id} has invalid quantity {quantity}"
        )


# Adjustment exceptions


class AdjustmentError(InventoryKernelError):
    """Base exception for stock adjustment validation failures."""

    code: str = "ADJUSTMENT_ERROR"


class NegativeInventoryError(AdjustmentError):
    """Adjustment would make quantity_total negative."""

    code: str = "NEGATIVE_INVENTORY"

    def __init__(self, sku_id: str, current_total: int, delta: int):
        self.sku_id = sku_id
        self.current_total = current_total
        self.delta = delta
        super().__init__(
            f"Adjustment would result in negative inventory for SKU {sku_id}. "
            f"Current: {current_total}, Attempted: {delta}"
        )


class BelowReservedQuantityError(AdjustmentError):
    """Adjustment would reduce stock below what open orders already hold."""

    code: str = "BELOW_RESERVED_QUANTITY"

    def __init__(
        self,
        sku_id: str,
        current_total: int,
        current_reserved: int,
        delta: int,
    ):
        self.sku_id = sku_id
        self.current_total = current_total
        self.current_reserved = current_reserved
        self.delta = delta
        super().__init__(
            f"Cannot adjust stock below reserved quantity for SKU {sku_id}. "
            f"Current total: {current_total}, Reserved: {current_reserved}, "
            f"Attempted adjustment: {delta}"
        )


class NegativeAvailableError(AdjustmentError):
    """Adjustment would make quantity_available negative."""

    code: str = "NEGATIVE_AVAILABLE"

    def __init__(self, sku_id: str, new_available: int):
        self.sku_id = sku_id
        self.new_available = new_available
        super().__init__(
            f"Adjustment would result in negative available quantity for "
            f"SKU {sku_id}. Available: {new_available}"
        )


class InvalidAdjustmentTypeError(AdjustmentError):
    """Adjustment type is not one of the known AdjustmentType values."""

    code: str = "INVALID_ADJUSTMENT_TYPE"

    def __init__(self, adjustment_type: str):
        self.adjustment_type = adjustment_type
        super().__init__(f"Invalid adjustment type: '{adjustment_type}'")


class InventoryItemAlreadyExistsError(InventoryKernelError):
    """The SKU is already tracked for this organization."""

    code: str = "INVENTORY_ITEM_EXISTS"

    def __init__(self, sku_id: str, organization_id: str):
        self.sku_id = sku_id
        self.organization_id = organization_id
        super().__init__(f"Inventory item already exists for SKU: {sku_id}")


class InvariantViolationError(InventoryKernelError):
    """
    A counter invariant would be broken by a pending write.

    Indicates a programming error in a caller of the ledger store; the
    transaction is rolled back before anything is committed.
    """

    code: str = "INVARIANT_VIOLATION"

    def __init__(self, sku_id: str, violations: list[str]):
        self.sku_id = sku_id
        self.violations = violations
        super().__init__(
            f"Invariant violation for SKU {sku_id}: {', '.join(violations)}"
        )


# Concurrency exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class TransactionConflictError(ConcurrencyError):
    """
    The transaction lost a race and was rolled back.

    Raised on lock timeout, deadlock detection, serialization failure, or
    a concurrent duplicate reservation.  Safe to retry: reserve and release
    are idempotent, so a retry after the winner commits is a no-op.
    """

    code: str = "TRANSACTION_CONFLICT"
    retryable: bool = True

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Transaction conflict during {operation}: {detail}")
