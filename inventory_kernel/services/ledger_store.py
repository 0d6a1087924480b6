"""
LedgerStore -- transactional, organization-scoped access to stock state.

Responsibility:
    Owns the transaction and locking discipline for every write to
    InventoryItem, InventoryReservation and InventoryAdjustment.  A
    business operation opens exactly one ``transaction()`` scope; all
    reads and writes inside it commit or roll back together.

Architecture position:
    Kernel > Services -- imperative shell.  Used by ReservationEngine and
    AdjustmentEngine.  Selectors read through ``snapshot()``.

Invariants enforced:
    - Atomicity: one database transaction per ``transaction()`` scope.
    - Row-level mutual exclusion per (organization_id, sku_id):
      ``SELECT ... FOR UPDATE`` on PostgreSQL (bounded by ``SET LOCAL
      lock_timeout``); an in-process keyed mutex held until commit or
      rollback on SQLite, which has no row locks.
    - Deadlock freedom: ``lock_items`` acquires locks in sorted sku_id
      order.
    - Counter invariants are re-checked on every ``update_item`` before
      the row is flushed.
    - ``snapshot()`` reads one consistent point in time, so a detail view
      never mixes counters and reservations from different commits.

Failure modes:
    - TransactionConflictError (retryable) on lock timeout, deadlock,
      serialization failure, SQLite "database is locked", or a concurrent
      duplicate of an active reservation.
    - InvariantViolationError if a caller computes inconsistent counters.
    - OrderNotFoundError from ``load_order`` (missing or cross-tenant).

Audit relevance:
    Every counter mutation goes through ``update_item`` and is paired with
    an ``append_adjustment`` row in the same transaction.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, joinedload, sessionmaker

from inventory_kernel.db.engine import supports_row_locks
from inventory_kernel.db.locking import KeyedLockRegistry
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.exceptions import (
    InvalidQuantityError,
    InvariantViolationError,
    OrderNotFoundError,
    TransactionConflictError,
)
from inventory_kernel.invariants import counter_violations
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.adjustment import AdjustmentType, InventoryAdjustment
from inventory_kernel.models.inventory_item import InventoryItem
from inventory_kernel.models.order import Order
from inventory_kernel.models.reservation import (
    ACTIVE_RESERVATION_INDEX,
    InventoryReservation,
)
from inventory_kernel.services.base import BaseService

logger = get_logger("services.ledger_store")

# lock_not_available, deadlock_detected, serialization_failure
_CONFLICT_PGCODES = frozenset({"55P03", "40P01", "40001"})

# Shared by every LedgerStore in the process unless one is injected.
_PROCESS_LOCKS = KeyedLockRegistry()


def is_conflict_error(exc: DBAPIError) -> bool:
    """True if a DBAPI error means the transaction lost a race (retryable)."""
    orig = exc.orig
    if getattr(orig, "pgcode", None) in _CONFLICT_PGCODES:
        return True

    message = str(orig).lower()
    if isinstance(exc, OperationalError) and "database is locked" in message:
        return True
    if isinstance(exc, IntegrityError) and (
        ACTIVE_RESERVATION_INDEX in message
        or "inventory_reservations.order_item_id" in message
    ):
        return True
    return False


def coerce_uuid(value: UUID | str) -> UUID | None:
    """Parse an identifier; None if it is not a valid UUID."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class LedgerStore:
    """
    Factory for ledger transactions.

    Contract:
        ``transaction()`` is the only way the engines obtain a session.
        The store never retries; conflicts surface as
        TransactionConflictError for the calling job or webhook layer.

    Usage:
        with store.transaction("adjust_stock") as txn:
            item = txn.get_item_for_update(org_id, sku_id)
            txn.update_item(item, quantity_total=item.quantity_total + 5)
            txn.append_adjustment(item, ...)
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        lock_timeout_seconds: float = 5.0,
        lock_registry: KeyedLockRegistry | None = None,
        use_process_locks: bool | None = None,
    ):
        """
        Args:
            session_factory: Bound sessionmaker (see db.engine).
            clock: Time source for reserved_at/released_at/created_at.
            lock_timeout_seconds: Upper bound on waiting for one row lock.
            lock_registry: Keyed mutexes for backends without row locks.
                Defaults to a registry shared across the process.
            use_process_locks: Force keyed mutexes on or off.  Defaults to
                on when the bound dialect has no SELECT ... FOR UPDATE.
        """
        if lock_timeout_seconds <= 0:
            raise ValueError(
                f"lock_timeout_seconds must be positive, got {lock_timeout_seconds}"
            )
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self.lock_timeout_seconds = lock_timeout_seconds

        bind = session_factory.kw.get("bind")
        self._dialect = bind.dialect.name if bind is not None else None
        if use_process_locks is None:
            use_process_locks = bind is None or not supports_row_locks(bind)
        self._locks = (
            (lock_registry if lock_registry is not None else _PROCESS_LOCKS)
            if use_process_locks
            else None
        )

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def uses_process_locks(self) -> bool:
        return self._locks is not None

    @contextmanager
    def transaction(self, operation: str = "ledger") -> Iterator[LedgerTransaction]:
        """
        Scoped unit of work.  Commits on normal exit, rolls back on error.

        Postconditions:
            - Keyed locks taken by the transaction are released after
              commit or rollback, never before.
            - Conflict-class DBAPI errors are re-raised as
              TransactionConflictError; everything else propagates as-is.
        """
        session = self._session_factory()
        txn = LedgerTransaction(
            session,
            clock=self._clock,
            lock_registry=self._locks,
            lock_timeout_seconds=self.lock_timeout_seconds,
            operation=operation,
        )
        logger.debug("transaction_started", extra={"operation": operation})
        try:
            if self._dialect == "postgresql":
                timeout_ms = int(self.lock_timeout_seconds * 1000)
                session.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))
            yield txn
            session.commit()
            logger.debug("transaction_committed", extra={"operation": operation})
        except DBAPIError as exc:
            session.rollback()
            if is_conflict_error(exc):
                logger.warning(
                    "transaction_conflict",
                    extra={"operation": operation, "detail": str(exc.orig)},
                )
                raise TransactionConflictError(operation, str(exc.orig)) from exc
            logger.error(
                "transaction_rolled_back",
                extra={"operation": operation},
                exc_info=True,
            )
            raise
        except Exception as exc:
            session.rollback()
            logger.info(
                "transaction_rolled_back",
                extra={
                    "operation": operation,
                    "error_code": getattr(exc, "code", type(exc).__name__),
                },
            )
            raise
        finally:
            session.close()
            txn.release_locks()

    @contextmanager
    def snapshot(self) -> Iterator[Session]:
        """
        Read-only session over committed state.  Never commits.

        Every query in the scope reads the same snapshot: REPEATABLE READ on
        PostgreSQL, one explicit read transaction on SQLite.  A write that
        commits while the scope is open is not visible inside it.
        """
        session = self._session_factory()
        try:
            if self._dialect == "postgresql":
                session.connection(
                    execution_options={"isolation_level": "REPEATABLE READ"}
                )
            elif self._dialect == "sqlite":
                # pysqlite emits no BEGIN before a SELECT
                session.connection().exec_driver_sql("BEGIN")
            yield session
        finally:
            session.rollback()
            session.close()


class LedgerTransaction(BaseService):
    """
    One open ledger transaction.

    Contract:
        Methods flush but never commit; the owning ``LedgerStore.transaction``
        scope commits.  Row locks taken here are held until that scope ends.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        lock_registry: KeyedLockRegistry | None,
        lock_timeout_seconds: float,
        operation: str,
    ):
        super().__init__(session)
        self.clock = clock
        self._locks = lock_registry
        self._lock_timeout = lock_timeout_seconds
        self._operation = operation
        self._held: list[tuple[str, str]] = []

    # -- locking ----------------------------------------------------------

    @property
    def held_locks(self) -> tuple[tuple[str, str], ...]:
        return tuple(self._held)

    def _acquire_process_lock(self, organization_id: str, sku_id: str) -> None:
        if self._locks is None:
            return
        key = (organization_id, sku_id)
        if key in self._held:
            return
        if not self._locks.acquire(key, timeout=self._lock_timeout):
            logger.warning(
                "lock_timeout",
                extra={
                    "operation": self._operation,
                    "sku_id": sku_id,
                    "timeout_seconds": self._lock_timeout,
                },
            )
            raise TransactionConflictError(
                self._operation,
                f"timed out after {self._lock_timeout}s waiting for SKU {sku_id}",
            )
        self._held.append(key)

    def release_locks(self) -> None:
        """Release keyed locks in reverse acquisition order."""
        if self._locks is None:
            return
        while self._held:
            self._locks.release(self._held.pop())

    def get_item_for_update(
        self, organization_id: str, sku_id: str,
    ) -> InventoryItem | None:
        """
        Load an item with an exclusive lock held until the transaction ends.

        Returns None (holding only the keyed mutex, if any) when the
        organization does not track the SKU.
        """
        self._acquire_process_lock(organization_id, sku_id)
        return self.session.execute(
            select(InventoryItem)
            .where(
                InventoryItem.organization_id == organization_id,
                InventoryItem.sku_id == sku_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def lock_items(
        self, organization_id: str, sku_ids: Iterable[str],
    ) -> dict[str, InventoryItem | None]:
        """
        Lock every distinct SKU in sorted order.

        Every multi-SKU operation locks through here, which gives all
        transactions the same total lock order.
        """
        locked: dict[str, InventoryItem | None] = {}
        for sku_id in sorted(set(sku_ids)):
            locked[sku_id] = self.get_item_for_update(organization_id, sku_id)
        logger.debug(
            "items_locked",
            extra={"operation": self._operation, "sku_ids": list(locked)},
        )
        return locked

    # -- reads ------------------------------------------------------------

    def load_order(self, order_id: UUID | str, organization_id: str) -> Order:
        """Load an order with its line items.  Cross-tenant is not-found."""
        parsed = coerce_uuid(order_id)
        order = None
        if parsed is not None:
            order = self.session.execute(
                select(Order).where(
                    Order.id == parsed,
                    Order.organization_id == organization_id,
                )
            ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(str(order_id), organization_id)
        return order

    def active_reservations_for_order(
        self, order_id: UUID, organization_id: str,
    ) -> list[InventoryReservation]:
        """Active reservations of an order, ordered by (sku_id, order_item_id)."""
        return list(
            self.session.execute(
                select(InventoryReservation)
                .join(InventoryReservation.inventory_item)
                .where(
                    InventoryReservation.order_id == order_id,
                    InventoryReservation.released_at.is_(None),
                    InventoryItem.organization_id == organization_id,
                )
                .options(joinedload(InventoryReservation.inventory_item))
                .order_by(InventoryItem.sku_id, InventoryReservation.order_item_id)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    # -- writes -----------------------------------------------------------

    def add_item(
        self,
        organization_id: str,
        sku_id: str,
        reorder_point: int | None = None,
        reorder_quantity: int | None = None,
        location_bin: str | None = None,
    ) -> InventoryItem:
        """Insert an empty counter row.  Raises IntegrityError on duplicates."""
        self._acquire_process_lock(organization_id, sku_id)
        item = InventoryItem(
            organization_id=organization_id,
            sku_id=sku_id,
            quantity_total=0,
            quantity_reserved=0,
            quantity_available=0,
            reorder_point=reorder_point,
            reorder_quantity=reorder_quantity,
            location_bin=location_bin,
        )
        self.session.add(item)
        self.session.flush()
        return item

    def update_item(
        self,
        item: InventoryItem,
        *,
        quantity_total: int | None = None,
        quantity_reserved: int | None = None,
    ) -> InventoryItem:
        """
        Write new counters; quantity_available is always recomputed.

        Raises:
            InvariantViolationError: The resulting counters are inconsistent.
        """
        total = item.quantity_total if quantity_total is None else quantity_total
        reserved = (
            item.quantity_reserved if quantity_reserved is None else quantity_reserved
        )
        available = total - reserved

        violations = counter_violations(total, reserved, available)
        if violations:
            logger.error(
                "invariant_violation_blocked",
                extra={
                    "sku_id": item.sku_id,
                    "quantity_total": total,
                    "quantity_reserved": reserved,
                    "violations": [v.value for v in violations],
                },
            )
            raise InvariantViolationError(item.sku_id, [v.value for v in violations])

        item.quantity_total = total
        item.quantity_reserved = reserved
        item.quantity_available = available
        self.session.flush()
        return item

    def create_reservation(
        self,
        item: InventoryItem,
        order_id: UUID,
        order_item_id: UUID,
        quantity: int,
    ) -> InventoryReservation:
        if quantity <= 0:
            raise InvalidQuantityError(str(order_item_id), quantity)
        reservation = InventoryReservation(
            inventory_item_id=item.id,
            order_id=order_id,
            order_item_id=order_item_id,
            quantity_reserved=quantity,
            reserved_at=self.clock.now(),
        )
        self.session.add(reservation)
        self.session.flush()
        return reservation

    def release_reservation(
        self, reservation: InventoryReservation, reason: str,
    ) -> InventoryReservation:
        """Mark a reservation released.  Releasing twice is a programming error."""
        if reservation.released_at is not None:
            raise RuntimeError(f"Reservation {reservation.id} is already released")
        reservation.released_at = self.clock.now()
        reservation.reason = reason
        self.session.flush()
        return reservation

    def append_adjustment(
        self,
        item: InventoryItem,
        *,
        actor_id: str,
        adjustment_type: AdjustmentType,
        quantity_change: int,
        reason: str,
        reference_type: str | None = None,
        reference_id: str | None = None,
        notes: str | None = None,
    ) -> InventoryAdjustment:
        adjustment = InventoryAdjustment(
            organization_id=item.organization_id,
            inventory_item_id=item.id,
            actor_id=actor_id,
            type=AdjustmentType(adjustment_type).value,
            quantity_change=quantity_change,
            reason=reason,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            created_at=self.clock.now(),
        )
        self.session.add(adjustment)
        self.session.flush()
        return adjustment
