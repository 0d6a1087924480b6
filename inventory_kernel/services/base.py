"""
BaseService -- abstract base for kernel units of work.

Responsibility:
    Provides the common constructor and session-handling contract for
    the kernel's write-side classes.  A service receives a SQLAlchemy
    ``Session`` and persists changes via ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's
    transaction and never commit or roll back themselves.  The ledger
    store's ``transaction()`` scope owns commit/rollback.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for session-bound kernel services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide query-only views -- those belong in
          ``inventory_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        """
        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session
