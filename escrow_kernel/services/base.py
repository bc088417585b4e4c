"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service in the escrow kernel.  Services receive a
    SQLAlchemy ``Session`` and persist with ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback themselves.  The caller (an HTTP handler,
    run_in_transaction, or a test) owns commit/rollback, so a failed
    operation leaves nothing behind once the caller rolls back.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from escrow_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Read-only queries belong in ``escrow_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
