"""
Caller-side transaction runner with optimistic-lock retry.

The engine never retries.  A caller that wants "retry on conflict" wraps its
unit of work here: each attempt gets a fresh session, success commits, any
exception rolls back, and only OptimisticLockError triggers another attempt.

Usage:
    result = run_in_transaction(
        get_session_factory(),
        lambda session: EscrowService(session, settings, rail)
            .release_partial_escrow(escrow_id, Decimal("4000"), "Phase 1", ["D", "B"]),
    )
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.orm import Session, sessionmaker

from escrow_kernel.exceptions import OptimisticLockError
from escrow_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3


def run_in_transaction(
    session_factory: sessionmaker[Session] | Callable[[], Session],
    work: Callable[[Session], T],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
) -> T:
    """
    Run ``work(session)`` in its own transaction, retrying lost races.

    Preconditions:
        max_attempts >= 1.

    Postconditions:
        On success the transaction is committed and work's result returned.
        On failure every attempt has been rolled back; the last
        OptimisticLockError, or the first other exception, propagates.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    attempt = 1
    while True:
        session = session_factory()
        try:
            result = work(session)
            session.commit()
            return result
        except OptimisticLockError:
            session.rollback()
            if attempt >= max_attempts:
                logger.warning(
                    "transaction_retries_exhausted",
                    extra={"attempts": attempt},
                )
                raise
            logger.info(
                "transaction_retry",
                extra={"attempt": attempt, "max_attempts": max_attempts},
            )
            attempt += 1
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
