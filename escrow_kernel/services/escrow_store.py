"""
EscrowAccountStore -- the Escrow Account Store.

Responsibility:
    Loads and persists EscrowAccount rows for the engine: plain reads,
    locked reads for read-modify-write, lookup by contract, and flushing
    with the optimistic concurrency check.

Architecture position:
    Kernel > Services -- imperative shell.  Used only by EscrowService.
    Read-only callers use EscrowSelector instead.

Invariants enforced:
    - One account per contract: add() refuses a second account for a
      contract_id, and the uq_escrow_contract constraint backs it up.
    - Every UPDATE is version-checked (version_id_col).  load_for_update()
      additionally takes SELECT ... FOR UPDATE, which serializes writers on
      PostgreSQL; SQLite ignores the lock and relies on the version check.

Failure modes:
    - EscrowNotFoundError: unknown or malformed id.
    - EscrowAlreadyExistsError: duplicate contract_id.
    - OptimisticLockError: the row changed since it was loaded.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from escrow_kernel.exceptions import (
    EscrowAlreadyExistsError,
    EscrowNotFoundError,
    OptimisticLockError,
)
from escrow_kernel.logging_config import get_logger
from escrow_kernel.models.escrow_account import EscrowAccount
from escrow_kernel.selectors.escrow_selector import parse_escrow_id

logger = get_logger("services.escrow_store")


class EscrowAccountStore:
    """
    Persistence gateway for escrow accounts.

    Contract:
        Flushes, never commits.  After OptimisticLockError or
        EscrowAlreadyExistsError the session must be rolled back by the
        caller before it is reused.
    """

    def __init__(self, session: Session):
        self._session = session

    def load(self, escrow_id: UUID | str) -> EscrowAccount:
        account = self._session.get(EscrowAccount, parse_escrow_id(escrow_id))
        if account is None:
            raise EscrowNotFoundError(str(escrow_id))
        return account

    def load_for_update(self, escrow_id: UUID | str) -> EscrowAccount:
        """
        Load an account for read-modify-write.

        populate_existing refreshes any copy already in the identity map, so
        the caller validates against the row as it stands now, not as it
        stood at an earlier read in the same session.
        """
        account = self._session.execute(
            select(EscrowAccount)
            .where(EscrowAccount.id == parse_escrow_id(escrow_id))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if account is None:
            raise EscrowNotFoundError(str(escrow_id))
        return account

    def find_by_contract(self, contract_id: str) -> EscrowAccount | None:
        return self._session.execute(
            select(EscrowAccount).where(EscrowAccount.contract_id == contract_id)
        ).scalar_one_or_none()

    def add(self, account: EscrowAccount) -> EscrowAccount:
        """Insert a new account and flush so id and version are assigned."""
        if self.find_by_contract(account.contract_id) is not None:
            raise EscrowAlreadyExistsError(account.contract_id)

        self._session.add(account)
        try:
            self._session.flush()
        except IntegrityError:
            # Lost a race with a concurrent create for the same contract.
            logger.warning(
                "escrow_contract_conflict",
                extra={"contract_id": account.contract_id},
            )
            raise EscrowAlreadyExistsError(account.contract_id) from None
        return account

    def save(self, account: EscrowAccount) -> EscrowAccount:
        """Flush pending changes to ``account`` under the version check."""
        escrow_id = str(account.id)
        loaded_version = account.version
        try:
            self._session.flush()
        except StaleDataError:
            logger.warning(
                "escrow_optimistic_lock_conflict",
                extra={"escrow_id": escrow_id, "version": loaded_version},
            )
            raise OptimisticLockError("EscrowAccount", escrow_id) from None
        return account
