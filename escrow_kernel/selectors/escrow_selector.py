"""
Module: escrow_kernel.selectors.escrow_selector
Responsibility: Read-only escrow queries: account snapshots, balance views,
    lookup by contract, and listing the accounts a party takes part in.
    Also owns the ORM -> DTO conversion shared with EscrowService.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - get_balance() derives available from the stored fields at read time
      and never returns a negative available.
    - Returned DTOs carry the row version seen by the read.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import or_, select

from escrow_kernel.domain.balance import compute_balance
from escrow_kernel.domain.clock import as_utc
from escrow_kernel.domain.dtos import EscrowAccountInfo, EscrowBalance, MilestoneInfo
from escrow_kernel.domain.status import EscrowStatus
from escrow_kernel.exceptions import EscrowNotFoundError
from escrow_kernel.models.escrow_account import EscrowAccount, EscrowMilestone
from escrow_kernel.selectors.base import BaseSelector


def parse_escrow_id(escrow_id: UUID | str) -> UUID:
    """Coerce an id to UUID; anything unparseable is simply not found."""
    if isinstance(escrow_id, UUID):
        return escrow_id
    try:
        return UUID(str(escrow_id))
    except ValueError:
        raise EscrowNotFoundError(str(escrow_id)) from None


def _milestone_info(milestone: EscrowMilestone) -> MilestoneInfo:
    return MilestoneInfo(
        id=milestone.id,
        label=milestone.label,
        amount=milestone.amount,
        released=milestone.released,
        released_at=as_utc(milestone.released_at),
        approved_by=tuple(milestone.approved_by or ()),
    )


def to_account_info(account: EscrowAccount) -> EscrowAccountInfo:
    """Convert an ORM EscrowAccount into an EscrowAccountInfo DTO."""
    return EscrowAccountInfo(
        id=account.id,
        contract_id=account.contract_id,
        depositor_id=account.depositor_id,
        beneficiary_id=account.beneficiary_id,
        total_amount=account.total_amount,
        deposited_amount=account.deposited_amount,
        released_amount=account.released_amount,
        frozen_amount=account.frozen_amount,
        platform_fee=account.platform_fee,
        status=EscrowStatus(account.status),
        currency=account.currency,
        deposit_deadline=as_utc(account.deposit_deadline),
        dispute_id=account.dispute_id,
        milestones=tuple(_milestone_info(m) for m in account.milestones),
        version=account.version,
        created_at=as_utc(account.created_at),
        updated_at=as_utc(account.updated_at),
    )


def to_balance(account: EscrowAccount) -> EscrowBalance:
    return compute_balance(
        deposited=account.deposited_amount,
        released=account.released_amount,
        frozen=account.frozen_amount,
        platform_fee=account.platform_fee,
    )


class EscrowSelector(BaseSelector[EscrowAccount]):
    """
    Read-only access to escrow accounts.

    Every method returns DTOs; unknown ids raise EscrowNotFoundError.
    """

    def _get(self, escrow_id: UUID | str) -> EscrowAccount:
        account = self.session.get(EscrowAccount, parse_escrow_id(escrow_id))
        if account is None:
            raise EscrowNotFoundError(str(escrow_id))
        return account

    def get_account(self, escrow_id: UUID | str) -> EscrowAccountInfo:
        return to_account_info(self._get(escrow_id))

    def get_balance(self, escrow_id: UUID | str) -> EscrowBalance:
        """Balance view: available, frozen, released and platform fee."""
        return to_balance(self._get(escrow_id))

    def find_by_contract(self, contract_id: str) -> EscrowAccountInfo | None:
        account = self.session.execute(
            select(EscrowAccount).where(EscrowAccount.contract_id == contract_id)
        ).scalar_one_or_none()
        return to_account_info(account) if account is not None else None

    def list_by_party(
        self,
        party_id: str,
        status: EscrowStatus | None = None,
    ) -> list[EscrowAccountInfo]:
        """
        Accounts where ``party_id`` is depositor or beneficiary.

        Ordered by creation time, then id, so repeated calls agree.
        """
        stmt = select(EscrowAccount).where(
            or_(
                EscrowAccount.depositor_id == party_id,
                EscrowAccount.beneficiary_id == party_id,
            )
        )
        if status is not None:
            stmt = stmt.where(EscrowAccount.status == EscrowStatus(status).value)
        stmt = stmt.order_by(EscrowAccount.created_at, EscrowAccount.id)
        return [to_account_info(a) for a in self.session.execute(stmt).scalars()]
