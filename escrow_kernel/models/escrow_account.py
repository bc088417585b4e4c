"""
Module: escrow_kernel.models.escrow_account
Responsibility: ORM persistence for escrow accounts and their milestones.
    An EscrowAccount is the custody record bound 1:1 to a contract:
    target amount, money received, money paid out, money locked by a dispute,
    and the platform fee fixed at creation.
Architecture position: Kernel > Models.  May import from db/ and the pure
    status enum only.  MUST NOT import from services/, selectors/, or outer
    layers.

Invariants enforced:
    - contract_id is unique (uq_escrow_contract).  One account per contract.
    - version is SQLAlchemy's version_id_col.  Every UPDATE carries
      ``WHERE version = :loaded``; a concurrent writer makes the flush fail
      with StaleDataError, which the store maps to OptimisticLockError.
    - Amount columns are DecimalAmount: exact, two places, never float.
    - Custody arithmetic (released + frozen <= deposited, etc.) is NOT
      enforced here; EscrowService checks it via invariants.py before flush.

Failure modes:
    - IntegrityError on duplicate contract_id.
    - StaleDataError on a lost optimistic-lock race.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from escrow_kernel.db.base import Base, TrackedBase, UUIDString
from escrow_kernel.domain.status import EscrowStatus


class EscrowAccount(TrackedBase):
    """
    Custody record for one contract.

    Guarantees:
        - platform_fee is written once at creation.
        - milestones are loaded in creation order (position).
        - status holds an EscrowStatus value.
    """

    __tablename__ = "escrow_accounts"

    __table_args__ = (
        UniqueConstraint("contract_id", name="uq_escrow_contract"),
        Index("idx_escrow_status", "status"),
        Index("idx_escrow_depositor", "depositor_id"),
        Index("idx_escrow_beneficiary", "beneficiary_id"),
    )

    contract_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Party who funds the escrow
    depositor_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Party who receives releases
    beneficiary_id: Mapped[str] = mapped_column(String(255), nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    deposited_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0.00"),
    )

    released_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0.00"),
    )

    frozen_amount: Mapped[Decimal] = mapped_column(
        nullable=False,
        default=Decimal("0.00"),
    )

    platform_fee: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[EscrowStatus] = mapped_column(
        String(30),
        nullable=False,
        default=EscrowStatus.PENDING,
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    deposit_deadline: Mapped[datetime | None] = mapped_column(nullable=True)

    # Set by freeze; never cleared by the engine
    dispute_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    milestones: Mapped[list["EscrowMilestone"]] = relationship(
        back_populates="escrow_account",
        order_by="EscrowMilestone.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def escrow_status(self) -> EscrowStatus:
        """Status as an EscrowStatus, whatever the column handed back."""
        return EscrowStatus(self.status)

    def __repr__(self) -> str:
        return (
            f"<EscrowAccount {self.id} contract={self.contract_id} "
            f"{self.escrow_status.value} v{self.version}>"
        )


class EscrowMilestone(Base):
    """
    A labelled portion of the escrow total.

    Guarantees:
        - released flips False -> True at most once.
        - approved_by is replaced wholesale, never mutated in place.
    """

    __tablename__ = "escrow_milestones"

    __table_args__ = (
        UniqueConstraint(
            "escrow_account_id", "position", name="uq_escrow_milestone_position"
        ),
        Index("idx_milestone_account", "escrow_account_id"),
    )

    escrow_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("escrow_accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)

    label: Mapped[str] = mapped_column(String(255), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    released: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    released_at: Mapped[datetime | None] = mapped_column(nullable=True)

    approved_by: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    escrow_account: Mapped["EscrowAccount"] = relationship(
        back_populates="milestones",
    )

    def __repr__(self) -> str:
        state = "released" if self.released else "pending"
        return f"<EscrowMilestone {self.label} {self.amount} {state}>"
