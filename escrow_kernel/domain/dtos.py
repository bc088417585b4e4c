"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable data structures returned by the escrow engine and selector:
    account and milestone snapshots, balance view, deposit instructions,
    release / refund results, split allocations.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies.  Services convert ORM rows into these DTOs at
    the boundary; callers never see ORM entities.

Serialization:
    as_plain_dict() turns any DTO into JSON-ready data: Decimals become
    strings (never floats), datetimes ISO-8601 strings, enums their value.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from escrow_kernel.domain.status import EscrowStatus


class PaymentMethod(str, Enum):
    """Ways a depositor can fund an escrow account."""

    PIX = "PIX"
    BOLETO = "BOLETO"
    TRANSFER = "TRANSFER"


@dataclass(frozen=True)
class MilestoneSpec:
    """Milestone requested at escrow creation."""

    label: str
    amount: Decimal | int | str


@dataclass(frozen=True)
class MilestoneInfo:
    id: UUID
    label: str
    amount: Decimal
    released: bool
    released_at: datetime | None = None
    approved_by: tuple[str, ...] = ()


@dataclass(frozen=True)
class EscrowAccountInfo:
    """
    Immutable snapshot of an escrow account.

    ``version`` is the optimistic concurrency token at the time of the read.
    """

    id: UUID
    contract_id: str
    depositor_id: str
    beneficiary_id: str
    total_amount: Decimal
    deposited_amount: Decimal
    released_amount: Decimal
    frozen_amount: Decimal
    platform_fee: Decimal
    status: EscrowStatus
    currency: str
    deposit_deadline: datetime | None
    dispute_id: str | None
    milestones: tuple[MilestoneInfo, ...]
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(frozen=True)
class EscrowBalance:
    """Balance view: ``available`` is never negative."""

    available: Decimal
    frozen: Decimal
    released: Decimal
    platform_fee: Decimal


@dataclass(frozen=True)
class PayerIdentity:
    """Who pays a deposit instruction.  ``document`` is a CPF or CNPJ."""

    document: str
    name: str = "Depositante"
    address: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None

    @classmethod
    def from_payer_data(cls, payer_data: dict[str, Any]) -> PayerIdentity:
        document = payer_data.get("cpf") or payer_data.get("cnpj") or ""
        return cls(
            document=str(document),
            name=str(payer_data.get("name") or "Depositante"),
            address=payer_data.get("address"),
            city=payer_data.get("city"),
            state=payer_data.get("state"),
            postal_code=payer_data.get("cep"),
        )


@dataclass(frozen=True)
class ChargeInstruction:
    """Instant-payment charge produced by the payment rail (e.g. PIX)."""

    instruction_code: str
    external_reference: str
    amount: Decimal
    expires_at: datetime | None = None


@dataclass(frozen=True)
class StatementInstruction:
    """Payable statement produced by the payment rail (e.g. boleto)."""

    reference: str
    document_url: str
    amount: Decimal
    due_date: date | datetime


@dataclass(frozen=True)
class DepositInstruction:
    """What the depositor must pay.  The account is not credited until settlement."""

    escrow_id: UUID
    amount: Decimal
    payment_method: PaymentMethod
    status: str = "PENDING"
    charge: ChargeInstruction | None = None
    statement: StatementInstruction | None = None


@dataclass(frozen=True)
class ReleaseResult:
    escrow_id: UUID
    amount_released: Decimal
    remaining_balance: Decimal
    transfer_reference: str
    beneficiary_id: str
    released_at: datetime
    milestone: str | None = None
    approved_by: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RefundResult:
    escrow_id: UUID
    amount_refunded: Decimal
    reason: str
    depositor_id: str
    refund_reference: str
    refunded_at: datetime


@dataclass(frozen=True)
class SplitAllocation:
    party_id: str
    percentage: Decimal
    amount: Decimal


def _plain(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


def as_plain_dict(dto: Any) -> dict[str, Any]:
    """Convert a DTO into JSON-ready plain data (amounts as strings)."""
    if not is_dataclass(dto) or isinstance(dto, type):
        raise TypeError(f"as_plain_dict expects a dataclass instance, got {type(dto).__name__}")
    return _plain(dto)
