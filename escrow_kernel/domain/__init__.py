"""Pure domain core: money, fees, status rules, authorization, DTOs."""

from escrow_kernel.domain.authorization import is_release_authorized
from escrow_kernel.domain.balance import compute_balance
from escrow_kernel.domain.clock import Clock, DeterministicClock, SystemClock, as_utc
from escrow_kernel.domain.dtos import (
    ChargeInstruction,
    DepositInstruction,
    EscrowAccountInfo,
    EscrowBalance,
    MilestoneInfo,
    MilestoneSpec,
    PayerIdentity,
    PaymentMethod,
    RefundResult,
    ReleaseResult,
    SplitAllocation,
    StatementInstruction,
    as_plain_dict,
)
from escrow_kernel.domain.fees import calculate_fee, calculate_split
from escrow_kernel.domain.money import round_money, to_amount
from escrow_kernel.domain.payment_rail import PaymentRail
from escrow_kernel.domain.status import EscrowStatus

__all__ = [
    "ChargeInstruction",
    "Clock",
    "DepositInstruction",
    "DeterministicClock",
    "EscrowAccountInfo",
    "EscrowBalance",
    "EscrowStatus",
    "MilestoneInfo",
    "MilestoneSpec",
    "PayerIdentity",
    "PaymentMethod",
    "PaymentRail",
    "RefundResult",
    "ReleaseResult",
    "SplitAllocation",
    "StatementInstruction",
    "SystemClock",
    "as_plain_dict",
    "as_utc",
    "calculate_fee",
    "calculate_split",
    "compute_balance",
    "is_release_authorized",
    "round_money",
    "to_amount",
]
