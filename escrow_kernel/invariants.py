"""
Custody Invariants Contract.

These invariants are structural law for every escrow account.  No setting,
fee rate or caller may override them.  EscrowService runs
check_custody_invariants() after computing a mutation and before flushing
it; a violation aborts the operation with CustodyInvariantError and nothing
is written.

The literal rule ``released + frozen + fee <= deposited`` is enforced as two
inequalities.  A freeze locks ``deposited - released`` (the fee is not
carved out), so a frozen account may exceed the literal sum by the fee while
still never holding more than was deposited.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum, unique

from escrow_kernel.exceptions import CustodyInvariantError


@unique
class EscrowInvariant(str, Enum):
    """Non-configurable invariants enforced by the escrow engine."""

    NON_NEGATIVE_AMOUNTS = "non_negative_amounts"
    """Deposited, released, frozen and fee are never negative."""

    MONOTONIC_DEPOSITS = "monotonic_deposits"
    """depositedAmount never decreases.  Only confirm_deposit raises it."""

    MONOTONIC_RELEASES = "monotonic_releases"
    """releasedAmount never decreases."""

    CUSTODY_BOUND = "custody_bound"
    """released + frozen never exceeds deposited."""

    FEE_RETAINED = "fee_retained"
    """Once anything is released, released + fee never exceeds deposited."""

    FIXED_FEE = "fixed_fee"
    """platformFee is computed once at creation and never recomputed."""


ALL_ESCROW_INVARIANTS: frozenset[EscrowInvariant] = frozenset(EscrowInvariant)


@dataclass(frozen=True)
class CustodyAmounts:
    """The four amounts the invariants are stated over."""

    deposited: Decimal
    released: Decimal
    frozen: Decimal
    platform_fee: Decimal


def check_custody_invariants(
    escrow_id: str,
    after: CustodyAmounts,
    before: CustodyAmounts | None = None,
) -> None:
    """
    Verify every custody invariant for a proposed account state.

    Args:
        escrow_id: For error reporting.
        after: Amounts the mutation is about to persist.
        before: Amounts as loaded, or None for a new account.

    Raises:
        CustodyInvariantError: naming the first violated invariant.
    """
    for name in ("deposited", "released", "frozen", "platform_fee"):
        if getattr(after, name) < 0:
            raise CustodyInvariantError(
                escrow_id,
                EscrowInvariant.NON_NEGATIVE_AMOUNTS.value,
                f"{name} is {getattr(after, name)}",
            )

    if before is not None:
        if after.deposited < before.deposited:
            raise CustodyInvariantError(
                escrow_id,
                EscrowInvariant.MONOTONIC_DEPOSITS.value,
                f"deposited would drop from {before.deposited} to {after.deposited}",
            )
        if after.released < before.released:
            raise CustodyInvariantError(
                escrow_id,
                EscrowInvariant.MONOTONIC_RELEASES.value,
                f"released would drop from {before.released} to {after.released}",
            )
        if after.platform_fee != before.platform_fee:
            raise CustodyInvariantError(
                escrow_id,
                EscrowInvariant.FIXED_FEE.value,
                f"fee would change from {before.platform_fee} to {after.platform_fee}",
            )

    if after.released + after.frozen > after.deposited:
        raise CustodyInvariantError(
            escrow_id,
            EscrowInvariant.CUSTODY_BOUND.value,
            f"released {after.released} + frozen {after.frozen} "
            f"exceeds deposited {after.deposited}",
        )

    if after.released > 0 and after.released + after.platform_fee > after.deposited:
        raise CustodyInvariantError(
            escrow_id,
            EscrowInvariant.FEE_RETAINED.value,
            f"released {after.released} + fee {after.platform_fee} "
            f"exceeds deposited {after.deposited}",
        )
