"""Balance accessor -- read-only projection of an escrow account's amounts."""

from __future__ import annotations

from decimal import Decimal

from escrow_kernel.domain.dtos import EscrowBalance
from escrow_kernel.domain.money import ZERO


def available_amount(
    deposited: Decimal,
    released: Decimal,
    frozen: Decimal,
    platform_fee: Decimal,
) -> Decimal:
    """Deposited minus released, frozen and fee.  May be negative."""
    return deposited - released - frozen - platform_fee


def compute_balance(
    deposited: Decimal,
    released: Decimal,
    frozen: Decimal,
    platform_fee: Decimal,
) -> EscrowBalance:
    """Build the balance view; ``available`` is clamped at zero."""
    return EscrowBalance(
        available=max(ZERO, available_amount(deposited, released, frozen, platform_fee)),
        frozen=frozen,
        released=released,
        platform_fee=platform_fee,
    )
