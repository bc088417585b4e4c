"""
Fees -- platform fee and percentage split computations.

Responsibility:
    Pure money arithmetic for the escrow engine: the platform fee charged once
    at account creation, and the percentage split of an amount between
    several parties.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The fee percentage is
    an argument, never read from ambient configuration, so callers (and tests)
    inject the rate explicitly.

Rounding rule:
    ROUND_HALF_EVEN to 2 decimal places unless the caller passes ROUND_DOWN.
    Half-even keeps the aggregate rounding error of many fees centred on zero:
    a 1.5% fee on 3.00 is 0.045 and rounds to 0.04, on 1.00 it is 0.015 and
    rounds to 0.02.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation

from escrow_kernel.domain.dtos import SplitAllocation
from escrow_kernel.domain.money import ZERO, round_money
from escrow_kernel.exceptions import InvalidSplitError

HUNDRED = Decimal("100")


def calculate_fee(
    amount: Decimal,
    fee_percent: Decimal,
    rounding: str = ROUND_HALF_EVEN,
) -> Decimal:
    """
    Compute ``amount * fee_percent / 100`` rounded to 2 decimal places.

    Pure and deterministic: the same inputs always give the same fee.

    Args:
        amount: Base amount (exact Decimal).
        fee_percent: Percentage, e.g. Decimal("1.5") for 1.5%.
        rounding: ROUND_HALF_EVEN (default) or ROUND_DOWN.

    Returns:
        The fee as a 2-place Decimal.
    """
    return round_money(amount * fee_percent / HUNDRED, rounding)


def calculate_split(
    amount: Decimal,
    shares: Sequence[tuple[str, Decimal | int | str]],
    rounding: str = ROUND_HALF_EVEN,
) -> list[SplitAllocation]:
    """
    Split ``amount`` between parties by percentage.

    Every share but the last gets ``amount * pct / 100`` rounded; the last
    share absorbs the rounding residue, so the allocations always add up to
    exactly ``amount``.

    Args:
        amount: Amount to split.
        shares: ``(party_id, percentage)`` pairs, percentages totalling 100.

    Returns:
        One SplitAllocation per share, in input order.

    Raises:
        InvalidSplitError: no shares, a non-positive or malformed percentage,
            or percentages that do not total exactly 100.
    """
    if not shares:
        raise InvalidSplitError(ZERO, "at least one share is required")

    parsed: list[tuple[str, Decimal]] = []
    for party_id, percentage in shares:
        if isinstance(percentage, float):
            raise InvalidSplitError(ZERO, f"percentage for {party_id} must not be a float")
        try:
            pct = Decimal(str(percentage))
        except InvalidOperation:
            raise InvalidSplitError(ZERO, f"percentage for {party_id} is not a number") from None
        if not pct.is_finite() or pct <= 0:
            raise InvalidSplitError(ZERO, f"percentage for {party_id} must be positive")
        parsed.append((party_id, pct))

    total_percentage = sum((pct for _, pct in parsed), Decimal("0"))
    if total_percentage != HUNDRED:
        raise InvalidSplitError(total_percentage)

    allocations: list[SplitAllocation] = []
    allocated = ZERO
    for index, (party_id, pct) in enumerate(parsed):
        if index == len(parsed) - 1:
            share_amount = amount - allocated
        else:
            share_amount = round_money(amount * pct / HUNDRED, rounding)
        allocated += share_amount
        allocations.append(
            SplitAllocation(party_id=party_id, percentage=pct, amount=share_amount)
        )
    return allocations
