"""
Money -- exact decimal amounts for custody arithmetic.

Responsibility:
    Converts caller input into 2-place Decimals and owns the single rounding
    function used by every fee, split and balance computation.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - No floats: a float amount is rejected, never coerced.  Binary floats
      drift by fractions of a cent across thousands of accounts.
    - Amounts carry at most 2 decimal places.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_HALF_EVEN, Decimal, InvalidOperation

from escrow_kernel.exceptions import InvalidAmountError

MONEY_DECIMAL_PLACES = 2
MONEY_QUANTUM = Decimal(1).scaleb(-MONEY_DECIMAL_PLACES)
# Storage is NUMERIC(14, 2): twelve integer digits.
MONEY_MAX_DIGITS = 14
MAX_AMOUNT = Decimal(10) ** (MONEY_MAX_DIGITS - MONEY_DECIMAL_PLACES) - MONEY_QUANTUM
ZERO = Decimal("0.00")

# Rounding rules allowed for money.  Half-even is the default.
SUPPORTED_ROUNDING_MODES: frozenset[str] = frozenset({ROUND_HALF_EVEN, ROUND_DOWN})


def to_amount(value: Decimal | int | str) -> Decimal:
    """
    Parse caller input into an exact 2-place Decimal.

    Preconditions:
        value is a Decimal, an int, or a numeric string.

    Postconditions:
        Returns a finite Decimal quantized to 2 places.  The sign is not
        checked here; callers decide whether zero or negative is acceptable.

    Raises:
        InvalidAmountError: float/bool input, non-numeric or non-finite
            input, more than 2 decimal places, or a magnitude
            above MAX_AMOUNT.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountError(value, "amounts must be Decimal, int or str, never float")
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, str)):
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation:
            raise InvalidAmountError(value, "not a number") from None
    else:
        raise InvalidAmountError(value, f"unsupported type {type(value).__name__}")

    if not parsed.is_finite():
        raise InvalidAmountError(value, "not a finite number")
    try:
        quantized = parsed.quantize(MONEY_QUANTUM, rounding=ROUND_DOWN)
    except InvalidOperation:
        raise InvalidAmountError(value, "out of range") from None
    if parsed != quantized:
        raise InvalidAmountError(value, "more than 2 decimal places")
    if abs(quantized) > MAX_AMOUNT:
        raise InvalidAmountError(value, f"exceeds the largest storable amount {MAX_AMOUNT}")
    return quantized


def to_positive_amount(value: Decimal | int | str) -> Decimal:
    """Like to_amount(), but the result must be strictly greater than zero."""
    amount = to_amount(value)
    if amount <= 0:
        raise InvalidAmountError(value, "amount must be greater than zero")
    return amount


def round_money(value: Decimal, rounding: str = ROUND_HALF_EVEN) -> Decimal:
    """
    Round a monetary value to 2 decimal places.

    This is the ONLY sanctioned rounding function for money in the escrow
    kernel.  Fee and split computations delegate here.

    Raises:
        ValueError: rounding is not one of SUPPORTED_ROUNDING_MODES.
    """
    if rounding not in SUPPORTED_ROUNDING_MODES:
        raise ValueError(f"Unsupported money rounding mode: {rounding}")
    return value.quantize(MONEY_QUANTUM, rounding=rounding)
