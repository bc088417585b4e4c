"""
Engine settings -- the explicit configuration value injected into EscrowService.

The kernel never reads environment variables or files.  escrow_config builds
an EscrowSettings from YAML and the environment; tests construct one directly
with whatever fee rate they need.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation

from escrow_kernel.db.types import validate_currency
from escrow_kernel.domain.dtos import PaymentMethod
from escrow_kernel.domain.money import SUPPORTED_ROUNDING_MODES

DEFAULT_FEE_PERCENT = Decimal("1.5")
DEFAULT_CURRENCY = "BRL"
DEFAULT_BOLETO_EXPIRATION_DAYS = 3


@dataclass(frozen=True)
class EscrowSettings:
    """
    Immutable engine configuration.

    Guarantees:
        - fee_percent is a Decimal in [0, 100).
        - currency is a valid ISO 4217 code, uppercased.
        - fee_rounding is ROUND_HALF_EVEN or ROUND_DOWN.
        - supported_payment_methods never contains TRANSFER.
    """

    fee_percent: Decimal = DEFAULT_FEE_PERCENT
    currency: str = DEFAULT_CURRENCY
    fee_rounding: str = ROUND_HALF_EVEN
    boleto_default_expiration_days: int = DEFAULT_BOLETO_EXPIRATION_DAYS
    supported_payment_methods: frozenset[PaymentMethod] = field(
        default_factory=lambda: frozenset({PaymentMethod.PIX, PaymentMethod.BOLETO})
    )

    def __post_init__(self) -> None:
        if isinstance(self.fee_percent, float):
            raise ValueError("fee_percent must be a Decimal, not a float")
        try:
            fee_percent = Decimal(str(self.fee_percent))
        except InvalidOperation:
            raise ValueError(f"fee_percent is not a number: {self.fee_percent!r}") from None
        if not fee_percent.is_finite() or fee_percent < 0 or fee_percent >= 100:
            raise ValueError(f"fee_percent must be in [0, 100), got {self.fee_percent}")
        object.__setattr__(self, "fee_percent", fee_percent)
        object.__setattr__(self, "currency", validate_currency(self.currency))

        if self.fee_rounding not in SUPPORTED_ROUNDING_MODES:
            raise ValueError(
                f"fee_rounding must be one of {sorted(SUPPORTED_ROUNDING_MODES)}, "
                f"got {self.fee_rounding}"
            )
        if self.boleto_default_expiration_days < 1:
            raise ValueError("boleto_default_expiration_days must be at least 1")

        methods = frozenset(PaymentMethod(m) for m in self.supported_payment_methods)
        if PaymentMethod.TRANSFER in methods:
            raise ValueError("TRANSFER cannot fund an escrow deposit")
        object.__setattr__(self, "supported_payment_methods", methods)
