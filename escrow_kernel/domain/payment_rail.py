"""
Payment Rail -- the external collaborator that moves real money.

Responsibility:
    Declares the interface the engine calls to turn a deposit request into a
    payable instruction, and the settlement confirmation the webhook layer
    uses before calling EscrowService.confirm_deposit().

Architecture position:
    Kernel > Domain -- interface only.  Concrete rails (PSP clients, OAuth2
    token handling, QR code rendering, webhook ingestion) live outside the
    kernel and are injected into EscrowService.

Failure modes:
    Implementations may raise anything.  The engine surfaces every rail
    failure as PaymentGatewayError and leaves the account untouched.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal

from escrow_kernel.domain.dtos import (
    ChargeInstruction,
    PayerIdentity,
    PaymentMethod,
    StatementInstruction,
)
from escrow_kernel.exceptions import UnsupportedPaymentMethodError

__all__ = [
    "PaymentMethod",
    "PaymentRail",
    "parse_payment_method",
]


class PaymentRail(ABC):
    """
    Payment service provider boundary.

    Contract:
        generate_charge / generate_statement create an instruction for exactly
        ``amount``.  They must not credit the escrow; crediting happens only
        when confirm_settlement() reports the amount actually received.
    """

    @abstractmethod
    def generate_charge(
        self,
        amount: Decimal,
        payer: PayerIdentity,
        description: str,
    ) -> ChargeInstruction:
        """Create an instant-payment charge (PIX copy-and-paste code)."""

    @abstractmethod
    def generate_statement(
        self,
        amount: Decimal,
        payer: PayerIdentity,
        due_date: date | datetime,
        description: str,
    ) -> StatementInstruction:
        """Create a payable statement (boleto) due on ``due_date``."""

    @abstractmethod
    def confirm_settlement(self, handle: str) -> Decimal:
        """Return the amount confirmed as settled for a charge handle."""


def parse_payment_method(
    value: PaymentMethod | str,
    supported: frozenset[PaymentMethod],
) -> PaymentMethod:
    """
    Resolve ``value`` to a PaymentMethod that may fund an escrow.

    Raises:
        UnsupportedPaymentMethodError: unknown method, or one outside
            ``supported``.
    """
    try:
        method = PaymentMethod(value.upper() if isinstance(value, str) else value)
    except ValueError:
        raise UnsupportedPaymentMethodError(str(value)) from None
    if method not in supported:
        raise UnsupportedPaymentMethodError(method.value)
    return method
