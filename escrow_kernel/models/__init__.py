"""Domain models for the escrow kernel."""

from escrow_kernel.models.escrow_account import EscrowAccount, EscrowMilestone

__all__ = [
    "EscrowAccount",
    "EscrowMilestone",
]
