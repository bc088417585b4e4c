"""Selectors for the escrow kernel (read side)."""

from escrow_kernel.selectors.escrow_selector import EscrowSelector, to_account_info

__all__ = [
    "EscrowSelector",
    "to_account_info",
]
