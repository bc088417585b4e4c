"""Services for the escrow kernel (write side)."""

from escrow_kernel.services.escrow_service import EscrowService
from escrow_kernel.services.escrow_store import EscrowAccountStore
from escrow_kernel.services.retry import run_in_transaction

__all__ = [
    "EscrowAccountStore",
    "EscrowService",
    "run_in_transaction",
]
