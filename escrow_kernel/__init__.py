"""
Escrow Kernel - custody engine for contract payments

Holds a depositor's money for a contract until it is released to the
beneficiary or refunded, with:
- Exact decimal money and a fee fixed at creation
- A status machine from PENDING through RELEASED / REFUNDED / FROZEN
- Mutual-consent-or-arbiter release authorization
- Optimistic locking on every account mutation
- Structured JSON logging of every custody event
"""

__version__ = "0.1.0"
