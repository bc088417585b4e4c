"""
Status -- the escrow account state machine.

    PENDING -> PARTIALLY_FUNDED -> FUNDED -> PARTIALLY_RELEASED -> RELEASED

Any of PENDING, PARTIALLY_FUNDED, FUNDED, PARTIALLY_RELEASED may move to
FROZEN (freeze) or REFUNDED (refund).  RELEASED and REFUNDED are terminal.
FROZEN has no outbound transition; dispute resolution lives outside the
engine.
"""

from __future__ import annotations

from enum import Enum


class EscrowStatus(str, Enum):
    """Lifecycle status of an escrow account."""

    PENDING = "PENDING"
    PARTIALLY_FUNDED = "PARTIALLY_FUNDED"
    FUNDED = "FUNDED"
    PARTIALLY_RELEASED = "PARTIALLY_RELEASED"
    RELEASED = "RELEASED"
    REFUNDED = "REFUNDED"
    FROZEN = "FROZEN"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: frozenset[EscrowStatus] = frozenset(
    {EscrowStatus.RELEASED, EscrowStatus.REFUNDED}
)

# Statuses from which money may be released to the beneficiary.
RELEASABLE_STATUSES: frozenset[EscrowStatus] = frozenset(
    {
        EscrowStatus.PARTIALLY_FUNDED,
        EscrowStatus.FUNDED,
        EscrowStatus.PARTIALLY_RELEASED,
    }
)

# Active custody: every non-terminal, non-frozen status.
ACTIVE_STATUSES: frozenset[EscrowStatus] = RELEASABLE_STATUSES | {EscrowStatus.PENDING}

# Conflict messages for release attempts outside RELEASABLE_STATUSES.
RELEASE_BLOCKED_REASONS: dict[EscrowStatus, str] = {
    EscrowStatus.PENDING: "Escrow has no deposits to release",
    EscrowStatus.RELEASED: "Escrow has already been fully released",
    EscrowStatus.REFUNDED: "Escrow has been refunded",
    EscrowStatus.FROZEN: "Cannot release frozen escrow -- resolve dispute first",
}


def status_after_deposit(deposited, total) -> EscrowStatus:
    """FUNDED once the deposits reach the target, else PARTIALLY_FUNDED."""
    if deposited >= total:
        return EscrowStatus.FUNDED
    return EscrowStatus.PARTIALLY_FUNDED


def status_after_partial_release(released, platform_fee, deposited) -> EscrowStatus:
    """RELEASED once released + fee reaches the deposits, else PARTIALLY_RELEASED."""
    if released + platform_fee >= deposited:
        return EscrowStatus.RELEASED
    return EscrowStatus.PARTIALLY_RELEASED
