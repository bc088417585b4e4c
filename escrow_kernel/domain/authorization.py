"""
Release authorization -- the mutual-consent-or-arbiter rule.

A release is authorized when the approvals contain both the depositor and the
beneficiary, or at least one identity that is neither of them.  Any such
third identity counts as an arbiter; no role is verified.  The arbiter test
lives in has_arbiter_approval() alone so it can be tightened to a verified
dispute-resolution role without touching the engine.
"""

from __future__ import annotations

from collections.abc import Iterable


def normalize_approvals(approved_by: Iterable[str]) -> list[str]:
    """Drop blank ids and duplicates, keeping first-seen order."""
    seen: dict[str, None] = {}
    for party_id in approved_by:
        if isinstance(party_id, str) and party_id.strip():
            seen.setdefault(party_id.strip(), None)
    return list(seen)


def has_mutual_consent(
    depositor_id: str,
    beneficiary_id: str,
    approved_by: Iterable[str],
) -> bool:
    approvals = set(normalize_approvals(approved_by))
    return depositor_id in approvals and beneficiary_id in approvals


def has_arbiter_approval(
    depositor_id: str,
    beneficiary_id: str,
    approved_by: Iterable[str],
) -> bool:
    # TODO: require a verified arbiter role once dispute resolution exposes one.
    return any(
        party_id not in (depositor_id, beneficiary_id)
        for party_id in normalize_approvals(approved_by)
    )


def is_release_authorized(
    depositor_id: str,
    beneficiary_id: str,
    approved_by: Iterable[str],
) -> bool:
    """
    Return True iff the approvals satisfy consent-or-arbiter.

    Examples:
        >>> is_release_authorized("D", "B", ["D", "B"])
        True
        >>> is_release_authorized("D", "B", ["D"])
        False
        >>> is_release_authorized("D", "B", ["ARB-1"])
        True
    """
    approvals = normalize_approvals(approved_by)
    return has_mutual_consent(depositor_id, beneficiary_id, approvals) or has_arbiter_approval(
        depositor_id, beneficiary_id, approvals
    )
