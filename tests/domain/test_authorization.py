"""
Tests for the release authorization rule.

A release is authorized by mutual consent of depositor and beneficiary, or
by any third identity (arbiter).
"""

import doctest

import pytest

from escrow_kernel.domain import authorization
from escrow_kernel.domain.authorization import (
    has_arbiter_approval,
    has_mutual_consent,
    is_release_authorized,
    normalize_approvals,
)

D = "depositor-D"
B = "beneficiary-B"


class TestIsReleaseAuthorized:

    @pytest.mark.parametrize(
        "approved_by, expected",
        [
            ([D, B], True),
            ([B, D], True),
            ([D], False),
            ([B], False),
            ([], False),
            (["arbiter-7"], True),
            ([D, "arbiter-7"], True),
            ([D, D, D], False),
            ([D, "", "  "], False),
        ],
    )
    def test_consent_or_arbiter(self, approved_by, expected):
        assert is_release_authorized(D, B, approved_by) is expected

    def test_docstring_examples(self):
        result = doctest.testmod(authorization)
        assert result.failed == 0
        assert result.attempted >= 3


class TestHelpers:

    def test_normalize_drops_blanks_and_duplicates(self):
        assert normalize_approvals([" D ", "B", "D", "", "B"]) == ["D", "B"]

    def test_normalize_ignores_non_strings(self):
        assert normalize_approvals(["D", None, 7]) == ["D"]

    def test_mutual_consent_needs_both(self):
        assert has_mutual_consent(D, B, [D, B])
        assert not has_mutual_consent(D, B, [D, "arbiter-7"])

    def test_arbiter_is_any_third_identity(self):
        assert has_arbiter_approval(D, B, ["anyone-else"])
        assert not has_arbiter_approval(D, B, [D, B])
