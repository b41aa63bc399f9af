"""Tests for the eligibility and availability policies."""

import pytest

from schoollib.config import CategoryLimits, LoanPolicy
from schoollib.db.models import Person, Resource
from schoollib.loans.policies import (
    REASON_CONDITION,
    REASON_LIMIT,
    REASON_OVERDUE,
    REASON_STOCK,
    REASON_UNAVAILABLE,
    WARNING_DETERIORATED,
    WARNING_LOW_STOCK,
    can_borrow,
    can_loan,
    is_loanable,
)


@pytest.fixture
def student_policy():
    return LoanPolicy(
        student=CategoryLimits(3, 3, 7),
        teacher=CategoryLimits(10, 10, 30),
        low_stock_threshold=2,
    )


def make_person(category="student", active=True):
    return Person(first_name="Test", last_name="Person", category=category, active=active)


def make_resource(total=5, loaned=0, condition="good", available=True):
    return Resource(
        title="Test Resource",
        total_quantity=total,
        currently_loaned=loaned,
        condition=condition,
        available=available,
    )


class TestCanBorrow:
    """Tests for the eligibility policy."""

    def test_no_loans_allowed(self, student_policy):
        """A person without loans may borrow."""
        verdict = can_borrow(make_person(), 0, False, student_policy)
        assert verdict.allowed is True
        assert verdict.reason is None

    def test_one_below_limit_allowed(self, student_policy):
        """max - 1 active loans still passes."""
        verdict = can_borrow(make_person(), 2, False, student_policy)
        assert verdict.allowed is True

    def test_at_limit_denied(self, student_policy):
        """Exactly max active loans fails with the limit reason."""
        verdict = can_borrow(make_person(), 3, False, student_policy)
        assert verdict.allowed is False
        assert REASON_LIMIT in verdict.reason

    def test_teacher_has_higher_limit(self, student_policy):
        """Teachers use their own limit."""
        assert can_borrow(make_person("teacher"), 9, False, student_policy).allowed is True
        assert can_borrow(make_person("teacher"), 10, False, student_policy).allowed is False

    def test_overdue_blocks_regardless_of_count(self, student_policy):
        """Any overdue loan denies borrowing, even with zero active loans."""
        verdict = can_borrow(make_person(), 0, True, student_policy)
        assert verdict.allowed is False
        assert verdict.reason == REASON_OVERDUE

    def test_overdue_checked_before_limit(self, student_policy):
        """The overdue rule short-circuits the limit rule."""
        verdict = can_borrow(make_person(), 5, True, student_policy)
        assert verdict.reason == REASON_OVERDUE

    def test_negative_count_rejected(self, student_policy):
        """Negative loan counts are invalid input."""
        with pytest.raises(ValueError):
            can_borrow(make_person(), -1, False, student_policy)


class TestCanLoan:
    """Tests for the availability policy."""

    def test_exact_stock_allowed(self, student_policy):
        """Requesting exactly the available stock succeeds."""
        verdict = can_loan(make_resource(total=5, loaned=2), 3, student_policy)
        assert verdict.allowed is True

    def test_one_over_stock_denied_with_deficit(self, student_policy):
        """Requesting one more than available fails and states the deficit."""
        verdict = can_loan(make_resource(total=5, loaned=2), 4, student_policy)
        assert verdict.allowed is False
        assert REASON_STOCK in verdict.reason
        assert "available 3" in verdict.reason
        assert "requested 4" in verdict.reason
        assert "short by 1" in verdict.reason

    def test_unavailable_resource_denied(self, student_policy):
        """Resources flagged unavailable cannot be lent."""
        verdict = can_loan(make_resource(available=False), 1, student_policy)
        assert verdict.allowed is False
        assert verdict.reason == REASON_UNAVAILABLE

    @pytest.mark.parametrize("condition", ["damaged", "lost"])
    def test_condition_not_loanable(self, student_policy, condition):
        """Conditions outside the allow-list are denied."""
        verdict = can_loan(make_resource(condition=condition), 1, student_policy)
        assert verdict.allowed is False
        assert REASON_CONDITION in verdict.reason

    def test_low_stock_warning(self, student_policy):
        """Remaining stock at or under the threshold yields a warning, not an error."""
        verdict = can_loan(make_resource(total=5, loaned=2), 1, student_policy)
        assert verdict.allowed is True
        assert any(WARNING_LOW_STOCK in w for w in verdict.warnings)

    def test_no_warning_with_plenty_of_stock(self, student_policy):
        """No warning when stock stays above the threshold."""
        verdict = can_loan(make_resource(total=10), 1, student_policy)
        assert verdict.allowed is True
        assert verdict.warnings == []

    def test_deteriorated_warning(self, student_policy):
        """Deteriorated resources may be lent but carry a warning."""
        verdict = can_loan(make_resource(total=10, condition="deteriorated"), 1, student_policy)
        assert verdict.allowed is True
        assert WARNING_DETERIORATED in verdict.warnings

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity_rejected(self, student_policy, quantity):
        """Requested quantity must be at least 1."""
        with pytest.raises(ValueError):
            can_loan(make_resource(), quantity, student_policy)

    def test_non_integer_quantity_rejected(self, student_policy):
        """Requested quantity must be an integer."""
        with pytest.raises(ValueError):
            can_loan(make_resource(), 1.5, student_policy)

    def test_is_loanable_ignores_stock(self, student_policy):
        """State check passes for a fully loaned resource."""
        assert is_loanable(make_resource(total=2, loaned=2), student_policy).allowed is True
