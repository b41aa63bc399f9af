"""Eligibility and availability rules.

Both policies are pure functions: every input, including the limits, is
passed in explicitly as a snapshot taken by the caller. Nothing here reads
the database or global configuration.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..config import LoanPolicy
from ..db.models import Person, Resource
from ..db.schemas import ResourceCondition

REASON_OVERDUE = "has unresolved overdue loans"
REASON_LIMIT = "active-loan limit reached"
REASON_UNAVAILABLE = "resource unavailable"
REASON_CONDITION = "condition not loanable"
REASON_STOCK = "insufficient stock"

WARNING_LOW_STOCK = "low stock"
WARNING_DETERIORATED = "resource is deteriorated"


@dataclass
class Verdict:
    """Allow/deny decision with an optional reason and non-blocking warnings."""

    allowed: bool
    reason: Optional[str] = None
    warnings: list[str] = field(default_factory=list)


def can_borrow(
    person: Person,
    active_loan_count: int,
    has_overdue_loans: bool,
    policy: LoanPolicy,
) -> Verdict:
    """Decide whether a person may take on a new loan.

    Overdue loans block first and short-circuit the limit check.

    Raises:
        ValueError: If active_loan_count is negative
    """
    if active_loan_count < 0:
        raise ValueError("active_loan_count cannot be negative")

    if has_overdue_loans:
        return Verdict(False, REASON_OVERDUE)

    max_loans = policy.max_active_loans(person.category)
    if active_loan_count >= max_loans:
        return Verdict(False, f"{REASON_LIMIT} ({active_loan_count}/{max_loans})")

    return Verdict(True)


def is_loanable(resource: Resource, policy: LoanPolicy) -> Verdict:
    """Availability flag and condition only, ignoring stock."""
    if not resource.available:
        return Verdict(False, REASON_UNAVAILABLE)

    if resource.condition not in policy.loanable_conditions:
        return Verdict(False, f"{REASON_CONDITION}: {resource.condition}")

    return Verdict(True)


def can_loan(resource: Resource, requested_quantity: int, policy: LoanPolicy) -> Verdict:
    """Decide whether a resource can satisfy a requested quantity.

    Raises:
        ValueError: If requested_quantity is not a positive integer
    """
    if isinstance(requested_quantity, bool) or not isinstance(requested_quantity, int):
        raise ValueError("requested_quantity must be an integer")
    if requested_quantity < 1:
        raise ValueError("requested_quantity must be at least 1")

    state = is_loanable(resource, policy)
    if not state.allowed:
        return state

    available = resource.total_quantity - resource.currently_loaned
    if available < requested_quantity:
        deficit = requested_quantity - available
        return Verdict(
            False,
            f"{REASON_STOCK}: available {available}, requested {requested_quantity}, "
            f"short by {deficit}",
        )

    warnings = []
    remaining = available - requested_quantity
    if remaining <= policy.low_stock_threshold:
        warnings.append(f"{WARNING_LOW_STOCK}: {remaining} unit(s) left after this loan")
    if resource.condition == ResourceCondition.DETERIORATED.value:
        warnings.append(WARNING_DETERIORATED)

    return Verdict(True, warnings=warnings)
