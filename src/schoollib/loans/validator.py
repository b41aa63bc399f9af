"""Loan validator: one verdict from eligibility, availability and structure."""

from ..config import LoanPolicy
from ..db.models import Person, Resource
from .policies import can_borrow, can_loan
from .schemas import ValidationResult

REASON_INACTIVE = "person is not active"
REASON_QUANTITY_MIN = "quantity must be at least 1"
REASON_QUANTITY_MAX = "quantity exceeds the per-loan limit"


class LoanValidator:
    """Single entry point for deciding whether a loan may be created."""

    def __init__(self, policy: LoanPolicy):
        self.policy = policy

    def check_structure(self, person: Person, quantity: int) -> list[str]:
        """Rules that depend on neither stock nor borrowing history."""
        errors = []
        if not person.active:
            errors.append(REASON_INACTIVE)
        if quantity < 1:
            errors.append(REASON_QUANTITY_MIN)
        else:
            max_quantity = self.policy.max_quantity_per_loan(person.category)
            if quantity > max_quantity:
                errors.append(f"{REASON_QUANTITY_MAX} ({quantity} > {max_quantity})")
        return errors

    def check_eligibility(
        self,
        person: Person,
        quantity: int,
        active_loan_count: int,
        has_overdue_loans: bool,
    ) -> list[str]:
        """Structural rules plus the person's eligibility. No stock rules."""
        errors = self.check_structure(person, quantity)
        verdict = can_borrow(person, active_loan_count, has_overdue_loans, self.policy)
        if not verdict.allowed:
            errors.append(verdict.reason)
        return errors

    def validate(
        self,
        person: Person,
        resource: Resource,
        quantity: int,
        active_loan_count: int,
        has_overdue_loans: bool,
    ) -> ValidationResult:
        """Validate a loan request against a snapshot of person and resource.

        Args:
            person: Person snapshot
            resource: Resource snapshot
            quantity: Requested units
            active_loan_count: Loans the person currently holds
            has_overdue_loans: Whether any of them is overdue

        Returns:
            ValidationResult with blocking errors and non-blocking warnings
        """
        errors = self.check_eligibility(person, quantity, active_loan_count, has_overdue_loans)
        warnings: list[str] = []

        if quantity >= 1:
            verdict = can_loan(resource, quantity, self.policy)
            if verdict.allowed:
                warnings.extend(verdict.warnings)
            else:
                errors.append(verdict.reason)

        return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
