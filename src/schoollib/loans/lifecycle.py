"""Loan lifecycle: the state machine from creation to return, renewal or loss.

States are active (initial), returned and lost (both terminal). Overdue is
not a state; it is derived from the due date whenever a loan is read.
Every transition goes through LoanStore so that the loan row and the
resource stock change in the same transaction.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from ..catalog.manager import ResourceCatalog
from ..config import LoanPolicy, get_config
from ..db.models import Person
from ..db.sqlite import Database, get_db
from ..errors import InvalidStateError, ValidationError
from ..people.manager import PersonDirectory
from .models import Loan
from .policies import is_loanable
from .schemas import (
    LoanCreate,
    LoanResponse,
    LoanStatus,
    MarkLostRequest,
    RenewLoanRequest,
    ReturnLoanRequest,
    ReturnOutcome,
)
from .store import LoanStore
from .validator import LoanValidator

logger = logging.getLogger(__name__)


class LoanLifecycle:
    """Creates loans and moves them through their states."""

    def __init__(
        self,
        db: Optional[Database] = None,
        policy: Optional[LoanPolicy] = None,
        directory: Optional[PersonDirectory] = None,
        catalog: Optional[ResourceCatalog] = None,
        store: Optional[LoanStore] = None,
    ):
        """Initialize loan lifecycle.

        Args:
            db: Database instance
            policy: Loan rules (defaults to the configured policy)
            directory: Person lookups
            catalog: Resource lookups
            store: Persistence boundary for commits
        """
        self.db = db or get_db()
        self.policy = policy or get_config().loan_policy
        self.directory = directory or PersonDirectory(self.db)
        self.catalog = catalog or ResourceCatalog(self.db)
        self.store = store or LoanStore(self.db)
        self.validator = LoanValidator(self.policy)

    def due_date_for(self, person: Person, loan_date: date) -> date:
        """Due date for a loan starting on loan_date."""
        return loan_date + timedelta(days=self.policy.loan_period_days(person.category))

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def create(self, data: LoanCreate, today: Optional[date] = None) -> Loan:
        """Create an active loan and reserve its stock.

        Eligibility, structure and the resource's state are re-checked on a
        fresh snapshot. Stock is not: the store's conditional update decides.

        Raises:
            NotFoundError: If the person or resource does not exist
            ValidationError: If a business rule no longer holds
            ConflictError: If the stock was taken by a concurrent request
        """
        today = today or date.today()
        person = self.directory.get_person(data.person_id)
        resource = self.catalog.get_resource(data.resource_id)

        errors = self.validator.check_eligibility(
            person,
            data.quantity,
            self.directory.count_active_loans(person.id),
            self.directory.has_overdue_loans(person.id, today),
        )
        state = is_loanable(resource, self.policy)
        if not state.allowed:
            errors.append(state.reason)
        if errors:
            raise ValidationError(errors)

        loan = self.store.commit_new_loan(
            person_id=person.id,
            resource_id=resource.id,
            quantity=data.quantity,
            loan_date=today,
            due_date=self.due_date_for(person, today),
            max_active_loans=self.policy.max_active_loans(person.category),
            observations=data.observations,
        )
        logger.info(
            "loan created: %s person=%s resource=%s quantity=%d due=%s",
            loan.id,
            loan.person_id,
            loan.resource_id,
            loan.quantity,
            loan.due_date,
        )
        return loan

    def return_loan(
        self, request: ReturnLoanRequest, today: Optional[date] = None
    ) -> ReturnOutcome:
        """Mark an active loan as returned and put its units back on the shelf.

        Raises:
            NotFoundError: If the loan does not exist
            InvalidStateError: If the loan is already returned or lost
            ValidationError: If the return date is impossible
        """
        today = today or date.today()
        loan = self._get_active(request.loan_id, "return")

        returned_on = request.return_date or today
        if returned_on < date.fromisoformat(loan.loan_date):
            raise ValidationError(["return date cannot precede the loan date"])
        if returned_on > today:
            raise ValidationError(["return date cannot be in the future"])

        days_overdue = max(0, (returned_on - date.fromisoformat(loan.due_date)).days)

        new_condition = None
        if request.resource_condition is not None:
            resource = self.catalog.get_resource(loan.resource_id)
            if request.resource_condition.value != resource.condition:
                new_condition = request.resource_condition.value

        updated = self.store.commit_transition(
            loan.id,
            loan.version,
            "return",
            {
                "status": LoanStatus.RETURNED.value,
                "returned_date": returned_on.isoformat(),
                "return_observations": request.observations,
            },
            release_quantity=loan.quantity,
            resource_condition=new_condition,
        )
        logger.info(
            "loan returned: %s on %s (%d day(s) late)", updated.id, returned_on, days_overdue
        )
        return ReturnOutcome(
            loan=LoanResponse.from_loan(updated, today),
            was_overdue=days_overdue > 0,
            days_overdue=days_overdue,
            resource_condition_changed=new_condition is not None,
        )

    def renew(
        self,
        loan_id: str,
        request: Optional[RenewLoanRequest] = None,
        today: Optional[date] = None,
    ) -> Loan:
        """Extend the due date of an active loan.

        Without an explicit date the loan runs for another full period from
        today. Renewals are capped by policy.max_renewals (0 means no cap).

        Raises:
            NotFoundError: If the loan does not exist
            InvalidStateError: If the loan is already returned or lost
            ValidationError: If the renewal cap is reached or the date is invalid
        """
        today = today or date.today()
        request = request or RenewLoanRequest()
        loan = self._get_active(loan_id, "renew")
        person = self.directory.get_person(loan.person_id)

        errors = []
        if self.policy.renewals_capped and loan.renewal_count >= self.policy.max_renewals:
            errors.append(
                f"renewal limit reached ({loan.renewal_count}/{self.policy.max_renewals})"
            )

        new_due = request.new_due_date or self.due_date_for(person, today)
        current_due = date.fromisoformat(loan.due_date)
        if new_due <= date.fromisoformat(loan.loan_date):
            errors.append("new due date must be after the loan date")
        elif new_due <= max(today, current_due):
            errors.append("new due date must be later than today and the current due date")

        if errors:
            raise ValidationError(errors)

        updated = self.store.commit_transition(
            loan.id,
            loan.version,
            "renew",
            {
                "due_date": new_due.isoformat(),
                "renewal_count": Loan.renewal_count + 1,
            },
        )
        logger.info(
            "loan renewed: %s due=%s renewals=%d", updated.id, new_due, updated.renewal_count
        )
        return updated

    def mark_lost(
        self, loan_id: str, request: MarkLostRequest, today: Optional[date] = None
    ) -> Loan:
        """Declare the units of an active loan lost.

        The units leave inventory for good: they are released from the loaned
        count and removed from the resource's total.

        Raises:
            NotFoundError: If the loan does not exist
            InvalidStateError: If the loan is already returned or lost
        """
        today = today or date.today()
        loan = self._get_active(loan_id, "mark lost")

        note = f"Lost on {today.isoformat()}: {request.observations}"
        observations = f"{loan.observations}\n\n{note}" if loan.observations else note

        updated = self.store.commit_transition(
            loan.id,
            loan.version,
            "mark lost",
            {"status": LoanStatus.LOST.value, "observations": observations},
            release_quantity=loan.quantity,
            retire_quantity=loan.quantity,
        )
        logger.info("loan marked lost: %s (%d unit(s) retired)", updated.id, updated.quantity)
        return updated

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _get_active(self, loan_id: str, action: str) -> Loan:
        loan = self.store.get_loan(loan_id)
        if loan.is_terminal:
            raise InvalidStateError(loan.id, loan.status, action)
        return loan
