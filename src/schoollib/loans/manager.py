"""Circulation manager: the operations exposed to the HTTP API and CLI."""

from datetime import date
from typing import Optional

from ..catalog.manager import ResourceCatalog
from ..config import LoanPolicy, get_config
from ..db.sqlite import Database, get_db
from ..people.manager import PersonDirectory
from .lifecycle import LoanLifecycle
from .models import Loan
from .policies import can_borrow
from .schemas import (
    BorrowCapacity,
    LoanCreate,
    LoanFilters,
    LoanResponse,
    MarkLostRequest,
    PaginatedLoans,
    RenewLoanRequest,
    ReturnLoanRequest,
    ReturnOutcome,
    ValidationResult,
)
from .store import LoanStore
from .validator import LoanValidator


class CirculationManager:
    """Manages loan validation, creation, returns, renewals and losses."""

    def __init__(self, db: Optional[Database] = None, policy: Optional[LoanPolicy] = None):
        """Initialize circulation manager.

        Args:
            db: Database instance
            policy: Loan rules (defaults to the configured policy)
        """
        self.db = db or get_db()
        self.policy = policy or get_config().loan_policy
        self.directory = PersonDirectory(self.db)
        self.catalog = ResourceCatalog(self.db)
        self.store = LoanStore(self.db)
        self.validator = LoanValidator(self.policy)
        self.lifecycle = LoanLifecycle(
            db=self.db,
            policy=self.policy,
            directory=self.directory,
            catalog=self.catalog,
            store=self.store,
        )

    # -------------------------------------------------------------------------
    # Eligibility and validation
    # -------------------------------------------------------------------------

    def validate_loan(self, data: LoanCreate, today: Optional[date] = None) -> ValidationResult:
        """Dry-run a loan request against current person and resource state.

        Raises:
            NotFoundError: If the person or resource does not exist
        """
        today = today or date.today()
        person = self.directory.get_person(data.person_id)
        resource = self.catalog.get_resource(data.resource_id)
        return self.validator.validate(
            person,
            resource,
            data.quantity,
            self.directory.count_active_loans(person.id),
            self.directory.has_overdue_loans(person.id, today),
        )

    def can_person_borrow(self, person_id: str, today: Optional[date] = None) -> BorrowCapacity:
        """Whether a person may take another loan, with their current load."""
        today = today or date.today()
        person = self.directory.get_person(person_id)
        active = self.directory.count_active_loans(person.id)
        overdue = self.directory.has_overdue_loans(person.id, today)
        verdict = can_borrow(person, active, overdue, self.policy)

        reason = verdict.reason
        if verdict.allowed and not person.active:
            reason = "person is not active"

        return BorrowCapacity(
            allowed=verdict.allowed and person.active,
            reason=reason,
            active_loans=active,
            max_loans=self.policy.max_active_loans(person.category),
            has_overdue_loans=overdue,
        )

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def create_loan(self, data: LoanCreate, today: Optional[date] = None) -> LoanResponse:
        """Validate and create a loan.

        Raises:
            ValidationError: With every broken rule, if the request is invalid
            ConflictError: If stock was taken between validation and commit
            NotFoundError: If the person or resource does not exist
        """
        today = today or date.today()
        self.validate_loan(data, today).raise_for_errors()
        loan = self.lifecycle.create(data, today)
        return self._to_response(loan, today)

    def return_loan(
        self, request: ReturnLoanRequest, today: Optional[date] = None
    ) -> ReturnOutcome:
        """Process a return."""
        today = today or date.today()
        outcome = self.lifecycle.return_loan(request, today)
        loan = self.store.get_loan(request.loan_id)
        outcome.loan = self._to_response(loan, today)
        return outcome

    def renew_loan(
        self,
        loan_id: str,
        request: Optional[RenewLoanRequest] = None,
        today: Optional[date] = None,
    ) -> LoanResponse:
        """Renew an active loan."""
        today = today or date.today()
        loan = self.lifecycle.renew(loan_id, request, today)
        return self._to_response(loan, today)

    def mark_lost(
        self, loan_id: str, request: MarkLostRequest, today: Optional[date] = None
    ) -> LoanResponse:
        """Declare an active loan lost."""
        today = today or date.today()
        loan = self.lifecycle.mark_lost(loan_id, request, today)
        return self._to_response(loan, today)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_loan(self, loan_id: str, today: Optional[date] = None) -> LoanResponse:
        """Get a loan by ID with its overdue fields computed for today."""
        return self._to_response(self.store.get_loan(loan_id), today)

    def list_loans(
        self, filters: Optional[LoanFilters] = None, today: Optional[date] = None
    ) -> PaginatedLoans:
        """List loans with optional filters."""
        filters = filters or LoanFilters()
        loans, total = self.store.list_loans(filters, today)
        return self._page(loans, total, filters.page, filters.limit, today)

    def get_overdue_loans(
        self, page: int = 1, limit: int = 20, today: Optional[date] = None
    ) -> PaginatedLoans:
        """Active loans past their due date."""
        loans, total = self.store.overdue_loans(today, page, limit)
        return self._page(loans, total, page, limit, today)

    def get_loans_due_soon(
        self,
        days: int = 3,
        page: int = 1,
        limit: int = 20,
        today: Optional[date] = None,
    ) -> PaginatedLoans:
        """Active loans due within the next `days` days."""
        if days < 0:
            raise ValueError("days cannot be negative")
        loans, total = self.store.loans_due_soon(days, today, page, limit)
        return self._page(loans, total, page, limit, today)

    def person_history(
        self, person_id: str, page: int = 1, limit: int = 20, today: Optional[date] = None
    ) -> PaginatedLoans:
        """Every loan a person has had, newest first."""
        self.directory.get_person(person_id)
        return self.list_loans(LoanFilters(person_id=person_id, page=page, limit=limit), today)

    def resource_history(
        self, resource_id: str, page: int = 1, limit: int = 20, today: Optional[date] = None
    ) -> PaginatedLoans:
        """Every loan of a resource, newest first."""
        self.catalog.get_resource(resource_id)
        return self.list_loans(
            LoanFilters(resource_id=resource_id, page=page, limit=limit), today
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _to_response(self, loan: Loan, today: Optional[date] = None) -> LoanResponse:
        names, titles = self.store.display_names([loan])
        return LoanResponse.from_loan(
            loan,
            today,
            person_name=names.get(loan.person_id),
            resource_title=titles.get(loan.resource_id),
        )

    def _page(
        self,
        loans: list[Loan],
        total: int,
        page: int,
        limit: int,
        today: Optional[date] = None,
    ) -> PaginatedLoans:
        names, titles = self.store.display_names(loans)
        items = [
            LoanResponse.from_loan(
                loan,
                today,
                person_name=names.get(loan.person_id),
                resource_title=titles.get(loan.resource_id),
            )
            for loan in loans
        ]
        return PaginatedLoans(items=items, total=total, page=page, limit=limit)
