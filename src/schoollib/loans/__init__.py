"""Circulation module.

Provides functionality for:
- Eligibility and availability rules
- Loan validation (errors and warnings)
- The loan lifecycle: create, return, renew, mark lost
- Overdue and due-soon queries

The lifecycle and manager depend on the people and catalog packages and
are imported from their own modules (schoollib.loans.manager).
"""

from .models import Loan
from .policies import Verdict, can_borrow, can_loan, is_loanable
from .schemas import (
    BorrowCapacity,
    LoanCreate,
    LoanFilters,
    LoanResponse,
    LoanStatus,
    MarkLostRequest,
    PaginatedLoans,
    RenewLoanRequest,
    ReturnLoanRequest,
    ReturnOutcome,
    ValidationResult,
)
from .store import LoanStore
from .validator import LoanValidator

__all__ = [
    "Loan",
    "Verdict",
    "can_borrow",
    "can_loan",
    "is_loanable",
    "BorrowCapacity",
    "LoanCreate",
    "LoanFilters",
    "LoanResponse",
    "LoanStatus",
    "MarkLostRequest",
    "PaginatedLoans",
    "RenewLoanRequest",
    "ReturnLoanRequest",
    "ReturnOutcome",
    "ValidationResult",
    "LoanStore",
    "LoanValidator",
]
