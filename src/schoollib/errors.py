"""Error taxonomy for the circulation engine.

Every failure raised by the loan engine is one of these kinds so that the
HTTP and CLI layers can decide presentation without inspecting messages:

- ValidationError: business-rule violation, carries the list of reasons
- InvalidStateError: transition attempted on a terminal loan
- ConflictError: an atomic commit lost a race
- NotFoundError: referenced person, resource or loan does not exist
- DependencyError: the database (or another collaborator) is failing
"""

from typing import Optional


class LibraryError(Exception):
    """Base error for the school library engine."""

    code = "error"


class ValidationError(LibraryError):
    """A loan request broke one or more business rules."""

    code = "validation_error"

    def __init__(self, errors: list[str], warnings: Optional[list[str]] = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__("; ".join(self.errors) or "validation failed")


class InvalidStateError(LibraryError):
    """Transition attempted on a loan that is no longer active."""

    code = "invalid_state"

    def __init__(self, loan_id: str, status: str, action: str):
        self.loan_id = loan_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} loan {loan_id}: loan is {status}")


class ConflictError(LibraryError):
    """An atomic commit failed because state changed underneath it."""

    code = "conflict"


class NotFoundError(LibraryError):
    """Referenced record does not exist."""

    code = "not_found"

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind.capitalize()} not found: {record_id}")


class DependencyError(LibraryError):
    """Database or collaborator unreachable. Safe to retry a bounded number of times."""

    code = "dependency_error"
