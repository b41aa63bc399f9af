"""Pydantic schemas for circulation requests and responses."""

import math
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional
from uuid import UUID

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator

from ..db.schemas import ResourceCondition
from ..errors import ValidationError

if TYPE_CHECKING:
    from .models import Loan


class LoanStatus(str, Enum):
    """Stored status of a loan. Overdue is derived, not stored."""

    ACTIVE = "active"
    RETURNED = "returned"
    LOST = "lost"


# ============================================================================
# Requests
# ============================================================================


class LoanCreate(BaseModel):
    """Schema for creating (or dry-run validating) a loan."""

    person_id: str = Field(..., min_length=1)
    resource_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)
    observations: Optional[str] = None


class ReturnLoanRequest(BaseModel):
    """Schema for processing a return."""

    loan_id: str = Field(..., min_length=1)
    return_date: Optional[date] = None
    resource_condition: Optional[ResourceCondition] = None
    observations: Optional[str] = None


class RenewLoanRequest(BaseModel):
    """Schema for renewing a loan."""

    new_due_date: Optional[date] = None


class MarkLostRequest(BaseModel):
    """Schema for declaring a loan lost."""

    observations: str = Field(..., min_length=1)

    @field_validator("observations")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("observations are required when marking a loan lost")
        return v


class LoanFilters(BaseModel):
    """Filters for listing loans."""

    status: Optional[LoanStatus] = None
    person_id: Optional[str] = None
    resource_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    overdue_only: bool = False
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1)

    @model_validator(mode="after")
    def check_range(self) -> "LoanFilters":
        if self.date_from and self.date_to and self.date_to < self.date_from:
            raise ValueError("date_to must not be before date_from")
        return self


# ============================================================================
# Results
# ============================================================================


class ValidationResult(BaseModel):
    """Outcome of validating a loan request."""

    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def raise_for_errors(self) -> None:
        """Raise ValidationError if any blocking error was found."""
        if self.errors:
            raise ValidationError(self.errors, self.warnings)


class BorrowCapacity(BaseModel):
    """Whether a person may take on another loan, with their current load."""

    allowed: bool
    reason: Optional[str] = None
    active_loans: int
    max_loans: int
    has_overdue_loans: bool = False


class LoanResponse(BaseModel):
    """Schema for loan responses, with overdue fields computed for a given day."""

    id: UUID
    person_id: UUID
    resource_id: UUID
    quantity: int
    status: LoanStatus
    loan_date: date
    due_date: date
    returned_date: Optional[date]
    observations: Optional[str]
    return_observations: Optional[str]
    renewal_count: int
    is_overdue: bool
    days_overdue: int
    days_until_due: Optional[int]
    created_at: datetime
    updated_at: datetime

    # Related data (populated by manager)
    person_name: Optional[str] = None
    resource_title: Optional[str] = None

    @classmethod
    def from_loan(
        cls,
        loan: "Loan",
        today: Optional[date] = None,
        person_name: Optional[str] = None,
        resource_title: Optional[str] = None,
    ) -> "LoanResponse":
        today = today or date.today()
        return cls(
            id=UUID(loan.id),
            person_id=UUID(loan.person_id),
            resource_id=UUID(loan.resource_id),
            quantity=loan.quantity,
            status=LoanStatus(loan.status),
            loan_date=date.fromisoformat(loan.loan_date),
            due_date=date.fromisoformat(loan.due_date),
            returned_date=(
                date.fromisoformat(loan.returned_date) if loan.returned_date else None
            ),
            observations=loan.observations,
            return_observations=loan.return_observations,
            renewal_count=loan.renewal_count,
            is_overdue=loan.is_overdue(today),
            days_overdue=loan.days_overdue(today),
            days_until_due=loan.days_until_due(today) if loan.is_active else None,
            created_at=datetime.fromisoformat(loan.created_at),
            updated_at=datetime.fromisoformat(loan.updated_at),
            person_name=person_name,
            resource_title=resource_title,
        )


class ReturnOutcome(BaseModel):
    """Result of a processed return."""

    loan: LoanResponse
    was_overdue: bool
    days_overdue: int
    resource_condition_changed: bool


class PaginatedLoans(BaseModel):
    """One page of loans."""

    items: list[LoanResponse]
    total: int
    page: int
    limit: int

    @computed_field
    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0
