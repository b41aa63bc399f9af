"""SQLAlchemy models for circulation.

Tables:
- loans: Individual loan records binding a person to units of a resource

Overdue is never stored; it is derived from status and due date at read time.
"""

from datetime import date
from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.models import Base, Person, Resource, generate_uuid, utc_now
from .schemas import LoanStatus


class Loan(Base):
    """Loan model - tracks one circulation of a quantity of a resource."""

    __tablename__ = "loans"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_loans_quantity_positive"),
        CheckConstraint("due_date > loan_date", name="ck_loans_due_after_loan"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    person_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("people.id"), nullable=False, index=True
    )
    resource_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("resources.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default=LoanStatus.ACTIVE.value, index=True
    )

    # Dates
    loan_date: Mapped[str] = mapped_column(String(10), nullable=False)  # ISO date
    due_date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)  # ISO date
    returned_date: Mapped[Optional[str]] = mapped_column(String(10))  # ISO date

    # Notes
    observations: Mapped[Optional[str]] = mapped_column(Text)
    return_observations: Mapped[Optional[str]] = mapped_column(Text)

    renewal_count: Mapped[int] = mapped_column(Integer, default=0)

    # Optimistic concurrency counter, bumped on every transition
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_now, onupdate=utc_now)

    # Relationships
    person: Mapped["Person"] = relationship("Person")
    resource: Mapped["Resource"] = relationship("Resource")

    def __repr__(self) -> str:
        return (
            f"<Loan(id={self.id}, person_id={self.person_id}, "
            f"resource_id={self.resource_id}, status={self.status})>"
        )

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE.value

    @property
    def is_terminal(self) -> bool:
        return not self.is_active

    def is_overdue(self, today: Optional[date] = None) -> bool:
        """Active and past the due date."""
        if not self.is_active:
            return False
        today = today or date.today()
        return today > date.fromisoformat(self.due_date)

    def days_until_due(self, today: Optional[date] = None) -> int:
        """Days until due (negative if overdue)."""
        today = today or date.today()
        return (date.fromisoformat(self.due_date) - today).days

    def days_overdue(self, today: Optional[date] = None) -> int:
        """Days overdue (0 if not overdue or no longer active)."""
        if not self.is_active:
            return 0
        return max(0, -self.days_until_due(today))
