"""Circulation statistics for dashboards.

Provides:
- Totals by loan status, with overdue derived for the given day
- New and returned loan counts for recent windows
- Top borrowers and most borrowed resources
- Status distribution with percentages

Figures are computed by scanning loan records on demand and are not
transactionally consistent with concurrent loan transitions.
"""

from collections import Counter, defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import func, select

from ..db.models import Person, Resource
from ..db.sqlite import Database, get_db
from ..loans.models import Loan
from ..loans.schemas import LoanStatus


@dataclass
class PeriodCounts:
    """Loan activity within a date window."""

    new_loans: int = 0
    returned_loans: int = 0


@dataclass
class BorrowerStats:
    """Loan counts for one person."""

    person_id: str
    full_name: str
    borrow_count: int = 0
    active_loans: int = 0
    overdue_loans: int = 0


@dataclass
class ResourceStats:
    """Loan counts for one resource."""

    resource_id: str
    title: str
    author: Optional[str] = None
    borrow_count: int = 0
    units_borrowed: int = 0


@dataclass
class StatusShare:
    """Share of loans in one display status."""

    status: str
    count: int
    percentage: float


@dataclass
class LoanStats:
    """Overall circulation statistics."""

    total_loans: int = 0
    active_loans: int = 0
    overdue_loans: int = 0
    returned_loans: int = 0
    lost_loans: int = 0
    average_loan_duration: float = 0.0  # days, over returned loans
    total_people: int = 0
    total_resources: int = 0
    today: PeriodCounts = field(default_factory=PeriodCounts)
    this_week: PeriodCounts = field(default_factory=PeriodCounts)
    this_month: PeriodCounts = field(default_factory=PeriodCounts)
    most_borrowed_resources: list[ResourceStats] = field(default_factory=list)
    top_borrowers: list[BorrowerStats] = field(default_factory=list)
    status_distribution: list[StatusShare] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


class LoanStatistics:
    """Calculates circulation statistics."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize statistics.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def get_stats(self, today: Optional[date] = None, top: int = 5) -> LoanStats:
        """Compute statistics as of `today`.

        Args:
            today: Reference day for overdue and period windows
            top: How many borrowers and resources to rank
        """
        today = today or date.today()
        with self.db.get_session() as session:
            loans = session.execute(select(Loan)).scalars().all()
            people = {p.id: p for p in session.execute(select(Person)).scalars().all()}
            resources = {
                r.id: r for r in session.execute(select(Resource)).scalars().all()
            }
            total_people = session.execute(
                select(func.count()).select_from(Person)
            ).scalar() or 0

            stats = LoanStats(
                total_loans=len(loans),
                total_people=total_people,
                total_resources=len(resources),
            )

            windows = {
                "today": (today, stats.today),
                "this_week": (today - timedelta(days=6), stats.this_week),
                "this_month": (today - timedelta(days=29), stats.this_month),
            }

            durations = []
            borrowers: dict[str, BorrowerStats] = {}
            borrowed: dict[str, ResourceStats] = {}
            display = Counter()

            for loan in loans:
                overdue = loan.is_overdue(today)
                if loan.status == LoanStatus.ACTIVE.value:
                    stats.active_loans += 1
                    if overdue:
                        stats.overdue_loans += 1
                elif loan.status == LoanStatus.RETURNED.value:
                    stats.returned_loans += 1
                    durations.append(
                        (
                            date.fromisoformat(loan.returned_date)
                            - date.fromisoformat(loan.loan_date)
                        ).days
                    )
                elif loan.status == LoanStatus.LOST.value:
                    stats.lost_loans += 1
                display["overdue" if overdue else loan.status] += 1

                loan_day = date.fromisoformat(loan.loan_date)
                returned_day = (
                    date.fromisoformat(loan.returned_date) if loan.returned_date else None
                )
                for start, counts in windows.values():
                    if start <= loan_day <= today:
                        counts.new_loans += 1
                    if returned_day and start <= returned_day <= today:
                        counts.returned_loans += 1

                person = people.get(loan.person_id)
                b = borrowers.get(loan.person_id)
                if b is None:
                    b = borrowers[loan.person_id] = BorrowerStats(
                        person_id=loan.person_id,
                        full_name=person.full_name if person else loan.person_id,
                    )
                b.borrow_count += 1
                if loan.status == LoanStatus.ACTIVE.value:
                    b.active_loans += 1
                if overdue:
                    b.overdue_loans += 1

                resource = resources.get(loan.resource_id)
                r = borrowed.get(loan.resource_id)
                if r is None:
                    r = borrowed[loan.resource_id] = ResourceStats(
                        resource_id=loan.resource_id,
                        title=resource.title if resource else loan.resource_id,
                        author=resource.author if resource else None,
                    )
                r.borrow_count += 1
                r.units_borrowed += loan.quantity

            if durations:
                stats.average_loan_duration = round(sum(durations) / len(durations), 1)

            stats.top_borrowers = sorted(
                borrowers.values(), key=lambda b: (-b.borrow_count, b.full_name)
            )[:top]
            stats.most_borrowed_resources = sorted(
                borrowed.values(), key=lambda r: (-r.borrow_count, r.title)
            )[:top]

            if loans:
                stats.status_distribution = [
                    StatusShare(
                        status=status,
                        count=count,
                        percentage=round(count / len(loans) * 100, 1),
                    )
                    for status, count in display.most_common()
                ]

            return stats

    def loans_per_month(self, year: int) -> dict[int, int]:
        """Number of loans started in each month of a year."""
        by_month: dict[int, int] = defaultdict(int)
        with self.db.get_session() as session:
            loan_dates = session.execute(
                select(Loan.loan_date).where(Loan.loan_date.like(f"{year}-%"))
            ).scalars().all()
            for loan_date in loan_dates:
                by_month[date.fromisoformat(loan_date).month] += 1
        return {month: by_month.get(month, 0) for month in range(1, 13)}
