"""Person directory: person records and their current borrowing load."""

from datetime import date
from typing import Optional

from sqlalchemy import func, select

from ..db.models import Person
from ..db.schemas import PersonCategory
from ..db.sqlite import Database, get_db
from ..errors import NotFoundError
from ..loans.models import Loan
from ..loans.schemas import LoanStatus
from .schemas import PersonCreate


class PersonDirectory:
    """Looks up people and counts the loans they currently hold."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize person directory.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def add_person(self, data: PersonCreate) -> Person:
        """Register a new person.

        Args:
            data: Person creation data

        Returns:
            Created person
        """
        with self.db.get_session() as session:
            person = Person(
                first_name=data.first_name,
                last_name=data.last_name,
                category=data.category.value,
                document_number=data.document_number,
                grade=data.grade,
                active=data.active,
            )
            session.add(person)
            session.commit()
            session.refresh(person)
            session.expunge(person)
            return person

    def get_person(self, person_id: str) -> Person:
        """Get a person by ID.

        Raises:
            NotFoundError: If no person has this ID
        """
        with self.db.get_session() as session:
            person = session.get(Person, person_id)
            if person is None:
                raise NotFoundError("person", person_id)
            session.expunge(person)
            return person

    def list_people(
        self,
        category: Optional[PersonCategory] = None,
        active_only: bool = False,
    ) -> list[Person]:
        """List people sorted by last name."""
        with self.db.get_session() as session:
            stmt = select(Person).order_by(Person.last_name, Person.first_name)
            if category:
                stmt = stmt.where(Person.category == category.value)
            if active_only:
                stmt = stmt.where(Person.active.is_(True))

            people = session.execute(stmt).scalars().all()
            for p in people:
                session.expunge(p)
            return list(people)

    def count_active_loans(self, person_id: str) -> int:
        """Number of loans the person currently holds."""
        with self.db.get_session() as session:
            return session.execute(
                select(func.count()).where(
                    Loan.person_id == person_id,
                    Loan.status == LoanStatus.ACTIVE.value,
                )
            ).scalar() or 0

    def has_overdue_loans(self, person_id: str, today: Optional[date] = None) -> bool:
        """Whether any of the person's active loans is past its due date."""
        today = today or date.today()
        with self.db.get_session() as session:
            count = session.execute(
                select(func.count()).where(
                    Loan.person_id == person_id,
                    Loan.status == LoanStatus.ACTIVE.value,
                    Loan.due_date < today.isoformat(),
                )
            ).scalar() or 0
            return count > 0
