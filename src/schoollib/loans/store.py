"""Loan store: the persistence boundary for circulation.

Every write that touches resource stock happens here, inside one
transaction, as a conditional UPDATE whose WHERE clause is the invariant
being protected. A zero row count means another request got there first.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..db.models import Person, Resource, utc_now
from ..db.schemas import ResourceCondition
from ..db.sqlite import Database, get_db
from ..errors import ConflictError, InvalidStateError, NotFoundError
from .models import Loan
from .schemas import LoanFilters, LoanStatus

logger = logging.getLogger(__name__)

ACTIVE = LoanStatus.ACTIVE.value


class LoanStore:
    """Atomic read-modify-write operations on loans and resource stock."""

    def __init__(self, db: Optional[Database] = None):
        """Initialize loan store.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    # -------------------------------------------------------------------------
    # Commits
    # -------------------------------------------------------------------------

    def commit_new_loan(
        self,
        person_id: str,
        resource_id: str,
        quantity: int,
        loan_date: date,
        due_date: date,
        max_active_loans: int,
        observations: Optional[str] = None,
    ) -> Loan:
        """Reserve stock and insert an active loan in one transaction.

        Raises:
            ConflictError: If the stock or the person's loan limit was
                taken by a concurrent request
        """
        with self.db.transaction() as session:
            reserved = session.execute(
                update(Resource)
                .where(
                    Resource.id == resource_id,
                    Resource.available.is_(True),
                    Resource.currently_loaned + quantity <= Resource.total_quantity,
                )
                .values(
                    currently_loaned=Resource.currently_loaned + quantity,
                    updated_at=utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
            if reserved.rowcount == 0:
                logger.warning(
                    "stock conflict on resource %s (requested %d)", resource_id, quantity
                )
                raise ConflictError(
                    f"Resource {resource_id} no longer has {quantity} unit(s) available"
                )

            # The write lock is held from here on, so this count is current
            active = self._count_active(session, person_id)
            if active >= max_active_loans:
                logger.warning("loan limit conflict for person %s", person_id)
                raise ConflictError(
                    f"Person {person_id} reached the active-loan limit concurrently"
                )

            loan = Loan(
                person_id=person_id,
                resource_id=resource_id,
                quantity=quantity,
                status=ACTIVE,
                loan_date=loan_date.isoformat(),
                due_date=due_date.isoformat(),
                observations=observations,
                renewal_count=0,
                version=1,
            )
            session.add(loan)
            session.commit()
            session.refresh(loan)
            session.expunge(loan)
            return loan

    def commit_transition(
        self,
        loan_id: str,
        expected_version: int,
        action: str,
        loan_values: dict,
        release_quantity: int = 0,
        retire_quantity: int = 0,
        resource_condition: Optional[str] = None,
    ) -> Loan:
        """Apply a transition to an active loan and release its stock.

        Args:
            loan_id: Loan ID
            expected_version: Version read before deciding on the transition
            action: Name of the transition, for error messages
            loan_values: Column values to set on the loan
            release_quantity: Units to return to the shelf count
            retire_quantity: Units to remove from the resource's total
            resource_condition: New resource condition, if any

        Raises:
            NotFoundError: If the loan does not exist
            InvalidStateError: If the loan is no longer active
            ConflictError: If the loan changed since expected_version
        """
        with self.db.transaction() as session:
            applied = session.execute(
                update(Loan)
                .where(
                    Loan.id == loan_id,
                    Loan.status == ACTIVE,
                    Loan.version == expected_version,
                )
                .values(**loan_values, version=Loan.version + 1, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            if applied.rowcount == 0:
                current = session.get(Loan, loan_id)
                if current is None:
                    raise NotFoundError("loan", loan_id)
                if current.is_terminal:
                    raise InvalidStateError(loan_id, current.status, action)
                logger.warning("version conflict on loan %s during %s", loan_id, action)
                raise ConflictError(f"Loan {loan_id} was modified concurrently")

            loan = session.get(Loan, loan_id)

            if release_quantity or retire_quantity or resource_condition:
                values = {"updated_at": utc_now()}
                if release_quantity:
                    values["currently_loaned"] = Resource.currently_loaned - release_quantity
                if retire_quantity:
                    values["total_quantity"] = Resource.total_quantity - retire_quantity
                if resource_condition:
                    values["condition"] = resource_condition

                released = session.execute(
                    update(Resource)
                    .where(
                        Resource.id == loan.resource_id,
                        Resource.currently_loaned >= release_quantity,
                        Resource.total_quantity >= retire_quantity,
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if released.rowcount == 0:
                    raise ConflictError(
                        f"Stock for resource {loan.resource_id} is inconsistent with loan {loan_id}"
                    )

                if retire_quantity:
                    # Nothing left to lend: flag the resource itself as lost
                    session.execute(
                        update(Resource)
                        .where(Resource.id == loan.resource_id, Resource.total_quantity == 0)
                        .values(condition=ResourceCondition.LOST.value, available=False)
                        .execution_options(synchronize_session=False)
                    )

            session.commit()
            session.refresh(loan)
            session.expunge(loan)
            return loan

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_loan(self, loan_id: str) -> Loan:
        """Get a loan by ID.

        Raises:
            NotFoundError: If no loan has this ID
        """
        with self.db.get_session() as session:
            loan = session.get(Loan, loan_id)
            if loan is None:
                raise NotFoundError("loan", loan_id)
            session.expunge(loan)
            return loan

    def list_loans(
        self, filters: LoanFilters, today: Optional[date] = None
    ) -> tuple[list[Loan], int]:
        """List loans matching the filters, newest first.

        Returns:
            The requested page of loans and the total match count
        """
        today = today or date.today()
        stmt = select(Loan)

        if filters.status:
            stmt = stmt.where(Loan.status == filters.status.value)
        if filters.person_id:
            stmt = stmt.where(Loan.person_id == filters.person_id)
        if filters.resource_id:
            stmt = stmt.where(Loan.resource_id == filters.resource_id)
        if filters.date_from:
            stmt = stmt.where(Loan.loan_date >= filters.date_from.isoformat())
        if filters.date_to:
            stmt = stmt.where(Loan.loan_date <= filters.date_to.isoformat())
        if filters.overdue_only:
            stmt = stmt.where(Loan.status == ACTIVE, Loan.due_date < today.isoformat())

        stmt = stmt.order_by(Loan.loan_date.desc(), Loan.created_at.desc())
        return self._paginate(stmt, filters.page, filters.limit)

    def overdue_loans(
        self, today: Optional[date] = None, page: int = 1, limit: int = 20
    ) -> tuple[list[Loan], int]:
        """Active loans past their due date, most overdue first."""
        today = today or date.today()
        stmt = (
            select(Loan)
            .where(Loan.status == ACTIVE, Loan.due_date < today.isoformat())
            .order_by(Loan.due_date, Loan.id)
        )
        return self._paginate(stmt, page, limit)

    def loans_due_soon(
        self,
        days: int = 3,
        today: Optional[date] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Loan], int]:
        """Active loans falling due between today and today + days."""
        today = today or date.today()
        future = today + timedelta(days=days)
        stmt = (
            select(Loan)
            .where(
                Loan.status == ACTIVE,
                Loan.due_date >= today.isoformat(),
                Loan.due_date <= future.isoformat(),
            )
            .order_by(Loan.due_date, Loan.id)
        )
        return self._paginate(stmt, page, limit)

    def count_active_loans(self, person_id: str) -> int:
        with self.db.get_session() as session:
            return self._count_active(session, person_id)

    def active_quantity_for_resource(self, resource_id: str) -> int:
        """Sum of quantities over the resource's active loans."""
        with self.db.get_session() as session:
            return session.execute(
                select(func.coalesce(func.sum(Loan.quantity), 0)).where(
                    Loan.resource_id == resource_id,
                    Loan.status == ACTIVE,
                )
            ).scalar()

    def display_names(self, loans: list[Loan]) -> tuple[dict[str, str], dict[str, str]]:
        """Person names and resource titles for a batch of loans."""
        person_ids = {loan.person_id for loan in loans}
        resource_ids = {loan.resource_id for loan in loans}
        if not loans:
            return {}, {}
        with self.db.get_session() as session:
            people = session.execute(
                select(Person).where(Person.id.in_(person_ids))
            ).scalars().all()
            titles = session.execute(
                select(Resource.id, Resource.title).where(Resource.id.in_(resource_ids))
            ).all()
            return {p.id: p.full_name for p in people}, {rid: title for rid, title in titles}

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _count_active(session: Session, person_id: str) -> int:
        return session.execute(
            select(func.count()).where(Loan.person_id == person_id, Loan.status == ACTIVE)
        ).scalar() or 0

    def _paginate(self, stmt, page: int, limit: int) -> tuple[list[Loan], int]:
        with self.db.get_session() as session:
            total = session.execute(
                select(func.count()).select_from(stmt.order_by(None).subquery())
            ).scalar() or 0
            loans = session.execute(
                stmt.offset((page - 1) * limit).limit(limit)
            ).scalars().all()
            for loan in loans:
                session.expunge(loan)
            return list(loans), total
