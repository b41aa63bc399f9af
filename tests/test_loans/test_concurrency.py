"""Tests for racing commits on the same stock and the same loan."""

import threading
from datetime import timedelta

import pytest

from schoollib.catalog.schemas import ResourceCreate
from schoollib.db.schemas import PersonCategory
from schoollib.errors import ConflictError, InvalidStateError, ValidationError
from schoollib.loans.manager import CirculationManager
from schoollib.loans.schemas import (
    LoanCreate,
    LoanResponse,
    LoanStatus,
    ReturnLoanRequest,
    ReturnOutcome,
)
from schoollib.loans.store import LoanStore
from schoollib.people.schemas import PersonCreate


def run_together(*targets):
    """Start every target behind a shared barrier and collect results or errors."""
    barrier = threading.Barrier(len(targets))
    results = [None] * len(targets)

    def runner(index, target):
        barrier.wait()
        try:
            results[index] = target()
        except Exception as exc:  # collected for assertions
            results[index] = exc

    threads = [
        threading.Thread(target=runner, args=(i, target)) for i, target in enumerate(targets)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results


@pytest.fixture
def memory_manager(memory_db, policy):
    return CirculationManager(memory_db, policy)


@pytest.fixture
def borrowers(memory_manager):
    return [
        memory_manager.directory.add_person(
            PersonCreate(first_name=name, last_name="Test", category=PersonCategory.STUDENT)
        )
        for name in ("Ana", "Bea")
    ]


@pytest.fixture
def last_unit(memory_manager):
    return memory_manager.catalog.add_resource(ResourceCreate(title="Globe", total_quantity=1))


class TestRaceForLastUnit:
    """Two requests for the last unit of a resource."""

    def test_exactly_one_commit_wins(self, memory_manager, borrowers, last_unit, today):
        """One loan is created, the other request gets ConflictError."""
        store = memory_manager.store

        def reserve(person):
            return lambda: store.commit_new_loan(
                person_id=person.id,
                resource_id=last_unit.id,
                quantity=1,
                loan_date=today,
                due_date=today + timedelta(days=7),
                max_active_loans=3,
            )

        results = run_together(*(reserve(person) for person in borrowers))

        created = [r for r in results if not isinstance(r, Exception)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(created) == 1
        assert len(conflicts) == 1
        assert created[0].status == LoanStatus.ACTIVE.value

        stored = memory_manager.catalog.get_resource(last_unit.id)
        assert stored.currently_loaned == 1
        assert stored.available_quantity == 0
        assert store.active_quantity_for_resource(last_unit.id) == 1

    def test_both_validated_one_created(self, manager, student, teacher, single_copy, today):
        """Both requests pass validation, only the first commit finds stock."""
        requests = [
            LoanCreate(person_id=student.id, resource_id=single_copy.id),
            LoanCreate(person_id=teacher.id, resource_id=single_copy.id),
        ]
        assert all(manager.validate_loan(r, today).is_valid for r in requests)

        manager.lifecycle.create(requests[0], today)
        with pytest.raises(ConflictError):
            manager.lifecycle.create(requests[1], today)

        assert manager.catalog.get_resource(single_copy.id).currently_loaned == 1


class TestRaceForSameLoan:
    """Two transitions on the same loan."""

    def test_double_return_releases_once(self, memory_manager, borrowers, today):
        """Only one return commits; the other sees a terminal loan."""
        resource = memory_manager.catalog.add_resource(
            ResourceCreate(title="Map", total_quantity=3)
        )
        store = memory_manager.store
        loan = store.commit_new_loan(
            person_id=borrowers[0].id,
            resource_id=resource.id,
            quantity=2,
            loan_date=today,
            due_date=today + timedelta(days=7),
            max_active_loans=3,
        )

        def give_back():
            return store.commit_transition(
                loan.id,
                loan.version,
                "return",
                {"status": LoanStatus.RETURNED.value, "returned_date": today.isoformat()},
                release_quantity=loan.quantity,
            )

        results = run_together(give_back, give_back)

        returned = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, InvalidStateError)]
        assert len(returned) == 1
        assert len(rejected) == 1
        assert memory_manager.catalog.get_resource(resource.id).currently_loaned == 0

    def test_loan_limit_rechecked_at_commit(self, memory_manager, borrowers, today):
        """A commit past the person's limit is refused inside the transaction."""
        resource = memory_manager.catalog.add_resource(
            ResourceCreate(title="Chess", total_quantity=5)
        )
        store = memory_manager.store
        person = borrowers[0]

        def reserve():
            return store.commit_new_loan(
                person_id=person.id,
                resource_id=resource.id,
                quantity=1,
                loan_date=today,
                due_date=today + timedelta(days=7),
                max_active_loans=1,
            )

        results = run_together(reserve, reserve)

        assert sum(1 for r in results if isinstance(r, ConflictError)) == 1
        assert store.count_active_loans(person.id) == 1
        assert memory_manager.catalog.get_resource(resource.id).currently_loaned == 1


class TestInMemorySessions:
    """Readers on a shared in-memory connection."""

    def test_reader_waits_for_open_reservation(
        self, memory_manager, borrowers, last_unit, today, monkeypatch
    ):
        """A reader during a refused reservation cannot commit the stock change."""
        store = memory_manager.store
        person = borrowers[0]
        readers = []

        def crowded_count(session, person_id):
            reader = threading.Thread(
                target=memory_manager.directory.count_active_loans, args=(person_id,)
            )
            reader.start()
            reader.join(timeout=0.5)
            readers.append(reader)
            return 99

        monkeypatch.setattr(LoanStore, "_count_active", staticmethod(crowded_count))

        with pytest.raises(ConflictError):
            store.commit_new_loan(
                person_id=person.id,
                resource_id=last_unit.id,
                quantity=1,
                loan_date=today,
                due_date=today + timedelta(days=7),
                max_active_loans=3,
            )
        for reader in readers:
            reader.join(timeout=30)
            assert not reader.is_alive()

        assert memory_manager.catalog.get_resource(last_unit.id).currently_loaned == 0
        assert store.active_quantity_for_resource(last_unit.id) == 0


class TestFileDatabaseRaces:
    """Threaded races through CirculationManager on a file database."""

    def test_six_borrowers_one_unit(self, manager, directory, single_copy, today):
        """Exactly one loan is created for the last unit."""
        people = [
            directory.add_person(PersonCreate(first_name=f"Reader{i}", last_name="Test"))
            for i in range(6)
        ]

        def borrow(person):
            request = LoanCreate(person_id=person.id, resource_id=single_copy.id)
            return lambda: manager.create_loan(request, today)

        results = run_together(*(borrow(person) for person in people))

        created = [r for r in results if isinstance(r, LoanResponse)]
        refused = [r for r in results if isinstance(r, (ConflictError, ValidationError))]
        assert len(created) == 1
        assert len(refused) == 5
        assert manager.catalog.get_resource(single_copy.id).currently_loaned == 1
        assert manager.store.active_quantity_for_resource(single_copy.id) == 1

    def test_four_returns_one_release(self, manager, student, resource, today):
        """Concurrent returns of one loan release its units once."""
        loan = manager.create_loan(
            LoanCreate(person_id=student.id, resource_id=resource.id, quantity=2), today
        )

        def give_back():
            return manager.return_loan(ReturnLoanRequest(loan_id=str(loan.id)), today)

        results = run_together(*([give_back] * 4))

        returned = [r for r in results if isinstance(r, ReturnOutcome)]
        rejected = [r for r in results if isinstance(r, InvalidStateError)]
        assert len(returned) == 1
        assert len(rejected) == 3
        assert returned[0].loan.status == LoanStatus.RETURNED
        assert manager.catalog.get_resource(resource.id).currently_loaned == 0
        assert manager.store.active_quantity_for_resource(resource.id) == 0
