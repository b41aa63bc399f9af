"""Pytest configuration and shared fixtures.

This module provides fixtures for testing schoollib, including temporary
databases, an explicit loan policy, and seeded people and resources.
"""

import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Generator

import pytest

from schoollib.catalog.manager import ResourceCatalog
from schoollib.catalog.schemas import ResourceCreate
from schoollib.config import CategoryLimits, LoanPolicy, reset_config
from schoollib.db.models import Person, Resource
from schoollib.db.schemas import PersonCategory, ResourceCondition
from schoollib.db.sqlite import Database, reset_db
from schoollib.loans.manager import CirculationManager
from schoollib.people.manager import PersonDirectory
from schoollib.people.schemas import PersonCreate

# Fixed reference day so due dates and overdue checks are deterministic
TODAY = date(2024, 1, 3)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def temp_db_path() -> Generator[Path, None, None]:
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)
    yield db_path
    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture(scope="function")
def db(temp_db_path: Path) -> Generator[Database, None, None]:
    """Create a file-backed test database instance."""
    # Reset any global state
    reset_db()
    reset_config()

    # Set environment variable for test database
    os.environ["SCHOOLLIB_DB_PATH"] = str(temp_db_path)

    database = Database(str(temp_db_path))
    database.create_tables()
    yield database

    # Cleanup
    database.engine.dispose()
    reset_db()
    reset_config()
    if "SCHOOLLIB_DB_PATH" in os.environ:
        del os.environ["SCHOOLLIB_DB_PATH"]


@pytest.fixture
def memory_db() -> Database:
    """Create an in-memory database for testing."""
    database = Database(":memory:")
    database.create_tables()
    return database


@pytest.fixture
def today() -> date:
    """Reference day for loan dates in tests."""
    return TODAY


# ============================================================================
# Policy and Services
# ============================================================================


@pytest.fixture
def policy() -> LoanPolicy:
    """Students: 3 loans, 3 units, 7 days. Teachers: 10 loans, 10 units, 30 days."""
    return LoanPolicy(
        student=CategoryLimits(max_active_loans=3, max_quantity_per_loan=3, loan_period_days=7),
        teacher=CategoryLimits(
            max_active_loans=10, max_quantity_per_loan=10, loan_period_days=30
        ),
        max_renewals=2,
        low_stock_threshold=2,
    )


@pytest.fixture
def directory(db: Database) -> PersonDirectory:
    return PersonDirectory(db)


@pytest.fixture
def catalog(db: Database) -> ResourceCatalog:
    return ResourceCatalog(db)


@pytest.fixture
def manager(db: Database, policy: LoanPolicy) -> CirculationManager:
    """Create a CirculationManager with test database and policy."""
    return CirculationManager(db, policy)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def student(directory: PersonDirectory) -> Person:
    """A student with no loans."""
    return directory.add_person(
        PersonCreate(
            first_name="Ana",
            last_name="Gomez",
            category=PersonCategory.STUDENT,
            document_number="1001",
            grade="5A",
        )
    )


@pytest.fixture
def teacher(directory: PersonDirectory) -> Person:
    """A teacher with no loans."""
    return directory.add_person(
        PersonCreate(
            first_name="Luis",
            last_name="Perez",
            category=PersonCategory.TEACHER,
            document_number="2001",
        )
    )


@pytest.fixture
def resource(catalog: ResourceCatalog) -> Resource:
    """A book with 5 units in good condition."""
    return catalog.add_resource(
        ResourceCreate(title="Cien Años de Soledad", author="G. García Márquez", total_quantity=5)
    )


@pytest.fixture
def single_copy(catalog: ResourceCatalog) -> Resource:
    """A resource with exactly one unit."""
    return catalog.add_resource(ResourceCreate(title="Atlas Escolar", total_quantity=1))


@pytest.fixture
def make_resource(catalog: ResourceCatalog):
    """Factory for resources with a given stock and condition."""

    def _make(
        title: str = "Resource",
        total_quantity: int = 5,
        condition: ResourceCondition = ResourceCondition.GOOD,
        available: bool = True,
    ) -> Resource:
        return catalog.add_resource(
            ResourceCreate(
                title=title,
                total_quantity=total_quantity,
                condition=condition,
                available=available,
            )
        )

    return _make

