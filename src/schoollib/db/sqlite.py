"""SQLite database operations.

Handles database connection and session management. Stock and loan
mutations go through the loan store's conditional updates; this module
only owns the engine and the transaction boundary.
"""

import os
import threading
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..errors import DependencyError
from .models import Base

# Seconds a writer waits on SQLite's lock before giving up
BUSY_TIMEOUT = 30


class Database:
    """Database connection and session manager."""

    def __init__(self, db_path: Optional[str] = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses
                     SCHOOLLIB_DB_PATH env var or default location.
        """
        if db_path is None:
            db_path = os.environ.get(
                "SCHOOLLIB_DB_PATH",
                str(Path.home() / ".schoollib" / "library.db"),
            )

        self.db_path = Path(db_path)
        self._is_memory = str(db_path) == ":memory:"

        if not self._is_memory:
            self._ensure_directory()

        # For in-memory databases, use StaticPool to reuse the same connection
        # This ensures all sessions share the same in-memory database
        if self._is_memory:
            self.engine = create_engine(
                "sqlite:///:memory:",
                echo=False,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        else:
            self.engine = create_engine(
                f"sqlite:///{self.db_path}",
                echo=False,
                connect_args={"check_same_thread": False, "timeout": BUSY_TIMEOUT},
            )
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        self._session_lock = threading.RLock()

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        # Import loan models to register them with Base
        from ..loans.models import Loan  # noqa: F401

        Base.metadata.create_all(self.engine)

    def drop_tables(self) -> None:
        """Drop all database tables. Use with caution!"""
        Base.metadata.drop_all(self.engine)

    @contextmanager
    def get_session(self) -> Generator[Session, None, None]:
        """Get a database session context manager.

        Commits on success, rolls back on any error. Driver-level failures
        (locked or unreachable database) surface as DependencyError.

        An in-memory database shares one connection across threads, so every
        session on it, readers included, holds the in-process lock. Otherwise
        a reader's commit would end another thread's open transaction.
        """
        with self._session_lock if self._is_memory else nullcontext():
            session = self.SessionLocal()
            try:
                yield session
                session.commit()
            except (OperationalError, InterfaceError) as exc:
                session.rollback()
                raise DependencyError(f"Database unavailable: {exc.orig}") from exc
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """Session for a read-modify-write commit.

        File databases rely on SQLite's own write lock and the busy timeout.
        In-memory databases are serialised by get_session().
        """
        with self.get_session() as session:
            yield session


# Global database instance
_db: Optional[Database] = None


def get_db(db_path: Optional[str] = None) -> Database:
    """Get or create the global database instance."""
    global _db
    if _db is None:
        _db = Database(db_path)
        _db.create_tables()
    return _db


def reset_db() -> None:
    """Reset the global database instance. Used for testing."""
    global _db
    _db = None
