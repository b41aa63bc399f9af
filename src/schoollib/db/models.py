"""SQLAlchemy ORM models for local SQLite database.

Tables:
- people: Students and teachers who may borrow
- resources: Physical items (books, games, maps, bibles) and their stock
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, CheckConstraint, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .schemas import PersonCategory, ResourceCondition, ResourceType


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def generate_uuid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid4())


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Person(Base):
    """Person model - students and teachers."""

    __tablename__ = "people"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    document_number: Mapped[Optional[str]] = mapped_column(String(30), unique=True)
    grade: Mapped[Optional[str]] = mapped_column(String(20))
    category: Mapped[str] = mapped_column(
        String(20), default=PersonCategory.STUDENT.value, index=True
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return f"<Person(id={self.id}, name='{self.full_name}', category={self.category})>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Resource(Base):
    """Resource model - a catalogued item with a stock of identical units."""

    __tablename__ = "resources"
    __table_args__ = (
        CheckConstraint("total_quantity >= 0", name="ck_resources_total_nonneg"),
        CheckConstraint("currently_loaned >= 0", name="ck_resources_loaned_nonneg"),
        CheckConstraint(
            "currently_loaned <= total_quantity", name="ck_resources_loaned_le_total"
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    title: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    author: Mapped[Optional[str]] = mapped_column(String(300))
    isbn: Mapped[Optional[str]] = mapped_column(String(20), index=True)
    resource_type: Mapped[str] = mapped_column(String(20), default=ResourceType.BOOK.value)

    # Stock
    total_quantity: Mapped[int] = mapped_column(Integer, default=1)
    currently_loaned: Mapped[int] = mapped_column(Integer, default=0)

    condition: Mapped[str] = mapped_column(String(20), default=ResourceCondition.GOOD.value)
    available: Mapped[bool] = mapped_column(Boolean, default=True)

    # Timestamps
    created_at: Mapped[str] = mapped_column(String(32), default=utc_now)
    updated_at: Mapped[str] = mapped_column(String(32), default=utc_now, onupdate=utc_now)

    def __repr__(self) -> str:
        return (
            f"<Resource(id={self.id}, title='{self.title}', "
            f"stock={self.currently_loaned}/{self.total_quantity})>"
        )

    @property
    def available_quantity(self) -> int:
        """Units not currently out on loan."""
        return max(0, self.total_quantity - self.currently_loaned)
