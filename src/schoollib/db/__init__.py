"""Database module for local SQLite storage."""

from .models import Base, Person, Resource
from .schemas import PersonCategory, ResourceCondition, ResourceType
from .sqlite import Database, get_db, reset_db

__all__ = [
    "Base",
    "Person",
    "Resource",
    "PersonCategory",
    "ResourceCondition",
    "ResourceType",
    "Database",
    "get_db",
    "reset_db",
]
