"""Shared enums for the library records.

Values are stored as plain strings in SQLite.
"""

from enum import Enum


class PersonCategory(str, Enum):
    """Person category; determines borrowing limits and loan period."""

    STUDENT = "student"
    TEACHER = "teacher"


class ResourceType(str, Enum):
    """Kind of physical resource held by the library."""

    BOOK = "book"
    GAME = "game"
    MAP = "map"
    BIBLE = "bible"


class ResourceCondition(str, Enum):
    """Physical condition of a resource."""

    GOOD = "good"
    DETERIORATED = "deteriorated"
    DAMAGED = "damaged"
    LOST = "lost"
