"""Person directory module.

Provides functionality for:
- Registering students and teachers
- Looking up person records
- Counting active and overdue loans per person
"""

from .manager import PersonDirectory
from .schemas import PersonCreate, PersonResponse

__all__ = [
    "PersonDirectory",
    "PersonCreate",
    "PersonResponse",
]
