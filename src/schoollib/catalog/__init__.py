"""Resource catalog module.

Provides functionality for:
- Cataloguing books, games, maps and bibles
- Looking up stock and condition
- Withdrawing resources from circulation
"""

from .manager import ResourceCatalog
from .schemas import ResourceCreate, ResourceResponse

__all__ = [
    "ResourceCatalog",
    "ResourceCreate",
    "ResourceResponse",
]
