"""Resource catalog: resource records, stock counts and condition."""

from typing import Optional

from sqlalchemy import select

from ..db.models import Resource
from ..db.sqlite import Database, get_db
from ..errors import NotFoundError
from .schemas import ResourceCreate


class ResourceCatalog:
    """Reads and registers catalogued resources.

    Stock counters are not adjusted here; loan transitions move them
    through the loan store's atomic updates.
    """

    def __init__(self, db: Optional[Database] = None):
        """Initialize resource catalog.

        Args:
            db: Database instance
        """
        self.db = db or get_db()

    def add_resource(self, data: ResourceCreate) -> Resource:
        """Catalogue a new resource with its initial stock."""
        with self.db.get_session() as session:
            resource = Resource(
                title=data.title,
                author=data.author,
                isbn=data.isbn,
                resource_type=data.resource_type.value,
                total_quantity=data.total_quantity,
                currently_loaned=0,
                condition=data.condition.value,
                available=data.available,
            )
            session.add(resource)
            session.commit()
            session.refresh(resource)
            session.expunge(resource)
            return resource

    def get_resource(self, resource_id: str) -> Resource:
        """Get a resource by ID.

        Raises:
            NotFoundError: If no resource has this ID
        """
        with self.db.get_session() as session:
            resource = session.get(Resource, resource_id)
            if resource is None:
                raise NotFoundError("resource", resource_id)
            session.expunge(resource)
            return resource

    def list_resources(self, available_only: bool = False) -> list[Resource]:
        """List resources sorted by title.

        Args:
            available_only: Only resources flagged available with free units
        """
        with self.db.get_session() as session:
            stmt = select(Resource).order_by(Resource.title)
            if available_only:
                stmt = stmt.where(
                    Resource.available.is_(True),
                    Resource.currently_loaned < Resource.total_quantity,
                )

            resources = session.execute(stmt).scalars().all()
            for r in resources:
                session.expunge(r)
            return list(resources)

    def set_availability(self, resource_id: str, available: bool) -> Resource:
        """Flag a resource as available or withdrawn from circulation."""
        with self.db.get_session() as session:
            resource = session.get(Resource, resource_id)
            if resource is None:
                raise NotFoundError("resource", resource_id)
            resource.available = available
            session.commit()
            session.refresh(resource)
            session.expunge(resource)
            return resource
