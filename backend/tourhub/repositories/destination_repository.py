from uuid import UUID

from sqlalchemy.orm import Session

from tourhub.core.sorting import apply_order_by
from tourhub.models.destination import Destination, DestinationStatus
from tourhub.repositories.locking import delete_if, lock_by_id
from tourhub.schemas.destination import DestinationCreate

SORTABLE_FIELDS = frozenset({"name", "created_at", "updated_at", "view_count", "status"})


class DestinationRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        status: str | None = None,
        created_by: UUID | None = None,
        featured: bool | None = None,
        region: str | None = None,
        order_by: str | None = None,
    ) -> list[Destination]:
        query = self.db.query(Destination)
        if status is not None:
            query = query.filter(Destination.status == status)
        if created_by is not None:
            query = query.filter(Destination.created_by == created_by)
        if featured is not None:
            query = query.filter(Destination.featured.is_(featured))
        if region is not None:
            query = query.filter(Destination.region == region)
        query = apply_order_by(query, Destination, order_by, allowed_fields=SORTABLE_FIELDS)
        return query.offset(skip).limit(limit).all()

    def count(self, status: str | None = None, created_by: UUID | None = None) -> int:
        query = self.db.query(Destination)
        if status is not None:
            query = query.filter(Destination.status == status)
        if created_by is not None:
            query = query.filter(Destination.created_by == created_by)
        return query.count()

    def get_by_id(self, destination_id: UUID) -> Destination | None:
        return self.db.query(Destination).filter(Destination.id == destination_id).first()

    def get_for_update(self, destination_id: UUID) -> Destination | None:
        return lock_by_id(self.db, Destination, destination_id)

    def add(self, data: DestinationCreate, created_by: UUID) -> Destination:
        """Stage a new draft in the current transaction (flush, no commit)."""
        destination = Destination(
            name=data.name.strip(),
            description=data.description.strip(),
            location=data.location.strip(),
            region=data.region,
            created_by=created_by,
            status=DestinationStatus.DRAFT.value,
        )
        self.db.add(destination)
        self.db.flush()
        return destination

    def increment_view_count(self, destination_id: UUID) -> None:
        self.db.query(Destination).filter(Destination.id == destination_id).update(
            {Destination.view_count: Destination.view_count + 1},
            synchronize_session=False,
        )
        self.db.commit()

    def delete_if_status(self, destination: Destination, expected: str) -> bool:
        """Stage deletion unless the destination left ``expected`` meanwhile."""
        deleted = delete_if(self.db, Destination, destination.id, "status", expected)
        if deleted:
            self.db.expunge(destination)
        return deleted
