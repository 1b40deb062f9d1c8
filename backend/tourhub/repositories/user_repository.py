from uuid import UUID

from sqlalchemy.orm import Session

from tourhub.models.user import GuideStatus, User, UserRole
from tourhub.repositories.locking import lock_by_id


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(
        self,
        skip: int = 0,
        limit: int = 100,
        role: str | None = None,
        guide_status: str | None = None,
    ) -> list[User]:
        query = self.db.query(User)
        if role is not None:
            query = query.filter(User.role == role)
        if guide_status is not None:
            query = query.filter(User.guide_status == guide_status)
        return query.order_by(User.created_at.desc()).offset(skip).limit(limit).all()

    def count(self, role: str | None = None, guide_status: str | None = None) -> int:
        query = self.db.query(User)
        if role is not None:
            query = query.filter(User.role == role)
        if guide_status is not None:
            query = query.filter(User.guide_status == guide_status)
        return query.count()

    def get_by_id(self, user_id: UUID) -> User | None:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_for_update(self, user_id: UUID) -> User | None:
        return lock_by_id(self.db, User, user_id)

    def get_by_email(self, email: str) -> User | None:
        return self.db.query(User).filter(User.email == email).first()

    def get_active_moderators(self) -> list[User]:
        return (
            self.db.query(User)
            .filter(
                User.role.in_([UserRole.AUDITOR.value, UserRole.ADMIN.value]),
                User.is_active.is_(True),
            )
            .all()
        )

    def create(
        self,
        *,
        email: str,
        name: str,
        role: UserRole = UserRole.USER,
        guide_status: GuideStatus = GuideStatus.UNVERIFIED,
        is_active: bool = True,
    ) -> User:
        """Persist a user. Registration itself is owned by the auth service."""
        user = User(
            email=email,
            name=name,
            role=role.value,
            guide_status=guide_status.value,
            is_active=is_active,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user
