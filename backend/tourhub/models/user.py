from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, func

from tourhub.core.database import Base
from tourhub.models.shared import UUIDType, enum_check, generate_uuid


class UserRole(str, Enum):
    USER = "user"
    GUIDE = "guide"
    AUDITOR = "auditor"
    ADMIN = "admin"


class GuideStatus(str, Enum):
    UNVERIFIED = "unverified"
    PENDING = "pending"
    VERIFIED = "verified"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


class AccountStatus(str, Enum):
    """Derived from ``User.is_active``; used as the account lifecycle state."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        enum_check("role", UserRole, "ck_users_role"),
        enum_check("guide_status", GuideStatus, "ck_users_guide_status"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.USER.value, index=True)
    guide_status = Column(
        String(20), nullable=False, default=GuideStatus.UNVERIFIED.value, index=True
    )
    is_active = Column(Boolean, nullable=False, default=True)
    verified_by = Column(
        UUIDType,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    verified_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(1000), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def account_status(self) -> str:
        return AccountStatus.ACTIVE.value if self.is_active else AccountStatus.INACTIVE.value
