"""AuditLog model for tracking every mutating action against the marketplace."""


from sqlalchemy import JSON, Column, DateTime, Integer, String, func

from tourhub.core.database import Base
from tourhub.models.shared import UUIDType, generate_uuid, utc_now


class AuditLog(Base):
    """AuditLog model - records mutating actions.

    Independent of every other table (no foreign keys) so entries survive
    deletion of the user or resource they reference.
    """

    __tablename__ = "audit_logs"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    user_id = Column(UUIDType, nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(50), nullable=True, index=True)
    resource_id = Column(UUIDType, nullable=True, index=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    request_method = Column(String(10), nullable=True)
    request_url = Column(String(2048), nullable=True)
    status_code = Column(Integer, nullable=True)
    error_message = Column(String(1000), nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), index=True
    )
