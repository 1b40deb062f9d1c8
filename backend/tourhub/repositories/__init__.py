from tourhub.repositories.audit_log_repository import AuditLogRepository
from tourhub.repositories.booking_repository import BookingRepository
from tourhub.repositories.destination_repository import DestinationRepository
from tourhub.repositories.guide_verification_repository import GuideVerificationRepository
from tourhub.repositories.moderation_log_repository import ModerationLogRepository
from tourhub.repositories.notification_repository import NotificationRepository
from tourhub.repositories.user_repository import UserRepository

__all__ = [
    "AuditLogRepository",
    "BookingRepository",
    "DestinationRepository",
    "GuideVerificationRepository",
    "ModerationLogRepository",
    "NotificationRepository",
    "UserRepository",
]
