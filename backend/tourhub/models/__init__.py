from tourhub.models.audit_log import AuditLog
from tourhub.models.booking import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus
from tourhub.models.destination import Destination, DestinationStatus
from tourhub.models.guide_verification import GuideVerification, VerificationStatus
from tourhub.models.moderation_log import ContentType, ModerationLog
from tourhub.models.notification import Notification
from tourhub.models.user import AccountStatus, GuideStatus, User, UserRole

__all__ = [
    "ACTIVE_BOOKING_STATUSES",
    "AccountStatus",
    "AuditLog",
    "Booking",
    "BookingStatus",
    "ContentType",
    "Destination",
    "DestinationStatus",
    "GuideStatus",
    "GuideVerification",
    "ModerationLog",
    "Notification",
    "User",
    "UserRole",
    "VerificationStatus",
]
