from tourhub.schemas.audit_log import AuditLogResponse
from tourhub.schemas.booking import (
    BookingCreate,
    BookingNotesUpdate,
    BookingResponse,
    BookingTransitionResponse,
)
from tourhub.schemas.destination import (
    DestinationCreate,
    DestinationDeleteResponse,
    DestinationResponse,
    DestinationTransitionResponse,
    DestinationUpdate,
)
from tourhub.schemas.guide_verification import (
    GuideApplicationCreate,
    GuideVerificationResponse,
    GuideVerificationTransitionResponse,
)
from tourhub.schemas.moderation_log import (
    ModerationLogResponse,
    ModerationQueuePage,
    RejectionRequest,
    TransitionRequest,
)
from tourhub.schemas.notification import (
    NotificationCountResponse,
    NotificationMarkAllResponse,
    NotificationResponse,
)
from tourhub.schemas.user import (
    AccountActionRequest,
    RoleChangeRequest,
    UserResponse,
    UserTransitionResponse,
)

__all__ = [
    "AccountActionRequest",
    "AuditLogResponse",
    "BookingCreate",
    "BookingNotesUpdate",
    "BookingResponse",
    "BookingTransitionResponse",
    "DestinationCreate",
    "DestinationDeleteResponse",
    "DestinationResponse",
    "DestinationTransitionResponse",
    "DestinationUpdate",
    "GuideApplicationCreate",
    "GuideVerificationResponse",
    "GuideVerificationTransitionResponse",
    "ModerationLogResponse",
    "ModerationQueuePage",
    "NotificationCountResponse",
    "NotificationMarkAllResponse",
    "NotificationResponse",
    "RejectionRequest",
    "RoleChangeRequest",
    "TransitionRequest",
    "UserResponse",
    "UserTransitionResponse",
]
