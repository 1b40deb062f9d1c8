"""Workflow orchestrator for every lifecycle change in the marketplace.

Each operation follows the same order:

1. load the entity with a row lock
2. self-action guard
3. permission check
4. idempotency and payload guards
5. lifecycle validation
6. conditional update (``WHERE <state> = <expected>``)
7. moderation ledger append, then a single commit
8. post-commit audit entries and notification events

Steps 1-7 share one transaction. Step 8 can fail without affecting the
committed transition.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from tourhub.core.config import settings
from tourhub.core.errors import (
    ConflictError,
    DependentRecordsError,
    DuplicateError,
    ErrorCode,
    InternalError,
    InvalidActionError,
    InvalidDataError,
    InvalidStatusError,
    NotFoundError,
    PermissionDeniedError,
    UnauthorizedError,
    WorkflowError,
)
from tourhub.core.permissions import AuthenticatedPrincipal, PermissionResolver, default_resolver
from tourhub.models.booking import Booking, BookingStatus
from tourhub.models.destination import Destination, DestinationStatus
from tourhub.models.guide_verification import GuideVerification, VerificationStatus
from tourhub.models.moderation_log import ContentType, ModerationLog
from tourhub.models.shared import utc_now
from tourhub.models.user import AccountStatus, GuideStatus, User, UserRole
from tourhub.repositories.booking_repository import BookingRepository
from tourhub.repositories.destination_repository import DestinationRepository
from tourhub.repositories.guide_verification_repository import GuideVerificationRepository
from tourhub.repositories.locking import compare_and_set
from tourhub.repositories.user_repository import UserRepository
from tourhub.schemas.booking import BookingCreate, BookingNotesUpdate
from tourhub.schemas.destination import DestinationCreate, DestinationUpdate
from tourhub.schemas.guide_verification import GuideApplicationCreate
from tourhub.services import booking_lifecycle, content_lifecycle
from tourhub.services.event_dispatcher import AuditRecord, EventDispatcher
from tourhub.services.moderation_ledger import (
    MODERATED_CONTENT_TYPES,
    PENDING_STATUS,
    LedgerPage,
    ModerationLedger,
)
from tourhub.services.notification_service import (
    CATEGORY_ACCOUNT,
    CATEGORY_BOOKING,
    CATEGORY_DESTINATION,
    CATEGORY_GUIDE,
    NotificationEvent,
    event_for,
)

logger = logging.getLogger(__name__)

# Ledger/audit action names, keyed by the requested action.
LOGGED_ACTIONS: dict[str, str] = {
    "create": "created",
    "submit": "submitted",
    "withdraw": "withdrawn",
    "reset": "reset",
    "approve": "approved",
    "reject": "rejected",
    "request_revision": "revision_requested",
    "feature": "featured",
    "unfeature": "unfeatured",
    "edit": "edited",
    "delete": "deleted",
    "apply": "submitted",
    "confirm": "confirmed",
    "complete": "completed",
    "cancel": "cancelled",
    "suspend": "suspended",
    "reinstate": "reinstated",
    "deactivate": "deactivated",
    "reactivate": "reactivated",
    "change_role": "role_changed",
}

DESTINATION_PERMISSIONS = {
    "submit": "submit_destinations",
    "withdraw": "edit_own_destinations",
    "reset": "edit_own_destinations",
    "approve": "approve_destinations",
    "reject": "reject_destinations",
    "request_revision": "request_destination_revisions",
    "feature": "feature_destinations",
    "unfeature": "feature_destinations",
}
DESTINATION_MODERATION_ACTIONS = frozenset(
    {"approve", "reject", "request_revision", "feature", "unfeature"}
)
DESTINATION_OWNER_ACTIONS = frozenset({"submit", "withdraw", "reset"})
DESTINATION_EDITABLE_FIELDS = ("name", "description", "location", "region")
DESTINATION_REQUIRED_FIELDS = ("name", "description", "location")
DESTINATION_SNAPSHOT_FIELDS = (
    *DESTINATION_EDITABLE_FIELDS,
    "status",
    "featured",
    "approved_by",
    "approved_at",
    "rejection_reason",
)

VERIFICATION_ACTIONS = frozenset({"approve", "reject"})
BOOKING_ACTIONS = frozenset({"confirm", "complete", "cancel"})
USER_PERMISSIONS = {
    "suspend": "suspend_guides",
    "reinstate": "suspend_guides",
    "deactivate": "ban_users",
    "reactivate": "ban_users",
    "change_role": "manage_roles",
}
GUIDE_STATUS_ACTIONS = frozenset({"suspend", "reinstate"})


def _jsonable(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def snapshot(entity: Any, fields: Iterable[str]) -> dict[str, Any]:
    """JSON-safe copy of selected attributes, for ledger and audit rows."""
    return {name: _jsonable(getattr(entity, name)) for name in fields}


def _clean_text(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


@dataclass
class TransitionResult:
    """Outcome of a committed workflow operation.

    ``entity`` is the authoritative post-commit row (detached for deletions),
    ``related`` carries rows changed alongside it, such as the applicant of
    a verification or bookings cancelled by a cascade.
    """

    entity: Any
    ledger_entry: ModerationLog | None
    previous_status: str | None
    new_status: str | None
    related: dict[str, Any] = field(default_factory=dict)
    events: list[NotificationEvent] = field(default_factory=list)

    @property
    def moderation_log_id(self) -> UUID | None:
        return self.ledger_entry.id if self.ledger_entry is not None else None  # type: ignore[return-value]


@dataclass
class _Effects:
    """Post-commit work collected while the transaction is open."""

    audit: list[AuditRecord] = field(default_factory=list)
    events: list[NotificationEvent] = field(default_factory=list)

    def record(self, method: str, **kwargs: Any) -> None:
        self.audit.append(AuditRecord(method, kwargs))

    def notify(self, recipients: Iterable[UUID | None], **kwargs: Any) -> None:
        event = event_for(recipients, **kwargs)
        if event is not None:
            self.events.append(event)


class WorkflowService:
    def __init__(
        self,
        db: Session,
        resolver: PermissionResolver = default_resolver,
        dispatcher: EventDispatcher | None = None,
    ):
        self.db = db
        self.resolver = resolver
        self.dispatcher = dispatcher or EventDispatcher()
        self.ledger = ModerationLedger(db)
        self.users = UserRepository(db)
        self.destinations = DestinationRepository(db)
        self.verifications = GuideVerificationRepository(db)
        self.bookings = BookingRepository(db)

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except ConflictError:
            self.db.rollback()
            logger.warning("Workflow write lost a concurrent update; rolled back")
            raise
        except WorkflowError:
            self.db.rollback()
            raise
        except OperationalError as exc:
            self.db.rollback()
            logger.warning("Lock or statement timeout during workflow write: %s", exc)
            raise ConflictError() from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Workflow write failed")
            raise InternalError() from exc

    def _run(
        self,
        operation: Callable[..., TransitionResult],
        *args: Any,
    ) -> TransitionResult:
        effects = _Effects()
        with self._unit_of_work():
            result = operation(*args, effects)
        result.events = list(effects.events)
        self.dispatcher.dispatch(effects.audit, effects.events)
        return result

    def _compare_and_set(
        self,
        model: type[Any],
        entity: Any,
        column: str,
        expected: Any,
        values: dict[str, Any],
    ) -> None:
        if not compare_and_set(self.db, model, entity.id, column, expected, values):
            raise ConflictError(
                f"{model.__name__} {entity.id} was modified by another request"
            )
        self.db.refresh(entity)

    def _moderator_ids(self, exclude: UUID | None = None) -> list[UUID]:
        return [
            u.id  # type: ignore[misc]
            for u in self.users.get_active_moderators()
            if u.id != exclude
        ]

    def _require(self, principal: AuthenticatedPrincipal, permission: str, owner_id: Any = None) -> None:
        if not self.resolver.check(principal, permission, owner_id):
            raise PermissionDeniedError()

    # ------------------------------------------------------------------
    # RequestTransition
    # ------------------------------------------------------------------

    def request_transition(
        self,
        principal: AuthenticatedPrincipal,
        entity_type: ContentType | str,
        entity_id: UUID,
        action: str,
        payload: dict[str, Any] | None = None,
    ) -> TransitionResult:
        """Apply ``action`` to one entity on behalf of ``principal``."""
        try:
            content_type = ContentType(entity_type)
        except ValueError:
            raise InvalidDataError(f"Unknown entity type '{entity_type}'") from None

        handlers: dict[ContentType, Callable[..., TransitionResult]] = {
            ContentType.DESTINATION: self._transition_destination,
            ContentType.GUIDE_VERIFICATION: self._transition_verification,
            ContentType.BOOKING: self._transition_booking,
            ContentType.USER: self._transition_user,
        }
        result = self._run(handlers[content_type], principal, entity_id, action, payload or {})
        logger.info(
            "%s %s %s by %s: %s -> %s",
            content_type.value,
            entity_id,
            action,
            principal.id,
            result.previous_status,
            result.new_status,
        )
        return result

    # ------------------------------------------------------------------
    # Destinations
    # ------------------------------------------------------------------

    def _transition_destination(
        self,
        principal: AuthenticatedPrincipal,
        destination_id: UUID,
        action: str,
        payload: dict[str, Any],
        effects: _Effects,
    ) -> TransitionResult:
        destination = self.destinations.get_for_update(destination_id)
        if destination is None:
            raise NotFoundError(f"Destination {destination_id} not found")

        is_owner = destination.created_by == principal.id
        if action in DESTINATION_MODERATION_ACTIONS and is_owner:
            raise InvalidActionError("You cannot moderate your own destination")
        # Owners delete drafts only; anything later needs another moderator.
        if action == "delete" and is_owner and destination.status != DestinationStatus.DRAFT.value:
            raise InvalidActionError("You cannot delete your own destination once submitted")

        if action == "edit":
            return self._edit_destination(principal, destination, payload, effects)
        if action == "delete":
            return self._delete_destination(principal, destination, payload, effects)

        permission = DESTINATION_PERMISSIONS.get(action)
        if permission is None:
            raise InvalidDataError(f"Unknown destination action '{action}'")
        self._require(principal, permission, destination.created_by)
        if action in DESTINATION_OWNER_ACTIONS and not is_owner:
            raise PermissionDeniedError("Only the creator can perform this action")

        if action == "submit" and self.ledger.has_open_submission(
            ContentType.DESTINATION, destination.id  # type: ignore[arg-type]
        ):
            raise DuplicateError()
        notes = _clean_text(payload.get("notes")) or None
        reason = _clean_text(payload.get("reason")) or None
        if action == "reject" and not reason:
            raise InvalidDataError("A rejection reason is required")

        current = str(destination.status)
        target = content_lifecycle.validate_destination_transition(
            current, action, is_owner, self.resolver.effective_role(principal)
        )

        now = utc_now()
        values: dict[str, Any] = {"status": target}
        if action == "submit":
            values["submitted_at"] = now
        elif action == "approve":
            values.update(approved_by=principal.id, approved_at=now, rejection_reason=None)
        elif action == "reject":
            values.update(rejection_reason=reason, approved_by=None, approved_at=None)
        elif action == "reset":
            values["rejection_reason"] = None
        elif action in ("feature", "unfeature"):
            featured = action == "feature"
            if bool(destination.featured) == featured:
                raise InvalidStatusError(
                    f"Destination is already {'featured' if featured else 'not featured'}"
                )
            values["featured"] = featured

        before = snapshot(destination, DESTINATION_SNAPSHOT_FIELDS)
        self._compare_and_set(Destination, destination, "status", current, values)

        logged = LOGGED_ACTIONS[action]
        entry = self.ledger.append(
            ContentType.DESTINATION,
            destination.id,  # type: ignore[arg-type]
            logged,
            status=target,
            moderator_id=principal.id if action in DESTINATION_MODERATION_ACTIONS else None,
            submitted_by=destination.created_by,  # type: ignore[arg-type]
            previous_values={k: before[k] for k in values if k in before} | {"status": current},
            new_values={k: _jsonable(v) for k, v in values.items()},
            notes=notes,
            rejection_reason=reason if action == "reject" else None,
        )

        effects.record(
            "log_status_change",
            resource_type=ContentType.DESTINATION.value,
            resource_id=destination.id,
            action=f"destination_{logged}",
            old_status=current,
            new_status=target,
            user_id=principal.id,
            extra={"moderation_log_id": str(entry.id)},
        )
        if action == "submit":
            effects.notify(
                self._moderator_ids(exclude=principal.id),
                category=CATEGORY_DESTINATION,
                title="Destination awaiting review",
                message=f"'{destination.name}' was submitted for moderation.",
                resource_type=ContentType.DESTINATION.value,
                resource_id=destination.id,
            )
        elif action in DESTINATION_MODERATION_ACTIONS:
            message = f"Your destination '{destination.name}' was {logged.replace('_', ' ')}."
            if reason:
                message += f" Reason: {reason}"
            elif notes:
                message += f" Notes: {notes}"
            effects.notify(
                [destination.created_by],  # type: ignore[list-item]
                category=CATEGORY_DESTINATION,
                title=f"Destination {logged.replace('_', ' ')}",
                message=message,
                resource_type=ContentType.DESTINATION.value,
                resource_id=destination.id,
                exclude=principal.id,
            )
        return TransitionResult(destination, entry, current, target)

    def _edit_destination(
        self,
        principal: AuthenticatedPrincipal,
        destination: Destination,
        changes: dict[str, Any],
        effects: _Effects,
    ) -> TransitionResult:
        if not self.resolver.can_manage(principal, destination.created_by, "destination"):  # type: ignore[arg-type]
            raise PermissionDeniedError("You can only edit your own destinations")

        unknown = set(changes) - set(DESTINATION_EDITABLE_FIELDS)
        if unknown:
            raise InvalidDataError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        cleaned = {name: _clean_text(value) for name, value in changes.items()}
        for name in DESTINATION_REQUIRED_FIELDS:
            if name in cleaned and not cleaned[name]:
                raise InvalidDataError(f"{name} cannot be empty")

        is_owner = destination.created_by == principal.id
        current = str(destination.status)
        target = content_lifecycle.validate_destination_transition(
            current, "edit", is_owner, self.resolver.effective_role(principal)
        )

        before = snapshot(destination, DESTINATION_SNAPSHOT_FIELDS)
        changed = {name: value for name, value in cleaned.items() if before[name] != value}
        if not changed:
            return TransitionResult(destination, None, current, current)

        values = dict(changed)
        if target != current:
            # Leaving approved clears everything the approval granted.
            values.update(status=target, approved_by=None, approved_at=None, featured=False)
        self._compare_and_set(Destination, destination, "status", current, values)

        entry = None
        if target != current:
            entry = self.ledger.append(
                ContentType.DESTINATION,
                destination.id,  # type: ignore[arg-type]
                LOGGED_ACTIONS["edit"],
                status=target,
                moderator_id=None if is_owner else principal.id,
                submitted_by=destination.created_by,  # type: ignore[arg-type]
                previous_values={k: before[k] for k in values},
                new_values={k: _jsonable(v) for k, v in values.items()},
            )
            effects.record(
                "log_status_change",
                resource_type=ContentType.DESTINATION.value,
                resource_id=destination.id,
                action="destination_edited",
                old_status=current,
                new_status=target,
                user_id=principal.id,
                extra={"moderation_log_id": str(entry.id)},
            )
        effects.record(
            "log_update",
            resource_type=ContentType.DESTINATION.value,
            resource_id=destination.id,
            user_id=principal.id,
            old_data=before,
            new_data=snapshot(destination, DESTINATION_SNAPSHOT_FIELDS),
        )
        return TransitionResult(destination, entry, current, target)

    def _delete_destination(
        self,
        principal: AuthenticatedPrincipal,
        destination: Destination,
        payload: dict[str, Any],
        effects: _Effects,
    ) -> TransitionResult:
        is_owner = destination.created_by == principal.id
        permission = "delete_own_destinations" if is_owner else "delete_destinations"
        self._require(principal, permission, destination.created_by)

        active = self.bookings.get_active_for_destination(destination.id)  # type: ignore[arg-type]
        cascade = bool(payload.get("cascade")) and principal.is_admin
        if active and not cascade:
            raise DependentRecordsError(
                f"{len(active)} active booking(s) reference this destination"
            )

        current = str(destination.status)
        content_lifecycle.validate_destination_transition(
            current, "delete", is_owner, self.resolver.effective_role(principal)
        )

        cancelled = [
            self._cancel_dependent_booking(
                booking, principal, "Destination deleted by an administrator", effects
            )
            for booking in active
        ]
        self.bookings.detach_destination(destination.id)  # type: ignore[arg-type]

        before = snapshot(destination, DESTINATION_SNAPSHOT_FIELDS)
        if not self.destinations.delete_if_status(destination, current):
            raise ConflictError(f"Destination {destination.id} was modified by another request")

        entry = self.ledger.append(
            ContentType.DESTINATION,
            destination.id,  # type: ignore[arg-type]
            LOGGED_ACTIONS["delete"],
            status=None,
            moderator_id=None if is_owner else principal.id,
            submitted_by=destination.created_by,  # type: ignore[arg-type]
            previous_values=before,
            notes=_clean_text(payload.get("notes")) or None,
        )
        effects.record(
            "log_status_change",
            resource_type=ContentType.DESTINATION.value,
            resource_id=destination.id,
            action="destination_deleted",
            old_status=current,
            new_status=None,
            user_id=principal.id,
            extra={"moderation_log_id": str(entry.id)},
        )
        if not is_owner:
            effects.notify(
                [destination.created_by],  # type: ignore[list-item]
                category=CATEGORY_DESTINATION,
                title="Destination deleted",
                message=f"Your destination '{destination.name}' was deleted by an administrator.",
                resource_type=ContentType.DESTINATION.value,
                resource_id=destination.id,
                exclude=principal.id,
            )
        return TransitionResult(
            destination, entry, current, None, related={"cancelled_bookings": cancelled}
        )

    # ------------------------------------------------------------------
    # Guide verifications
    # ------------------------------------------------------------------

    def _transition_verification(
        self,
        principal: AuthenticatedPrincipal,
        verification_id: UUID,
        action: str,
        payload: dict[str, Any],
        effects: _Effects,
    ) -> TransitionResult:
        verification = self.verifications.get_for_update(verification_id)
        if verification is None:
            raise NotFoundError(f"Guide verification {verification_id} not found")
        if verification.user_id == principal.id:
            raise InvalidActionError("You cannot review your own guide application")
        if action not in VERIFICATION_ACTIONS:
            raise InvalidDataError(f"Unknown guide verification action '{action}'")
        self._require(principal, "verify_guides")

        notes = _clean_text(payload.get("notes")) or None
        reason = _clean_text(payload.get("reason")) or None
        if action == "reject" and not reason:
            raise InvalidDataError("A rejection reason is required")

        role = self.resolver.effective_role(principal)
        current = str(verification.status)
        target = content_lifecycle.validate_verification_transition(current, action, False, role)

        applicant = self.users.get_for_update(verification.user_id)  # type: ignore[arg-type]
        if applicant is None:
            raise NotFoundError(f"User {verification.user_id} not found")
        old_guide_status = str(applicant.guide_status)
        old_role = str(applicant.role)
        guide_target = content_lifecycle.validate_guide_status_transition(
            old_guide_status, action, False, role
        )

        now = utc_now()
        self._compare_and_set(
            GuideVerification,
            verification,
            "status",
            current,
            {"status": target, "reviewed_by": principal.id, "reviewed_at": now, "notes": reason or notes},
        )
        user_values: dict[str, Any] = {"guide_status": guide_target}
        if action == "approve":
            user_values.update(verified_by=principal.id, verified_at=now, rejection_reason=None)
            # Staff keep their own role; plain users become guides.
            if old_role == UserRole.USER.value:
                user_values["role"] = UserRole.GUIDE.value
        else:
            user_values["rejection_reason"] = reason
        self._compare_and_set(User, applicant, "guide_status", old_guide_status, user_values)

        logged = LOGGED_ACTIONS[action]
        entry = self.ledger.append(
            ContentType.GUIDE_VERIFICATION,
            verification.id,  # type: ignore[arg-type]
            logged,
            status=target,
            moderator_id=principal.id,
            submitted_by=verification.user_id,  # type: ignore[arg-type]
            previous_values={"status": current, "guide_status": old_guide_status, "role": old_role},
            new_values={
                "status": target,
                "guide_status": guide_target,
                "role": str(applicant.role),
            },
            notes=notes,
            rejection_reason=reason if action == "reject" else None,
        )

        effects.record(
            "log_status_change",
            resource_type=ContentType.GUIDE_VERIFICATION.value,
            resource_id=verification.id,
            action=f"guide_verification_{logged}",
            old_status=current,
            new_status=target,
            user_id=principal.id,
            extra={"moderation_log_id": str(entry.id)},
        )
        effects.record(
            "log_update",
            resource_type=ContentType.USER.value,
            resource_id=applicant.id,
            user_id=principal.id,
            old_data={"guide_status": old_guide_status, "role": old_role},
            new_data={"guide_status": guide_target, "role": str(applicant.role)},
        )
        message = (
            "Your guide application was approved. You can now publish destinations."
            if action == "approve"
            else f"Your guide application was rejected. Reason: {reason}"
        )
        effects.notify(
            [applicant.id],  # type: ignore[list-item]
            category=CATEGORY_GUIDE,
            title=f"Guide application {logged}",
            message=message,
            resource_type=ContentType.GUIDE_VERIFICATION.value,
            resource_id=verification.id,
        )
        return TransitionResult(verification, entry, current, target, related={"user": applicant})

    # ------------------------------------------------------------------
    # Bookings
    # ------------------------------------------------------------------

    def _authorize_booking(
        self, principal: AuthenticatedPrincipal, booking: Booking, action: str
    ) -> None:
        is_traveler = booking.user_id == principal.id
        is_guide = booking.guide_id is not None and booking.guide_id == principal.id

        if action in ("confirm", "complete"):
            if not is_guide:
                raise UnauthorizedError(f"Only the booking's guide can {action} it")
            self._require(principal, f"{action}_own_bookings", booking.guide_id)
            return

        if is_traveler:
            self._require(principal, "cancel_own_bookings", booking.user_id)
        elif is_guide:
            self._require(principal, "manage_own_bookings", booking.guide_id)
        elif not self.resolver.check(principal, "cancel_bookings"):
            raise UnauthorizedError("You are not a participant of this booking")

    def _transition_booking(
        self,
        principal: AuthenticatedPrincipal,
        booking_id: UUID,
        action: str,
        payload: dict[str, Any],
        effects: _Effects,
    ) -> TransitionResult:
        booking = self.bookings.get_for_update(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        if action not in BOOKING_ACTIONS:
            raise InvalidDataError(f"Unknown booking action '{action}'")
        self._authorize_booking(principal, booking, action)

        current = str(booking.status)
        target = booking_lifecycle.validate_booking_transition(current, action)
        self._compare_and_set(Booking, booking, "status", current, {"status": target})

        logged = LOGGED_ACTIONS[action]
        entry = self.ledger.append(
            ContentType.BOOKING,
            booking.id,  # type: ignore[arg-type]
            logged,
            status=target,
            moderator_id=principal.id if booking.user_id != principal.id else None,
            submitted_by=booking.user_id,  # type: ignore[arg-type]
            previous_values={"status": current},
            new_values={"status": target},
            notes=_clean_text(payload.get("notes")) or None,
        )
        effects.record(
            "log_status_change",
            resource_type=ContentType.BOOKING.value,
            resource_id=booking.id,
            action=f"booking_{logged}",
            old_status=current,
            new_status=target,
            user_id=principal.id,
            extra={"moderation_log_id": str(entry.id)},
        )
        effects.notify(
            [booking.user_id, booking.guide_id],  # type: ignore[list-item]
            category=CATEGORY_BOOKING,
            title=f"Booking {logged}",
            message=f"Booking for {booking.booking_date:%Y-%m-%d} was {logged}.",
            resource_type=ContentType.BOOKING.value,
            resource_id=booking.id,
            exclude=principal.id,
        )
        return TransitionResult(booking, entry, current, target)

    def _cancel_dependent_booking(
        self,
        booking: Booking,
        principal: AuthenticatedPrincipal,
        reason: str,
        effects: _Effects,
    ) -> Booking:
        current = str(booking.status)
        target = booking_lifecycle.validate_booking_transition(current, "cancel")
        self._compare_and_set(Booking, booking, "status", current, {"status": target})
        entry = self.ledger.append(
            ContentType.BOOKING,
            booking.id,  # type: ignore[arg-type]
            LOGGED_ACTIONS["cancel"],
            status=target,
            moderator_id=principal.id,
            submitted_by=booking.user_id,  # type: ignore[arg-type]
            previous_values={"status": current},
            new_values={"status": target},
            notes=reason,
        )
        effects.record(
            "log_status_change",
            resource_type=ContentType.BOOKING.value,
            resource_id=booking.id,
            action="booking_cancelled",
            old_status=current,
            new_status=target,
            user_id=principal.id,
            extra={"moderation_log_id": str(entry.id), "reason": reason},
        )
        effects.notify(
            [booking.user_id, booking.guide_id],  # type: ignore[list-item]
            category=CATEGORY_BOOKING,
            title="Booking cancelled",
            message=f"Booking for {booking.booking_date:%Y-%m-%d} was cancelled. {reason}.",
            resource_type=ContentType.BOOKING.value,
            resource_id=booking.id,
            exclude=principal.id,
        )
        return booking

    # ------------------------------------------------------------------
    # Users: guide status and account
    # ------------------------------------------------------------------

    def _transition_user(
        self,
        principal: AuthenticatedPrincipal,
        user_id: UUID,
        action: str,
        payload: dict[str, Any],
        effects: _Effects,
    ) -> TransitionResult:
        user = self.users.get_for_update(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        if user.id == principal.id:
            raise InvalidActionError("You cannot perform this action on your own account")

        permission = USER_PERMISSIONS.get(action)
        if permission is None:
            raise InvalidDataError(f"Unknown user action '{action}'")
        self._require(principal, permission)
        if user.role == UserRole.ADMIN.value and not principal.is_admin:
            raise PermissionDeniedError("Only administrators can modify administrator accounts")

        role = self.resolver.effective_role(principal)
        notes = _clean_text(payload.get("notes")) or None
        cancelled: list[Booking] = []

        if action in GUIDE_STATUS_ACTIONS:
            column = "guide_status"
            current = str(user.guide_status)
            target = content_lifecycle.validate_guide_status_transition(current, action, False, role)
            expected: Any = current
            values: dict[str, Any] = {"guide_status": target}
            previous, new = {"guide_status": current}, {"guide_status": target}
        elif action == "change_role":
            column = "role"
            new_role = payload.get("role")
            try:
                new_role = UserRole(new_role).value
            except ValueError:
                raise InvalidDataError(f"Unknown role '{new_role}'") from None
            if new_role == user.role:
                raise InvalidStatusError(f"User already has role '{new_role}'")
            current = target = user.account_status
            content_lifecycle.validate_account_transition(current, action, False, role)
            expected = str(user.role)
            values = {"role": new_role}
            previous, new = {"role": expected}, {"role": new_role}
        else:
            column = "is_active"
            current = user.account_status
            if action == "deactivate":
                active = self.bookings.get_active_for_participant(user.id)  # type: ignore[arg-type]
                if active and not payload.get("cascade"):
                    raise DependentRecordsError(
                        f"User has {len(active)} pending or confirmed booking(s)"
                    )
            else:
                active = []
            target = content_lifecycle.validate_account_transition(current, action, False, role)
            expected = bool(user.is_active)
            values = {"is_active": target == AccountStatus.ACTIVE.value}
            previous, new = {"account_status": current}, {"account_status": target}
            cancelled = [
                self._cancel_dependent_booking(
                    booking, principal, "Account deactivated by a moderator", effects
                )
                for booking in active
            ]

        self._compare_and_set(User, user, column, expected, values)

        logged = LOGGED_ACTIONS[action]
        entry = self.ledger.append(
            ContentType.USER,
            user.id,  # type: ignore[arg-type]
            logged,
            status=target,
            moderator_id=principal.id,
            submitted_by=user.id,  # type: ignore[arg-type]
            previous_values=previous,
            new_values=new,
            notes=notes,
        )
        effects.record(
            "log_status_change",
            resource_type=ContentType.USER.value,
            resource_id=user.id,
            action=f"user_{logged}",
            old_status=current,
            new_status=target,
            user_id=principal.id,
            extra={"moderation_log_id": str(entry.id), **new},
        )
        category = CATEGORY_GUIDE if action in GUIDE_STATUS_ACTIONS else CATEGORY_ACCOUNT
        effects.notify(
            [user.id],  # type: ignore[list-item]
            category=category,
            title=f"Account {logged.replace('_', ' ')}",
            message=f"Your account was {logged.replace('_', ' ')} by a moderator."
            + (f" Notes: {notes}" if notes else ""),
            resource_type=ContentType.USER.value,
            resource_id=user.id,
        )
        return TransitionResult(
            user, entry, current, target, related={"cancelled_bookings": cancelled}
        )

    # ------------------------------------------------------------------
    # Creation and non-transition edits
    # ------------------------------------------------------------------

    def create_destination(
        self, principal: AuthenticatedPrincipal, data: DestinationCreate
    ) -> TransitionResult:
        """Create a draft destination owned by the caller."""
        if not self.resolver.check(principal, "create_destinations"):
            raise PermissionDeniedError("Only verified guides and staff can create destinations")
        for name in DESTINATION_REQUIRED_FIELDS:
            if not _clean_text(getattr(data, name)):
                raise InvalidDataError(f"{name} cannot be empty")
        return self._run(self._create_destination, principal, data)

    def _create_destination(
        self, principal: AuthenticatedPrincipal, data: DestinationCreate, effects: _Effects
    ) -> TransitionResult:
        destination = self.destinations.add(data, principal.id)
        values = snapshot(destination, DESTINATION_EDITABLE_FIELDS)
        entry = self.ledger.append(
            ContentType.DESTINATION,
            destination.id,  # type: ignore[arg-type]
            LOGGED_ACTIONS["create"],
            status=DestinationStatus.DRAFT.value,
            submitted_by=principal.id,
            new_values=values,
        )
        effects.record(
            "log_create",
            resource_type=ContentType.DESTINATION.value,
            resource_id=destination.id,
            user_id=principal.id,
            data=values,
        )
        return TransitionResult(destination, entry, None, DestinationStatus.DRAFT.value)

    def edit_destination(
        self,
        principal: AuthenticatedPrincipal,
        destination_id: UUID,
        data: DestinationUpdate,
    ) -> TransitionResult:
        """Apply a partial edit. Non-admin edits of approved content demote it to draft."""
        return self.request_transition(
            principal,
            ContentType.DESTINATION,
            destination_id,
            "edit",
            data.model_dump(exclude_unset=True),
        )

    def apply_as_guide(
        self, principal: AuthenticatedPrincipal, data: GuideApplicationCreate
    ) -> TransitionResult:
        """Open a guide application for the caller."""
        return self._run(self._apply_as_guide, principal, data)

    def _apply_as_guide(
        self,
        principal: AuthenticatedPrincipal,
        data: GuideApplicationCreate,
        effects: _Effects,
    ) -> TransitionResult:
        user = self.users.get_for_update(principal.id)
        if user is None:
            raise NotFoundError(f"User {principal.id} not found")
        if user.role not in (UserRole.USER.value, UserRole.GUIDE.value):
            raise PermissionDeniedError("Staff accounts cannot apply as guides")
        self._require(principal, "apply_as_guide")

        current = str(user.guide_status)
        if current == GuideStatus.VERIFIED.value:
            raise DuplicateError(code=ErrorCode.ALREADY_VERIFIED_GUIDE)
        if current == GuideStatus.PENDING.value or self.verifications.get_pending_for_user(
            user.id  # type: ignore[arg-type]
        ):
            raise DuplicateError(code=ErrorCode.APPLICATION_PENDING)

        documents = [d.strip() for d in data.verification_documents if d and d.strip()]
        if not documents:
            raise InvalidDataError("At least one verification document is required")

        target = content_lifecycle.validate_guide_status_transition(
            current, "apply", True, self.resolver.effective_role(principal)
        )
        try:
            verification = self.verifications.add(
                user_id=user.id,  # type: ignore[arg-type]
                documents=documents,
                credentials=data.credentials,
            )
        except IntegrityError as exc:
            raise DuplicateError(code=ErrorCode.APPLICATION_PENDING) from exc
        self._compare_and_set(
            User, user, "guide_status", current, {"guide_status": target, "rejection_reason": None}
        )

        entry = self.ledger.append(
            ContentType.GUIDE_VERIFICATION,
            verification.id,  # type: ignore[arg-type]
            LOGGED_ACTIONS["apply"],
            status=VerificationStatus.PENDING.value,
            submitted_by=user.id,  # type: ignore[arg-type]
            previous_values={"guide_status": current},
            new_values={"guide_status": target, "documents": documents},
        )
        effects.record(
            "log_create",
            resource_type=ContentType.GUIDE_VERIFICATION.value,
            resource_id=verification.id,
            user_id=user.id,
            data={"documents": documents, "credentials": data.credentials},
        )
        effects.record(
            "log_update",
            resource_type=ContentType.USER.value,
            resource_id=user.id,
            user_id=user.id,
            old_data={"guide_status": current},
            new_data={"guide_status": target},
        )
        effects.notify(
            self._moderator_ids(exclude=principal.id),
            category=CATEGORY_GUIDE,
            title="Guide application awaiting review",
            message=f"{user.name} applied to become a guide.",
            resource_type=ContentType.GUIDE_VERIFICATION.value,
            resource_id=verification.id,
        )
        return TransitionResult(
            verification, entry, current, VerificationStatus.PENDING.value, related={"user": user}
        )

    def create_booking(
        self, principal: AuthenticatedPrincipal, data: BookingCreate
    ) -> TransitionResult:
        """Book an approved destination. The destination's creator becomes the guide."""
        self._require(principal, "create_bookings")
        return self._run(self._create_booking, principal, data)

    def _create_booking(
        self, principal: AuthenticatedPrincipal, data: BookingCreate, effects: _Effects
    ) -> TransitionResult:
        destination = self.destinations.get_for_update(data.destination_id)
        if destination is None:
            raise NotFoundError(f"Destination {data.destination_id} not found")
        if destination.status != DestinationStatus.APPROVED.value:
            raise InvalidStatusError(code=ErrorCode.DESTINATION_NOT_AVAILABLE)
        if destination.created_by == principal.id:
            raise InvalidActionError("You cannot book your own destination")
        booking_lifecycle.validate_booking_date(data.booking_date)
        if self.bookings.has_active_booking(principal.id, destination.id):  # type: ignore[arg-type]
            raise DuplicateError(code=ErrorCode.DUPLICATE_BOOKING)

        booking = self.bookings.add(
            user_id=principal.id,
            destination_id=destination.id,  # type: ignore[arg-type]
            guide_id=destination.created_by,  # type: ignore[arg-type]
            booking_date=data.booking_date,
            notes=_clean_text(data.notes) or None,
        )
        values = snapshot(booking, ("destination_id", "guide_id", "booking_date", "notes"))
        entry = self.ledger.append(
            ContentType.BOOKING,
            booking.id,  # type: ignore[arg-type]
            LOGGED_ACTIONS["create"],
            status=BookingStatus.PENDING.value,
            submitted_by=principal.id,
            new_values=values,
        )
        effects.record(
            "log_create",
            resource_type=ContentType.BOOKING.value,
            resource_id=booking.id,
            user_id=principal.id,
            data=values,
        )
        effects.notify(
            [destination.created_by],  # type: ignore[list-item]
            category=CATEGORY_BOOKING,
            title="New booking request",
            message=(
                f"New booking request for '{destination.name}' "
                f"on {data.booking_date:%Y-%m-%d}."
            ),
            resource_type=ContentType.BOOKING.value,
            resource_id=booking.id,
            exclude=principal.id,
        )
        return TransitionResult(booking, entry, None, BookingStatus.PENDING.value)

    def update_booking_notes(
        self,
        principal: AuthenticatedPrincipal,
        booking_id: UUID,
        data: BookingNotesUpdate,
    ) -> TransitionResult:
        """Let the traveler change notes on a booking that is still open."""
        return self._run(self._update_booking_notes, principal, booking_id, data)

    def _update_booking_notes(
        self,
        principal: AuthenticatedPrincipal,
        booking_id: UUID,
        data: BookingNotesUpdate,
        effects: _Effects,
    ) -> TransitionResult:
        booking = self.bookings.get_for_update(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        if booking.user_id != principal.id:
            raise UnauthorizedError("Only the traveler can update booking notes")
        self._require(principal, "update_own_bookings", booking.user_id)

        current = str(booking.status)
        booking_lifecycle.validate_booking_transition(current, "update_notes")
        old_notes = booking.notes
        new_notes = _clean_text(data.notes) or None
        if old_notes != new_notes:
            self._compare_and_set(Booking, booking, "status", current, {"notes": new_notes})
            effects.record(
                "log_update",
                resource_type=ContentType.BOOKING.value,
                resource_id=booking.id,
                user_id=principal.id,
                old_data={"notes": old_notes},
                new_data={"notes": new_notes},
            )
        return TransitionResult(booking, None, current, current)

    # ------------------------------------------------------------------
    # Moderation queue
    # ------------------------------------------------------------------

    def list_moderation_queue(
        self,
        principal: AuthenticatedPrincipal,
        content_type: ContentType | None = None,
        status: str | None = PENDING_STATUS,
        page: int = 1,
        limit: int | None = None,
    ) -> LedgerPage:
        """Items whose latest ledger entry has ``status``, newest first.

        Defaults to destinations and guide applications still awaiting review.
        """
        self._require(principal, "view_moderation_queue")
        limit = min(max(limit or settings.MODERATION_QUEUE_PAGE_SIZE, 1), 100)
        return self.ledger.query(
            content_type=content_type,
            status=status,
            page=page,
            limit=limit,
            content_types=None if content_type else MODERATED_CONTENT_TYPES,
        )

    def moderation_history(
        self,
        principal: AuthenticatedPrincipal,
        content_type: ContentType,
        content_id: UUID,
    ) -> list[ModerationLog]:
        self._require(principal, "view_moderation_logs")
        return self.ledger.history(content_type, content_id)
