"""Tests for guide applications and their review."""

from uuid import uuid4

import pytest

from tests.conftest import principal_of
from tourhub.core.errors import (
    DuplicateError,
    ErrorCode,
    InvalidActionError,
    InvalidDataError,
    InvalidStatusError,
    NotFoundError,
    PermissionDeniedError,
)
from tourhub.models.guide_verification import GuideVerification
from tourhub.models.moderation_log import ContentType
from tourhub.models.user import User
from tourhub.repositories.audit_log_repository import AuditLogRepository
from tourhub.schemas.destination import DestinationCreate
from tourhub.schemas.guide_verification import GuideApplicationCreate
from tourhub.services.moderation_ledger import ModerationLedger
from tourhub.services.workflow_service import WorkflowService

DOCUMENTS = ["https://files.example.com/license.pdf"]


@pytest.fixture
def service(db_session):
    return WorkflowService(db_session)


def _apply(service, principal, documents=DOCUMENTS, credentials=None):
    data = GuideApplicationCreate(verification_documents=documents, credentials=credentials)
    return service.apply_as_guide(principal, data)


def _review(service, principal, verification_id, action, **payload):
    return service.request_transition(
        principal, "guide_verification", verification_id, action, payload
    )


class TestApplyAsGuide:
    def test_traveler_applies(self, db_session, service, users):
        result = _apply(service, users["traveler"], credentials={"license": "GT-123"})

        verification = result.entity
        assert verification.status == "pending"
        assert verification.documents == DOCUMENTS
        assert verification.credentials == {"license": "GT-123"}
        assert result.related["user"].guide_status == "pending"
        assert result.previous_status == "unverified"
        assert result.new_status == "pending"

        entry = result.ledger_entry
        assert entry.content_type == "guide_verification"
        assert entry.action == "submitted"
        assert entry.status == "pending"
        assert entry.submitted_by == users["traveler"].id

    def test_documents_are_trimmed(self, service, users):
        result = _apply(service, users["traveler"], documents=[" a.pdf ", "", "  "])
        assert result.entity.documents == ["a.pdf"]

    def test_empty_documents_is_invalid(self, service, users):
        with pytest.raises(InvalidDataError):
            _apply(service, users["traveler"], documents=[])

    def test_blank_documents_are_invalid(self, service, users):
        with pytest.raises(InvalidDataError):
            _apply(service, users["traveler"], documents=["   "])

    def test_second_application_is_pending(self, service, users):
        _apply(service, users["traveler"])
        with pytest.raises(DuplicateError) as exc_info:
            _apply(service, users["traveler"])
        assert exc_info.value.code == ErrorCode.APPLICATION_PENDING

    def test_verified_guide_cannot_reapply(self, service, users):
        with pytest.raises(DuplicateError) as exc_info:
            _apply(service, users["guide"])
        assert exc_info.value.code == ErrorCode.ALREADY_VERIFIED_GUIDE

    @pytest.mark.parametrize("staff", ["auditor", "admin"])
    def test_staff_cannot_apply(self, service, users, staff):
        with pytest.raises(PermissionDeniedError):
            _apply(service, users[staff])

    def test_suspended_guide_cannot_reapply(self, db_session, service, users):
        service.request_transition(users["auditor"], "user", users["guide"].id, "suspend")
        suspended = principal_of(db_session.get(User, users["guide"].id))
        with pytest.raises(InvalidStatusError):
            _apply(service, suspended)

    def test_moderators_are_notified(self, service, users):
        result = _apply(service, users["traveler"])
        recipients = set(result.events[0].recipient_ids)
        assert recipients == {users["admin"].id, users["admin2"].id, users["auditor"].id}

    def test_application_is_audited(self, db_session, service, users):
        result = _apply(service, users["traveler"])
        audit = AuditLogRepository(db_session)
        assert [log.action for log in audit.get_by_resource("guide_verification", result.entity.id)] == [
            "created"
        ]
        user_logs = audit.get_by_resource("user", users["traveler"].id)
        assert user_logs[0].new_values == {"guide_status": "pending"}


class TestReviewApplication:
    def test_approve_promotes_user_to_guide(self, db_session, service, users):
        verification_id = _apply(service, users["traveler"]).entity.id
        result = _review(service, users["auditor"], verification_id, "approve", notes="Looks good")

        verification = result.entity
        assert verification.status == "approved"
        assert verification.reviewed_by == users["auditor"].id
        assert verification.reviewed_at is not None
        applicant = result.related["user"]
        assert applicant.role == "guide"
        assert applicant.guide_status == "verified"
        assert applicant.verified_by == users["auditor"].id

        entry = result.ledger_entry
        assert entry.action == "approved"
        assert entry.moderator_id == users["auditor"].id
        assert entry.previous_values == {"status": "pending", "guide_status": "pending", "role": "user"}
        assert entry.new_values == {"status": "approved", "guide_status": "verified", "role": "guide"}

    def test_promoted_guide_can_create_destinations(self, db_session, service, users):
        verification_id = _apply(service, users["traveler"]).entity.id
        _review(service, users["admin"], verification_id, "approve")

        promoted = principal_of(db_session.get(User, users["traveler"].id))
        result = service.create_destination(
            promoted, DestinationCreate(name="Ijen", description="Blue fire", location="Banyuwangi")
        )
        assert result.entity.created_by == promoted.id

    def test_reject_requires_reason(self, service, users):
        verification_id = _apply(service, users["traveler"]).entity.id
        with pytest.raises(InvalidDataError):
            _review(service, users["auditor"], verification_id, "reject")

    def test_reject_records_reason(self, db_session, service, users):
        verification_id = _apply(service, users["traveler"]).entity.id
        result = _review(
            service, users["auditor"], verification_id, "reject", reason="License expired"
        )
        assert result.entity.status == "rejected"
        assert result.entity.notes == "License expired"
        applicant = result.related["user"]
        assert applicant.guide_status == "rejected"
        assert applicant.role == "user"
        assert applicant.rejection_reason == "License expired"
        assert result.ledger_entry.rejection_reason == "License expired"
        assert "License expired" in result.events[0].message

    def test_rejected_applicant_may_reapply(self, db_session, service, users):
        first = _apply(service, users["traveler"]).entity.id
        _review(service, users["auditor"], first, "reject", reason="Blurry scan")

        result = _apply(service, users["traveler"], documents=["https://files.example.com/scan2.pdf"])
        assert result.entity.id != first
        assert result.related["user"].guide_status == "pending"
        assert result.related["user"].rejection_reason is None

    def test_second_approval_is_invalid_status(self, service, users):
        verification_id = _apply(service, users["traveler"]).entity.id
        _review(service, users["auditor"], verification_id, "approve")
        with pytest.raises(InvalidStatusError):
            _review(service, users["admin"], verification_id, "approve")

    def test_cannot_review_own_application(self, service, users):
        verification_id = _apply(service, users["traveler"]).entity.id
        with pytest.raises(InvalidActionError):
            _review(service, users["traveler"], verification_id, "approve")

    @pytest.mark.parametrize("reviewer", ["traveler2", "guide"])
    def test_non_staff_cannot_review(self, service, users, reviewer):
        verification_id = _apply(service, users["traveler"]).entity.id
        with pytest.raises(PermissionDeniedError):
            _review(service, users[reviewer], verification_id, "approve")

    def test_unknown_action(self, service, users):
        verification_id = _apply(service, users["traveler"]).entity.id
        with pytest.raises(InvalidDataError):
            _review(service, users["auditor"], verification_id, "suspend")

    def test_missing_verification(self, service, users):
        with pytest.raises(NotFoundError):
            _review(service, users["auditor"], uuid4(), "approve")

    def test_ledger_history(self, db_session, service, users):
        verification_id = _apply(service, users["traveler"]).entity.id
        _review(service, users["auditor"], verification_id, "approve")

        history = ModerationLedger(db_session).history(
            ContentType.GUIDE_VERIFICATION, verification_id
        )
        assert [e.action for e in history] == ["submitted", "approved"]
        db_session.expire_all()
        assert db_session.get(GuideVerification, verification_id).status == "approved"

    def test_review_is_audited(self, db_session, service, users):
        verification_id = _apply(service, users["traveler"]).entity.id
        result = _review(service, users["auditor"], verification_id, "approve")

        logs = AuditLogRepository(db_session).get_by_resource("guide_verification", verification_id)
        approved = next(log for log in logs if log.action == "guide_verification_approved")
        assert approved.old_values == {"status": "pending"}
        assert approved.new_values["moderation_log_id"] == str(result.moderation_log_id)
