"""Tests for lost-update protection and transaction atomicity of workflow writes."""

import logging
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from tests.conftest import auth_headers, create_destination, pending_destination
from tourhub.core import database
from tourhub.core.errors import (
    ConflictError,
    ErrorCode,
    InternalError,
    InvalidStatusError,
)
from tourhub.models.destination import Destination
from tourhub.models.moderation_log import ContentType, ModerationLog
from tourhub.repositories.audit_log_repository import AuditLogRepository
from tourhub.services import content_lifecycle
from tourhub.services.moderation_ledger import ModerationLedger
from tourhub.services.workflow_service import WorkflowService


@pytest.fixture
def service(db_session):
    return WorkflowService(db_session)


def _approved_entries(db_session, destination_id):
    return (
        db_session.query(ModerationLog)
        .filter(ModerationLog.content_id == destination_id, ModerationLog.action == "approved")
        .all()
    )


class TestConcurrentModeration:
    def test_second_moderator_loses_the_race(self, db_session, service, users, monkeypatch):
        """Two moderators approve the same item; exactly one approval commits."""
        destination_id = pending_destination(db_session, users["guide"])
        original = content_lifecycle.validate_destination_transition
        raced = False

        def approve_elsewhere_first(*args, **kwargs):
            nonlocal raced
            if not raced:
                raced = True
                other = database.SessionLocal()
                try:
                    WorkflowService(other).request_transition(
                        users["admin"], "destination", destination_id, "approve"
                    )
                finally:
                    other.close()
            return original(*args, **kwargs)

        monkeypatch.setattr(
            content_lifecycle, "validate_destination_transition", approve_elsewhere_first
        )

        with pytest.raises(ConflictError) as exc_info:
            service.request_transition(users["auditor"], "destination", destination_id, "approve")
        assert exc_info.value.code == ErrorCode.CONFLICT
        assert exc_info.value.retryable

        db_session.expire_all()
        destination = db_session.get(Destination, destination_id)
        assert destination.status == "approved"
        assert destination.approved_by == users["admin"].id
        entries = _approved_entries(db_session, destination_id)
        assert len(entries) == 1
        assert entries[0].moderator_id == users["admin"].id

    def test_retry_after_losing_is_invalid_status(self, db_session, service, users):
        destination_id = pending_destination(db_session, users["guide"])
        service.request_transition(users["admin"], "destination", destination_id, "approve")
        with pytest.raises(InvalidStatusError):
            service.request_transition(users["auditor"], "destination", destination_id, "approve")
        assert len(_approved_entries(db_session, destination_id)) == 1


class TestCompareAndSet:
    def test_zero_rows_is_conflict(self, db_session, service, users, caplog):
        destination_id = pending_destination(db_session, users["guide"])
        with patch("tourhub.services.workflow_service.compare_and_set", return_value=False):
            with pytest.raises(ConflictError):
                service.request_transition(users["auditor"], "destination", destination_id, "approve")

        assert "lost a concurrent update" in caplog.text
        db_session.expire_all()
        assert db_session.get(Destination, destination_id).status == "pending"
        assert _approved_entries(db_session, destination_id) == []

    def test_lock_timeout_is_conflict(self, db_session, service, users):
        destination_id = pending_destination(db_session, users["guide"])
        error = OperationalError("UPDATE destinations", {}, Exception("database is locked"))
        with patch("tourhub.services.workflow_service.compare_and_set", side_effect=error):
            with pytest.raises(ConflictError) as exc_info:
                service.request_transition(users["auditor"], "destination", destination_id, "approve")
        assert exc_info.value.code == ErrorCode.CONFLICT

    def test_storage_failure_is_internal_error(self, db_session, service, users, caplog):
        destination_id = pending_destination(db_session, users["guide"])
        with patch(
            "tourhub.services.workflow_service.compare_and_set",
            side_effect=SQLAlchemyError("disk I/O error"),
        ):
            with caplog.at_level(logging.ERROR):
                with pytest.raises(InternalError) as exc_info:
                    service.request_transition(
                        users["auditor"], "destination", destination_id, "approve"
                    )
        assert exc_info.value.code == ErrorCode.INTERNAL_ERROR
        assert "Workflow write failed" in caplog.text


class TestAtomicity:
    def test_ledger_failure_rolls_back_transition(self, db_session, service, users):
        destination_id = pending_destination(db_session, users["guide"])
        with patch.object(ModerationLedger, "append", side_effect=SQLAlchemyError("insert failed")):
            with pytest.raises(InternalError):
                service.request_transition(users["auditor"], "destination", destination_id, "approve")

        db_session.expire_all()
        assert db_session.get(Destination, destination_id).status == "pending"
        history = ModerationLedger(db_session).history(ContentType.DESTINATION, destination_id)
        assert [e.action for e in history] == ["created", "submitted"]

    def test_failed_create_leaves_nothing_behind(self, db_session, service, users):
        with patch.object(ModerationLedger, "append", side_effect=SQLAlchemyError("insert failed")):
            with pytest.raises(InternalError):
                create_destination(db_session, users["guide"])
        assert db_session.query(Destination).count() == 0
        assert db_session.query(ModerationLog).count() == 0

    def test_audit_failure_keeps_committed_transition(self, db_session, service, users):
        destination_id = pending_destination(db_session, users["guide"])
        with patch(
            "tourhub.services.audit_service.AuditService.log_status_change",
            side_effect=RuntimeError("audit store down"),
        ):
            result = service.request_transition(
                users["auditor"], "destination", destination_id, "approve"
            )
        assert result.new_status == "approved"
        db_session.expire_all()
        assert db_session.get(Destination, destination_id).status == "approved"
        assert len(_approved_entries(db_session, destination_id)) == 1
        logs = AuditLogRepository(db_session).get_by_resource("destination", destination_id)
        assert "destination_approved" not in {log.action for log in logs}


class TestConflictResponse:
    def test_conflict_carries_retry_after(self, client, db_session, users):
        destination_id = pending_destination(db_session, users["guide"])
        with patch("tourhub.services.workflow_service.compare_and_set", return_value=False):
            response = client.post(
                f"/v1/destinations/{destination_id}/approve", headers=auth_headers(users["auditor"])
            )
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"
        assert response.headers["Retry-After"] == "1"
