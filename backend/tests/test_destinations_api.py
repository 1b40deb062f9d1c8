"""Tests for the destinations API."""

from uuid import uuid4

from tests.conftest import (
    approved_destination,
    auth_headers,
    create_booking,
    create_destination,
    pending_destination,
)
from tourhub.models.booking import Booking
from tourhub.models.destination import Destination

PAYLOAD = {
    "name": "Tana Toraja",
    "description": "Highland villages and tongkonan houses",
    "location": "South Sulawesi",
    "region": "Sulawesi",
}


class TestDestinationReads:
    def test_requires_authentication(self, client):
        response = client.get("/v1/destinations/")
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    def test_traveler_sees_only_approved(self, client, db_session, users):
        approved_destination(db_session, users["guide"], users["auditor"], name="Bromo")
        create_destination(db_session, users["guide"], name="Draft place")

        response = client.get("/v1/destinations/", headers=auth_headers(users["traveler"]))
        assert response.status_code == 200
        assert [d["name"] for d in response.json()] == ["Bromo"]
        assert response.headers["X-Total-Count"] == "1"

    def test_staff_filter_by_status(self, client, db_session, users):
        approved_destination(db_session, users["guide"], users["auditor"], name="Bromo")
        pending_destination(db_session, users["guide"], name="Rinjani")

        response = client.get(
            "/v1/destinations/", params={"status": "pending"}, headers=auth_headers(users["auditor"])
        )
        assert [d["name"] for d in response.json()] == ["Rinjani"]

    def test_owner_lists_own_drafts(self, client, db_session, users):
        create_destination(db_session, users["guide"], name="Mine")
        create_destination(db_session, users["guide2"], name="Theirs")

        response = client.get(
            "/v1/destinations/", params={"mine": True}, headers=auth_headers(users["guide"])
        )
        assert [d["name"] for d in response.json()] == ["Mine"]

    def test_order_by_name(self, client, db_session, users):
        approved_destination(db_session, users["guide"], users["auditor"], name="Komodo")
        approved_destination(db_session, users["guide"], users["auditor"], name="Bromo")

        response = client.get(
            "/v1/destinations/", params={"order_by": "name:asc"}, headers=auth_headers(users["traveler"])
        )
        assert [d["name"] for d in response.json()] == ["Bromo", "Komodo"]

    def test_draft_is_hidden_from_others(self, client, db_session, users):
        destination_id = create_destination(db_session, users["guide"])
        response = client.get(
            f"/v1/destinations/{destination_id}", headers=auth_headers(users["traveler"])
        )
        assert response.status_code == 404

        response = client.get(f"/v1/destinations/{destination_id}", headers=auth_headers(users["guide"]))
        assert response.status_code == 200
        assert response.json()["status"] == "draft"

    def test_view_count_counts_other_viewers(self, client, db_session, users):
        destination_id = approved_destination(db_session, users["guide"], users["auditor"])
        client.get(f"/v1/destinations/{destination_id}", headers=auth_headers(users["guide"]))
        response = client.get(
            f"/v1/destinations/{destination_id}", headers=auth_headers(users["traveler"])
        )
        assert response.json()["view_count"] == 1

    def test_view_count_ignores_owner_and_unpublished(self, client, db_session, users):
        destination_id = approved_destination(db_session, users["guide"], users["auditor"])
        draft_id = create_destination(db_session, users["guide"], name="Draft")
        for _ in range(2):
            owner_view = client.get(
                f"/v1/destinations/{destination_id}", headers=auth_headers(users["guide"])
            )
            client.get(f"/v1/destinations/{draft_id}", headers=auth_headers(users["admin"]))
        assert owner_view.json()["view_count"] == 0

        for viewer in ("traveler", "traveler2", "auditor"):
            client.get(f"/v1/destinations/{destination_id}", headers=auth_headers(users[viewer]))
        db_session.expire_all()
        assert db_session.get(Destination, destination_id).view_count == 3
        assert db_session.get(Destination, draft_id).view_count == 0

    def test_get_missing(self, client, users):
        response = client.get(f"/v1/destinations/{uuid4()}", headers=auth_headers(users["admin"]))
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestDestinationWrites:
    def test_create(self, client, users):
        response = client.post("/v1/destinations/", json=PAYLOAD, headers=auth_headers(users["guide"]))
        assert response.status_code == 201
        data = response.json()
        assert data["destination"]["status"] == "draft"
        assert data["destination"]["created_by"] == str(users["guide"].id)
        assert data["previous_status"] is None
        assert data["new_status"] == "draft"
        assert data["moderation_log_id"] is not None

    def test_create_as_traveler_is_forbidden(self, client, users):
        response = client.post(
            "/v1/destinations/", json=PAYLOAD, headers=auth_headers(users["traveler"])
        )
        assert response.status_code == 403
        assert response.json()["code"] == "INSUFFICIENT_PERMISSIONS"

    def test_create_missing_field(self, client, users):
        payload = {k: v for k, v in PAYLOAD.items() if k != "location"}
        response = client.post("/v1/destinations/", json=payload, headers=auth_headers(users["guide"]))
        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["error"].startswith("location")

    def test_create_rejects_unknown_fields(self, client, users):
        response = client.post(
            "/v1/destinations/",
            json={**PAYLOAD, "status": "approved"},
            headers=auth_headers(users["guide"]),
        )
        assert response.status_code == 422

    def test_edit(self, client, db_session, users):
        destination_id = create_destination(db_session, users["guide"])
        response = client.put(
            f"/v1/destinations/{destination_id}",
            json={"description": "Largest volcanic lake in the world"},
            headers=auth_headers(users["guide"]),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["destination"]["description"] == "Largest volcanic lake in the world"
        assert data["moderation_log_id"] is None

    def test_edit_pending_is_invalid_status(self, client, db_session, users):
        destination_id = pending_destination(db_session, users["guide"])
        response = client.put(
            f"/v1/destinations/{destination_id}",
            json={"name": "Renamed"},
            headers=auth_headers(users["guide"]),
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_STATUS"


class TestDestinationTransitions:
    def test_submit_and_approve(self, client, db_session, users, enqueued):
        destination_id = create_destination(db_session, users["guide"])

        response = client.post(
            f"/v1/destinations/{destination_id}/submit",
            json={"notes": "Ready for review"},
            headers=auth_headers(users["guide"]),
        )
        assert response.status_code == 200
        assert response.json()["new_status"] == "pending"

        response = client.post(
            f"/v1/destinations/{destination_id}/approve", headers=auth_headers(users["auditor"])
        )
        assert response.status_code == 200
        data = response.json()
        assert data["previous_status"] == "pending"
        assert data["destination"]["status"] == "approved"
        assert data["destination"]["approved_by"] == str(users["auditor"].id)

        # Background tasks run after the response inside TestClient.
        tasks = [c.args[0] for c in enqueued.await_args_list]
        assert tasks == ["deliver_notification_task", "deliver_notification_task"]

    def test_resubmit_is_conflict(self, client, db_session, users):
        destination_id = pending_destination(db_session, users["guide"])
        response = client.post(
            f"/v1/destinations/{destination_id}/submit", headers=auth_headers(users["guide"])
        )
        assert response.status_code == 409
        assert response.json()["code"] == "ALREADY_SUBMITTED"
        assert "Retry-After" not in response.headers

    def test_self_approval(self, client, db_session, users):
        destination_id = pending_destination(db_session, users["admin"])
        response = client.post(
            f"/v1/destinations/{destination_id}/approve", headers=auth_headers(users["admin"])
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_ACTION"

    def test_reject_without_reason(self, client, db_session, users):
        destination_id = pending_destination(db_session, users["guide"])
        response = client.post(
            f"/v1/destinations/{destination_id}/reject", json={}, headers=auth_headers(users["auditor"])
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_DATA"

    def test_reject_then_reset(self, client, db_session, users):
        destination_id = pending_destination(db_session, users["guide"])
        response = client.post(
            f"/v1/destinations/{destination_id}/reject",
            json={"reason": "Photos are stock images"},
            headers=auth_headers(users["auditor"]),
        )
        assert response.json()["destination"]["rejection_reason"] == "Photos are stock images"

        response = client.post(
            f"/v1/destinations/{destination_id}/reset", headers=auth_headers(users["guide"])
        )
        assert response.json()["destination"]["status"] == "draft"

    def test_request_revision_and_withdraw(self, client, db_session, users):
        destination_id = pending_destination(db_session, users["guide"])
        response = client.post(
            f"/v1/destinations/{destination_id}/request_revision",
            json={"notes": "Add opening hours"},
            headers=auth_headers(users["auditor"]),
        )
        assert response.json()["new_status"] == "revision_requested"

        response = client.post(
            f"/v1/destinations/{destination_id}/request_revision",
            headers=auth_headers(users["admin"]),
        )
        assert response.status_code == 400
        assert response.json()["code"] == "ALREADY_PROCESSED"

        response = client.post(
            f"/v1/destinations/{destination_id}/withdraw", headers=auth_headers(users["guide"])
        )
        assert response.json()["new_status"] == "draft"

    def test_feature_unfeature(self, client, db_session, users):
        destination_id = approved_destination(db_session, users["guide"], users["auditor"])
        response = client.post(
            f"/v1/destinations/{destination_id}/feature", headers=auth_headers(users["admin"])
        )
        assert response.json()["destination"]["featured"] is True

        response = client.get(
            "/v1/destinations/", params={"featured": True}, headers=auth_headers(users["traveler"])
        )
        assert len(response.json()) == 1

        response = client.post(
            f"/v1/destinations/{destination_id}/unfeature", headers=auth_headers(users["admin"])
        )
        assert response.json()["destination"]["featured"] is False

    def test_guide_cannot_moderate(self, client, db_session, users):
        destination_id = pending_destination(db_session, users["guide"])
        response = client.post(
            f"/v1/destinations/{destination_id}/approve", headers=auth_headers(users["guide2"])
        )
        assert response.status_code == 403
        assert response.json()["code"] == "INSUFFICIENT_PERMISSIONS"


class TestDestinationDelete:
    def test_owner_deletes_draft(self, client, db_session, users):
        destination_id = create_destination(db_session, users["guide"])
        response = client.delete(
            f"/v1/destinations/{destination_id}", headers=auth_headers(users["guide"])
        )
        assert response.status_code == 200
        data = response.json()
        assert data["deleted"] is True
        assert data["cancelled_bookings"] == []
        db_session.expire_all()
        assert db_session.get(Destination, destination_id) is None

    def test_non_admin_cascade_is_forbidden(self, client, db_session, users):
        destination_id = create_destination(db_session, users["guide"])
        response = client.delete(
            f"/v1/destinations/{destination_id}",
            params={"cascade": True},
            headers=auth_headers(users["guide"]),
        )
        assert response.status_code == 403

    def test_active_bookings_block(self, client, db_session, users):
        destination_id = approved_destination(db_session, users["guide"], users["auditor"])
        create_booking(db_session, users["traveler"], destination_id)
        response = client.delete(
            f"/v1/destinations/{destination_id}", headers=auth_headers(users["admin"])
        )
        assert response.status_code == 409
        assert response.json()["code"] == "ACTIVE_BOOKINGS_EXIST"

    def test_admin_cascade(self, client, db_session, users):
        destination_id = approved_destination(db_session, users["guide"], users["auditor"])
        booking_id = create_booking(db_session, users["traveler"], destination_id)
        response = client.delete(
            f"/v1/destinations/{destination_id}",
            params={"cascade": True},
            headers=auth_headers(users["admin"]),
        )
        assert response.status_code == 200
        assert response.json()["cancelled_bookings"] == [str(booking_id)]
        db_session.expire_all()
        assert db_session.get(Booking, booking_id).status == "cancelled"
