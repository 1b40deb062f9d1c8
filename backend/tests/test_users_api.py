"""Tests for the users API."""

from uuid import uuid4

from tests.conftest import approved_destination, auth_headers, create_booking


class TestUserReads:
    def test_me(self, client, users):
        response = client.get("/v1/users/me", headers=auth_headers(users["guide"]))
        assert response.status_code == 200
        data = response.json()
        assert data["role"] == "guide"
        assert data["guide_status"] == "verified"
        assert data["email"] == "guide@example.com"

    def test_list_requires_view_users(self, client, users):
        response = client.get("/v1/users/", headers=auth_headers(users["guide"]))
        assert response.status_code == 403

    def test_list_filters(self, client, users):
        response = client.get(
            "/v1/users/", params={"role": "guide"}, headers=auth_headers(users["auditor"])
        )
        assert response.status_code == 200
        assert {u["name"] for u in response.json()} == {"Guide", "Guide2"}
        assert response.headers["X-Total-Count"] == "2"

    def test_get_self_without_view_users(self, client, users):
        response = client.get(
            f"/v1/users/{users['traveler'].id}", headers=auth_headers(users["traveler"])
        )
        assert response.status_code == 200

    def test_get_other_without_view_users(self, client, users):
        response = client.get(
            f"/v1/users/{users['traveler2'].id}", headers=auth_headers(users["traveler"])
        )
        assert response.status_code == 403

    def test_get_missing(self, client, users):
        response = client.get(f"/v1/users/{uuid4()}", headers=auth_headers(users["admin"]))
        assert response.status_code == 404


class TestUserTransitions:
    def test_suspend_and_reinstate(self, client, users):
        guide_id = users["guide"].id
        headers = auth_headers(users["auditor"])
        response = client.post(
            f"/v1/users/{guide_id}/suspend", json={"notes": "Pending investigation"}, headers=headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["guide_status"] == "suspended"
        assert data["previous_status"] == "verified"

        # The suspended guide loses guide permissions on the next request.
        response = client.post(
            "/v1/destinations/",
            json={"name": "Raja Ampat", "description": "Reefs", "location": "West Papua"},
            headers=auth_headers(users["guide"]),
        )
        assert response.status_code == 403

        response = client.post(f"/v1/users/{guide_id}/reinstate", headers=headers)
        assert response.json()["user"]["guide_status"] == "verified"

    def test_self_action(self, client, users):
        response = client.post(
            f"/v1/users/{users['auditor'].id}/deactivate", headers=auth_headers(users["auditor"])
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_ACTION"

    def test_deactivate_blocked_by_bookings(self, client, db_session, users):
        destination_id = approved_destination(db_session, users["guide"], users["auditor"])
        create_booking(db_session, users["traveler"], destination_id)

        url = f"/v1/users/{users['traveler'].id}/deactivate"
        response = client.post(url, headers=auth_headers(users["auditor"]))
        assert response.status_code == 409
        assert response.json()["code"] == "ACTIVE_BOOKINGS_EXIST"

        response = client.post(url, json={"cascade": True}, headers=auth_headers(users["auditor"]))
        assert response.status_code == 200
        assert response.json()["user"]["is_active"] is False

    def test_deactivated_user_is_denied(self, client, users):
        client.post(
            f"/v1/users/{users['traveler'].id}/deactivate", headers=auth_headers(users["admin"])
        )
        response = client.get("/v1/users/me", headers=auth_headers(users["traveler"]))
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        response = client.post(
            "/v1/guides/apply",
            json={"verification_documents": ["id.pdf"]},
            headers=auth_headers(users["traveler"]),
        )
        assert response.status_code == 403

        response = client.post(
            f"/v1/users/{users['traveler'].id}/reactivate", headers=auth_headers(users["admin"])
        )
        assert response.json()["user"]["is_active"] is True

    def test_change_role(self, client, users):
        response = client.post(
            f"/v1/users/{users['traveler'].id}/role",
            json={"role": "auditor"},
            headers=auth_headers(users["admin"]),
        )
        assert response.status_code == 200
        assert response.json()["user"]["role"] == "auditor"

        response = client.get("/v1/moderation/queue", headers=auth_headers(users["traveler"]))
        assert response.status_code == 200

    def test_change_role_invalid_value(self, client, users):
        response = client.post(
            f"/v1/users/{users['traveler'].id}/role",
            json={"role": "superuser"},
            headers=auth_headers(users["admin"]),
        )
        assert response.status_code == 422

    def test_auditor_cannot_change_roles(self, client, users):
        response = client.post(
            f"/v1/users/{users['traveler'].id}/role",
            json={"role": "guide"},
            headers=auth_headers(users["auditor"]),
        )
        assert response.status_code == 403

    def test_auditor_cannot_touch_admin(self, client, users):
        response = client.post(
            f"/v1/users/{users['admin'].id}/deactivate", headers=auth_headers(users["auditor"])
        )
        assert response.status_code == 403
