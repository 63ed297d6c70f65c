"""
tests/test_api_users.py -- Integration tests for /api/v1/users/* routes.

Coverage:
  - GET/PATCH /users/me with partial updates and slug regeneration
  - Email uniqueness on profile update
  - change-password checks the current password and confirmation
  - DELETE /users/me deactivates and revokes the live session
  - Public profile by slug hides contact details and inactive accounts
"""

from __future__ import annotations

from auth.models import AccountStatus
from conftest import ApiContext, seed_user, user_headers

ME = "/api/v1/users/me"


class TestProfile:
    def test_get_me(self, api: ApiContext) -> None:
        user = seed_user(api.stack, "me@example.com")
        resp = api.client.get(ME, headers=user_headers(user))
        assert resp.status_code == 200
        data = resp.json()
        assert data["message"] == "Profile retrieved successfully."
        assert data["user"]["public_id"] == user.public_id
        assert "hashed_password" not in data["user"]

    def test_requires_session(self, api: ApiContext) -> None:
        assert api.client.get(ME).status_code == 401
        assert api.client.get(ME, headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401

    def test_partial_update(self, api: ApiContext) -> None:
        user = seed_user(api.stack, "patch@example.com", first_name="Ida", last_name="Wells")
        headers = user_headers(user)
        resp = api.client.patch(
            ME,
            headers=headers,
            json={
                "about": "Journalist",
                "outside_links": [{"title": "Archive", "url": "https://archive.example.org"}],
            },
        )
        assert resp.status_code == 200
        body = resp.json()["user"]
        assert body["about"] == "Journalist"
        assert body["slug"] == user.slug
        assert body["outside_links"][0]["title"] == "Archive"
        assert body["first_name"] == "Ida"

        renamed = api.client.patch(ME, headers=headers, json={"first_name": "Ida B."}).json()["user"]
        assert renamed["slug"] != user.slug
        assert renamed["slug"].startswith("ida-b-wells-")

    def test_null_for_required_field_rejected(self, api: ApiContext) -> None:
        user = seed_user(api.stack, "null@example.com")
        resp = api.client.patch(ME, headers=user_headers(user), json={"first_name": None})
        assert resp.status_code == 400

    def test_email_taken(self, api: ApiContext) -> None:
        seed_user(api.stack, "taken@example.com")
        user = seed_user(api.stack, "mover@example.com")
        resp = api.client.patch(ME, headers=user_headers(user), json={"email": "taken@example.com"})
        assert resp.status_code == 409
        assert resp.json()["error"]["message_key"] == "user.email_taken"


class TestChangePassword:
    def test_change_password(self, api: ApiContext) -> None:
        user = seed_user(api.stack, "pw@example.com")
        headers = user_headers(user)
        url = f"{ME}/change-password"

        wrong = api.client.post(
            url,
            headers=headers,
            json={"current_password": "nope", "new_password": "fresh-pass-1", "confirm_password": "fresh-pass-1"},
        )
        assert wrong.status_code == 401
        assert wrong.json()["error"]["message_key"] == "auth.invalid_current_password"

        mismatch = api.client.post(
            url,
            headers=headers,
            json={"current_password": "memberpass1", "new_password": "fresh-pass-1", "confirm_password": "fresh-pass-2"},
        )
        assert mismatch.status_code == 400
        assert mismatch.json()["error"]["code"] == "password_mismatch"

        ok = api.client.post(
            url,
            headers=headers,
            json={"current_password": "memberpass1", "new_password": "fresh-pass-1", "confirm_password": "fresh-pass-1"},
        )
        assert ok.status_code == 200
        login = api.client.post("/api/v1/auth/login", json={"email": "pw@example.com", "password": "fresh-pass-1"})
        assert login.status_code == 200


class TestDeactivate:
    def test_deactivation_revokes_session(self, api: ApiContext) -> None:
        user = seed_user(api.stack, "leaving@example.com")
        headers = user_headers(user)
        resp = api.client.delete(ME, headers=headers)
        assert resp.status_code == 200
        assert api.stack.user_store.find_by_id(user.id).status == AccountStatus.INACTIVE
        assert api.client.get(ME, headers=headers).status_code == 401


class TestPublicProfile:
    def test_public_profile_hides_contact_details(self, api: ApiContext) -> None:
        user = seed_user(api.stack, "public@example.com", first_name="Public", last_name="Figure")
        resp = api.client.get(f"/api/v1/users/slug/{user.slug}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["slug"] == user.slug
        assert "email" not in data
        assert "phone_number" not in data

    def test_pending_profile_not_found(self, api: ApiContext) -> None:
        user = seed_user(api.stack, "hidden@example.com", status=AccountStatus.PENDING)
        resp = api.client.get(f"/api/v1/users/slug/{user.slug}")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"
