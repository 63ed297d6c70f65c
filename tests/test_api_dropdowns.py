"""
tests/test_api_dropdowns.py -- Integration tests for languages and dropdown routes.

Coverage:
  - Admin language management and the public active-language list
  - Dropdown type validation at the HTTP boundary (400 with the exact rule)
  - Per-language and all-language creation, fallback to the default language
  - Admin listing, update, soft delete, bulk actions, use count (204)
  - Admin routes refuse member sessions
  - Deleting every language variant by unique code
"""

from __future__ import annotations

import pytest

from conftest import ApiContext, seed_user, user_headers

ADMIN_DROPDOWNS = "/api/v1/admin/dropdowns"


@pytest.fixture(scope="module", autouse=True)
def languages(api: ApiContext) -> dict[str, str]:
    """Register en (default), es and fr once for the whole module."""
    ids = {}
    for code, name in (("en", "English"), ("es", "Español"), ("fr", "Français")):
        resp = api.client.post("/api/v1/admin/languages", headers=api.admin_headers, json={"code": code, "name": name})
        assert resp.status_code == 201, resp.text
        ids[code] = resp.json()["public_id"]
    return ids


def _create(api: ApiContext, dropdown_type: str, name: str, language_code: str | None = None, **extra):
    body = {"name": name, **extra}
    if language_code:
        body["language_code"] = language_code
    return api.client.post(f"{ADMIN_DROPDOWNS}/{dropdown_type}", headers=api.admin_headers, json=body)


class TestLanguages:
    def test_first_language_is_default(self, api: ApiContext) -> None:
        listed = {lang["code"]: lang for lang in api.client.get("/api/v1/languages").json()}
        assert set(listed) >= {"en", "es", "fr"}
        assert listed["en"]["is_default"] is True
        assert listed["es"]["is_default"] is False

    def test_duplicate_code(self, api: ApiContext) -> None:
        resp = api.client.post("/api/v1/admin/languages", headers=api.admin_headers, json={"code": "EN", "name": "Again"})
        assert resp.status_code == 409
        assert resp.json()["error"]["message"] == "Language 'en' already exists."

    def test_invalid_code(self, api: ApiContext) -> None:
        resp = api.client.post("/api/v1/admin/languages", headers=api.admin_headers, json={"code": "e1", "name": "Bad"})
        assert resp.status_code == 400

    def test_deactivated_language_leaves_public_list(self, api: ApiContext) -> None:
        created = api.client.post(
            "/api/v1/admin/languages", headers=api.admin_headers, json={"code": "de", "name": "Deutsch"}
        ).json()
        resp = api.client.patch(
            f"/api/v1/admin/languages/{created['public_id']}", headers=api.admin_headers, json={"is_active": False}
        )
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False
        assert "de" not in [lang["code"] for lang in api.client.get("/api/v1/languages").json()]

    def test_default_cannot_be_deactivated(self, api: ApiContext, languages) -> None:
        resp = api.client.patch(
            f"/api/v1/admin/languages/{languages['en']}", headers=api.admin_headers, json={"is_active": False}
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["message_key"] == "language.default_required"

    def test_member_cannot_manage_languages(self, api: ApiContext) -> None:
        user = seed_user(api.stack, "lang-member@example.com")
        resp = api.client.post(
            "/api/v1/admin/languages", headers=user_headers(user), json={"code": "it", "name": "Italiano"}
        )
        assert resp.status_code == 403


class TestDropdownTypeValidation:
    @pytest.mark.parametrize("bad", ["1industry", "a", "has.dot", "x" * 51])
    def test_malformed_type_is_400(self, api: ApiContext, bad: str) -> None:
        resp = api.client.get(f"/api/v1/dropdowns/{bad}")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_error_message_states_the_rule(self, api: ApiContext) -> None:
        resp = api.client.get("/api/v1/dropdowns/9lives")
        assert resp.json()["error"]["message"] == (
            "Invalid dropdown type '9lives'. Dropdown type must be 2-50 characters long, start with a letter, "
            "and contain only lowercase letters, numbers, hyphens, and underscores."
        )

    def test_type_is_normalized(self, api: ApiContext) -> None:
        _create(api, "skill", "Writing", "en")
        resp = api.client.get("/api/v1/dropdowns/SKILL")
        assert resp.status_code == 200
        assert resp.json()["dropdown_type"] == "skill"


class TestPublicDropdowns:
    def test_created_for_every_active_language(self, api: ApiContext) -> None:
        resp = _create(api, "industry", "Education")
        assert resp.status_code == 201
        assert sorted(item["language_code"] for item in resp.json()["items"]) == ["en", "es", "fr"]

    def test_language_specific_and_fallback(self, api: ApiContext) -> None:
        _create(api, "cause", "Climate", "en")
        _create(api, "cause", "Clima", "es")

        spanish = api.client.get("/api/v1/dropdowns/cause", headers={"Accept-Language": "es"}).json()
        assert spanish["language"] == "es"
        assert [i["name"] for i in spanish["items"]] == ["Clima"]

        french = api.client.get("/api/v1/dropdowns/cause", params={"lang": "fr"}).json()
        assert french["language"] == "en"
        assert [i["name"] for i in french["items"]] == ["Climate"]

    def test_unknown_type_is_empty(self, api: ApiContext) -> None:
        resp = api.client.get("/api/v1/dropdowns/nothing-here")
        assert resp.status_code == 200
        assert resp.json()["items"] == []

    def test_name_conflict(self, api: ApiContext) -> None:
        assert _create(api, "region", "North", "en").status_code == 201
        resp = _create(api, "region", "NORTH", "en")
        assert resp.status_code == 409
        assert resp.json()["error"]["message_key"] == "dropdown.name_exists"

    def test_inactive_language_rejected(self, api: ApiContext) -> None:
        resp = _create(api, "region", "Süd", "de")
        assert resp.status_code == 400
        assert resp.json()["error"]["message_key"] == "dropdown.invalid_language"


class TestAdminDropdowns:
    def test_requires_admin(self, api: ApiContext) -> None:
        user = seed_user(api.stack, "dropdown-member@example.com")
        assert api.client.get(f"{ADMIN_DROPDOWNS}/industry", headers=user_headers(user)).status_code == 403
        assert api.client.get(f"{ADMIN_DROPDOWNS}/industry").status_code == 401

    def test_list_update_delete(self, api: ApiContext) -> None:
        created = _create(api, "stage", "Planning", "en", unique_code="PLN").json()["items"][0]
        url = f"{ADMIN_DROPDOWNS}/stage/{created['public_id']}"

        page = api.client.get(f"{ADMIN_DROPDOWNS}/stage", headers=api.admin_headers, params={"language_code": "en"}).json()
        assert page["total"] == 1
        assert page["items"][0]["unique_code"] == "PLN"

        updated = api.client.patch(url, headers=api.admin_headers, json={"name": "Planning phase"})
        assert updated.status_code == 200
        assert updated.json()["item"]["name"] == "Planning phase"

        assert api.client.delete(url, headers=api.admin_headers).status_code == 200
        assert api.client.get(url, headers=api.admin_headers).json()["is_active"] is False
        assert api.client.get("/api/v1/dropdowns/stage").json()["items"] == []

    def test_wrong_type_in_path_is_404(self, api: ApiContext) -> None:
        created = _create(api, "topic", "Housing", "en").json()["items"][0]
        resp = api.client.get(f"{ADMIN_DROPDOWNS}/industry/{created['public_id']}", headers=api.admin_headers)
        assert resp.status_code == 404

    def test_paging_bounds(self, api: ApiContext) -> None:
        resp = api.client.get(f"{ADMIN_DROPDOWNS}/industry", headers=api.admin_headers, params={"limit": 101})
        assert resp.status_code == 400

    def test_bulk(self, api: ApiContext) -> None:
        ids = [item["public_id"] for item in _create(api, "format", "Online").json()["items"]]
        resp = api.client.post(
            f"{ADMIN_DROPDOWNS}/format/bulk", headers=api.admin_headers, json={"action": "deactivate", "ids": ids}
        )
        assert resp.status_code == 200
        assert resp.json() == {"message": "Bulk deactivate completed for 3 option(s).", "affected": 3}
        assert api.client.get("/api/v1/dropdowns/format").json()["items"] == []

    def test_bulk_rejects_foreign_ids(self, api: ApiContext) -> None:
        ours = _create(api, "size", "Small", "en").json()["items"][0]["public_id"]
        theirs = _create(api, "color", "Red", "en").json()["items"][0]["public_id"]
        resp = api.client.post(
            f"{ADMIN_DROPDOWNS}/size/bulk", headers=api.admin_headers, json={"action": "delete", "ids": [ours, theirs]}
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["message_key"] == "dropdown.ids_mismatch"

    def test_bulk_unknown_action(self, api: ApiContext) -> None:
        resp = api.client.post(
            f"{ADMIN_DROPDOWNS}/size/bulk", headers=api.admin_headers, json={"action": "explode", "ids": ["x"]}
        )
        assert resp.status_code == 400

    def test_use_count(self, api: ApiContext) -> None:
        created = _create(api, "audience", "Youth", "en").json()["items"][0]
        url = f"{ADMIN_DROPDOWNS}/audience/{created['public_id']}"
        resp = api.client.post(f"{url}/use", headers=api.admin_headers)
        assert resp.status_code == 204
        assert api.client.get(url, headers=api.admin_headers).json()["use_count"] == 1


class TestDeleteByCode:
    def test_variants_share_code_and_delete_together(self, api: ApiContext) -> None:
        items = _create(api, "channel", "Radio").json()["items"]
        codes = {item["unique_code"] for item in items}
        assert len(codes) == 1
        code = codes.pop()

        resp = api.client.delete(f"{ADMIN_DROPDOWNS}/channel/code/{code}", headers=api.admin_headers)
        assert resp.status_code == 200
        assert resp.json()["affected"] == 3
        for item in items:
            url = f"{ADMIN_DROPDOWNS}/channel/{item['public_id']}"
            assert api.client.get(url, headers=api.admin_headers).status_code == 404

    def test_in_use_option_is_400(self, api: ApiContext) -> None:
        items = _create(api, "medium", "Print").json()["items"]
        api.client.post(f"{ADMIN_DROPDOWNS}/medium/{items[0]['public_id']}/use", headers=api.admin_headers)
        resp = api.client.delete(f"{ADMIN_DROPDOWNS}/medium/code/{items[0]['unique_code']}", headers=api.admin_headers)
        assert resp.status_code == 400
        assert resp.json()["error"]["message_key"] == "dropdown.in_use"

    def test_unknown_code_is_404(self, api: ApiContext) -> None:
        resp = api.client.delete(f"{ADMIN_DROPDOWNS}/medium/code/missing", headers=api.admin_headers)
        assert resp.status_code == 404
