"""
tests/test_taxonomy_service.py -- Service-level tests for taxonomy/service.py.

Covers:
  - Languages: first language becomes default, code validation and
    uniqueness, moving the default, the default cannot be deactivated
  - Options: per-language vs all-language creation, case-insensitive name
    conflicts with no partial inserts, single default per type + language
  - Public listing: fallback chain, default language last, caching and
    invalidation, canonical dropdown keys
  - Admin listing, soft delete, bulk actions, use counts
  - Shared unique codes across language variants and the guarded hard
    delete of all variants
"""

from __future__ import annotations

import pytest

from core.errors import ConflictError, NotFoundError, ValidationError
from taxonomy.models import BulkAction


@pytest.fixture
def languages(taxonomy):
    taxonomy.create_language("en", "English")
    taxonomy.create_language("es", "Español")
    taxonomy.create_language("fr", "Français")
    return taxonomy


class TestLanguages:
    def test_first_language_becomes_default(self, taxonomy) -> None:
        en = taxonomy.create_language("EN", "English")
        assert en.code == "en"
        assert en.is_default
        es = taxonomy.create_language("es", "Español")
        assert not es.is_default
        assert taxonomy.default_language_code() == "en"

    def test_invalid_and_duplicate_codes(self, taxonomy) -> None:
        with pytest.raises(ValidationError):
            taxonomy.create_language("english", "English")
        taxonomy.create_language("en", "English")
        with pytest.raises(ConflictError):
            taxonomy.create_language("en", "English again")

    def test_promoting_moves_the_default(self, languages) -> None:
        es = next(lang for lang in languages.list_languages() if lang.code == "es")
        updated = languages.update_language(es.public_id, is_default=True)
        assert updated.is_default
        defaults = [lang.code for lang in languages.list_languages(active_only=False) if lang.is_default]
        assert defaults == ["es"]

    def test_default_cannot_be_deactivated(self, languages) -> None:
        en = next(lang for lang in languages.list_languages() if lang.code == "en")
        with pytest.raises(ValidationError) as exc:
            languages.update_language(en.public_id, is_active=False)
        assert exc.value.message_key == "language.default_required"

    def test_deactivated_language_hidden_from_public_list(self, languages) -> None:
        fr = next(lang for lang in languages.list_languages() if lang.code == "fr")
        languages.update_language(fr.public_id, is_active=False)
        assert "fr" not in [lang.code for lang in languages.list_languages()]

    def test_unknown_language(self, taxonomy) -> None:
        with pytest.raises(NotFoundError):
            taxonomy.update_language("missing", name="x")


class TestCreateOptions:
    def test_without_language_creates_one_row_per_active_language(self, languages) -> None:
        created = languages.create_option("Industry", name="Education")
        assert sorted(o.language_code for o in created) == ["en", "es", "fr"]
        assert len({o.public_id for o in created}) == 3
        assert {o.dropdown_type for o in created} == {"industry"}

    def test_single_language(self, languages) -> None:
        created = languages.create_option("industry", name="Educación", language_code="ES")
        assert [o.language_code for o in created] == ["es"]

    def test_inactive_or_unknown_language_rejected(self, languages) -> None:
        with pytest.raises(ValidationError) as exc:
            languages.create_option("industry", name="Bildung", language_code="de")
        assert exc.value.message_key == "dropdown.invalid_language"

    def test_requires_an_active_language(self, taxonomy) -> None:
        with pytest.raises(ValidationError) as exc:
            taxonomy.create_option("industry", name="Education")
        assert exc.value.message_key == "dropdown.no_active_languages"

    def test_name_conflict_is_case_insensitive_and_atomic(self, languages, stack) -> None:
        languages.create_option("industry", name="Education", language_code="fr")
        with pytest.raises(ConflictError):
            languages.create_option("industry", name="EDUCATION")
        # The conflict in "fr" left no rows behind in "en" or "es".
        assert stack.taxonomy_store.list_options("industry", "en") == []

    def test_same_name_allowed_in_other_type(self, languages) -> None:
        languages.create_option("industry", name="Other", language_code="en")
        assert languages.create_option("cause", name="Other", language_code="en")

    def test_new_default_clears_previous_default(self, languages, stack) -> None:
        first = languages.create_option("industry", name="Arts", language_code="en", is_default=True)[0]
        languages.create_option("industry", name="Health", language_code="en", is_default=True)
        assert not stack.taxonomy_store.find_option(first.public_id).is_default

    def test_malformed_type_rejected(self, languages) -> None:
        with pytest.raises(ValidationError) as exc:
            languages.create_option("1bad type", name="x")
        assert exc.value.message_key == "dropdown.invalid_type"


class TestPublicListing:
    def test_falls_back_to_default_language(self, languages) -> None:
        languages.create_option("industry", name="Education", language_code="en")
        language, options = languages.list_public("industry", ["fr", "en"])
        assert language == "en"
        assert [o.name for o in options] == ["Education"]

    def test_requested_language_preferred_and_sorted(self, languages) -> None:
        languages.create_option("industry", name="Zoología", language_code="es")
        languages.create_option("industry", name="arte", language_code="es")
        language, options = languages.list_public("INDUSTRY ", ["es"])
        assert language == "es"
        assert [o.name for o in options] == ["arte", "Zoología"]

    def test_inactive_options_hidden(self, languages) -> None:
        created = languages.create_option("industry", name="Education", language_code="en")[0]
        languages.delete_option("industry", created.public_id)
        assert languages.list_public("industry", ["en"]) == ("en", [])

    def test_results_are_cached_and_invalidated_on_write(self, languages, stack) -> None:
        languages.create_option("industry", name="Education", language_code="en")
        languages.list_public("industry", ["en"])
        assert stack.cache.get("dropdowns:industry:en") is not None

        languages.create_option("industry", name="Health", language_code="en")
        assert stack.cache.get("dropdowns:industry:en") is None
        _, options = languages.list_public("industry", ["en"])
        assert [o.name for o in options] == ["Education", "Health"]


class TestAdminOperations:
    def test_get_checks_type(self, languages) -> None:
        option = languages.create_option("industry", name="Education", language_code="en")[0]
        assert languages.get_option("Industry", option.public_id).id == option.id
        with pytest.raises(NotFoundError):
            languages.get_option("cause", option.public_id)

    def test_update_name_conflict(self, languages) -> None:
        languages.create_option("industry", name="Arts", language_code="en")
        health = languages.create_option("industry", name="Health", language_code="en")[0]
        with pytest.raises(ConflictError):
            languages.update_option("industry", health.public_id, name="arts")
        renamed = languages.update_option("industry", health.public_id, name="Healthcare", unique_code="HC")
        assert renamed.name == "Healthcare"
        assert renamed.unique_code == "HC"

    def test_admin_listing_filters(self, languages) -> None:
        languages.create_option("industry", name="Education")
        page = languages.list_admin("industry", page=1, limit=2)
        assert page.total == 3
        assert len(page.items) == 2
        assert languages.list_admin("industry", language_code="es").total == 1
        with pytest.raises(ValidationError):
            languages.list_admin("industry", limit=101)

    def test_bulk_actions(self, languages, stack) -> None:
        ids = [o.public_id for o in languages.create_option("industry", name="Education")]
        assert languages.bulk("industry", BulkAction.DEACTIVATE, ids) == 3
        assert all(not stack.taxonomy_store.find_option(i).is_active for i in ids)
        assert languages.bulk("industry", BulkAction.ACTIVATE, ids[:1]) == 1
        assert languages.bulk("industry", BulkAction.DELETE, ids[:1]) == 1
        assert not stack.taxonomy_store.find_option(ids[0]).is_active

    def test_bulk_rejects_ids_of_other_types(self, languages) -> None:
        ours = languages.create_option("industry", name="Education", language_code="en")[0]
        theirs = languages.create_option("cause", name="Climate", language_code="en")[0]
        with pytest.raises(ValidationError) as exc:
            languages.bulk("industry", BulkAction.DEACTIVATE, [ours.public_id, theirs.public_id])
        assert exc.value.message_key == "dropdown.ids_mismatch"

    def test_use_count(self, languages, stack) -> None:
        option = languages.create_option("industry", name="Education", language_code="en")[0]
        languages.increment_use_count("industry", option.public_id)
        languages.increment_use_count("industry", option.public_id)
        assert stack.taxonomy_store.find_option(option.public_id).use_count == 2


class TestOptionIdentity:
    def test_language_variants_share_a_generated_code(self, languages) -> None:
        created = languages.create_option("industry", name="Education")
        codes = {o.unique_code for o in created}
        assert len(codes) == 1
        code = codes.pop()
        assert code.isdigit() and len(code) == 10

    def test_separate_options_get_distinct_codes(self, languages) -> None:
        first = languages.create_option("industry", name="Education", language_code="en")[0]
        second = languages.create_option("industry", name="Health", language_code="en")[0]
        assert first.unique_code != second.unique_code

    def test_name_conflict_spans_languages_and_inactive_rows(self, languages) -> None:
        created = languages.create_option("industry", name="Education", language_code="en")[0]
        languages.delete_option("industry", created.public_id)
        with pytest.raises(ConflictError) as exc:
            languages.create_option("industry", name="education", language_code="es")
        assert exc.value.message_key == "dropdown.name_exists"

    def test_explicit_code_adds_a_translation(self, languages) -> None:
        en = languages.create_option("industry", name="Education", language_code="en")[0]
        es = languages.create_option("industry", name="Education", language_code="es", unique_code=en.unique_code)[0]
        assert es.unique_code == en.unique_code
        with pytest.raises(ConflictError) as exc:
            languages.create_option("industry", name="Educación", language_code="es", unique_code=en.unique_code)
        assert exc.value.message_key == "dropdown.variant_exists"

    def test_code_of_another_type_rejected(self, languages) -> None:
        other = languages.create_option("cause", name="Climate", language_code="en")[0]
        with pytest.raises(ConflictError) as exc:
            languages.create_option("industry", name="Energy", language_code="en", unique_code=other.unique_code)
        assert exc.value.message_key == "dropdown.code_exists"


class TestDeleteByUniqueCode:
    def test_removes_every_variant(self, languages, stack) -> None:
        created = languages.create_option("industry", name="Education")
        languages.list_public("industry", ["en"])
        removed = languages.delete_by_unique_code("Industry", created[0].unique_code)

        assert sorted(o.language_code for o in removed) == ["en", "es", "fr"]
        assert all(stack.taxonomy_store.find_option(o.public_id) is None for o in created)
        assert stack.cache.get("dropdowns:industry:en") is None

    def test_refused_while_any_variant_is_in_use(self, languages, stack) -> None:
        created = languages.create_option("industry", name="Education")
        languages.increment_use_count("industry", created[1].public_id)
        with pytest.raises(ValidationError) as exc:
            languages.delete_by_unique_code("industry", created[0].unique_code)
        assert exc.value.message_key == "dropdown.in_use"
        assert all(stack.taxonomy_store.find_option(o.public_id) is not None for o in created)

    def test_unknown_code(self, languages) -> None:
        with pytest.raises(NotFoundError):
            languages.delete_by_unique_code("industry", "0000000000")

    def test_code_of_another_type(self, languages) -> None:
        created = languages.create_option("cause", name="Climate", language_code="en")[0]
        with pytest.raises(ValidationError) as exc:
            languages.delete_by_unique_code("industry", created.unique_code)
        assert exc.value.message_key == "dropdown.code_type_mismatch"
