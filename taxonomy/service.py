"""
taxonomy/service.py -- Business rules for languages and dropdown options.

Every entry point normalizes dropdown_type with normalize_taxonomy_key before
touching the store or the cache, so "Industry " and "INDUSTRY" address the
same rows and the same cache entries. The API layer rejects malformed keys
before they reach this module; the check here guards the CLI and tests.

Public reads walk the request's fallback chain and finish with the default
language: the first language with at least one active option wins. Results
are cached per (type, language) and every write invalidates the type's
cache entries.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import asdict

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from cache.store import LookupCache
from core.errors import ConflictError, NotFoundError, ValidationError
from core.language import DEFAULT_LANGUAGE, is_valid_language_code, normalize_taxonomy_key, validate_taxonomy_key
from core.models import MAX_PAGE_SIZE, Page
from taxonomy.models import BulkAction, DropdownOption, Language
from taxonomy.store import TaxonomyStore

_OPTION_FIELDS = frozenset({"name", "unique_code", "is_default", "is_active"})


def _cache_key(dropdown_type: str, language_code: str) -> str:
    return f"dropdowns:{dropdown_type}:{language_code}"


class TaxonomyService:
    def __init__(
        self,
        store: TaxonomyStore,
        cache: LookupCache,
        default_language: str = DEFAULT_LANGUAGE,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.fallback_language = default_language
        self.log = logger or logging.getLogger("campaignhub.taxonomy")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _key(dropdown_type: str) -> str:
        if not validate_taxonomy_key(dropdown_type):
            raise ValidationError("dropdown.invalid_type", value=dropdown_type)
        return normalize_taxonomy_key(dropdown_type)

    def _invalidate(self, dropdown_type: str) -> None:
        self.cache.invalidate_prefix(f"dropdowns:{dropdown_type}:")

    def _new_unique_code(self) -> str:
        """A 10-digit code not yet used by any option."""
        while True:
            code = str(secrets.randbelow(9 * 10**9) + 10**9)
            if not self.store.unique_code_exists(code):
                return code

    def default_language_code(self) -> str:
        language = self.store.default_language()
        return language.code if language is not None else self.fallback_language

    # ------------------------------------------------------------------
    # Languages
    # ------------------------------------------------------------------

    def list_languages(self, active_only: bool = True) -> list[Language]:
        return self.store.list_languages(active_only=active_only)

    def create_language(self, code: str, name: str, is_default: bool = False, is_active: bool = True) -> Language:
        if not is_valid_language_code(code):
            raise ValidationError("language.invalid_code", code=code)
        code = code.strip().lower()
        if self.store.find_language(code) is not None:
            raise ConflictError("language.code_exists", code=code)

        # The first language always becomes the default.
        make_default = is_default or self.store.default_language() is None
        try:
            language = self.store.insert_language(
                Language(code=code, name=name.strip(), is_default=False, is_active=is_active or make_default)
            )
        except IntegrityError as e:
            raise ConflictError("language.code_exists", code=code) from e
        if make_default:
            self.store.set_default_language(language.id)
            language = self.store.find_language(code)
        self.cache.invalidate_prefix("dropdowns:")
        self.log.info("Created language %s", code)
        return language

    def update_language(
        self,
        public_id: str,
        name: str | None = None,
        is_active: bool | None = None,
        is_default: bool | None = None,
    ) -> Language:
        language = self.store.find_language_by_public_id(public_id)
        if language is None:
            raise NotFoundError("language.not_found")
        # The default moves by promoting another language, never by clearing it.
        becomes_default = is_default is True or language.is_default
        if becomes_default and is_active is False:
            raise ValidationError("language.default_required")

        fields: dict = {}
        if name is not None:
            fields["name"] = name.strip()
        if is_active is not None:
            fields["is_active"] = is_active
        elif is_default is True:
            fields["is_active"] = True
        if fields:
            self.store.update_language(language.id, **fields)
        if is_default is True and not language.is_default:
            self.store.set_default_language(language.id)
        self.cache.invalidate_prefix("dropdowns:")
        return self.store.find_language(language.code)

    # ------------------------------------------------------------------
    # Dropdown options: reads
    # ------------------------------------------------------------------

    def list_public(self, dropdown_type: str, languages: list[str]) -> tuple[str, list[DropdownOption]]:
        """Return (language_used, options) for the first language that has options.

        languages is the request's fallback chain; the configured default
        language is tried last.
        """
        key = self._key(dropdown_type)
        chain: list[str] = []
        for code in [*languages, self.default_language_code()]:
            if code not in chain:
                chain.append(code)

        for code in chain:
            cached = self.cache.get(_cache_key(key, code))
            if cached:
                return code, [DropdownOption(**item) for item in cached]
            options = self.store.list_options(key, code, active_only=True)
            if options:
                self.cache.set(_cache_key(key, code), [asdict(o) for o in options])
                return code, options
        return chain[-1], []

    def list_admin(
        self,
        dropdown_type: str,
        page: int = 1,
        limit: int = 10,
        language_code: str | None = None,
        search: str | None = None,
        is_active: bool | None = None,
    ) -> Page:
        if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(detail={"page": page, "limit": limit})
        return self.store.paginate_options(
            self._key(dropdown_type),
            page=page,
            limit=limit,
            language_code=language_code.strip().lower() if language_code else None,
            search=search,
            is_active=is_active,
        )

    def get_option(self, dropdown_type: str, public_id: str) -> DropdownOption:
        key = self._key(dropdown_type)
        option = self.store.find_option(public_id)
        if option is None or option.dropdown_type != key:
            raise NotFoundError("dropdown.not_found")
        return option

    # ------------------------------------------------------------------
    # Dropdown options: writes
    # ------------------------------------------------------------------

    def create_option(
        self,
        dropdown_type: str,
        name: str,
        unique_code: str | None = None,
        is_default: bool = False,
        is_active: bool = True,
        language_code: str | None = None,
    ) -> list[DropdownOption]:
        """Create the option in one language, or in every active language.

        Every row created by one call shares a unique_code, generated when
        the caller gives none. Passing the unique_code of an existing option
        of the same type adds a language variant to it.

        Names are unique per type across all languages and statuses; only
        the variants of the same option may repeat a name. All checks run
        before any insert, so a conflict leaves no partial rows behind.
        """
        key = self._key(dropdown_type)
        name = name.strip()
        active_codes = [lang.code for lang in self.store.list_languages(active_only=True)]
        if not active_codes:
            raise ValidationError("dropdown.no_active_languages")

        if language_code:
            code = language_code.strip().lower()
            if code not in active_codes:
                raise ValidationError("dropdown.invalid_language", code=code)
            targets = [code]
        else:
            targets = active_codes

        if unique_code:
            unique_code = unique_code.strip()
            variants = self.store.find_by_unique_code(unique_code)
            if any(v.dropdown_type != key for v in variants):
                raise ConflictError("dropdown.code_exists", code=unique_code)
            taken = sorted({v.language_code for v in variants} & set(targets))
            if taken:
                raise ConflictError("dropdown.variant_exists", code=unique_code, language=taken[0])
            if self.store.name_exists(key, None, name, exclude_unique_code=unique_code):
                raise ConflictError("dropdown.name_exists", name=name)
        else:
            if self.store.name_exists(key, None, name):
                raise ConflictError("dropdown.name_exists", name=name)
            unique_code = self._new_unique_code()

        created: list[DropdownOption] = []
        for code in targets:
            if is_default:
                self.store.clear_defaults(key, code)
            created.append(
                self.store.insert_option(
                    DropdownOption(
                        dropdown_type=key,
                        language_code=code,
                        name=name,
                        unique_code=unique_code,
                        is_default=is_default,
                        is_active=is_active,
                    )
                )
            )
        self._invalidate(key)
        self.log.info(
            "Created dropdown option '%s' (%s) for %s in %s", name, unique_code, key, ",".join(targets)
        )
        return created

    def update_option(self, dropdown_type: str, public_id: str, **changes) -> DropdownOption:
        option = self.get_option(dropdown_type, public_id)
        unknown = set(changes) - _OPTION_FIELDS
        if unknown:
            raise ValueError(f"Unknown dropdown fields: {sorted(unknown)!r}")

        if "name" in changes:
            changes["name"] = changes["name"].strip()
            if self.store.name_exists(option.dropdown_type, option.language_code, changes["name"], exclude_id=option.id):
                raise ConflictError("dropdown.name_exists", name=changes["name"])
        if changes.get("unique_code"):
            changes["unique_code"] = changes["unique_code"].strip()
            for variant in self.store.find_by_unique_code(changes["unique_code"]):
                if variant.id == option.id:
                    continue
                if variant.dropdown_type != option.dropdown_type:
                    raise ConflictError("dropdown.code_exists", code=changes["unique_code"])
                if variant.language_code == option.language_code:
                    raise ConflictError(
                        "dropdown.variant_exists", code=changes["unique_code"], language=option.language_code
                    )
        if changes.get("is_default"):
            self.store.clear_defaults(option.dropdown_type, option.language_code, exclude_id=option.id)

        if changes:
            self.store.update_option(option.id, **changes)
        self._invalidate(option.dropdown_type)
        return self.store.find_option(public_id)

    def delete_option(self, dropdown_type: str, public_id: str) -> None:
        """Soft delete: the option stops appearing in public listings."""
        option = self.get_option(dropdown_type, public_id)
        self.store.update_option(option.id, is_active=False)
        self._invalidate(option.dropdown_type)
        self.log.info("Deleted dropdown option %s from %s", public_id, option.dropdown_type)

    def delete_by_unique_code(self, dropdown_type: str, unique_code: str) -> list[DropdownOption]:
        """Permanently remove every language variant of one option.

        Refused while any variant has been picked (use_count > 0); the
        per-row soft delete stays available for those.
        """
        key = self._key(dropdown_type)
        unique_code = unique_code.strip()
        variants = self.store.find_by_unique_code(unique_code)
        if not variants:
            raise NotFoundError("dropdown.code_not_found", code=unique_code)
        if any(v.dropdown_type != key for v in variants):
            raise ValidationError("dropdown.code_type_mismatch", code=unique_code, dropdown_type=key)
        in_use = max(v.use_count for v in variants)
        if in_use > 0:
            raise ValidationError("dropdown.in_use", code=unique_code, count=in_use)

        removed = self.store.delete_by_unique_code(key, unique_code)
        self._invalidate(key)
        self.log.info("Deleted %d variant(s) of dropdown option %s from %s", removed, unique_code, key)
        return variants

    def bulk(self, dropdown_type: str, action: BulkAction, public_ids: list[str]) -> int:
        """Apply action to every id. All ids must belong to dropdown_type."""
        key = self._key(dropdown_type)
        ids = list(dict.fromkeys(public_ids))
        if not ids:
            raise ValidationError(detail={"ids": "at least one id is required"})
        found = self.store.find_options(key, ids)
        if len(found) != len(ids):
            raise ValidationError("dropdown.ids_mismatch", dropdown_type=key)

        count = self.store.set_active_many(key, ids, is_active=action == BulkAction.ACTIVATE)
        self._invalidate(key)
        self.log.info("Bulk %s on %d option(s) of %s", action.value, count, key)
        return count

    def increment_use_count(self, dropdown_type: str, public_id: str) -> None:
        """Record that an option was picked. Usage stats are non-critical:
        storage errors are logged and swallowed.
        """
        option = self.get_option(dropdown_type, public_id)
        try:
            self.store.increment_use_count(option.id)
        except SQLAlchemyError as e:
            self.log.warning("Could not increment use count for %s: %s", public_id, e)
