"""
sitesettings/service.py -- Grouped key/value settings with file uploads.

A settings form posts a group ("site", "branding", ...) with any mix of text
fields and files. Text fields become STRING settings; files are stored through
LocalFileStorage and become FILE settings holding the stored path. Replacing
or deleting a FILE setting removes the old file on a best-effort basis.

Reads are served from LookupCache under settings:{group}:all and
settings:{group}:{key}; every write to a group invalidates that group.

Group types: letters, digits, hyphen, underscore, 1-100 characters; stored
trimmed and lowercased. Setting keys follow the same character rule but keep
their case.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict

from cache.store import LookupCache
from core.errors import DependencyFailureError, NotFoundError, ValidationError
from sitesettings.models import RecordType, SiteSetting
from sitesettings.store import SettingsStore
from storage.files import LocalFileStorage, UploadedFile, validate_upload

_NAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_MAX_NAME_LENGTH = 100


def validate_group_type(raw: str | None) -> bool:
    if not raw or not isinstance(raw, str):
        return False
    value = raw.strip()
    return 1 <= len(value) <= _MAX_NAME_LENGTH and bool(_NAME_RE.match(value))


def normalize_group_type(raw: str) -> str:
    return raw.strip().lower()


def validate_setting_key(raw: str | None) -> bool:
    return validate_group_type(raw)


def _serialize(settings: list[SiteSetting]) -> list[dict]:
    return [asdict(s) | {"record_type": s.record_type.value} for s in settings]


def _deserialize(items: list[dict]) -> list[SiteSetting]:
    return [SiteSetting(**(item | {"record_type": RecordType(item["record_type"])})) for item in items]


class SettingsService:
    def __init__(
        self,
        store: SettingsStore,
        cache: LookupCache,
        storage: LocalFileStorage,
        max_upload_bytes: int = 5 * 1024 * 1024,
        logger: logging.Logger | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.storage = storage
        self.max_upload_bytes = max_upload_bytes
        self.log = logger or logging.getLogger("campaignhub.settings")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _group(group_type: str) -> str:
        if not validate_group_type(group_type):
            raise ValidationError("settings.invalid_group_type", value=group_type)
        return normalize_group_type(group_type)

    @staticmethod
    def _check_key(key: str) -> str:
        if not validate_setting_key(key):
            raise ValidationError("settings.invalid_key", value=key)
        return key.strip()

    def _invalidate(self, group: str) -> None:
        self.cache.invalidate_prefix(f"settings:{group}:")

    def _discard_file(self, setting: SiteSetting | None) -> None:
        """Best-effort removal of the file behind a FILE setting."""
        if setting is None or setting.record_type != RecordType.FILE or not setting.value:
            return
        try:
            self.storage.delete_file(setting.value)
        except (OSError, ValueError) as e:
            self.log.warning("Could not delete settings file %s: %s", setting.value, e)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_group(self, group_type: str) -> list[SiteSetting]:
        group = self._group(group_type)
        cache_key = f"settings:{group}:all"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return _deserialize(cached)
        settings = self.store.list_group(group)
        self.cache.set(cache_key, _serialize(settings))
        return settings

    def get_setting(self, group_type: str, key: str) -> SiteSetting:
        group = self._group(group_type)
        key = self._check_key(key)
        cache_key = f"settings:{group}:{key}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return _deserialize([cached])[0]
        setting = self.store.find(group, key)
        if setting is None:
            raise NotFoundError("settings.not_found")
        self.cache.set(cache_key, _serialize([setting])[0])
        return setting

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_form(
        self,
        group_type: str,
        fields: dict[str, str],
        files: dict[str, UploadedFile] | None = None,
    ) -> list[SiteSetting]:
        """Upsert every text field and file of a settings form.

        Keys and uploads are validated before anything is written. A storage
        failure raises DependencyFailureError; settings saved before the
        failure stay saved.
        """
        group = self._group(group_type)
        files = files or {}
        text_fields = {self._check_key(k): v for k, v in fields.items()}
        uploads = {self._check_key(k): v for k, v in files.items()}
        for upload in uploads.values():
            validate_upload(upload, self.max_upload_bytes)

        try:
            for key, value in text_fields.items():
                previous = self.store.find(group, key)
                self.store.upsert(group, key, value, RecordType.STRING)
                self._discard_file(previous)

            for key, upload in uploads.items():
                previous = self.store.find(group, key)
                try:
                    path = self.storage.save(upload.data, upload.filename, folder=f"settings/{group}")
                except OSError as e:
                    self.log.error("Storing file for setting %s.%s failed: %s", group, key, e)
                    raise DependencyFailureError("settings.file_upload_failed") from e
                self.store.upsert(group, key, path, RecordType.FILE)
                self._discard_file(previous)
        finally:
            self._invalidate(group)

        self.log.info("Saved %d setting(s) in group %s", len(text_fields) + len(uploads), group)
        return self.store.list_group(group)

    def update_setting(self, group_type: str, key: str, value: str) -> SiteSetting:
        group = self._group(group_type)
        key = self._check_key(key)
        previous = self.store.find(group, key)
        setting = self.store.upsert(group, key, value, RecordType.STRING)
        self._discard_file(previous)
        self._invalidate(group)
        return setting

    def delete_setting(self, group_type: str, key: str) -> None:
        group = self._group(group_type)
        key = self._check_key(key)
        setting = self.store.find(group, key)
        if setting is None:
            raise NotFoundError("settings.not_found")
        self.store.delete(group, key)
        self._discard_file(setting)
        self._invalidate(group)
        self.log.info("Deleted setting %s.%s", group, key)

    def delete_group(self, group_type: str) -> int:
        group = self._group(group_type)
        removed = self.store.delete_group(group)
        for setting in removed:
            self._discard_file(setting)
        self._invalidate(group)
        self.log.info("Deleted %d setting(s) in group %s", len(removed), group)
        return len(removed)

    # ------------------------------------------------------------------
    # Cache administration
    # ------------------------------------------------------------------

    def clear_cache(self, group_type: str | None = None) -> int:
        """Drop cached settings for one group, or for every group when None."""
        if group_type is None:
            removed = self.cache.invalidate_prefix("settings:")
            self.log.info("Cleared %d cached settings entries", removed)
            return removed
        group = self._group(group_type)
        removed = self.cache.invalidate_prefix(f"settings:{group}:")
        self.log.info("Cleared %d cached settings entries for group %s", removed, group)
        return removed

    def cache_stats(self) -> dict:
        return self.cache.stats()
