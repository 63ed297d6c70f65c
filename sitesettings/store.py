"""
sitesettings/store.py -- SQLAlchemy Core persistence for site settings.

Pattern: Repository + Data Mapper. UNIQUE(group_type, setting_key) keeps one
row per key; upsert() updates in place when the row exists.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, UniqueConstraint
from sqlalchemy.engine import Engine

from core.db import make_engine, now_iso
from sitesettings.models import RecordType, SiteSetting

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'campaignhub.db'}"

_metadata = MetaData()

_settings = Table(
    "site_settings",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("group_type", String(100), nullable=False, index=True),
    Column("setting_key", String(100), nullable=False),
    Column("value", Text),
    Column("record_type", String(10), nullable=False, server_default=RecordType.STRING.value),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    UniqueConstraint("group_type", "setting_key", name="uq_site_settings_group_key"),
)


class SettingsStore:
    """Repository for SiteSetting entities."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def list_group(self, group_type: str) -> list[SiteSetting]:
        with self.engine.connect() as conn:
            rows = conn.execute(
                _settings.select().where(_settings.c.group_type == group_type).order_by(_settings.c.setting_key)
            ).fetchall()
        return [_row_to_setting(r) for r in rows]

    def find(self, group_type: str, key: str) -> SiteSetting | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                _settings.select().where((_settings.c.group_type == group_type) & (_settings.c.setting_key == key))
            ).fetchone()
        return _row_to_setting(row) if row is not None else None

    def upsert(self, group_type: str, key: str, value: str | None, record_type: RecordType) -> SiteSetting:
        """Insert or update the (group_type, key) row in one transaction."""
        stamp = now_iso()
        where = (_settings.c.group_type == group_type) & (_settings.c.setting_key == key)
        with self.engine.connect() as conn:
            result = conn.execute(
                _settings.update().where(where).values(value=value, record_type=record_type.value, updated_at=stamp)
            )
            if result.rowcount == 0:
                conn.execute(
                    _settings.insert().values(
                        group_type=group_type,
                        setting_key=key,
                        value=value,
                        record_type=record_type.value,
                        created_at=stamp,
                        updated_at=stamp,
                    )
                )
            conn.commit()
            row = conn.execute(_settings.select().where(where)).fetchone()
        return _row_to_setting(row)

    def delete(self, group_type: str, key: str) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(
                _settings.delete().where((_settings.c.group_type == group_type) & (_settings.c.setting_key == key))
            )
            conn.commit()
        return result.rowcount > 0

    def delete_group(self, group_type: str) -> list[SiteSetting]:
        """Delete every setting in the group and return the removed rows."""
        removed = self.list_group(group_type)
        with self.engine.connect() as conn:
            conn.execute(_settings.delete().where(_settings.c.group_type == group_type))
            conn.commit()
        return removed

    def close(self) -> None:
        self.engine.dispose()


def _row_to_setting(row) -> SiteSetting:
    return SiteSetting(
        id=row.id,
        group_type=row.group_type,
        key=row.setting_key,
        value=row.value,
        record_type=RecordType(row.record_type),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
