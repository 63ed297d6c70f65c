"""
taxonomy/store.py -- SQLAlchemy Core persistence for languages and dropdown options.

Pattern: Repository + Data Mapper.

dropdown_type values are stored in canonical form (see
core.language.normalize_taxonomy_key); the service normalizes before every
call so route parameters, rows, and cache keys agree.

Ordering:
  public listings  -- name ascending
  admin listings   -- created_at descending (newest first)

Per-row deletes are soft: is_active is cleared and the row stays for history
and use-count reporting. delete_by_unique_code is the one hard delete; it
removes every language variant of an option at once.
"""

from __future__ import annotations

import uuid
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, func, select
from sqlalchemy.engine import Engine

from core.db import make_engine, now_iso
from core.models import Page
from taxonomy.models import DropdownOption, Language

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'campaignhub.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_languages = Table(
    "languages",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("public_id", String(36), nullable=False, unique=True),
    Column("code", String(3), nullable=False, unique=True),
    Column("name", String(100), nullable=False),
    Column("is_default", Integer, nullable=False, server_default="0"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
)

_options = Table(
    "dropdown_options",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("public_id", String(36), nullable=False, unique=True),
    Column("dropdown_type", String(50), nullable=False, index=True),
    Column("language_code", String(3), nullable=False),
    Column("name", String(100), nullable=False),
    Column("unique_code", String(100)),
    Column("is_default", Integer, nullable=False, server_default="0"),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("use_count", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def _flags(fields: dict) -> dict:
    return {k: (1 if v else 0) if isinstance(v, bool) else v for k, v in fields.items()}


class TaxonomyStore:
    """Repository for Language and DropdownOption entities."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Languages
    # ------------------------------------------------------------------

    def list_languages(self, active_only: bool = False) -> list[Language]:
        query = _languages.select().order_by(_languages.c.is_default.desc(), _languages.c.code)
        if active_only:
            query = query.where(_languages.c.is_active == 1)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_language(r) for r in rows]

    def find_language(self, code: str) -> Language | None:
        with self.engine.connect() as conn:
            row = conn.execute(_languages.select().where(_languages.c.code == code)).fetchone()
        return _row_to_language(row) if row is not None else None

    def find_language_by_public_id(self, public_id: str) -> Language | None:
        with self.engine.connect() as conn:
            row = conn.execute(_languages.select().where(_languages.c.public_id == public_id)).fetchone()
        return _row_to_language(row) if row is not None else None

    def default_language(self) -> Language | None:
        with self.engine.connect() as conn:
            row = conn.execute(_languages.select().where(_languages.c.is_default == 1)).fetchone()
        return _row_to_language(row) if row is not None else None

    def insert_language(self, language: Language) -> Language:
        """Insert a language. Raises IntegrityError if the code already exists."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _languages.insert().values(
                    public_id=language.public_id or str(uuid.uuid4()),
                    code=language.code,
                    name=language.name,
                    is_default=1 if language.is_default else 0,
                    is_active=1 if language.is_active else 0,
                    created_at=now_iso(),
                )
            )
            conn.commit()
            row = conn.execute(_languages.select().where(_languages.c.id == result.inserted_primary_key[0])).fetchone()
        return _row_to_language(row)

    def update_language(self, language_id: int, **fields) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_languages.update().where(_languages.c.id == language_id).values(**_flags(fields)))
            conn.commit()
        return result.rowcount > 0

    def set_default_language(self, language_id: int) -> None:
        """Make language_id the only default, in one transaction."""
        with self.engine.connect() as conn:
            conn.execute(_languages.update().where(_languages.c.id != language_id).values(is_default=0))
            conn.execute(_languages.update().where(_languages.c.id == language_id).values(is_default=1))
            conn.commit()

    # ------------------------------------------------------------------
    # Dropdown options
    # ------------------------------------------------------------------

    def insert_option(self, option: DropdownOption) -> DropdownOption:
        stamp = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _options.insert().values(
                    public_id=option.public_id or str(uuid.uuid4()),
                    dropdown_type=option.dropdown_type,
                    language_code=option.language_code,
                    name=option.name,
                    unique_code=option.unique_code,
                    is_default=1 if option.is_default else 0,
                    is_active=1 if option.is_active else 0,
                    use_count=option.use_count,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
            row = conn.execute(_options.select().where(_options.c.id == result.inserted_primary_key[0])).fetchone()
        return _row_to_option(row)

    def find_option(self, public_id: str) -> DropdownOption | None:
        with self.engine.connect() as conn:
            row = conn.execute(_options.select().where(_options.c.public_id == public_id)).fetchone()
        return _row_to_option(row) if row is not None else None

    def find_options(self, dropdown_type: str, public_ids: list[str]) -> list[DropdownOption]:
        """Return the options among public_ids that belong to dropdown_type."""
        if not public_ids:
            return []
        with self.engine.connect() as conn:
            rows = conn.execute(
                _options.select().where(
                    (_options.c.dropdown_type == dropdown_type) & (_options.c.public_id.in_(public_ids))
                )
            ).fetchall()
        return [_row_to_option(r) for r in rows]

    def list_options(self, dropdown_type: str, language_code: str, active_only: bool = True) -> list[DropdownOption]:
        """Options of one type in one language, ordered by name."""
        criteria = [_options.c.dropdown_type == dropdown_type, _options.c.language_code == language_code]
        if active_only:
            criteria.append(_options.c.is_active == 1)
        with self.engine.connect() as conn:
            rows = conn.execute(
                _options.select().where(*criteria).order_by(func.lower(_options.c.name), _options.c.id)
            ).fetchall()
        return [_row_to_option(r) for r in rows]

    def paginate_options(
        self,
        dropdown_type: str,
        page: int = 1,
        limit: int = 10,
        language_code: str | None = None,
        search: str | None = None,
        is_active: bool | None = None,
    ) -> Page:
        criteria = [_options.c.dropdown_type == dropdown_type]
        if language_code:
            criteria.append(_options.c.language_code == language_code)
        if search:
            criteria.append(_options.c.name.ilike(f"%{search.strip()}%"))
        if is_active is not None:
            criteria.append(_options.c.is_active == (1 if is_active else 0))

        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_options).where(*criteria)).scalar() or 0
            rows = conn.execute(
                _options.select()
                .where(*criteria)
                .order_by(_options.c.created_at.desc(), _options.c.id.desc())
                .limit(limit)
                .offset((page - 1) * limit)
            ).fetchall()
        return Page(items=[_row_to_option(r) for r in rows], total=total, page=page, limit=limit)

    def name_exists(
        self,
        dropdown_type: str,
        language_code: str | None,
        name: str,
        exclude_id: int | None = None,
        exclude_unique_code: str | None = None,
    ) -> bool:
        """Case-insensitive duplicate check, active and inactive rows alike.

        language_code=None searches every language of the type.
        exclude_unique_code skips the other language variants of one option.
        """
        criteria = [
            _options.c.dropdown_type == dropdown_type,
            func.lower(_options.c.name) == name.strip().lower(),
        ]
        if language_code is not None:
            criteria.append(_options.c.language_code == language_code)
        if exclude_id is not None:
            criteria.append(_options.c.id != exclude_id)
        if exclude_unique_code is not None:
            criteria.append(
                (_options.c.unique_code.is_(None)) | (_options.c.unique_code != exclude_unique_code)
            )
        with self.engine.connect() as conn:
            count = conn.execute(select(func.count()).select_from(_options).where(*criteria)).scalar()
        return (count or 0) > 0

    def clear_defaults(self, dropdown_type: str, language_code: str, exclude_id: int | None = None) -> None:
        criteria = [_options.c.dropdown_type == dropdown_type, _options.c.language_code == language_code]
        if exclude_id is not None:
            criteria.append(_options.c.id != exclude_id)
        with self.engine.connect() as conn:
            conn.execute(_options.update().where(*criteria).values(is_default=0, updated_at=now_iso()))
            conn.commit()

    def update_option(self, option_id: int, **fields) -> bool:
        values = _flags(fields)
        values["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_options.update().where(_options.c.id == option_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def set_active_many(self, dropdown_type: str, public_ids: list[str], is_active: bool) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(
                _options.update()
                .where((_options.c.dropdown_type == dropdown_type) & (_options.c.public_id.in_(public_ids)))
                .values(is_active=1 if is_active else 0, updated_at=now_iso())
            )
            conn.commit()
        return result.rowcount

    def find_by_unique_code(self, unique_code: str) -> list[DropdownOption]:
        """Every language variant sharing unique_code, across all types."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                _options.select().where(_options.c.unique_code == unique_code).order_by(_options.c.id)
            ).fetchall()
        return [_row_to_option(r) for r in rows]

    def unique_code_exists(self, unique_code: str) -> bool:
        with self.engine.connect() as conn:
            count = conn.execute(
                select(func.count()).select_from(_options).where(_options.c.unique_code == unique_code)
            ).scalar()
        return (count or 0) > 0

    def delete_by_unique_code(self, dropdown_type: str, unique_code: str) -> int:
        """Hard delete every variant of one option. Returns the number of rows removed."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _options.delete().where(
                    (_options.c.dropdown_type == dropdown_type) & (_options.c.unique_code == unique_code)
                )
            )
            conn.commit()
        return result.rowcount

    def increment_use_count(self, option_id: int) -> None:
        with self.engine.connect() as conn:
            conn.execute(
                _options.update().where(_options.c.id == option_id).values(use_count=_options.c.use_count + 1)
            )
            conn.commit()

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_language(row) -> Language:
    return Language(
        id=row.id,
        public_id=row.public_id,
        code=row.code,
        name=row.name,
        is_default=bool(row.is_default),
        is_active=bool(row.is_active),
        created_at=row.created_at,
    )


def _row_to_option(row) -> DropdownOption:
    return DropdownOption(
        id=row.id,
        public_id=row.public_id,
        dropdown_type=row.dropdown_type,
        language_code=row.language_code,
        name=row.name,
        unique_code=row.unique_code,
        is_default=bool(row.is_default),
        is_active=bool(row.is_active),
        use_count=row.use_count,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
