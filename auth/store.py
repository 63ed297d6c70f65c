"""
auth/store.py -- SQLAlchemy Core persistence layer for user and admin accounts.

Pattern: Repository + Data Mapper.
UserStore and AdminStore are the repositories; _row_to_user / _row_to_admin
are the mappers. Services never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Token columns hold SHA-256 digests only, never raw tokens.

  Single-use tokens: activate() and update_password() clear the token columns
  in the same UPDATE that performs the state change, and both filter on the
  digest being consumed. Two concurrent requests presenting the same token
  cannot both succeed -- the second UPDATE matches zero rows.

  Email uniqueness is a UNIQUE constraint. insert() and update() let
  sqlalchemy.exc.IntegrityError propagate; services map it to ConflictError.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, or_, select
from sqlalchemy.engine import Engine

from auth.models import AccountStatus, Admin, OutsideLink, User
from core.db import make_engine, now_iso, parse_iso, to_iso
from core.models import Page

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'campaignhub.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("public_id", String(36), nullable=False, unique=True),
    Column("first_name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("slug", String(150), nullable=False, unique=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("status", String(16), nullable=False, server_default=AccountStatus.PENDING.value),
    Column("phone_number", String(30)),
    Column("location", String(255)),
    Column("zipcode", String(20)),
    Column("about", Text),
    Column("outside_links", Text),  # JSON list of {"title", "url"}
    Column("photo", Text),
    Column("cover_photo", Text),
    Column("signup_ip", String(64)),
    Column("login_ip", String(64)),
    Column("activation_token_hash", String(64), index=True),
    Column("activation_expires_at", String(32)),
    Column("reset_token_hash", String(64), index=True),
    Column("reset_expires_at", String(32)),
    Column("password_changed_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_admins = Table(
    "admins",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("public_id", String(36), nullable=False, unique=True),
    Column("first_name", String(50), nullable=False),
    Column("last_name", String(50), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("photo", Text),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("two_factor_verified", Integer, nullable=False, server_default="0"),
    Column("login_ip", String(64)),
    Column("current_login_at", String(32)),
    Column("last_login_at", String(32)),
    Column("reset_token_hash", String(64), index=True),
    Column("reset_expires_at", String(32)),
    Column("password_changed_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


def _prepare(fields: dict) -> dict:
    """Convert domain values into column values for an UPDATE."""
    values = dict(fields)
    for name, value in fields.items():
        if isinstance(value, datetime):
            values[name] = to_iso(value)
        elif isinstance(value, AccountStatus):
            values[name] = value.value
        elif isinstance(value, bool):
            values[name] = 1 if value else 0
    if "outside_links" in values:
        values["outside_links"] = _dump_links(values["outside_links"])
    values["updated_at"] = now_iso()
    return values


def _dump_links(links) -> str | None:
    if links is None:
        return None
    return json.dumps(
        [{"title": link.title, "url": link.url} if isinstance(link, OutsideLink) else dict(link) for link in links]
    )


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///campaignhub.db")
        user = store.insert(User(first_name="Ada", ...))
        store.find_by_email("ada@example.com")
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine, tables=[_users])

    def ping(self) -> bool:
        """Cheap connectivity probe for the health endpoint."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def insert(self, user: User) -> User:
        """Insert a new user and return it with id, public_id and timestamps set.

        Raises sqlalchemy.exc.IntegrityError if the email or slug already exists.
        """
        stamp = now_iso()
        public_id = user.public_id or str(uuid.uuid4())
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    public_id=public_id,
                    first_name=user.first_name,
                    last_name=user.last_name,
                    slug=user.slug,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    status=user.status.value,
                    phone_number=user.phone_number,
                    location=user.location,
                    zipcode=user.zipcode,
                    about=user.about,
                    outside_links=_dump_links(user.outside_links),
                    photo=user.photo,
                    cover_photo=user.cover_photo,
                    signup_ip=user.signup_ip,
                    login_ip=user.login_ip,
                    activation_token_hash=user.activation_token_hash,
                    activation_expires_at=to_iso(user.activation_expires_at),
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
            user_id = result.inserted_primary_key[0]
        return self.find_by_id(user_id)

    def _find_one(self, *criteria) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(*criteria)).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: int) -> User | None:
        return self._find_one(_users.c.id == user_id)

    def find_by_public_id(self, public_id: str) -> User | None:
        return self._find_one(_users.c.public_id == public_id)

    def find_by_email(self, email: str) -> User | None:
        """Look up a user by email. Callers pass the normalized (lowercased) form."""
        return self._find_one(_users.c.email == email)

    def find_by_slug(self, slug: str) -> User | None:
        return self._find_one(_users.c.slug == slug)

    def find_by_activation_token(self, token_hash: str) -> User | None:
        return self._find_one(_users.c.activation_token_hash == token_hash)

    def find_by_reset_token(self, token_hash: str) -> User | None:
        return self._find_one(_users.c.reset_token_hash == token_hash)

    def update(self, user_id: int, **fields) -> bool:
        """Update mutable profile fields. Returns True if a row was updated.

        Raises sqlalchemy.exc.IntegrityError on a duplicate email or slug.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**_prepare(fields)))
            conn.commit()
        return result.rowcount > 0

    def activate(self, user_id: int, token_hash: str) -> bool:
        """Mark the account ACTIVE and consume its activation token atomically.

        Returns False if the token was already consumed by another request.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.activation_token_hash == token_hash))
                .values(
                    status=AccountStatus.ACTIVE.value,
                    activation_token_hash=None,
                    activation_expires_at=None,
                    updated_at=now_iso(),
                )
            )
            conn.commit()
        return result.rowcount > 0

    def set_reset_token(self, user_id: int, token_hash: str, expires_at: datetime) -> None:
        """Store a pending reset credential, replacing any previous one."""
        self.update(user_id, reset_token_hash=token_hash, reset_expires_at=expires_at)

    def update_password(self, user_id: int, hashed_password: str, consumed_reset_hash: str | None = None) -> bool:
        """Replace the password hash and clear any pending reset token.

        When consumed_reset_hash is given the UPDATE only matches while that
        digest is still stored, making reset tokens single-use under races.
        """
        criteria = [_users.c.id == user_id]
        if consumed_reset_hash is not None:
            criteria.append(_users.c.reset_token_hash == consumed_reset_hash)
        stamp = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(*criteria)
                .values(
                    hashed_password=hashed_password,
                    reset_token_hash=None,
                    reset_expires_at=None,
                    password_changed_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
        return result.rowcount > 0

    def deactivate(self, user_id: int) -> bool:
        return self.update(user_id, status=AccountStatus.INACTIVE)

    def delete_by_id(self, user_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Admins
# ---------------------------------------------------------------------------


class AdminStore:
    """Repository for Admin entities."""

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine, tables=[_admins])

    def has_admins(self) -> bool:
        """Return True if at least one admin record exists.

        The CLI uses this to warn when the first admin still needs creating.
        """
        with self.engine.connect() as conn:
            count = conn.execute(select(func.count()).select_from(_admins)).scalar()
        return (count or 0) > 0

    def insert(self, admin: Admin) -> Admin:
        """Insert a new admin. Raises IntegrityError if the email already exists."""
        stamp = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _admins.insert().values(
                    public_id=admin.public_id or str(uuid.uuid4()),
                    first_name=admin.first_name,
                    last_name=admin.last_name,
                    email=admin.email,
                    hashed_password=admin.hashed_password,
                    photo=admin.photo,
                    is_active=1 if admin.is_active else 0,
                    two_factor_verified=1 if admin.two_factor_verified else 0,
                    created_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
            admin_id = result.inserted_primary_key[0]
        return self.find_by_id(admin_id)

    def _find_one(self, *criteria) -> Admin | None:
        with self.engine.connect() as conn:
            row = conn.execute(_admins.select().where(*criteria)).fetchone()
        return _row_to_admin(row) if row is not None else None

    def find_by_id(self, admin_id: int) -> Admin | None:
        return self._find_one(_admins.c.id == admin_id)

    def find_by_public_id(self, public_id: str) -> Admin | None:
        return self._find_one(_admins.c.public_id == public_id)

    def find_by_email(self, email: str) -> Admin | None:
        return self._find_one(_admins.c.email == email)

    def find_by_reset_token(self, token_hash: str) -> Admin | None:
        return self._find_one(_admins.c.reset_token_hash == token_hash)

    def paginate(
        self,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
        is_active: bool | None = None,
    ) -> Page:
        """Return one page of admins, newest first.

        search matches first name, last name, or email (case-insensitive
        substring). is_active filters on the flag when not None.
        """
        criteria = []
        if search:
            pattern = f"%{search.strip()}%"
            criteria.append(
                or_(
                    _admins.c.first_name.ilike(pattern),
                    _admins.c.last_name.ilike(pattern),
                    _admins.c.email.ilike(pattern),
                )
            )
        if is_active is not None:
            criteria.append(_admins.c.is_active == (1 if is_active else 0))

        with self.engine.connect() as conn:
            total = conn.execute(select(func.count()).select_from(_admins).where(*criteria)).scalar() or 0
            rows = conn.execute(
                _admins.select()
                .where(*criteria)
                .order_by(_admins.c.created_at.desc(), _admins.c.id.desc())
                .limit(limit)
                .offset((page - 1) * limit)
            ).fetchall()
        return Page(items=[_row_to_admin(r) for r in rows], total=total, page=page, limit=limit)

    def update(self, admin_id: int, **fields) -> bool:
        """Update mutable admin fields. Raises IntegrityError on a duplicate email."""
        with self.engine.connect() as conn:
            result = conn.execute(_admins.update().where(_admins.c.id == admin_id).values(**_prepare(fields)))
            conn.commit()
        return result.rowcount > 0

    def record_login(self, admin: Admin, ip_address: str | None) -> None:
        """Shift current_login_at into last_login_at and stamp the new login."""
        self.update(
            admin.id,
            last_login_at=admin.current_login_at,
            current_login_at=datetime.now(timezone.utc),
            login_ip=ip_address,
        )

    def set_reset_token(self, admin_id: int, token_hash: str, expires_at: datetime) -> None:
        self.update(admin_id, reset_token_hash=token_hash, reset_expires_at=expires_at)

    def update_password(self, admin_id: int, hashed_password: str, consumed_reset_hash: str | None = None) -> bool:
        """Replace the password hash and clear reset fields (see UserStore.update_password)."""
        criteria = [_admins.c.id == admin_id]
        if consumed_reset_hash is not None:
            criteria.append(_admins.c.reset_token_hash == consumed_reset_hash)
        stamp = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _admins.update()
                .where(*criteria)
                .values(
                    hashed_password=hashed_password,
                    reset_token_hash=None,
                    reset_expires_at=None,
                    password_changed_at=stamp,
                    updated_at=stamp,
                )
            )
            conn.commit()
        return result.rowcount > 0

    def delete_by_id(self, admin_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_admins.delete().where(_admins.c.id == admin_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    links = json.loads(row.outside_links) if row.outside_links else []
    return User(
        id=row.id,
        public_id=row.public_id,
        first_name=row.first_name,
        last_name=row.last_name,
        slug=row.slug,
        email=row.email,
        hashed_password=row.hashed_password,
        status=AccountStatus(row.status),
        phone_number=row.phone_number,
        location=row.location,
        zipcode=row.zipcode,
        about=row.about,
        outside_links=[OutsideLink(title=link["title"], url=link["url"]) for link in links],
        photo=row.photo,
        cover_photo=row.cover_photo,
        signup_ip=row.signup_ip,
        login_ip=row.login_ip,
        activation_token_hash=row.activation_token_hash,
        activation_expires_at=parse_iso(row.activation_expires_at),
        reset_token_hash=row.reset_token_hash,
        reset_expires_at=parse_iso(row.reset_expires_at),
        password_changed_at=parse_iso(row.password_changed_at),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_admin(row) -> Admin:
    return Admin(
        id=row.id,
        public_id=row.public_id,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
        hashed_password=row.hashed_password,
        photo=row.photo,
        is_active=bool(row.is_active),
        two_factor_verified=bool(row.two_factor_verified),
        login_ip=row.login_ip,
        current_login_at=row.current_login_at,
        last_login_at=row.last_login_at,
        reset_token_hash=row.reset_token_hash,
        reset_expires_at=parse_iso(row.reset_expires_at),
        password_changed_at=parse_iso(row.password_changed_at),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
