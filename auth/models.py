"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores map rows to
these classes; services mutate state through store methods; api/models.py
projects them into response-safe shapes.

Secret material (hashed_password, *_token_hash) lives only on these domain
objects. No response model declares those fields, so they cannot be
serialized by accident.

Layer rule: no imports from api/, taxonomy/, sitesettings/, or cache/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class AccountStatus(str, Enum):
    """Credential state of a user account.

    PENDING  -- registered, activation link not yet used
    ACTIVE   -- may authenticate
    INACTIVE -- deactivated; admits no further authentication
    """

    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


class TokenPurpose(str, Enum):
    ACTIVATION = "activation"
    PASSWORD_RESET = "password_reset"


@dataclass(frozen=True)
class IssuedToken:
    """A freshly issued one-time credential.

    raw is handed to the mailer and then dropped. Only hashed (and
    expires_at) are ever written to the database.
    """

    raw: str
    hashed: str
    expires_at: datetime
    purpose: TokenPurpose


@dataclass
class OutsideLink:
    title: str
    url: str


@dataclass
class User:
    """A platform member who signs up through the public registration flow."""

    first_name: str
    last_name: str
    email: str
    hashed_password: str
    slug: str
    id: int | None = None
    public_id: str | None = None
    status: AccountStatus = AccountStatus.PENDING
    phone_number: str | None = None
    location: str | None = None
    zipcode: str | None = None
    about: str | None = None
    outside_links: list[OutsideLink] = field(default_factory=list)
    photo: str | None = None
    cover_photo: str | None = None
    signup_ip: str | None = None
    login_ip: str | None = None
    activation_token_hash: str | None = None
    activation_expires_at: datetime | None = None
    reset_token_hash: str | None = None
    reset_expires_at: datetime | None = None
    password_changed_at: datetime | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE


@dataclass
class Admin:
    """A back-office operator. Admins are created by other admins or the CLI."""

    first_name: str
    last_name: str
    email: str
    hashed_password: str
    id: int | None = None
    public_id: str | None = None
    photo: str | None = None
    is_active: bool = True
    two_factor_verified: bool = False
    login_ip: str | None = None
    current_login_at: str | None = None
    last_login_at: str | None = None
    reset_token_hash: str | None = None
    reset_expires_at: datetime | None = None
    password_changed_at: datetime | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

