"""
auth/accounts.py -- Public user account lifecycle.

AccountService drives the credential state machine for platform users:

    register()          -> PENDING, activation token issued and emailed
    activate(token)     PENDING -> ACTIVE, token consumed
    login()             ACTIVE only; returns a session claim
    forgot_password()   stores a pending reset token (status unchanged)
    reset_password()    consumes the reset token, replaces the password
    deactivate()        -> INACTIVE, no further authentication

Failure policy:
  - Unknown email at login and wrong password raise the same
    InvalidCredentialsError.
  - forgot_password() on an unknown email returns normally.
  - Token failures (missing, mismatched, expired, already used) all raise
    InvalidOrExpiredTokenError.
  - An activation email that cannot be sent is logged; the account stays
    registered. A reset email that cannot be sent raises DependencyFailureError.
"""

from __future__ import annotations

import logging
import secrets
import time

from sqlalchemy.exc import IntegrityError

from auth.mailer import Mailer
from auth.models import AccountStatus, OutsideLink, TokenPurpose, User
from auth.store import UserStore
from auth.tokens import (
    authenticate_credentials,
    create_session_token,
    hash_password,
    hash_token,
    issue_token,
    verify_password,
    verify_token,
)
from core.errors import (
    ConflictError,
    DependencyFailureError,
    InactiveAccountError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    NotFoundError,
    PasswordMismatchError,
)
from core.text import normalize_email, slugify

_PROFILE_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "email",
        "phone_number",
        "location",
        "zipcode",
        "about",
        "outside_links",
        "photo",
        "cover_photo",
    }
)

# Both email and slug are unique columns; a slug lost to a concurrent insert
# is regenerated this many times before the error propagates.
_SLUG_ATTEMPTS = 3


class AccountService:
    """User registration, activation, login, password recovery, and profile."""

    def __init__(
        self,
        users: UserStore,
        mailer: Mailer,
        session_expire_seconds: int = 0,
        logger: logging.Logger | None = None,
    ) -> None:
        self.users = users
        self.mailer = mailer
        self.session_expire_seconds = session_expire_seconds
        self.log = logger or logging.getLogger("campaignhub.auth")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _make_slug(self, first_name: str, last_name: str) -> str:
        """Name slug plus five digits of the millisecond clock, e.g. "ada-lovelace-48213"."""
        base = slugify(f"{first_name} {last_name}", fallback="user")
        slug = f"{base}-{str(time.time_ns() // 1_000_000)[7:12]}"
        if self.users.find_by_slug(slug) is not None:
            slug = f"{slug}-{secrets.token_hex(2)}"
        return slug

    def _require(self, user_id: int) -> User:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("user.not_found")
        return user

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def register(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        ip_address: str | None = None,
        phone_number: str | None = None,
        location: str | None = None,
        zipcode: str | None = None,
        about: str | None = None,
        outside_links: list[OutsideLink] | None = None,
    ) -> User:
        """Create a PENDING account and email its activation link."""
        email = normalize_email(email)
        if self.users.find_by_email(email) is not None:
            raise ConflictError("auth.email_already_exists")

        token = issue_token(TokenPurpose.ACTIVATION)
        candidate = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            hashed_password=hash_password(password),
            slug=self._make_slug(first_name, last_name),
            status=AccountStatus.PENDING,
            phone_number=phone_number,
            location=location,
            zipcode=zipcode,
            about=about,
            outside_links=list(outside_links or []),
            signup_ip=ip_address,
            login_ip=ip_address,
            activation_token_hash=token.hashed,
            activation_expires_at=token.expires_at,
        )
        for attempt in range(_SLUG_ATTEMPTS):
            try:
                user = self.users.insert(candidate)
                break
            except IntegrityError as e:
                if self.users.find_by_email(email) is not None:
                    # A concurrent registration won the race for this email.
                    raise ConflictError("auth.email_already_exists") from e
                if attempt == _SLUG_ATTEMPTS - 1:
                    raise
                self.log.info("Slug %s already taken; generating another", candidate.slug)
                candidate.slug = self._make_slug(first_name, last_name)
        self.log.info("Registered user %s (pending activation)", user.public_id)

        try:
            self.mailer.send_activation_email(user.email, token.raw, user.full_name)
        except DependencyFailureError:
            self.log.warning("Activation email for user %s was not delivered", user.public_id)
        return user

    def activate(self, raw_token: str) -> User:
        """Consume an activation token and mark the account ACTIVE."""
        user = self.users.find_by_activation_token(hash_token(raw_token)) if raw_token else None
        if user is None or not verify_token(
            raw_token, user.activation_token_hash, TokenPurpose.ACTIVATION, user.activation_expires_at
        ):
            raise InvalidOrExpiredTokenError()
        if not self.users.activate(user.id, user.activation_token_hash):
            raise InvalidOrExpiredTokenError()
        self.log.info("Activated user %s", user.public_id)
        return self._require(user.id)

    def login(self, email: str, password: str, ip_address: str | None = None) -> tuple[str, User]:
        """Verify credentials and return (session_token, user)."""
        user = authenticate_credentials(self.users, normalize_email(email), password)
        if user is None:
            raise InvalidCredentialsError()
        if user.status == AccountStatus.PENDING:
            raise InactiveAccountError("auth.account_not_activated")
        if user.status != AccountStatus.ACTIVE:
            raise InactiveAccountError()

        self.users.update(user.id, login_ip=ip_address)
        token = create_session_token(
            user.id,
            {"email": user.email, "type": "user"},
            expire_seconds=self.session_expire_seconds,
        )
        self.log.info("User %s logged in from %s", user.public_id, ip_address or "unknown")
        return token, self._require(user.id)

    def logout(self, user: User) -> None:
        # Session claims are stateless; logout is recorded for auditing only.
        self.log.info("User %s logged out", user.public_id)

    def forgot_password(self, email: str) -> None:
        """Store a reset token and email it. Silent for unknown emails."""
        user = self.users.find_by_email(normalize_email(email))
        if user is None:
            self.log.info("Password reset requested for an unknown email")
            return

        token = issue_token(TokenPurpose.PASSWORD_RESET)
        self.users.set_reset_token(user.id, token.hashed, token.expires_at)
        try:
            self.mailer.send_password_reset_email(user.email, token.raw, user.full_name)
        except DependencyFailureError as e:
            raise DependencyFailureError("auth.password_reset_email_failed", detail=e.detail) from e
        self.log.info("Password reset issued for user %s", user.public_id)

    def reset_password(self, raw_token: str, new_password: str) -> None:
        """Consume a reset token and replace the password."""
        user = self.users.find_by_reset_token(hash_token(raw_token)) if raw_token else None
        if user is None or not verify_token(
            raw_token, user.reset_token_hash, TokenPurpose.PASSWORD_RESET, user.reset_expires_at
        ):
            raise InvalidOrExpiredTokenError()
        if not self.users.update_password(user.id, hash_password(new_password), consumed_reset_hash=user.reset_token_hash):
            raise InvalidOrExpiredTokenError()
        self.log.info("Password reset completed for user %s", user.public_id)

    # ------------------------------------------------------------------
    # Profile
    # ------------------------------------------------------------------

    def get_profile(self, user_id: int) -> User:
        return self._require(user_id)

    def get_by_slug(self, slug: str) -> User:
        """Public lookup; only ACTIVE accounts are visible."""
        user = self.users.find_by_slug(slug.strip().lower())
        if user is None or user.status != AccountStatus.ACTIVE:
            raise NotFoundError("user.not_found")
        return user

    def update_profile(self, user_id: int, **changes) -> User:
        """Apply profile changes. A name change regenerates the slug."""
        user = self._require(user_id)
        unknown = set(changes) - _PROFILE_FIELDS
        if unknown:
            raise ValueError(f"Unknown profile fields: {sorted(unknown)!r}")

        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
            if changes["email"] != user.email:
                existing = self.users.find_by_email(changes["email"])
                if existing is not None and existing.id != user.id:
                    raise ConflictError("user.email_taken")

        first_name = changes.get("first_name", user.first_name)
        last_name = changes.get("last_name", user.last_name)
        if (first_name, last_name) != (user.first_name, user.last_name):
            changes["slug"] = self._make_slug(first_name, last_name)

        if changes:
            self._apply_profile_changes(user, changes, first_name, last_name)
        return self._require(user.id)

    def _apply_profile_changes(self, user: User, changes: dict, first_name: str, last_name: str) -> None:
        """Write changes, telling an email conflict apart from a slug collision."""
        for attempt in range(_SLUG_ATTEMPTS):
            try:
                self.users.update(user.id, **changes)
                return
            except IntegrityError as e:
                if "email" in changes:
                    owner = self.users.find_by_email(changes["email"])
                    if owner is not None and owner.id != user.id:
                        raise ConflictError("user.email_taken") from e
                if "slug" not in changes or attempt == _SLUG_ATTEMPTS - 1:
                    raise
                self.log.info("Slug %s already taken; generating another", changes["slug"])
                changes["slug"] = self._make_slug(first_name, last_name)

    def change_password(self, user_id: int, current_password: str, new_password: str, confirm_password: str) -> None:
        user = self._require(user_id)
        if not verify_password(current_password, user.hashed_password):
            raise InvalidCredentialsError("auth.invalid_current_password")
        if new_password != confirm_password:
            raise PasswordMismatchError()
        self.users.update_password(user.id, hash_password(new_password))
        self.log.info("User %s changed their password", user.public_id)

    def deactivate(self, user_id: int) -> None:
        """ACTIVE -> INACTIVE. Existing session claims stop working immediately
        because the auth dependency re-checks status on every request.
        """
        user = self._require(user_id)
        self.users.deactivate(user.id)
        self.log.info("Deactivated user %s", user.public_id)
