"""
auth/admins.py -- Back-office admin accounts.

AdminService covers admin authentication (login, forgot / reset / change
password) and admin management (create, list, update, delete, photo upload).

Per-flow not-found behavior:
  forgot_password()  unknown email -> returns normally (no existence leak)
  change_password()  missing admin -> NotFoundError (caller is authenticated)
  get / update / delete by public id -> NotFoundError

Admin reset tokens are stored as SHA-256 digests and expiry-checked, same as
user reset tokens. Reset email delivery failure raises DependencyFailureError.

Photo handling: uploads are validated (size, image type) and written through
LocalFileStorage. Replacing or deleting an admin removes the old photo on a
best-effort basis; a failed delete is logged and never fails the request.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.mailer import Mailer
from auth.models import Admin, TokenPurpose
from auth.store import AdminStore
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
    ValidationError,
)
from core.models import MAX_PAGE_SIZE, Page
from core.text import normalize_email
from storage.files import LocalFileStorage, UploadedFile, validate_upload

_PHOTO_FOLDER = "admins"
_DEFAULT_IMAGE_TYPES = ["image/jpeg", "image/png", "image/webp"]
_UPDATABLE_FIELDS = frozenset({"first_name", "last_name", "email", "is_active", "two_factor_verified"})


class AdminService:
    """Admin authentication and management."""

    def __init__(
        self,
        admins: AdminStore,
        mailer: Mailer,
        storage: LocalFileStorage,
        session_expire_seconds: int = 0,
        max_upload_bytes: int = 5 * 1024 * 1024,
        allowed_image_types: list[str] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.admins = admins
        self.mailer = mailer
        self.storage = storage
        self.session_expire_seconds = session_expire_seconds
        self.max_upload_bytes = max_upload_bytes
        self.allowed_image_types = allowed_image_types or list(_DEFAULT_IMAGE_TYPES)
        self.log = logger or logging.getLogger("campaignhub.admin")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, admin_id: int) -> Admin:
        admin = self.admins.find_by_id(admin_id)
        if admin is None:
            raise NotFoundError("admin.not_found")
        return admin

    def _store_photo(self, photo: UploadedFile) -> str:
        validate_upload(photo, self.max_upload_bytes, self.allowed_image_types)
        return self.storage.save(photo.data, photo.filename, folder=_PHOTO_FOLDER)

    def _discard_photo(self, path: str | None) -> None:
        """Best-effort removal of a photo that is no longer referenced."""
        if not path:
            return
        try:
            self.storage.delete_file(path)
        except (OSError, ValueError) as e:
            self.log.warning("Could not delete admin photo %s: %s", path, e)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def login(self, email: str, password: str, ip_address: str | None = None) -> tuple[str, Admin]:
        """Verify credentials and return (session_token, admin).

        Unknown email and wrong password raise the same InvalidCredentialsError.
        An inactive admin is only told so after presenting the right password.
        """
        admin = authenticate_credentials(self.admins, normalize_email(email), password)
        if admin is None:
            raise InvalidCredentialsError()
        if not admin.is_active:
            raise InactiveAccountError("admin.account_inactive")

        self.admins.record_login(admin, ip_address)
        token = create_session_token(
            admin.id,
            {"email": admin.email, "type": "admin"},
            expire_seconds=self.session_expire_seconds,
        )
        self.log.info("Admin %s logged in from %s", admin.public_id, ip_address or "unknown")
        return token, self._require(admin.id)

    def logout(self, admin: Admin) -> None:
        self.log.info("Admin %s logged out", admin.public_id)

    def forgot_password(self, email: str) -> None:
        admin = self.admins.find_by_email(normalize_email(email))
        if admin is None:
            self.log.info("Admin password reset requested for an unknown email")
            return
        token = issue_token(TokenPurpose.PASSWORD_RESET)
        self.admins.set_reset_token(admin.id, token.hashed, token.expires_at)
        try:
            self.mailer.send_password_reset_email(admin.email, token.raw, admin.full_name, audience="admin")
        except DependencyFailureError as e:
            raise DependencyFailureError("auth.password_reset_email_failed", detail=e.detail) from e
        self.log.info("Password reset issued for admin %s", admin.public_id)

    def reset_password(self, raw_token: str, password: str, password_confirm: str) -> None:
        admin = self.admins.find_by_reset_token(hash_token(raw_token)) if raw_token else None
        if admin is None or not verify_token(
            raw_token, admin.reset_token_hash, TokenPurpose.PASSWORD_RESET, admin.reset_expires_at
        ):
            raise InvalidOrExpiredTokenError()
        if password != password_confirm:
            raise PasswordMismatchError()
        if not self.admins.update_password(admin.id, hash_password(password), consumed_reset_hash=admin.reset_token_hash):
            raise InvalidOrExpiredTokenError()
        self.log.info("Password reset completed for admin %s", admin.public_id)

    def change_password(self, admin_id: int, current_password: str, new_password: str, password_confirm: str) -> None:
        admin = self._require(admin_id)
        if not verify_password(current_password, admin.hashed_password):
            raise InvalidCredentialsError("auth.invalid_current_password")
        if new_password != password_confirm:
            raise PasswordMismatchError()
        self.admins.update_password(admin.id, hash_password(new_password))
        self.log.info("Admin %s changed their password", admin.public_id)

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    def create(
        self,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        password_confirm: str,
        is_active: bool = True,
        two_factor_verified: bool = False,
        photo: UploadedFile | None = None,
    ) -> Admin:
        if password != password_confirm:
            raise PasswordMismatchError()
        email = normalize_email(email)
        if self.admins.find_by_email(email) is not None:
            raise ConflictError("admin.email_exists")

        photo_path = self._store_photo(photo) if photo is not None else None
        try:
            admin = self.admins.insert(
                Admin(
                    first_name=first_name,
                    last_name=last_name,
                    email=email,
                    hashed_password=hash_password(password),
                    photo=photo_path,
                    is_active=is_active,
                    two_factor_verified=two_factor_verified,
                )
            )
        except IntegrityError as e:
            self._discard_photo(photo_path)
            raise ConflictError("admin.email_exists") from e
        self.log.info("Created admin %s", admin.public_id)
        return admin

    def get(self, admin_id: int) -> Admin:
        return self._require(admin_id)

    def get_by_public_id(self, public_id: str) -> Admin:
        admin = self.admins.find_by_public_id(public_id)
        if admin is None:
            raise NotFoundError("admin.not_found")
        return admin

    def list_admins(self, page: int = 1, limit: int = 10, search: str | None = None, is_active: bool | None = None) -> Page:
        if page < 1 or not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationError(detail={"page": page, "limit": limit})
        return self.admins.paginate(page=page, limit=limit, search=search or None, is_active=is_active)

    def update(self, public_id: str, photo: UploadedFile | None = None, **changes) -> Admin:
        admin = self.get_by_public_id(public_id)
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown admin fields: {sorted(unknown)!r}")

        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
            existing = self.admins.find_by_email(changes["email"])
            if existing is not None and existing.id != admin.id:
                raise ConflictError("admin.email_exists")

        old_photo = None
        if photo is not None:
            changes["photo"] = self._store_photo(photo)
            old_photo = admin.photo

        if changes:
            try:
                self.admins.update(admin.id, **changes)
            except IntegrityError as e:
                self._discard_photo(changes.get("photo"))
                raise ConflictError("admin.email_exists") from e
        self._discard_photo(old_photo)
        self.log.info("Updated admin %s", admin.public_id)
        return self._require(admin.id)

    def delete(self, public_id: str) -> None:
        admin = self.get_by_public_id(public_id)
        self.admins.delete_by_id(admin.id)
        self._discard_photo(admin.photo)
        self.log.info("Deleted admin %s", admin.public_id)
