"""
core/errors.py -- Application error kinds.

Every business-rule failure raised by a service is an AppError subclass. Each
kind carries a stable machine-readable code, an HTTP status, and a message key
that api/main.py translates with the request's language fallback chain.

Security-sensitive flows deliberately collapse detail:
  InvalidCredentialsError covers both "unknown email" and "wrong password".
  InvalidOrExpiredTokenError covers missing, mismatched, and expired tokens.

Layer rule: core/ is the kernel. No imports from other project packages.
"""

from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base class for caller-visible application errors.

    Attributes:
        code:        Machine-readable error kind (e.g. "not_found").
        message_key: Key into the message catalog in core/messages.py.
        status_code: HTTP status the API layer responds with.
        params:      Interpolation values for the translated message.
        detail:      Optional free-form detail (e.g. field errors).
    """

    code = "app_error"
    status_code = 500
    default_message_key = "common.internal_error"

    def __init__(self, message_key: str | None = None, detail: Any = None, **params: Any) -> None:
        self.message_key = message_key or self.default_message_key
        self.params = params
        self.detail = detail
        super().__init__(self.message_key)


class NotFoundError(AppError):
    """Entity absent by a non-security lookup (id, public id, slug)."""

    code = "not_found"
    status_code = 404
    default_message_key = "common.not_found"


class ConflictError(AppError):
    """Duplicate unique field, e.g. an email that is already registered."""

    code = "conflict"
    status_code = 409
    default_message_key = "common.conflict"


class InvalidCredentialsError(AppError):
    code = "invalid_credentials"
    status_code = 401
    default_message_key = "auth.invalid_credentials"


class InactiveAccountError(AppError):
    code = "inactive_account"
    status_code = 401
    default_message_key = "auth.account_inactive"


class InvalidOrExpiredTokenError(AppError):
    code = "invalid_or_expired_token"
    status_code = 400
    default_message_key = "auth.invalid_or_expired_token"


class PasswordMismatchError(AppError):
    code = "password_mismatch"
    status_code = 400
    default_message_key = "auth.password_mismatch"


class ValidationError(AppError):
    """Malformed input shape or violated field constraint."""

    code = "validation_error"
    status_code = 400
    default_message_key = "common.validation_failed"


class DependencyFailureError(AppError):
    """An outbound collaborator (email delivery, file storage) failed."""

    code = "dependency_failure"
    status_code = 503
    default_message_key = "common.dependency_failure"


class UnauthorizedError(AppError):
    code = "unauthorized"
    status_code = 401
    default_message_key = "auth.unauthorized"


class ForbiddenError(AppError):
    code = "forbidden"
    status_code = 403
    default_message_key = "auth.forbidden"
