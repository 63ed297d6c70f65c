"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Session claims arrive as "Authorization: Bearer <jwt>". The "type" claim
separates the two account populations:
  type=user  -- platform members (get_current_user)
  type=admin -- back-office operators (require_admin)

A token of one type never authenticates as the other. After the signature and
expiry check the account is re-read from its store on every request, so a
deactivated account loses access immediately even while its JWT is unexpired.

get_current_user() raises 401 when unauthenticated.
require_admin() raises 401 when unauthenticated and 403 for a user token.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import AccountStatus, Admin, User
from auth.tokens import decode_session_token
from core.errors import ForbiddenError, UnauthorizedError


def _bearer_claims(request: Request) -> dict | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return decode_session_token(auth_header[7:])


def _subject_id(claims: dict) -> int | None:
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        return None


def try_get_current_user(request: Request) -> User | None:
    """Return the ACTIVE user behind a user session claim, or None. Never raises."""
    claims = _bearer_claims(request)
    if not claims or claims.get("type") != "user":
        return None
    user_id = _subject_id(claims)
    if user_id is None:
        return None
    user = request.app.state.user_store.find_by_id(user_id)
    if user is None or user.status != AccountStatus.ACTIVE:
        return None
    return user


def get_current_user(request: Request) -> User:
    """Require an authenticated, ACTIVE user.

    Use as a FastAPI dependency:
        @router.get("/users/me")
        def me(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise UnauthorizedError()
    return user


def require_admin(request: Request) -> Admin:
    """Require an authenticated, active admin. 403 if the caller holds a user token."""
    claims = _bearer_claims(request)
    if not claims:
        raise UnauthorizedError()
    if claims.get("type") != "admin":
        raise ForbiddenError()
    admin_id = _subject_id(claims)
    admin = request.app.state.admin_store.find_by_id(admin_id) if admin_id is not None else None
    if admin is None or not admin.is_active:
        raise UnauthorizedError()
    return admin
