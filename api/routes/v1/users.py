"""
api/routes/v1/users.py -- Member profile endpoints.

Routes:
  GET    /api/v1/users/me                  -- own profile (requires auth)
  PATCH  /api/v1/users/me                  -- update own profile (requires auth)
  POST   /api/v1/users/me/change-password  -- change password (requires auth)
  DELETE /api/v1/users/me                  -- deactivate own account (requires auth)
  GET    /api/v1/users/slug/{slug}         -- public profile of an ACTIVE member

The public profile omits email, phone, zipcode and account status.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Request

from api.dependencies import t
from api.models import (
    ChangePasswordRequest,
    MessageResponse,
    ProfileUpdateRequest,
    PublicUserProfile,
    UserEnvelope,
    UserProfile,
)
from auth.accounts import AccountService
from auth.dependencies import get_current_user
from auth.models import OutsideLink, User

router = APIRouter()


def _accounts(request: Request) -> AccountService:
    return request.app.state.accounts


@router.get("/users/me", response_model=UserEnvelope)
def get_me(request: Request, current_user: User = Depends(get_current_user)) -> UserEnvelope:
    user = _accounts(request).get_profile(current_user.id)
    return UserEnvelope(message=t(request, "user.profile_retrieved"), user=UserProfile.from_user(user))


@router.patch("/users/me", response_model=UserEnvelope)
def update_me(
    request: Request,
    body: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
) -> UserEnvelope:
    """Partial update: only the fields present in the body change."""
    changes = body.model_dump(exclude_unset=True)
    if changes.get("outside_links") is not None:
        changes["outside_links"] = [OutsideLink(**link) for link in changes["outside_links"]]
    user = _accounts(request).update_profile(current_user.id, **changes)
    return UserEnvelope(message=t(request, "user.profile_updated"), user=UserProfile.from_user(user))


@router.post("/users/me/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    _accounts(request).change_password(
        current_user.id, body.current_password, body.new_password, body.confirm_password
    )
    return MessageResponse(message=t(request, "user.password_changed"))


@router.delete("/users/me", response_model=MessageResponse)
def deactivate_me(request: Request, current_user: User = Depends(get_current_user)) -> MessageResponse:
    """The account becomes INACTIVE and its current session stops working."""
    _accounts(request).deactivate(current_user.id)
    return MessageResponse(message=t(request, "user.account_deactivated"))


@router.get("/users/slug/{slug}", response_model=PublicUserProfile)
def public_profile(request: Request, slug: str = Path(..., min_length=1, max_length=120)) -> PublicUserProfile:
    return PublicUserProfile.from_user(_accounts(request).get_by_slug(slug))
