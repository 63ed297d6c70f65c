"""
api/routes/v1/admins.py -- Back-office operator endpoints.

Routes (in registration order to avoid FastAPI path capture conflicts):
  POST   /admins/login            -- password login; returns an admin JWT
  POST   /admins/forgot-password  -- email a reset link (silent for unknown emails)
  POST   /admins/reset-password   -- token + password + confirmation
  POST   /admins/logout           -- records the logout (admin)
  GET    /admins/me               -- own profile (admin)
  POST   /admins/me/password      -- change own password (admin)
  GET    /admins                  -- paginated list; search + is_active filters (admin)
  POST   /admins                  -- create admin; multipart with optional photo (admin)
  GET    /admins/{public_id}      -- one admin (admin)
  PATCH  /admins/{public_id}      -- update; multipart, a new photo replaces the old (admin)
  DELETE /admins/{public_id}      -- delete; photo removed best-effort (admin)

Multipart bodies:
  Create and update arrive as form fields so a photo can ride along. The
  fields are validated explicitly against AdminCreateRequest /
  AdminUpdateRequest; failures render as the usual 400 validation_error.
"""

from __future__ import annotations

from typing import Optional

import pydantic
from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile
from starlette.concurrency import run_in_threadpool

from api.dependencies import client_ip, read_upload, t
from api.limiter import limiter
from api.models import (
    AdminCreateRequest,
    AdminEnvelope,
    AdminLoginResponse,
    AdminPage,
    AdminPasswordUpdateRequest,
    AdminProfile,
    AdminResetPasswordRequest,
    AdminUpdateRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
)
from auth.admins import AdminService
from auth.dependencies import require_admin
from auth.models import Admin
from core.config import get_settings
from core.errors import ValidationError
from storage.files import UploadedFile

_settings = get_settings()

router = APIRouter()


def _admins(request: Request) -> AdminService:
    return request.app.state.admins


def _validate_form(model: type[pydantic.BaseModel], fields: dict) -> pydantic.BaseModel:
    """Validate multipart fields against a request model, ignoring absent ones."""
    try:
        return model.model_validate({k: v for k, v in fields.items() if v is not None})
    except pydantic.ValidationError as e:
        raise ValidationError(detail=e.errors(include_url=False, include_context=False, include_input=False)) from e


async def _optional_photo(photo: UploadFile | None) -> UploadedFile | None:
    # Browsers send an empty part with no filename when no file is chosen.
    if photo is None or not photo.filename:
        return None
    return await read_upload(photo)


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.login_rate_limit)
@router.post("/admins/login", response_model=AdminLoginResponse)
def admin_login(request: Request, response: Response, body: LoginRequest) -> AdminLoginResponse:
    token, admin = _admins(request).login(body.email, body.password, client_ip(request))
    response.headers["Cache-Control"] = "no-store"
    return AdminLoginResponse(
        message=t(request, "auth.login_success"),
        access_token=token,
        expires_in=_settings.admin_session_expire_seconds,
        admin=AdminProfile.from_admin(admin),
    )


@limiter.limit(_settings.forgot_password_rate_limit)
@router.post("/admins/forgot-password", response_model=MessageResponse)
def admin_forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    _admins(request).forgot_password(body.email)
    return MessageResponse(message=t(request, "auth.password_reset_email_sent"))


@limiter.limit(_settings.reset_password_rate_limit)
@router.post("/admins/reset-password", response_model=MessageResponse)
def admin_reset_password(request: Request, body: AdminResetPasswordRequest) -> MessageResponse:
    _admins(request).reset_password(body.token, body.password, body.password_confirm)
    return MessageResponse(message=t(request, "auth.password_reset_success"))


# ---------------------------------------------------------------------------
# Self-service (admin session)
# ---------------------------------------------------------------------------


@router.post("/admins/logout", response_model=MessageResponse)
def admin_logout(request: Request, admin: Admin = Depends(require_admin)) -> MessageResponse:
    _admins(request).logout(admin)
    return MessageResponse(message=t(request, "auth.logout_success"))


@router.get("/admins/me", response_model=AdminProfile)
def admin_me(admin: Admin = Depends(require_admin)) -> AdminProfile:
    return AdminProfile.from_admin(admin)


@router.post("/admins/me/password", response_model=MessageResponse)
def admin_change_password(
    request: Request,
    body: AdminPasswordUpdateRequest,
    admin: Admin = Depends(require_admin),
) -> MessageResponse:
    _admins(request).change_password(admin.id, body.current_password, body.password, body.password_confirm)
    return MessageResponse(message=t(request, "admin.password_updated"))


# ---------------------------------------------------------------------------
# Management (admin session)
# ---------------------------------------------------------------------------


@router.get("/admins", response_model=AdminPage)
def list_admins(
    request: Request,
    page: int = Query(1),
    limit: int = Query(10),
    search: Optional[str] = Query(None, max_length=100),
    is_active: Optional[bool] = Query(None),
    admin: Admin = Depends(require_admin),
) -> AdminPage:
    """Newest first. Out-of-range page or limit is a 400, not a silent clamp."""
    return AdminPage.from_page(_admins(request).list_admins(page=page, limit=limit, search=search, is_active=is_active))


@router.post("/admins", response_model=AdminEnvelope, status_code=201)
async def create_admin(
    request: Request,
    first_name: Optional[str] = Form(None),
    last_name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    password_confirm: Optional[str] = Form(None),
    is_active: Optional[str] = Form(None),
    two_factor_verified: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    admin: Admin = Depends(require_admin),
) -> AdminEnvelope:
    body = _validate_form(
        AdminCreateRequest,
        {
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "password": password,
            "password_confirm": password_confirm,
            "is_active": is_active,
            "two_factor_verified": two_factor_verified,
        },
    )
    upload = await _optional_photo(photo)
    # bcrypt hashing and the store writes block; keep them off the event loop.
    created = await run_in_threadpool(
        _admins(request).create,
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        password=body.password,
        password_confirm=body.password_confirm,
        is_active=body.is_active,
        two_factor_verified=body.two_factor_verified,
        photo=upload,
    )
    return AdminEnvelope(message=t(request, "admin.created"), admin=AdminProfile.from_admin(created))


@router.get("/admins/{public_id}", response_model=AdminProfile)
def get_admin(request: Request, public_id: str, admin: Admin = Depends(require_admin)) -> AdminProfile:
    return AdminProfile.from_admin(_admins(request).get_by_public_id(public_id))


@router.patch("/admins/{public_id}", response_model=AdminEnvelope)
async def update_admin(
    request: Request,
    public_id: str,
    first_name: Optional[str] = Form(None),
    last_name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    is_active: Optional[str] = Form(None),
    two_factor_verified: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    admin: Admin = Depends(require_admin),
) -> AdminEnvelope:
    body = _validate_form(
        AdminUpdateRequest,
        {
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "is_active": is_active,
            "two_factor_verified": two_factor_verified,
        },
    )
    upload = await _optional_photo(photo)
    updated = await run_in_threadpool(
        _admins(request).update,
        public_id,
        photo=upload,
        **body.model_dump(exclude_none=True),
    )
    return AdminEnvelope(message=t(request, "admin.updated"), admin=AdminProfile.from_admin(updated))


@router.delete("/admins/{public_id}", response_model=MessageResponse)
def delete_admin(request: Request, public_id: str, admin: Admin = Depends(require_admin)) -> MessageResponse:
    _admins(request).delete(public_id)
    return MessageResponse(message=t(request, "admin.deleted"))
