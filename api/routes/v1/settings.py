"""
api/routes/v1/settings.py -- Grouped site settings endpoints.

Routes:
  GET    /settings/{group_type}               -- public, cached group read
  GET    /admin/settings/{group_type}         -- group read (admin)
  POST   /admin/settings/{group_type}         -- multipart form: text fields and files (admin)
  DELETE /admin/settings/{group_type}         -- delete the whole group (admin)
  GET    /admin/settings/{group_type}/{key}   -- one setting (admin)
  PUT    /admin/settings/{group_type}/{key}   -- upsert a single string setting (admin)
  DELETE /admin/settings/{group_type}/{key}   -- delete one setting and its file (admin)
  POST   /admin/settings-cache/clear          -- drop cached settings; ?group_type= for one group (admin)
  GET    /admin/settings-cache/stats          -- cache counters (admin)

Form semantics:
  Every text part becomes a STRING setting and every file part a FILE setting
  whose value is the stored path. A text field replacing a file setting
  removes the old file.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile as StarletteUploadFile

from api.dependencies import group_type, read_upload, t
from api.models import (
    CacheStatsResponse,
    MessageResponse,
    SettingResponse,
    SettingsGroupResponse,
    SettingUpdateRequest,
)
from auth.dependencies import require_admin
from sitesettings.service import SettingsService, normalize_group_type
from storage.files import UploadedFile

router = APIRouter()
admin_router = APIRouter(dependencies=[Depends(require_admin)])


def _settings_service(request: Request) -> SettingsService:
    return request.app.state.site_settings


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


@router.get("/settings/{group_type}", response_model=SettingsGroupResponse)
def public_group(request: Request, group: str = Depends(group_type)) -> SettingsGroupResponse:
    return SettingsGroupResponse.from_settings(group, _settings_service(request).get_group(group))


# ---------------------------------------------------------------------------
# Cache administration (registered before the {group_type} routes)
# ---------------------------------------------------------------------------


@admin_router.post("/admin/settings-cache/clear", response_model=MessageResponse)
def clear_cache(
    request: Request,
    group: Optional[str] = Query(None, alias="group_type", max_length=200),
) -> MessageResponse:
    """?group_type=site limits the clear to one group."""
    service = _settings_service(request)
    if group is None:
        service.clear_cache()
        return MessageResponse(message=t(request, "settings.cache_cleared"))
    service.clear_cache(group)
    return MessageResponse(
        message=t(request, "settings.group_cache_cleared", group_type=normalize_group_type(group))
    )


@admin_router.get("/admin/settings-cache/stats", response_model=CacheStatsResponse)
def cache_stats(request: Request) -> CacheStatsResponse:
    return CacheStatsResponse(**_settings_service(request).cache_stats())


# ---------------------------------------------------------------------------
# Groups
# ---------------------------------------------------------------------------


@admin_router.get("/admin/settings/{group_type}", response_model=SettingsGroupResponse)
def admin_group(request: Request, group: str = Depends(group_type)) -> SettingsGroupResponse:
    return SettingsGroupResponse.from_settings(group, _settings_service(request).get_group(group))


@admin_router.post("/admin/settings/{group_type}", response_model=SettingsGroupResponse)
async def save_group(request: Request, group: str = Depends(group_type)) -> SettingsGroupResponse:
    """Upsert every part of a multipart (or urlencoded) settings form."""
    form = await request.form()
    fields: dict[str, str] = {}
    files: dict[str, UploadedFile] = {}
    for key, value in form.multi_items():
        if isinstance(value, StarletteUploadFile):
            # An empty file input means "leave this setting alone".
            if value.filename:
                files[key] = await read_upload(value)
        else:
            fields[key] = value
    saved = await run_in_threadpool(_settings_service(request).save_form, group, fields, files)
    return SettingsGroupResponse.from_settings(group, saved)


@admin_router.delete("/admin/settings/{group_type}", response_model=MessageResponse)
def delete_group(request: Request, group: str = Depends(group_type)) -> MessageResponse:
    _settings_service(request).delete_group(group)
    return MessageResponse(message=t(request, "settings.group_deleted"))


# ---------------------------------------------------------------------------
# Single settings
# ---------------------------------------------------------------------------


@admin_router.get("/admin/settings/{group_type}/{key}", response_model=SettingResponse)
def get_setting(request: Request, key: str, group: str = Depends(group_type)) -> SettingResponse:
    return SettingResponse.from_setting(_settings_service(request).get_setting(group, key))


@admin_router.put("/admin/settings/{group_type}/{key}", response_model=SettingResponse)
def put_setting(
    request: Request,
    key: str,
    body: SettingUpdateRequest,
    group: str = Depends(group_type),
) -> SettingResponse:
    return SettingResponse.from_setting(_settings_service(request).update_setting(group, key, body.value))


@admin_router.delete("/admin/settings/{group_type}/{key}", response_model=MessageResponse)
def delete_setting(request: Request, key: str, group: str = Depends(group_type)) -> MessageResponse:
    _settings_service(request).delete_setting(group, key)
    return MessageResponse(message=t(request, "settings.deleted"))


router.include_router(admin_router)
