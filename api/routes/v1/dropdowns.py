"""
api/routes/v1/dropdowns.py -- Localized dropdown option endpoints.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /dropdowns/{dropdown_type}                              -- public, localized with fallback
  POST   /admin/dropdowns/{dropdown_type}/bulk                   -- activate / deactivate / delete
  GET    /admin/dropdowns/{dropdown_type}                        -- paginated admin list
  POST   /admin/dropdowns/{dropdown_type}                        -- create in one or every active language
  GET    /admin/dropdowns/{dropdown_type}/{public_id}            -- one option
  PATCH  /admin/dropdowns/{dropdown_type}/{public_id}            -- partial update
  DELETE /admin/dropdowns/{dropdown_type}/{public_id}            -- soft delete
  DELETE /admin/dropdowns/{dropdown_type}/code/{unique_code}     -- hard delete of every language variant
  POST   /admin/dropdowns/{dropdown_type}/{public_id}/use        -- increment use count

{dropdown_type} is validated by the dropdown_type dependency (400 on a bad
key) and reaches the service in canonical lowercase form.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request, Response

from api.dependencies import dropdown_type, request_languages, t
from api.models import (
    BulkResponse,
    DropdownBulkRequest,
    DropdownCreateRequest,
    DropdownCreateResponse,
    DropdownEnvelope,
    DropdownPage,
    DropdownPublicItem,
    DropdownPublicList,
    DropdownResponse,
    DropdownUpdateRequest,
    MessageResponse,
)
from auth.dependencies import require_admin
from taxonomy.models import BulkAction
from taxonomy.service import TaxonomyService

router = APIRouter()
admin_router = APIRouter(dependencies=[Depends(require_admin)])


def _taxonomy(request: Request) -> TaxonomyService:
    return request.app.state.taxonomy


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


@router.get("/dropdowns/{dropdown_type}", response_model=DropdownPublicList)
def public_options(request: Request, key: str = Depends(dropdown_type)) -> DropdownPublicList:
    """Options in the first language of the request's fallback chain that has any."""
    language, options = _taxonomy(request).list_public(key, request_languages(request))
    return DropdownPublicList(
        dropdown_type=key,
        language=language,
        items=[DropdownPublicItem.from_option(o) for o in options],
    )


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@admin_router.post("/admin/dropdowns/{dropdown_type}/bulk", response_model=BulkResponse)
def bulk_options(
    request: Request,
    body: DropdownBulkRequest,
    key: str = Depends(dropdown_type),
) -> BulkResponse:
    """All ids must belong to {dropdown_type}; otherwise nothing changes."""
    action = BulkAction(body.action.value)
    affected = _taxonomy(request).bulk(key, action, body.ids)
    return BulkResponse(
        message=t(request, "dropdown.bulk_completed", action=action.value, count=affected),
        affected=affected,
    )


@admin_router.get("/admin/dropdowns/{dropdown_type}", response_model=DropdownPage)
def list_options(
    request: Request,
    key: str = Depends(dropdown_type),
    page: int = Query(1),
    limit: int = Query(10),
    language_code: Optional[str] = Query(None, max_length=3),
    search: Optional[str] = Query(None, max_length=100),
    is_active: Optional[bool] = Query(None),
) -> DropdownPage:
    result = _taxonomy(request).list_admin(
        key, page=page, limit=limit, language_code=language_code, search=search, is_active=is_active
    )
    return DropdownPage.from_page(result)


@admin_router.post("/admin/dropdowns/{dropdown_type}", response_model=DropdownCreateResponse, status_code=201)
def create_option(
    request: Request,
    body: DropdownCreateRequest,
    key: str = Depends(dropdown_type),
) -> DropdownCreateResponse:
    """Without language_code, one row is created per active language."""
    created = _taxonomy(request).create_option(
        key,
        name=body.name,
        unique_code=body.unique_code,
        is_default=body.is_default,
        is_active=body.is_active,
        language_code=body.language_code,
    )
    return DropdownCreateResponse(
        message=t(request, "dropdown.created"),
        items=[DropdownResponse.from_option(o) for o in created],
    )


@admin_router.get("/admin/dropdowns/{dropdown_type}/{public_id}", response_model=DropdownResponse)
def get_option(request: Request, public_id: str, key: str = Depends(dropdown_type)) -> DropdownResponse:
    return DropdownResponse.from_option(_taxonomy(request).get_option(key, public_id))


@admin_router.patch("/admin/dropdowns/{dropdown_type}/{public_id}", response_model=DropdownEnvelope)
def update_option(
    request: Request,
    public_id: str,
    body: DropdownUpdateRequest,
    key: str = Depends(dropdown_type),
) -> DropdownEnvelope:
    option = _taxonomy(request).update_option(key, public_id, **body.model_dump(exclude_none=True))
    return DropdownEnvelope(message=t(request, "dropdown.updated"), item=DropdownResponse.from_option(option))


@admin_router.delete("/admin/dropdowns/{dropdown_type}/{public_id}", response_model=MessageResponse)
def delete_option(request: Request, public_id: str, key: str = Depends(dropdown_type)) -> MessageResponse:
    _taxonomy(request).delete_option(key, public_id)
    return MessageResponse(message=t(request, "dropdown.deleted"))


@admin_router.delete("/admin/dropdowns/{dropdown_type}/code/{unique_code}", response_model=BulkResponse)
def delete_option_variants(
    request: Request,
    unique_code: str = Path(..., min_length=1, max_length=100),
    key: str = Depends(dropdown_type),
) -> BulkResponse:
    """400 while any variant has a non-zero use count."""
    removed = _taxonomy(request).delete_by_unique_code(key, unique_code)
    return BulkResponse(
        message=t(request, "dropdown.variants_deleted", count=len(removed)),
        affected=len(removed),
    )


@admin_router.post("/admin/dropdowns/{dropdown_type}/{public_id}/use", status_code=204)
def use_option(request: Request, public_id: str, key: str = Depends(dropdown_type)) -> Response:
    _taxonomy(request).increment_use_count(key, public_id)
    return Response(status_code=204)


router.include_router(admin_router)
