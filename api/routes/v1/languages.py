"""
api/routes/v1/languages.py -- Content language registry.

Routes:
  GET   /api/v1/languages                     -- active languages (public)
  POST  /api/v1/admin/languages               -- add a language (admin)
  PATCH /api/v1/admin/languages/{public_id}   -- rename, toggle, or promote to default (admin)

Exactly one language is the default at any time. Promoting another language
moves the flag; the default itself cannot be deactivated.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import LanguageCreateRequest, LanguageResponse, LanguageUpdateRequest
from auth.dependencies import require_admin
from auth.models import Admin
from taxonomy.service import TaxonomyService

router = APIRouter()


def _taxonomy(request: Request) -> TaxonomyService:
    return request.app.state.taxonomy


@router.get("/languages", response_model=list[LanguageResponse])
def list_languages(request: Request) -> list[LanguageResponse]:
    return [LanguageResponse.from_language(lang) for lang in _taxonomy(request).list_languages(active_only=True)]


@router.post("/admin/languages", response_model=LanguageResponse, status_code=201)
def create_language(
    request: Request,
    body: LanguageCreateRequest,
    admin: Admin = Depends(require_admin),
) -> LanguageResponse:
    language = _taxonomy(request).create_language(body.code, body.name, body.is_default, body.is_active)
    return LanguageResponse.from_language(language)


@router.patch("/admin/languages/{public_id}", response_model=LanguageResponse)
def update_language(
    request: Request,
    public_id: str,
    body: LanguageUpdateRequest,
    admin: Admin = Depends(require_admin),
) -> LanguageResponse:
    language = _taxonomy(request).update_language(
        public_id, name=body.name, is_active=body.is_active, is_default=body.is_default
    )
    return LanguageResponse.from_language(language)
