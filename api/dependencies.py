"""
api/dependencies.py -- Request-scoped helpers shared by the v1 routers.

  client_ip()         -- originating client address behind proxies
  request_languages() -- fallback chain set by the language middleware
  t()                 -- translate a message key for the current request
  dropdown_type()     -- validates and normalizes the {dropdown_type} path param
  group_type()        -- validates and normalizes the {group_type} path param
  read_upload()       -- reads an UploadFile with a size cap into UploadedFile
"""

from __future__ import annotations

import ipaddress

from fastapi import Path, Request, UploadFile

from core.config import get_settings
from core.errors import ValidationError
from core.language import DEFAULT_LANGUAGE, normalize_taxonomy_key, validate_taxonomy_key
from core.messages import translate
from sitesettings.service import normalize_group_type, validate_group_type
from storage.files import UploadedFile

# Checked in order; the first header holding a valid IP wins.
_FORWARDING_HEADERS = ("x-forwarded-for", "x-real-ip", "x-client-ip", "cf-connecting-ip", "true-client-ip")


def _valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def client_ip(request: Request) -> str:
    """Best-effort client IP: proxy headers first, then the socket peer."""
    for header in _FORWARDING_HEADERS:
        raw = request.headers.get(header)
        if not raw:
            continue
        # X-Forwarded-For: "client, proxy1, proxy2" -- the first hop is the client.
        candidate = raw.split(",")[0].strip()
        if _valid_ip(candidate):
            return candidate
    return request.client.host if request.client else "unknown"


def request_languages(request: Request) -> list[str]:
    return getattr(request.state, "language_fallbacks", None) or [DEFAULT_LANGUAGE]


def t(request: Request, key: str, **params) -> str:
    return translate(key, request_languages(request), **params)


def dropdown_type(dropdown_type: str = Path(..., max_length=200)) -> str:
    """Reject malformed taxonomy keys with 400; hand handlers the canonical form."""
    if not validate_taxonomy_key(dropdown_type):
        raise ValidationError("dropdown.invalid_type", value=dropdown_type)
    return normalize_taxonomy_key(dropdown_type)


def group_type(group_type: str = Path(..., max_length=200)) -> str:
    if not validate_group_type(group_type):
        raise ValidationError("settings.invalid_group_type", value=group_type)
    return normalize_group_type(group_type)


async def read_upload(file: UploadFile) -> UploadedFile:
    """Read at most max_upload_bytes + 1 so oversize files are detected without
    buffering the whole body; the service layer rejects anything over the cap.
    """
    limit = get_settings().max_upload_bytes
    data = await file.read(limit + 1)
    return UploadedFile(
        filename=file.filename or "",
        content_type=file.content_type or "application/octet-stream",
        data=data,
    )
