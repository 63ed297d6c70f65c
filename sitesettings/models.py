"""
sitesettings/models.py -- Domain dataclasses for grouped site settings.

Settings are addressed by (group_type, key). A STRING setting stores its value
inline; a FILE setting stores the storage-relative path of an uploaded file.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RecordType(str, Enum):
    STRING = "string"
    FILE = "file"


@dataclass
class SiteSetting:
    group_type: str
    key: str
    value: str | None
    record_type: RecordType = RecordType.STRING
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None
