"""
taxonomy/models.py -- Domain dataclasses for languages and dropdown options.

A dropdown option belongs to one taxonomy key (dropdown_type, e.g. "industry")
and one language. Creating an option without a language creates one row per
active language, each with its own public_id, so translations are edited
independently. The rows share a unique_code, which identifies the option
across languages and is the handle for deleting all of its variants.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class BulkAction(str, Enum):
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    DELETE = "delete"


@dataclass
class Language:
    code: str
    name: str
    is_default: bool = False
    is_active: bool = True
    id: int | None = None
    public_id: str | None = None
    created_at: str | None = None


@dataclass
class DropdownOption:
    dropdown_type: str
    language_code: str
    name: str
    unique_code: str | None = None
    is_default: bool = False
    is_active: bool = True
    use_count: int = 0
    id: int | None = None
    public_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
