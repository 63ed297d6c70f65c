"""
core/text.py -- Small text normalization helpers.
"""

from __future__ import annotations

import re
import unicodedata


def slugify(value: str, fallback: str = "item") -> str:
    """Lowercase ASCII slug: "Zoë O'Neil" -> "zoe-o-neil"."""
    ascii_value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_value.lower()).strip("-")
    return slug or fallback


def normalize_email(email: str) -> str:
    return email.strip().lower()
