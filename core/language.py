"""
core/language.py -- Request language detection and taxonomy key normalization.

Pure functions only: no I/O, no framework imports. api/main.py feeds request
signals in through LanguageSignals and stores the result on request.state;
the dropdown routes run taxonomy keys through validate/normalize before any
store or cache lookup so equivalent inputs ("Industry ", "INDUSTRY") always
resolve to the same canonical key.

Detection priority (first valid signal wins, later ones are never read):
  1. ?lang= query parameter
  2. X-Language header
  3. Accept-Language header (highest q, ties by position)
  4. language already resolved on the request context
  5. secondary resolved value (i18n_lang)
  6. DEFAULT_LANGUAGE

Nothing here raises on bad input. Validators return False and the detector
falls through, so the caller decides whether to reject or default.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

DEFAULT_LANGUAGE = "en"

_LANGUAGE_RE = re.compile(r"^[a-z]{2,3}$")
_TAXONOMY_KEY_RE = re.compile(r"^[a-z][a-z0-9_-]*$")

TAXONOMY_KEY_MIN_LENGTH = 2
TAXONOMY_KEY_MAX_LENGTH = 50


@dataclass(frozen=True)
class LanguageSignals:
    """Raw, unvalidated language hints gathered from a single request."""

    query: str | None = None
    header: str | None = None
    accept_language: str | None = None
    context: str | None = None
    secondary_context: str | None = None


# ---------------------------------------------------------------------------
# Language codes
# ---------------------------------------------------------------------------


def is_valid_language_code(value: str | None) -> bool:
    """Return True for 2-3 letter ISO 639 style codes (after trim + lowercase)."""
    if not value or not isinstance(value, str):
        return False
    return bool(_LANGUAGE_RE.match(value.strip().lower()))


def _clean(value: str | None) -> str | None:
    if is_valid_language_code(value):
        return value.strip().lower()
    return None


def parse_accept_language(value: str | None) -> str | None:
    """Return the highest-weighted valid language from an Accept-Language value.

    "es-MX,en;q=0.5" -> "es". Region subtags are stripped, entries with an
    invalid code or an unparseable weight are dropped, and equal weights keep
    their header order. Returns None when nothing usable remains.
    """
    if not value:
        return None

    candidates: list[tuple[str, float]] = []
    for entry in value.split(","):
        parts = [p.strip() for p in entry.split(";")]
        tag = parts[0]
        if not tag:
            continue

        quality = 1.0
        malformed = False
        for param in parts[1:]:
            if not param.lower().startswith("q="):
                continue
            try:
                quality = float(param[2:])
            except ValueError:
                malformed = True
                break
            # also rejects NaN
            if not 0.0 <= quality <= 1.0:
                malformed = True
                break
        if malformed:
            continue

        code = _clean(tag.split("-")[0])
        if code is not None:
            candidates.append((code, quality))

    if not candidates:
        return None
    # sorted() is stable, so equal weights keep their header order.
    candidates = sorted(candidates, key=lambda item: -item[1])
    return candidates[0][0]


def detect_language(signals: LanguageSignals, default: str = DEFAULT_LANGUAGE) -> str:
    """Resolve the request language from signals in strict priority order."""
    for candidate in (
        _clean(signals.query),
        _clean(signals.header),
        parse_accept_language(signals.accept_language),
        _clean(signals.context),
        _clean(signals.secondary_context),
    ):
        if candidate is not None:
            return candidate
    return default


def build_fallback_chain(code: str, default: str = DEFAULT_LANGUAGE) -> list[str]:
    """Ordered languages to try for a localized resource: [code] or [code, default]."""
    if code == default:
        return [code]
    return [code, default]


# ---------------------------------------------------------------------------
# Taxonomy keys
# ---------------------------------------------------------------------------


def normalize_taxonomy_key(raw: str) -> str:
    """Canonical form of a taxonomy key: trimmed and lowercased. Idempotent."""
    return raw.strip().lower()


def validate_taxonomy_key(raw: str | None) -> bool:
    """Return True if raw normalizes to a well-formed taxonomy key.

    A key starts with a letter, continues with lowercase letters, digits,
    hyphens or underscores, and is 2-50 characters long.
    """
    if not raw or not isinstance(raw, str):
        return False
    key = normalize_taxonomy_key(raw)
    if not TAXONOMY_KEY_MIN_LENGTH <= len(key) <= TAXONOMY_KEY_MAX_LENGTH:
        return False
    return bool(_TAXONOMY_KEY_RE.match(key))
