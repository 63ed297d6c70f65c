"""
auth/tokens.py -- One-time tokens, password hashing, and session JWTs.

Security design decisions:
  One-time tokens (activation, password reset): secrets.token_bytes(32) gives
       256 bits of entropy, hex-encoded for use in email links. Only the
       SHA-256 digest is persisted; a database leak does not hand out usable
       links. A fast hash is fine here -- bcrypt's cost exists to protect
       low-entropy secrets, and these tokens are not low-entropy.
       Verification compares digests with hmac.compare_digest and reports a
       single False for missing, mismatched, and expired tokens.

  Expiry policy: reset tokens are expiry-checked (valid iff now < expires_at).
       Activation tokens are only existence-checked, so an unused activation
       link stays valid until it is consumed.

  Passwords: bcrypt with BCRYPT_ROUNDS (>= 12, enforced in core.config). The
       _DUMMY_HASH constant enables timing equalization in
       authenticate_credentials() so response time does not reveal whether an
       email exists.

  Session claims: python-jose HS256 JWTs signed with SECRET_KEY carrying sub,
       iat, exp and caller-supplied claims (email, type). Decoding returns
       None on any failure -- the dependency layer turns that into a 401.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

import bcrypt
from jose import JWTError, jwt

from auth.models import IssuedToken, TokenPurpose
from core.config import get_settings

logger = logging.getLogger("campaignhub.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"
_TOKEN_BYTES = 32

# Purposes whose tokens must also be checked against their expiry.
_EXPIRING_PURPOSES = frozenset({TokenPurpose.PASSWORD_RESET})


# ---------------------------------------------------------------------------
# One-time tokens
# ---------------------------------------------------------------------------


def hash_token(raw: str) -> str:
    """Return the SHA-256 hex digest stored in place of a raw token."""
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def issue_token(purpose: TokenPurpose, ttl_minutes: int = 0) -> IssuedToken:
    """Generate a one-time token for out-of-band delivery.

    Args:
        purpose:     What the token authorizes (activation or password reset).
        ttl_minutes: Lifetime in minutes. If 0 (default), uses
                     Settings.token_ttl_minutes.
    """
    minutes = ttl_minutes if ttl_minutes > 0 else _settings.token_ttl_minutes
    raw = secrets.token_bytes(_TOKEN_BYTES).hex()
    return IssuedToken(
        raw=raw,
        hashed=hash_token(raw),
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=minutes),
        purpose=purpose,
    )


def verify_token(
    raw: str,
    stored_hash: str | None,
    purpose: TokenPurpose,
    expires_at: datetime | None = None,
    now: datetime | None = None,
) -> bool:
    """Return True only if raw matches stored_hash and, where required, is unexpired.

    Fails closed: a cleared hash, an empty raw value, a digest mismatch, or
    (for expiring purposes) a missing or passed expiry all yield False.
    """
    if not raw or not stored_hash:
        return False
    if not hmac.compare_digest(hash_token(raw), stored_hash):
        return False
    if purpose in _EXPIRING_PURPOSES:
        if expires_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if not current < expires_at:
            return False
    return True


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


BCRYPT_MAX_BYTES = 72


def password_fits_bcrypt(plain: str) -> bool:
    """bcrypt rejects (or, in older releases, truncates) input past 72 bytes."""
    return len(plain.encode("utf-8")) <= BCRYPT_MAX_BYTES


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Callers validate with password_fits_bcrypt() first; request models and
    the CLI prompt both do.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


# Timing equalization dummy hash. Computed once at module load so the first
# login attempt is not measurably slower than later ones.
_DUMMY_HASH: str = hash_password("campaignhub_timing_dummy")


class _CredentialLookup(Protocol):
    def find_by_email(self, email: str) -> Any: ...


def authenticate_credentials(store: _CredentialLookup, email: str, password: str) -> Any | None:
    """Return the account for email if password matches, else None.

    Always runs bcrypt whether or not the account exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as a real check)
    - Wrong password: bcrypt runs against the real hash

    Account status is NOT checked here; callers decide how to report a
    correct password on a non-active account.
    """
    account = store.find_by_email(email)
    if account is None or not account.hashed_password:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, account.hashed_password):
        return None
    return account


# ---------------------------------------------------------------------------
# Session claims (JWT encode / decode)
# ---------------------------------------------------------------------------


def create_session_token(
    subject_id: int | str,
    extra_claims: dict[str, Any] | None = None,
    expire_seconds: int = 0,
) -> str:
    """Encode a signed, time-bound JWT binding subject_id to a session.

    Args:
        subject_id:     Account identifier, stored as the "sub" claim.
        extra_claims:   Additional claims (e.g. email, account type). Cannot
                        override sub, iat or exp.
        expire_seconds: Session duration. If 0 (default), uses
                        Settings.session_expire_seconds.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.session_expire_seconds
    issued = datetime.now(timezone.utc)
    payload: dict[str, Any] = dict(extra_claims or {})
    payload.update(
        {
            "sub": str(subject_id),
            "iat": issued,
            "exp": issued + timedelta(seconds=duration),
        }
    )
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> dict | None:
    """Decode and verify a session JWT. Returns the payload or None.

    Expired, tampered, or structurally invalid tokens all return None.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "sub" not in payload:
        return None
    return payload
