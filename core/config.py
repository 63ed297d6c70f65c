"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for CampaignHub happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): field names map to env var names
      (e.g. secret_key -> SECRET_KEY, bcrypt_rounds -> BCRYPT_ROUNDS).

  @model_validator(mode="after"): cross-field checks once every field is
      resolved. SECRET_KEY is generated in debug mode and mandatory otherwise.

Security notes:
  SECRET_KEY shorter than 32 chars is rejected outright. JWT signing relies
  on key entropy.

  BCRYPT_ROUNDS below 12 is rejected. Login hashes must stay expensive to
  brute-force even if an operator tries to speed up a slow host.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
taxonomy/, sitesettings/, storage/, or cache/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("campaignhub.config")

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string means "not configured"; the validator below replaces it
    # or refuses to start.
    secret_key: str = ""
    app_name: str = "CampaignHub"

    # ------------------------------------------------------------------
    # Sessions and credentials
    # ------------------------------------------------------------------

    session_expire_seconds: int = 24 * 3600
    admin_session_expire_seconds: int = 8 * 3600
    bcrypt_rounds: int = 12
    # Lifetime of activation and password-reset tokens.
    token_ttl_minutes: int = 10

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    database_url: str = f"sqlite:///{_PROJECT_ROOT / 'campaignhub.db'}"
    cache_db_path: str = str(_PROJECT_ROOT / "campaignhub_cache.db")
    cache_ttl_seconds: int = 300
    cache_purge_interval_seconds: int = 15 * 60

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------

    upload_dir: str = str(_PROJECT_ROOT / "uploads")
    max_upload_bytes: int = 5 * 1024 * 1024
    allowed_image_types: list[str] = ["image/jpeg", "image/png", "image/webp"]

    # ------------------------------------------------------------------
    # Email delivery (HTTP API). Empty api key disables delivery.
    # ------------------------------------------------------------------

    frontend_url: str = "http://localhost:3000"
    admin_frontend_url: str = "http://localhost:3001"
    email_api_url: str = "https://api.resend.com/emails"
    email_api_key: str = ""
    email_from: str = "CampaignHub <no-reply@campaignhub.local>"
    email_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    register_rate_limit: str = "5/minute"
    login_rate_limit: str = "10/minute"
    forgot_password_rate_limit: str = "3/minute"
    reset_password_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Localization
    # ------------------------------------------------------------------

    default_language: str = "en"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:3001"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("bcrypt_rounds")
    @classmethod
    def validate_bcrypt_rounds(cls, value: int) -> int:
        if value < 12:
            raise ValueError("BCRYPT_ROUNDS must be at least 12.")
        return value

    @field_validator("default_language")
    @classmethod
    def normalize_default_language(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Sessions will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
