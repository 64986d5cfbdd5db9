"""
core/config.py -- Postboard settings, read from the environment and .env.

Nothing outside this module touches os.environ. Callers use get_settings(),
which builds one Settings instance per process. The app lifespan hands the
relevant values to TokenService and the stores when it constructs them.

SECRET_KEY rules:
  - at least 32 characters, always
  - mandatory unless DEBUG=true, in which case a random key is generated
    for the lifetime of the process

core/ sits at the bottom of the import graph: no imports from api/, auth/
or blog/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("postboard.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'postboard.db'}"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


class Settings(BaseSettings):
    """Every tunable in one place.

    Each field maps to the upper-case variable of the same name
    (bcrypt_rounds -> BCRYPT_ROUNDS). Defaults are safe for local runs and
    tests; list fields take JSON, e.g. CORS_ORIGINS='["https://app.example.com"]'.
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
    log_level: str = "INFO"
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured"; the validator below
    # either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    # 7 days. Role changes are picked up on the next request because the
    # authenticator re-reads the account, but tokens stay valid until exp.
    token_expire_seconds: int = 7 * 24 * 3600
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Rate limiting (slowapi / limits syntax)
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    default_rate_limit: str = "100/15minutes"
    auth_rate_limit: str = "5/15minutes"
    post_create_rate_limit: str = "10/hour"
    post_update_rate_limit: str = "20/15minutes"
    comment_create_rate_limit: str = "30/15minutes"
    comment_update_rate_limit: str = "20/15minutes"
    profile_rate_limit: str = "30/15minutes"
    admin_rate_limit: str = "100/hour"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of: {', '.join(sorted(_LOG_LEVELS))}")
        return level

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Fill in a throwaway key under DEBUG, otherwise demand a real one."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("DEBUG is on and SECRET_KEY is unset; generated a per-process key.")
            else:
                raise ValueError(
                    "SECRET_KEY is not set. Export it or add it to .env, "
                    "or set DEBUG=true for a development run."
                )
        if len(self.secret_key) < 32:
            raise ValueError(f"SECRET_KEY is {len(self.secret_key)} characters; 32 or more are required.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Cached Settings. Tests that change the environment call cache_clear() first."""
    return Settings()
