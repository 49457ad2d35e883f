"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Watch Tracker happen here. No module should
call os.getenv() or os.environ.get() directly.

Settings are constructed at the edges of the program (asgi.py, main.py, tests)
and passed down explicitly: create_app(settings), AuthenticationService(settings,
...), and so on. Nothing below the edge reaches for a process-wide instance, so
tests can build as many independent configurations as they like.

  BaseSettings (pydantic-settings): reads values from WATCH_TRACKER_* environment
      variables and an optional .env file. Type coercion and validation are
      built in.

  @model_validator(mode="after"): DEBUG-conditional SECRET_KEY policy. Dev mode
      generates a key with a warning, production mode refuses to start without
      one, and short keys are rejected in both.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
or watchlist/.
"""

import json
import logging
import secrets
from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger("watchtracker.config")

JWT_ISSUER = "watch-tracker-api"
JWT_AUDIENCE = "watch-tracker-client"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings(debug=True) can be instantiated in test
    environments without a real .env file.

    Environment variable name mapping: WATCH_TRACKER_ + uppercased field name.
    E.g. `secret_key` reads from WATCH_TRACKER_SECRET_KEY.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="WATCH_TRACKER_",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # Duration expressions: <digits><unit>, unit in s/m/h/d. Unparseable values
    # fall back to 1h / 7d at the point of use (see auth.tokens.parse_duration).
    access_token_expire: str = "1h"
    refresh_token_expire: str = "7d"
    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    database_url: str = "sqlite:///./watch-tracker.db"

    # ------------------------------------------------------------------
    # External catalogs
    # ------------------------------------------------------------------

    omdb_api_key: str = ""
    external_api_timeout: float = 10.0

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: Annotated[list[str], NoDecode] = ["http://localhost:5173", "http://localhost:3000"]
    # Host header allow-list for TrustedHostMiddleware. "*" disables the check.
    allowed_hosts: Annotated[list[str], NoDecode] = ["localhost", "127.0.0.1", "*.localhost"]

    @field_validator("cors_origins", "allowed_hosts", mode="before")
    @classmethod
    def split_comma_list(cls, value):
        """Accept "a,b" as well as a JSON array from the environment."""
        if isinstance(value, str):
            if value.lstrip().startswith("["):
                return json.loads(value)
            return [o.strip() for o in value.split(",") if o.strip()]
        return value

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Enforce the SECRET_KEY policy.

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if SECRET_KEY is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "WATCH_TRACKER_SECRET_KEY is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set WATCH_TRACKER_DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("WATCH_TRACKER_SECRET_KEY must be at least 32 characters.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the Settings built from the process environment.

    Only the program edges (asgi.py, main.py) call this. Everything else
    receives a Settings instance as an argument.

    In tests: call get_settings.cache_clear() if you need to inject different
    environment variables, or simply construct Settings(...) directly.
    """
    return Settings()
