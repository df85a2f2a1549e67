"""
core/config.py -- Centralized configuration via pydantic-settings.

All environment variable reads happen here. No module should call os.getenv()
or os.environ.get() directly -- import get_settings() instead, and pass the
values it returns into the components that need them.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  @model_validator(mode="after"): Cross-field validation after all fields are
      resolved. Used for the DEBUG-conditional JWT_SECRET policy and the TTL
      ordering rule.

Security notes:
  [M6] JWT_SECRET shorter than 32 chars is rejected outright. HS256 signing
       relies on key entropy -- a short key weakens every issued token.

  [M7] In production mode (DEBUG not set or false), a missing JWT_SECRET is a
       hard startup failure. A random per-process key would silently invalidate
       every refresh token on restart.

Layer rule: core/ is the kernel. This module may not import from auth/.
"""

import logging
import re
import secrets
from datetime import timedelta
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("radionica.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'radionica_auth.db'}"

# Go-style duration strings ("15m", "168h", "1h30m", "90s") as accepted by the
# TOKEN_DURATION / REFRESH_TOKEN_DURATION variables of earlier deployments.
_DURATION_RE = re.compile(r"^(?:\d+(?:\.\d+)?(?:h|m|s|ms))+$")
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)(h|ms|m|s)")
_DURATION_UNITS = {
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
}


def parse_duration(value: str) -> timedelta:
    """Parse a Go-style duration string such as "15m" or "1h30m".

    Raises ValueError for anything else. Plain integers (seconds) and ISO-8601
    durations are handled by pydantic's own timedelta parsing, not here.
    """
    text = value.strip()
    if not _DURATION_RE.match(text):
        raise ValueError(f"invalid duration: {value!r}")
    total = timedelta()
    for amount, unit in _DURATION_PART_RE.findall(text):
        total += float(amount) * _DURATION_UNITS[unit]
    return total


class Settings(BaseSettings):
    """Settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file (DEBUG=true is still required when
    JWT_SECRET is absent). The model validators enforce production-safety
    rules at startup.
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
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    jwt_secret: str = ""
    # Access token TTL (TOKEN_DURATION) and refresh token TTL
    # (REFRESH_TOKEN_DURATION). Fixed for the lifetime of the process.
    token_duration: timedelta = timedelta(minutes=15)
    refresh_token_duration: timedelta = timedelta(hours=168)

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    # 0 = unbounded. Positive values cap concurrent bcrypt computations so
    # hashing cannot starve other work on the same host.
    max_concurrent_hashes: int = Field(default=0, ge=0)

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("token_duration", "refresh_token_duration", mode="before")
    @classmethod
    def parse_go_duration(cls, value):
        """Accept Go-style duration strings in addition to pydantic's formats."""
        if isinstance(value, str) and _DURATION_RE.match(value.strip()):
            return parse_duration(value)
        return value

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value!r}")
        return level

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy [M7].

        Dev mode (DEBUG=true): auto-generate a random key with a warning.
            Tokens will not survive restart -- acceptable for local dev.

        Production mode (DEBUG=false or not set): refuse to start if
            JWT_SECRET is missing.

        Both modes: reject keys shorter than 32 characters [M6].
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET. Issued tokens will not survive a restart.")
            else:
                raise ValueError(
                    "JWT_SECRET is required in production mode. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        return self

    @model_validator(mode="after")
    def validate_durations(self) -> "Settings":
        """Both TTLs must be positive and the refresh TTL must outlive the access TTL."""
        if self.token_duration <= timedelta(0):
            raise ValueError("TOKEN_DURATION must be positive.")
        if self.refresh_token_duration <= self.token_duration:
            raise ValueError("REFRESH_TOKEN_DURATION must be longer than TOKEN_DURATION.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
