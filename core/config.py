"""
core/config.py -- Libris settings, read from the environment by pydantic-settings.

Every tunable lives on Settings: the token signing key and lifetime, bcrypt
cost, the Google client credentials, CORS origins, the database URL, and the
login/register rate limits. Nothing else in the codebase reads os.environ.

get_settings() is cached, so each process builds Settings exactly once. Tests
set environment variables before the first call (see tests/conftest.py).

Startup refuses to run when:
  - SECRET_KEY is unset and DEBUG is false. A key invented at boot would
    differ between workers and between restarts, so tokens would fail at
    random.
  - SECRET_KEY is shorter than 32 characters. It signs both the bearer
    tokens and the OAuth session cookie.
  - BCRYPT_ROUNDS is outside the range bcrypt accepts (4..31).

Layer rule: core/ sits below everything else. No imports from api/, web/,
auth/, or books/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("libris.config")


class Settings(BaseSettings):
    """Environment-backed settings. Field names map to upper-case variables (secret_key -> SECRET_KEY)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev key or raises, so callers never see "".
    secret_key: str = ""
    # Empty means "use the SQLite file next to each store module".
    database_url: str = ""
    # Externally visible origin (e.g. https://libris.example.org). Used to build the
    # Google callback URL behind a proxy; empty means "derive from the request".
    public_base_url: str = ""
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    # One day. Tokens are stateless, so this is the upper bound on how long a
    # discarded or leaked token stays usable.
    token_expire_seconds: int = 86400
    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Google OAuth (optional -- empty string means the provider is disabled)
    # ------------------------------------------------------------------

    google_client_id: str = ""
    google_client_secret: str = ""

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"
    register_rate_limit: str = "5/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secret_key(self) -> "Settings":
        """Generate a dev key under DEBUG, otherwise require a real one; bound bcrypt cost."""
        if not self.secret_key:
            if self.debug:
                self.secret_key = secrets.token_hex(32)
                logger.warning("Using auto-generated SECRET_KEY. Tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "SECRET_KEY is required in production mode. "
                    "Set SECRET_KEY in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters.")
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings, built on first call."""
    return Settings()
