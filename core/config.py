"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for SessionGate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_public_key -> ACCESS_TOKEN_PUBLIC_KEY).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode generates ephemeral key pairs with a warning;
      production mode refuses to start without all four keys.

Security notes:
  [K1] Access and refresh keys must be distinct pairs. A refresh token must
       never verify against the access public key and vice versa, so identical
       key material is rejected at startup.

  [K2] Every configured key must decode to PEM text. A malformed value is a
       hard startup failure rather than a signing failure on the first login.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.keys import decode_key, encode_key, generate_key_pair

logger = logging.getLogger("sessiongate.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'auth' / 'sessiongate.db'}"

_KEY_FIELDS = (
    "access_token_public_key",
    "access_token_private_key",
    "refresh_token_public_key",
    "refresh_token_private_key",
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
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
    # Seconds a store call may wait on the database before it fails closed.
    store_timeout_seconds: float = 5.0

    # ------------------------------------------------------------------
    # Token keys -- base64-encoded PEM text. Empty string = not configured.
    # ------------------------------------------------------------------

    access_token_public_key: str = ""
    access_token_private_key: str = ""
    refresh_token_public_key: str = ""
    refresh_token_private_key: str = ""

    access_token_ttl_seconds: int = 60 * 60
    refresh_token_ttl_seconds: int = 7 * 24 * 60 * 60

    # ------------------------------------------------------------------
    # Mail (password reset and verification codes)
    # ------------------------------------------------------------------

    smtp_enabled: bool = False
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: SecretStr | None = None
    smtp_starttls: bool = True
    mail_from: str = "no-reply@sessiongate.local"

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    login_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_token_keys(self) -> "Settings":
        """Enforce the key material policy.

        Dev mode (DEBUG=true): any missing key pair is replaced by a freshly
            generated one with a warning. Tokens will not survive a restart.

        Production mode: refuse to start if any of the four keys is missing.

        Both modes: every key must decode to PEM [K2] and the access and
            refresh pairs must differ [K1].
        """
        missing = [name for name in _KEY_FIELDS if not getattr(self, name)]
        if missing:
            if not self.debug:
                raise ValueError(
                    f"Token key material is required in production mode (missing: {', '.join(missing)}). "
                    "Generate keys with `python main.py keygen` or set DEBUG=true for development."
                )
            for key_class in ("access", "refresh"):
                private_name = f"{key_class}_token_private_key"
                public_name = f"{key_class}_token_public_key"
                if getattr(self, private_name) and getattr(self, public_name):
                    continue
                private_pem, public_pem = generate_key_pair()
                setattr(self, private_name, encode_key(private_pem))
                setattr(self, public_name, encode_key(public_pem))
                logger.warning(
                    "WARNING: Using auto-generated %s token keys. Issued tokens will not survive a restart.",
                    key_class,
                )

        for name in _KEY_FIELDS:
            try:
                decode_key(getattr(self, name))
            except ValueError as exc:
                raise ValueError(f"{name.upper()} is not valid base64-encoded PEM: {exc}") from exc

        if self.access_token_private_key == self.refresh_token_private_key:
            raise ValueError("Access and refresh tokens must use different key pairs.")
        if self.access_token_ttl_seconds <= 0 or self.refresh_token_ttl_seconds <= 0:
            raise ValueError("Token TTLs must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings()
    directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
