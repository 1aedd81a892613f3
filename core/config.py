"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the Catalog API happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. api_key_bits -> API_KEY_BITS). Type coercion and validation are
      built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Rejects RSA key sizes the crypto backend
      cannot generate and page sizes that would break the pagination contract.

Layer rule: core/ is the kernel. This module may not import from api/,
consumers/, documents/, query/, or catalog/.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("catalogapi.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'documents' / 'catalog.db'}"

# cryptography refuses to generate RSA keys below this modulus size.
_MIN_KEY_BITS = 1024


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
    log_level: str = "INFO"
    db_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Consumer keys
    # ------------------------------------------------------------------

    # Modulus size for freshly generated primary API keys.
    api_key_bits: int = 2048

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    default_page_size: int = 100
    # None leaves pageSize unbounded.
    max_page_size: Optional[int] = None

    # ------------------------------------------------------------------
    # Catalog metadata
    # ------------------------------------------------------------------

    catalog_title: str = "Data Catalog"
    catalog_description: str = "Schema-free datasets published through the Catalog API."

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    query_rate_limit: str = "120/minute"
    write_rate_limit: str = "30/minute"
    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Reject values that would fail at request time instead of startup.

        api_key_bits below 1024 makes every registration fail with
        ERROR_CREATING_API_KEY. A default or max page size below 1 would let
        the pagination engine compute a zero or negative limit.
        """
        if self.api_key_bits < _MIN_KEY_BITS:
            raise ValueError(f"API_KEY_BITS must be at least {_MIN_KEY_BITS}.")
        if self.default_page_size < 1:
            raise ValueError("DEFAULT_PAGE_SIZE must be a positive integer.")
        if self.max_page_size is not None:
            if self.max_page_size < 1:
                raise ValueError("MAX_PAGE_SIZE must be a positive integer when set.")
            if self.max_page_size < self.default_page_size:
                logger.warning(
                    "MAX_PAGE_SIZE (%d) is below DEFAULT_PAGE_SIZE (%d); defaults will be clamped",
                    self.max_page_size,
                    self.default_page_size,
                )
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
