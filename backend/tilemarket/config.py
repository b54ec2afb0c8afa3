"""
Configuration settings using Pydantic Settings.
"""

from pathlib import Path
from pydantic import model_validator
from pydantic_settings import BaseSettings
from functools import lru_cache

from tilemarket.errors import ConfigurationMissing

BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    RPC_URL: str = ""
    TILE_CORE_ADDRESS: str = ""
    MARKETPLACE_ADDRESS: str = ""

    LIGHTHOUSE_API_KEY: str = ""
    LIGHTHOUSE_API_BASE_URL: str = "https://api.lighthouse.storage"
    IPFS_GATEWAY_URL: str = "https://gateway.lighthouse.storage"

    SCAN_WINDOW_BLOCKS: int = 10_000
    LOG_CHUNK_BLOCKS: int = 0
    STORE_PAGE_SIZE: int = 2000
    GRID_ROW_WIDTH: int = 40

    STORE_FETCH_CONCURRENCY: int = 16
    LEDGER_CONCURRENCY: int = 8
    REQUEST_TIMEOUT_SECONDS: float = 15.0
    UPSTREAM_MAX_RETRIES: int = 2
    UPSTREAM_RETRY_BASE_SECONDS: float = 0.5
    UPSTREAM_RETRY_MAX_SECONDS: float = 4.0

    LISTING_CACHE_BACKEND: str = "memory"
    LISTING_CACHE_TTL_SECONDS: int = 300
    CACHE_DATABASE_PATH: str = "database/cache.db"

    DEBUG: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }

    @model_validator(mode="after")
    def resolve_relative_paths(self):
        db_path = Path(self.CACHE_DATABASE_PATH)
        if not db_path.is_absolute():
            self.CACHE_DATABASE_PATH = str((BASE_DIR / db_path).resolve())

        self.LIGHTHOUSE_API_BASE_URL = self.LIGHTHOUSE_API_BASE_URL.rstrip("/")
        self.IPFS_GATEWAY_URL = self.IPFS_GATEWAY_URL.rstrip("/")
        return self

    def require(self, *names: str) -> None:
        """
        Fail fast when any of the named settings is blank.

        :param names: Setting attribute names that must be non-empty
        :raises ConfigurationMissing: Listing every blank setting
        """
        missing = [name for name in names if not str(getattr(self, name, "") or "").strip()]
        if missing:
            raise ConfigurationMissing(missing)

    @property
    def marketplace_configured(self) -> bool:
        return bool(self.MARKETPLACE_ADDRESS.strip())


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    :return: Cached Settings instance
    :rtype: Settings
    """
    return Settings()


settings = get_settings()
