from functools import lru_cache

from src.common.settings import Settings


@lru_cache
def get_settings() -> Settings:
    """Return application settings."""
    return Settings()
