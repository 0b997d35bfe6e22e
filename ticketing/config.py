"""
Ticketing configuration.

Values come from the environment (prefix ``TICKETING_``).
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TICKETING_")

    default_offset: int = 0
    default_limit: int = 50
    description_min_length: int = 50

    # HTTP methods whose requests record actor changes in the changeset
    update_methods: List[str] = ["POST"]

    items_count_header: str = "X-ESN-Items-Count"
    log_level: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
