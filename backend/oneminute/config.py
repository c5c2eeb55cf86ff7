import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: Optional[str] = Field(None, alias="ONEMINUTE_DATABASE_URL")
    database_pool_size: int = Field(10, alias="ONEMINUTE_DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(10, alias="ONEMINUTE_DATABASE_MAX_OVERFLOW")
    database_echo: bool = Field(False, alias="ONEMINUTE_DATABASE_ECHO")
    persistence_mode: Literal["database", "file"] = Field("file", alias="ONEMINUTE_PERSISTENCE_MODE")
    platform: Literal["native", "web"] = Field("native", alias="ONEMINUTE_PLATFORM")
    timezone: str = Field("UTC", alias="ONEMINUTE_TIMEZONE")
    debug_endpoints: bool = Field(False, alias="ONEMINUTE_DEBUG_ENDPOINTS")

    class Config:
        env_file = os.getenv("ENV_FILE", ".env")
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()  # type: ignore[arg-type]
    except ValidationError as exc:
        raise RuntimeError(f"Invalid backend configuration: {exc}") from exc
