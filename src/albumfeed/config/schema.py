"""Configuration schema models using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from albumfeed.utils.paths import get_data_dir

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]

DEFAULT_USER_AGENT = "albumfeed/0.1 (Music RSS Reader)"


class FetchConfig(BaseModel):
    """HTTP settings for fetching feed documents."""

    timeout_seconds: float = Field(default=10.0, gt=0)
    user_agent: str = DEFAULT_USER_AGENT
    max_concurrency: int = Field(default=8, ge=1)


class ApiConfig(BaseModel):
    """HTTP API settings."""

    host: str = "127.0.0.1"
    port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    feeds_cache_seconds: int = Field(default=600, ge=0)


class GlobalConfig(BaseModel):
    """Global albumfeed configuration."""

    version: str = "1"
    data_dir: Path = Field(default_factory=get_data_dir)
    log_level: LogLevel = "INFO"

    fetch: FetchConfig = Field(default_factory=FetchConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
