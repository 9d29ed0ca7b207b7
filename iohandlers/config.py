"""
Configuration settings for the I/O handlers.

Uses Pydantic Settings to load environment variables for handler selection,
file paths, the queue handler's config file, pipeline sizing, and logging.
This is the global configuration object every handler's `initialize` receives.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Handler selection
    input_handler: str = Field("file", alias="INPUT_HANDLER")
    output_handler: str = Field("file", alias="OUTPUT_HANDLER")

    # File handler ("" or "-" means stdin/stdout)
    input_file_path: str = Field("", alias="INPUT_FILE_PATH")
    output_file_path: str = Field("", alias="OUTPUT_FILE_PATH")
    zone_file_input: bool = Field(False, alias="ZONE_FILE_INPUT")

    # Handler-specific config file (YAML), used by the rabbitmq input handler
    input_handler_config: str = Field("", alias="INPUT_HANDLER_CONFIG")

    # Pipeline
    channel_capacity: int = Field(0, alias="CHANNEL_CAPACITY", ge=0)
    sink_count: int = Field(1, alias="SINK_COUNT", ge=1)
    relay_workers: int = Field(1, alias="RELAY_WORKERS", ge=1)
    shutdown_timeout_seconds: float = Field(10.0, alias="SHUTDOWN_TIMEOUT_SECONDS", gt=0)
    consume_poll_seconds: float = Field(1.0, alias="CONSUME_POLL_SECONDS", gt=0)
    failure_policy: Literal["tolerant", "strict"] = Field("tolerant", alias="FAILURE_POLICY")

    # Application
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "get_settings"]
