from __future__ import annotations

import logging
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BEDROCK_MODEL = "us.anthropic.claude-sonnet-4-5-20250929-v1:0"

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
    "NONE": logging.CRITICAL + 1,  # Effectively disable logging
}


class Settings(BaseSettings):
    """Gateway configuration, read from the environment and an optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    aws_region: str = "us-east-1"
    aws_profile: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("PROFILE", "aws_profile")
    )
    bedrock_api_key: Optional[str] = None
    default_bedrock_model: str = DEFAULT_BEDROCK_MODEL
    proxy_api_key: Optional[str] = None  # Blank disables API key checks
    port: int = 8080
    log_level: str = "INFO"

    @field_validator("proxy_api_key", "bedrock_api_key", "aws_profile")
    @classmethod
    def _blank_as_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None


def configure_logging(level_name: str) -> None:
    level = _LOG_LEVELS.get(level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
