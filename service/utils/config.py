"""
Configuration management for the uploader service.

Process settings use pydantic-settings to load configuration from environment
variables and .env files. Upload tasks are read from a YAML configuration file
and validated into pydantic models.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from loguru import logger
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from service.models.schemas import UploaderConfig
from service.utils.errors import ConfigError

DEFAULT_CONFIG_FILE = Path("/usr/local/etc/telegram-uploader-bot.cfg")


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Service Configuration
    config_file: Path = DEFAULT_CONFIG_FILE
    log_level: str = "INFO"

    # Telegram Configuration
    telegram_token: Optional[str] = None  # overrides telegram.token from config file
    telegram_api_url: str = "https://api.telegram.org"
    telegram_timeout: float = 60.0

    # Delivery Configuration
    rate_limit_per_second: float = 1.0
    rate_limit_burst: int = 5

    # Event Queue Configuration
    event_buffer_size: int = 100

    model_config = SettingsConfigDict(
        env_prefix="UPLOADER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_config(path: Path, settings: Optional[Settings] = None) -> UploaderConfig:
    """
    Read and validate the upload configuration file.

    Args:
        path: YAML configuration file
        settings: Settings whose telegram_token, if set, replaces the file's token

    Returns:
        Validated configuration

    Raises:
        ConfigError: If the file can't be read, parsed or validated
    """
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"can't read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"can't parse config file {path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"config file {path} must contain a mapping")

    try:
        config = UploaderConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid config file {path}: {e}") from e

    if settings is not None and settings.telegram_token:
        config.telegram.token = settings.telegram_token

    logger.info(f"Using config file: {path}")
    return config
