"""
Configuration management for agentai.

This module provides a Settings class that loads configuration from environment
variables, allowing agents and clients to be configured without code changes.
"""

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Chat backend settings
    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    request_timeout: float = 60.0

    # Agent loop settings
    max_turns: int | None = 25  # None = no turn guard
    tool_timeout: float | None = 30.0  # per tool call, for FunctionToolBox and built-in boxes

    # Built-in tools
    brave_api_key: str | None = None

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="AGENTAI_",
        env_file=".env",
        env_file_encoding="utf-8",
    )


def get_settings() -> Settings:
    """Get the application settings instance."""
    return Settings()


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging from *settings* (defaults to ``get_settings()``)."""
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)
