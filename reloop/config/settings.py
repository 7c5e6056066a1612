"""
Global settings from environment variables.
"""

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReloopSettings(BaseSettings):
    """
    Global configuration loaded from environment variables.

    Environment variables should be prefixed with RELOOP_
    Example: RELOOP_DEBUG=true, RELOOP_MONGO_URI=mongodb://localhost:27017
    """

    model_config = SettingsConfigDict(
        env_prefix="RELOOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=(),
    )

    # Core settings
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_logs: bool = False

    # Storage settings
    storage: Literal["memory", "mongo"] = "memory"
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db_name: str = "reloop"

    # Model provider settings
    openai_api_key: SecretStr | None = None
    openai_base_url: str | None = None
    default_model: str = "gpt-4o-mini"
    llm_max_attempts: int = Field(default=3, ge=1)

    # Run execution
    max_steps: int = Field(default=20, ge=1)
    step_timeout: float | None = Field(default=None, gt=0)
    run_poll_interval: float = Field(default=0.25, gt=0)

    # Chat workflow
    routing: bool = True
    chat_naming: bool = True


# Global settings instance (singleton)
settings = ReloopSettings()


__all__ = ["ReloopSettings", "settings"]
