"""Taskboard configuration settings."""

from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TASKBOARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_name: str = "Taskboard API"
    app_version: str = "1.0.0"
    log_level: str = "INFO"
    cors_origins: str = "*"

    # Database
    database_url: str = "sqlite:///./taskboard.db"

    # Tokens
    jwt_secret: str = Field(default="dev-only-secret-key-change-me-in-production")
    jwt_algorithm: str = "HS256"
    token_ttl_days: int = 7

    # Passwords
    bcrypt_rounds: int = 10

    # Boards
    default_background: str = "#0079BF"

    @property
    def cors_origins_list(self) -> List[str]:
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
