"""
Configuration settings for Planboard.
All deployment-specific values are loaded from environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = "Planboard"
    debug: bool = Field(default=False, env="DEBUG")
    environment: str = Field(default="production", env="ENVIRONMENT")

    # Database (PostgreSQL in production, SQLite for local runs and tests)
    database_url: str = Field(default="", env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")
    db_pool_size: int = Field(default=10, env="DB_POOL_SIZE")
    db_max_overflow: int = Field(default=20, env="DB_MAX_OVERFLOW")
    db_pool_timeout: int = Field(default=30, env="DB_POOL_TIMEOUT")
    db_pool_recycle: int = Field(default=1800, env="DB_POOL_RECYCLE")

    # Timestamps are stored naive in this timezone
    timezone: str = Field(default="UTC", env="TIMEZONE")

    # Workflow
    # "permissive": allowed unless an explicit rule forbids it
    # "explicit": allowed only when an explicit rule allows it
    transition_policy: str = Field(default="permissive", env="TRANSITION_POLICY")
    default_status_color: str = Field(default="#808080", env="DEFAULT_STATUS_COLOR")
    search_page_size: int = Field(default=50, env="SEARCH_PAGE_SIZE")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the application settings."""
    return settings
