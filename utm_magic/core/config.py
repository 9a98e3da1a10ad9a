"""Application configuration using Pydantic settings."""

from typing import List
from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Database Configuration
    DATABASE_URL: str = Field(default="sqlite:///./utm_magic.db", description="Database connection URL (defaults to local SQLite)")

    # Application Configuration
    APP_NAME: str = Field(default="UTM Content Magic API", description="Application name")
    APP_VERSION: str = Field(default="0.1.0", description="Application version")
    DEBUG: bool = Field(default=False, description="Debug mode")

    # Logging Configuration
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    LOG_JSON: bool = Field(default=False, description="Emit structured JSON log lines")

    # CORS Configuration
    CORS_ORIGINS: List[str] = Field(default=["http://localhost:3000", "http://localhost:8080"], description="Origins allowed on non-tracking endpoints")
    TRACKING_PATHS: List[str] = Field(
        default=["/functions/v1/utm-tracking", "/functions/v1/utm-content"],
        description="Paths embedded on customer sites; any origin is accepted"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @validator("DATABASE_URL")
    def validate_database_url(cls, v: str) -> str:
        """Ensure database URL is properly formatted."""
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+psycopg2://", 1)
        return v

    @validator("LOG_LEVEL")
    def validate_log_level(cls, v: str) -> str:
        """Normalize the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


# Global settings instance
settings = Settings()
