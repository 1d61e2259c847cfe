"""Application configuration using Pydantic BaseSettings."""

import logging
import os
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("headcount.config")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # MongoDB Configuration
    MONGO_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "headcount"

    # CORS Configuration
    # Comma-separated list of allowed origins, or "*" for all origins
    CORS_ORIGINS: str = ""

    # Application Metadata
    APP_VERSION: str = "1.0.0"

    # Game defaults
    DEFAULT_MAX_PLAYERS: int = 100
    GAME_CODE_LENGTH: int = 6

    # Publishing capabilities
    PUBLISH_SCHEDULING_ENABLED: bool = True
    PUBLISH_CLEAR_ENABLED: bool = True

    # Notifications are auto-deleted after this many seconds (TTL index)
    NOTIFICATION_TTL_SECONDS: int = 172800

    @field_validator("DEFAULT_MAX_PLAYERS")
    @classmethod
    def validate_default_max_players(cls, v: int) -> int:
        """The default roster size must itself be a valid roster size."""
        if v != -1 and v < 1:
            raise ValueError("DEFAULT_MAX_PLAYERS must be -1 or at least 1")
        return v

    @field_validator("GAME_CODE_LENGTH")
    @classmethod
    def validate_code_length(cls, v: int) -> int:
        if v < 1:
            raise ValueError("GAME_CODE_LENGTH must be positive")
        if v < 4:
            logger.warning(
                "GAME_CODE_LENGTH=%d is short and will collide often", v
            )
        return v

    @property
    def cors_origins(self) -> list[str]:
        """Return list of allowed CORS origins.

        If CORS_ORIGINS is empty, allows the local dev servers
        (localhost:3000, localhost:5173) but returns empty in production.
        """
        if self.CORS_ORIGINS:
            if self.CORS_ORIGINS == "*":
                return ["*"]
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

        is_production = os.getenv("RAILWAY_ENVIRONMENT") == "production"
        if is_production:
            logger.warning(
                "CORS_ORIGINS not configured in production. "
                "Set CORS_ORIGINS environment variable."
            )
            return []

        return [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]


# Global settings instance
settings = Settings()
