"""
app/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (DB URI, bot token, provider keys, etc.)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, validator
from pydantic_settings import BaseSettings
from typing import List, Optional, Literal


def _split_keys(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # MongoDB
    MONGODB_URL: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI"
    )
    MONGODB_DB_NAME: str = Field(
        default="slidebot",
        description="MongoDB database name"
    )
    MONGODB_USE_TRANSACTIONS: bool = Field(
        default=True,
        description="Run quota reservations inside multi-document transactions (needs a replica set)"
    )

    # Telegram
    TELEGRAM_BOT_TOKEN: Optional[str] = Field(
        default=None,
        description="Telegram Bot API token"
    )
    TELEGRAM_WEBHOOK_SECRET: Optional[str] = Field(
        default=None,
        description="Value expected in the X-Telegram-Bot-Api-Secret-Token header"
    )
    TELEGRAM_API_BASE: str = Field(
        default="https://api.telegram.org",
        description="Telegram Bot API base URL"
    )
    TELEGRAM_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="Timeout for outbound Telegram calls"
    )

    # Content providers
    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        description="Primary content provider key"
    )
    OPENAI_MODEL: str = Field(default="gpt-4o-mini")
    OPENAI_BASE_URL: str = Field(default="https://api.openai.com/v1")
    GEMINI_API_KEYS: Optional[str] = Field(
        default=None,
        description="Comma-separated Gemini keys, tried in order"
    )
    GEMINI_API_KEY: Optional[str] = None
    GOOGLE_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = Field(default="gemini-2.5-flash")
    GEMINI_BASE_URL: str = Field(default="https://generativelanguage.googleapis.com/v1beta")
    PROVIDER_TIMEOUT_SECONDS: float = Field(
        default=60.0,
        description="Timeout for a single content provider call"
    )

    # Image provider
    PEXELS_API_KEYS: Optional[str] = Field(
        default=None,
        description="Comma-separated Pexels keys, tried in order"
    )
    PEXELS_BASE_URL: str = Field(default="https://api.pexels.com/v1")
    IMAGE_TIMEOUT_SECONDS: float = Field(
        default=15.0,
        description="Timeout for image search and download calls"
    )

    # Rendering
    TEMPLATES_DIR: Optional[str] = Field(
        default=None,
        description="Directory with presentation templates (defaults to app/templates)"
    )
    RENDER_TIMEOUT_SECONDS: float = Field(default=60.0)

    # Quota
    GENERATION_LIMIT: int = Field(
        default=3,
        description="Maximum non-failed generations per user per window"
    )
    GENERATION_WINDOW_HOURS: int = Field(
        default=24,
        description="Rolling quota window length in hours"
    )

    # Application
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    API_PREFIX: str = Field(
        default="/api/v1",
        description="API route prefix"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    @validator("TELEGRAM_BOT_TOKEN")
    def validate_bot_token(cls, v, values):
        """Ensure the bot token is set in production."""
        if values.get("ENVIRONMENT") == "production" and not v:
            raise ValueError("TELEGRAM_BOT_TOKEN is required in production environment")
        return v

    @validator("GENERATION_LIMIT", "GENERATION_WINDOW_HOURS")
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def gemini_keys(self) -> List[str]:
        """All Gemini keys in rotation order, without duplicates."""
        keys = _split_keys(self.GEMINI_API_KEYS)
        for single in (self.GEMINI_API_KEY, self.GOOGLE_API_KEY):
            if single and single.strip() and single.strip() not in keys:
                keys.append(single.strip())
        return keys

    @property
    def pexels_keys(self) -> List[str]:
        return _split_keys(self.PEXELS_API_KEYS)

    class Config:
        env_file = ".env"
        case_sensitive = True
        env_file_encoding = "utf-8"
        extra = "ignore"


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if not settings.MONGODB_URL:
        errors.append("MONGODB_URL is required")

    # Production-specific validations
    if settings.is_production:
        if not settings.TELEGRAM_BOT_TOKEN:
            errors.append("TELEGRAM_BOT_TOKEN is required in production")
        if not settings.TELEGRAM_WEBHOOK_SECRET:
            errors.append("TELEGRAM_WEBHOOK_SECRET is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
