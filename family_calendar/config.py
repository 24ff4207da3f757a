"""
Configuration management for Family Calendar.

Uses Pydantic Settings for type-safe environment variable loading.
Configured via .env file in project root.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    """

    # Python & Application
    python_env: Literal["development", "production"] = Field(
        default="development",
        description="Application environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./data/family_calendar.db",
        description="Database connection URL"
    )

    # Google OAuth Configuration (for linked calendars)
    google_oauth_client_id: str = Field(
        default="",
        description="Google OAuth 2.0 client ID"
    )
    google_oauth_client_secret: str = Field(
        default="",
        description="Google OAuth 2.0 client secret"
    )
    google_oauth_redirect_uri: str = Field(
        default="http://localhost:8000/auth/google/callback",
        description="OAuth redirect URI (must match Google Cloud Console)"
    )
    google_token_url: str = Field(
        default="https://oauth2.googleapis.com/token",
        description="Google OAuth token endpoint"
    )

    # External calendar fetching
    external_cache_ttl_seconds: int = Field(
        default=300,
        ge=0,
        description="How long fetched external events stay fresh"
    )
    external_fetch_retries: int = Field(
        default=1,
        ge=0,
        description="Automatic retries for a failed external fetch"
    )
    sync_check_hours: int = Field(
        default=24,
        gt=0,
        description="Window fetched by sync status checks"
    )
    token_refresh_margin_seconds: int = Field(
        default=0,
        ge=0,
        description="Refresh access tokens this many seconds before expiry"
    )
    http_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for provider HTTP calls"
    )

    # Display
    default_calendar_color: str = Field(
        default="#007AFF",
        description="Color for the family calendar and uncolored linked calendars"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.python_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.python_env == "production"

    @property
    def uses_postgresql(self) -> bool:
        """Check if PostgreSQL is the configured database."""
        return "postgresql" in self.database_url.lower()

    @property
    def uses_google_oauth(self) -> bool:
        """Check if Google OAuth is configured."""
        return bool(self.google_oauth_client_id and self.google_oauth_client_secret)

    def validate_production_config(self) -> None:
        """
        Validate configuration for production environment.

        Raises:
            ValueError: If required production settings are missing or invalid
        """
        if not self.is_production:
            return

        errors = []

        if not self.uses_postgresql:
            errors.append(
                "Production requires PostgreSQL. "
                "Set DATABASE_URL to a PostgreSQL connection string."
            )

        if not self.uses_google_oauth:
            errors.append(
                "GOOGLE_OAUTH_CLIENT_ID and GOOGLE_OAUTH_CLIENT_SECRET are required in production."
            )

        if errors:
            raise ValueError("Production configuration errors:\n- " + "\n- ".join(errors))

    def validate_google_oauth_config(self) -> None:
        """
        Validate Google OAuth configuration.

        Raises:
            ValueError: If client credentials are missing
        """
        if not self.uses_google_oauth:
            raise ValueError(
                "Google OAuth not configured. "
                "Set GOOGLE_OAUTH_CLIENT_ID and GOOGLE_OAUTH_CLIENT_SECRET in your .env file."
            )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure we only load settings once.

    Returns:
        Settings instance loaded from environment
    """
    return Settings()
