"""
Configuration Management

Uses Pydantic BaseSettings to load configuration from environment variables.
All settings can be overridden via .env file or environment variables.

Environment Variables:
    SESSION_BACKEND: Where booking sessions live (memory/redis)
    REDIS_URL: Redis connection string
    ANTHROPIC_API_KEY: API key for the extraction oracle and FAQ answers
    CALENDAR_BACKEND: Instructor calendars source (google/mock)
    TIMEZONE: School timezone used to resolve "today" and build events
    APP_ENV: Environment name (development/staging/production)
    DEBUG: Enable debug mode (default: False)
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application Environment
    app_name: str = "driving-school-assistant"
    """Application name."""

    app_env: Literal["development", "staging", "production"] = "development"
    """Current application environment.

    Options:
    - development: Local development, verbose logging, diagnostics enabled
    - staging: Pre-production testing environment
    - production: Live production environment, minimal logging
    """

    debug: bool = False
    """Enable debug mode (DEBUG log level, detailed error bodies)."""

    host: str = "0.0.0.0"
    """Host to bind the application server."""

    port: int = 8000
    """Port to bind the application server."""

    cors_origins: str = "http://localhost:3000"
    """Comma-separated list of allowed CORS origins (chat widget hosts)."""

    enable_diagnostics: bool = False
    """Expose read-only session introspection endpoints outside development."""

    school_name: str = "our driving school"
    """Name used in greetings."""

    # Session Store
    session_backend: Literal["memory", "redis"] = "memory"
    """Backing store for booking sessions.

    memory: single-process deployments
    redis: shared store for multi-process deployments
    """

    redis_url: str = "redis://localhost:6379/0"
    """Redis connection URL.

    Format: redis://host:port/db
    Example: redis://localhost:6379/0
    """

    session_ttl_seconds: int = 1800
    """Idle time before a booking session is evicted (default: 30 minutes)."""

    session_lock_timeout_seconds: float = 30.0
    """Upper bound on how long one turn may hold the per-session lock."""

    # Extraction Oracle (Claude)
    anthropic_api_key: Optional[str] = None
    """Anthropic API key."""

    claude_extraction_model: str = "claude-3-5-haiku-20241022"
    """Fast model used for date/time/number/contact extraction."""

    claude_fallback_model: str = "claude-3-5-sonnet-20241022"
    """Model tried when the primary model errors out."""

    claude_knowledge_model: str = "claude-3-5-haiku-20241022"
    """Model used to answer general questions about the school."""

    oracle_timeout_seconds: float = 10.0
    """Per-call timeout for the extraction oracle."""

    # Calendar / Instructor Directory
    calendar_backend: Literal["google", "mock"] = "mock"
    """Source of instructors and their calendars.

    google: Google Sheets directory + Google Calendar events
    mock: in-memory directory and calendar (development)
    """

    google_service_account_file: str = "google-service-account.json"
    """Path to the Google service account key file."""

    instructors_spreadsheet_id: str = ""
    """Spreadsheet holding the instructor directory."""

    instructors_range: str = "Instructors!A2:D"
    """Sheet range with rows of name, email, calendar id, active (YES/NO)."""

    directory_cache_seconds: int = 300
    """How long the instructor directory is cached."""

    calendar_timeout_seconds: float = 10.0
    """Timeout for availability reads."""

    booking_timeout_seconds: float = 15.0
    """Timeout for submitting a pending booking."""

    # Lesson Policy
    timezone: str = "America/Toronto"
    """School timezone."""

    working_hours_start: int = 9
    """First bookable hour (24h)."""

    working_hours_end: int = 18
    """Hour at which the last lesson must have ended (24h)."""

    lesson_duration_minutes: int = 60
    """Fixed lesson length; also the width of generated slots."""

    # Pydantic configuration
    model_config = SettingsConfigDict(
        env_file=".env",  # Load from .env file if it exists
        env_file_encoding="utf-8",
        case_sensitive=False,  # Allow REDIS_URL or redis_url
        extra="ignore",  # Ignore extra environment variables
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def diagnostics_enabled(self) -> bool:
        """Whether session introspection endpoints are served."""
        return self.enable_diagnostics or self.is_development

    @property
    def cors_origins_list(self) -> list[str]:
        """Split cors_origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are loaded only once and reused
    across the application.

    Returns:
        Settings: Cached settings instance

    Example:
        >>> from app.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.lesson_duration_minutes)
        60
    """
    return Settings()


# Module-level settings instance for easy imports
settings = get_settings()
