"""Application settings and configuration.

This module defines all configuration options for the Inkwell core.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    app_name: str = Field(default="Inkwell", alias="APP_NAME")

    # Database configuration
    database_url: str = Field(default="sqlite:///./inkwell.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="text", alias="LOG_FORMAT")

    # Content rules
    summary_length: int = Field(default=150, alias="SUMMARY_LENGTH")
    reply_preview_size: int = Field(default=3, alias="REPLY_PREVIEW_SIZE")
    popular_window_days: int = Field(default=30, alias="POPULAR_WINDOW_DAYS")

    # Listing defaults
    default_page_size: int = Field(default=10, alias="DEFAULT_PAGE_SIZE")
    max_page_size: int = Field(default=100, alias="MAX_PAGE_SIZE")

    # Notification links are relative to this prefix, e.g. /blog/<slug>
    notification_link_prefix: str = Field(default="/blog", alias="NOTIFICATION_LINK_PREFIX")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()
