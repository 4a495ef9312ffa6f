"""Configuration management for taskboard."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # SQLite Configuration
    sqlite_db_path: str = Field(default="./data/taskboard.db", description="Path to the SQLite database file")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")

    # Localization
    locale: str = Field(default="en", description="Locale for user-facing error messages (en, ar)")

    # Defaults
    default_category_name: str = Field(default="My Tasks", description="Name of the category created on first login")
    default_profile_name: str = Field(default="User", description="Fallback display name for new profiles")

    # Share Codes
    share_code_length: int = Field(default=8, description="Length of generated share codes")
    share_code_max_attempts: int = Field(
        default=5, description="Attempts to find an unused share code before giving up"
    )

    # Bulk Write Convergence
    write_max_retries: int = Field(default=3, description="Attempts per document in bulk reorder and cascading delete")
    write_retry_base_delay: float = Field(
        default=0.05, description="Base delay in seconds for exponential backoff between bulk write retries"
    )

    # Live Queries
    live_query_queue_size: int = Field(default=100, description="Maximum undelivered snapshots kept per live query")

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    def require_credential(self, field_name: str, service_name: str) -> str:
        """Validate that a required credential is set, raising a clear error if missing.

        Args:
            field_name: Name of the field to check
            service_name: Human-readable service name for error message

        Returns:
            The credential value

        Raises:
            ValueError: If the credential is None or empty
        """
        value = getattr(self, field_name)
        if not value:
            raise ValueError(
                f"{service_name} credential not configured. "
                f"Set {field_name.upper()} environment variable or add to .env file."
            )
        return value


# Application Constants
class Constants:
    """Application-wide constants."""

    # HTTP Status Codes
    HTTP_UNAUTHORIZED: int = 401
    HTTP_CREATED: int = 201
    HTTP_NO_CONTENT: int = 204
    HTTP_FORBIDDEN: int = 403
    HTTP_NOT_FOUND: int = 404
    HTTP_CONFLICT: int = 409
    HTTP_UNPROCESSABLE: int = 422
    HTTP_SERVER_ERROR: int = 500

    # Query Limits
    MAX_IN_FILTER_VALUES: int = 10  # Alternatives allowed in one "in" (|| group) filter
    DEFAULT_PER_PAGE_LIMIT: int = 100  # Page size used when reading a full result set

    # Share Codes
    SHARE_CODE_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"

    # Identity
    USER_ID_HEADER: str = "X-User-Id"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
