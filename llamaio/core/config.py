"""Configuration management for llamaio."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


SQLITE_URL_PREFIXES = ("sqlite+aiosqlite:///", "sqlite:///")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database Configuration
    database_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("database_url", "mongodb_uri"),
        description="Document store URL (sqlite:///path/to/llamaio.db or a bare file path)",
    )

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Interface the HTTP server binds to")  # noqa: S104
    port: int = Field(default=3000, description="Port the HTTP server listens on")

    # Pydantic Logfire Configuration (optional)
    logfire_token: str | None = Field(default=None, description="Pydantic Logfire token for observability")
    environment: str = Field(default="development", description="Deployment environment name")

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

    def database_path(self) -> str:
        """Resolve the SQLite database path from the configured URL.

        Raises:
            ValueError: If the database URL is not configured
        """
        url = self.require_credential("database_url", "Database")
        for prefix in SQLITE_URL_PREFIXES:
            if url.startswith(prefix):
                return url[len(prefix) :]
        if "://" in url:
            msg = f"Unsupported database URL scheme: {url.split('://', 1)[0]}"
            raise ValueError(msg)
        return url


# Application Constants
class Constants:
    """Application-wide constants."""

    APP_NAME: str = "llamaio"
    APP_VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"

    # HTTP Status Codes
    HTTP_OK: int = 200
    HTTP_CREATED: int = 201
    HTTP_NO_CONTENT: int = 204
    HTTP_BAD_REQUEST: int = 400
    HTTP_NOT_FOUND: int = 404
    HTTP_METHOD_NOT_ALLOWED: int = 405
    HTTP_SERVER_ERROR: int = 500
    HTTP_SERVICE_UNAVAILABLE: int = 503

    # Pagination Defaults
    DEFAULT_TASK_LIMIT: int = 100  # Tasks are capped unless a limit is given; users are not

    # Denormalized name stored on tasks without an assignee
    UNASSIGNED_NAME: str = "unassigned"


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
constants = Constants()
