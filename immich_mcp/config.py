"""Configuration management for the Immich MCP gateway."""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Gateway settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    ENV: str = "local"
    SERVICE_NAME: str = "immich_mcp"

    # Upstream Immich instance
    IMMICH_BASE_URL: str = Field(
        default="", validation_alias=AliasChoices("IMMICH_BASE_URL", "IMMICH_URL")
    )
    IMMICH_API_KEY: str = Field(
        default="", validation_alias=AliasChoices("IMMICH_API_KEY", "IMMICH_TOKEN")
    )
    REQUEST_TIMEOUT: float = 120.0  # seconds, long enough for uploads
    RETRY_ATTEMPTS: int = 3
    RETRY_BACKOFF_SECONDS: float = 1.0  # delay = base * 2^attempt

    # Pagination
    DEFAULT_PAGE_SIZE: int = 25
    MAX_PAGE_SIZE: int = 100

    # Out-of-band uploads
    UPLOAD_SESSION_TIMEOUT_MINUTES: int = 30
    SESSION_SWEEP_INTERVAL_SECONDS: int = 60
    MCP_PUBLIC_URL: str = Field(
        default="http://localhost:5000",
        validation_alias=AliasChoices("MCP_PUBLIC_URL", "MCP_BASE_URL"),
    )

    # HTTP transport
    MCP_HOST: str = "0.0.0.0"
    MCP_PORT: int = 5000

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"  # "text" or "json"

    @property
    def immich_base_url(self) -> str:
        """Base URL without a trailing slash."""
        return self.IMMICH_BASE_URL.rstrip("/")

    @property
    def upload_base_url(self) -> str:
        """Public address that out-of-band uploads are POSTed to."""
        return self.MCP_PUBLIC_URL.rstrip("/")

    def require_upstream(self) -> None:
        """Fail fast when the upstream connection is not configured."""
        if not self.IMMICH_BASE_URL:
            raise ValueError("IMMICH_BASE_URL environment variable is not set.")
        if not self.IMMICH_API_KEY:
            raise ValueError(
                "IMMICH_API_KEY environment variable is not set. "
                "Create an API key under Account Settings > API Keys in Immich."
            )


# Singleton settings instance
settings = Settings()
