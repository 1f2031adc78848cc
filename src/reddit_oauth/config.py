"""Configuration settings for the reddit OAuth client."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from reddit_oauth import __version__

DEFAULT_USER_AGENT = f"reddit-oauth-client/{__version__}"


class QueueConfig(BaseModel):
    """Configuration for the serialized request queue.

    reddit throttles per OAuth client, so every call (token grants
    included) goes through a single queue that waits at least
    ``request_buffer_ms`` between the end of one request and the start
    of the next.
    """

    request_buffer_ms: int = Field(
        default=2000,
        ge=0,
        description="Minimum milliseconds between the end of a request and the start of the next",
    )
    request_timeout_s: float = Field(
        default=30.0,
        gt=0.0,
        description="Transport timeout in seconds (a hung request blocks the queue until it expires)",
    )

    @property
    def min_interval(self) -> float:
        """Get the request buffer in seconds."""
        return self.request_buffer_ms / 1000


class LoggingConfig(BaseModel):
    """Configuration for logging behavior.

    Controls file logging, rotation, and output format.
    """

    log_file: str | None = Field(
        default=None,
        description="Optional path for file logging (enables rotation)",
    )
    rotation: str = Field(
        default="10 MB",
        description="When to rotate log file (e.g., '10 MB', '1 day')",
    )
    retention: str = Field(
        default="7 days",
        description="How long to keep rotated logs",
    )
    serialize: bool = Field(
        default=False,
        description="If True, output JSON format to file",
    )


class Settings(BaseSettings):
    """Application settings loaded from ``REDDIT_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="REDDIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # --------------------------------------------------------------------------
    # OAuth application
    # --------------------------------------------------------------------------
    client_id: str = Field(
        default="",
        description="OAuth application client id",
    )
    client_secret: str = Field(
        default="",
        description="OAuth application client secret",
    )
    redirect_uri: str | None = Field(
        default=None,
        description="Redirect URI registered for the application",
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="User-Agent header sent with every request",
    )

    # --------------------------------------------------------------------------
    # Credentials
    # --------------------------------------------------------------------------
    access_token: str | None = Field(
        default=None,
        description="Initial access token",
    )
    refresh_token: str | None = Field(
        default=None,
        description="Initial refresh token (enables silent re-authentication)",
    )
    username: str | None = Field(
        default=None,
        description="Account name for the password grant (script apps)",
    )
    password: str | None = Field(
        default=None,
        description="Account password for the password grant (script apps)",
    )

    # --------------------------------------------------------------------------
    # Application
    # --------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # --------------------------------------------------------------------------
    # Request queue
    # --------------------------------------------------------------------------
    queue: QueueConfig = Field(
        default_factory=QueueConfig,
        description="Request queue configuration",
    )

    # --------------------------------------------------------------------------
    # Logging Configuration
    # --------------------------------------------------------------------------
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration (file output, rotation)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
