"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the token lifecycle
services and the storage backends share a consistent configuration surface.
"""

from functools import lru_cache
from typing import Annotated, Literal, Optional

from pydantic import Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_ENV_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
    populate_by_name=True,
)


def _split_csv(value: str | tuple[str, ...] | list[str] | None) -> tuple[str, ...]:
    """Support providing sequences as a comma-separated string."""
    if value is None:
        return ()
    if isinstance(value, tuple):
        return value
    if isinstance(value, list):
        return tuple(value)
    return tuple(item.strip() for item in value.split(",") if item.strip())


class GoogleSettings(BaseSettings):
    """Configuration required for interacting with Google APIs.

    The client credentials default to empty strings so that a missing value is
    reported by the OAuth flow as a configuration error instead of failing at
    import time.
    """

    model_config = _ENV_CONFIG

    client_id: str = Field("", validation_alias="GOOGLE_CLIENT_ID")
    client_secret: str = Field("", validation_alias="GOOGLE_CLIENT_SECRET")
    redirect_uri: str = Field("", validation_alias="GOOGLE_REDIRECT_URI")
    http_timeout_seconds: float = Field(
        10.0,
        validation_alias="GOOGLE_HTTP_TIMEOUT",
        description="Timeout applied to every outbound Google request.",
    )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = _ENV_CONFIG

    state_ttl_seconds: int = Field(600, validation_alias="OAUTH_STATE_TTL")
    refresh_window_seconds: int = Field(
        300,
        validation_alias="OAUTH_REFRESH_WINDOW_SECONDS",
        description="Tokens expiring within this window are refreshed before use.",
    )
    refresh_retry_backoff_seconds: float = Field(
        0.5,
        validation_alias="OAUTH_REFRESH_RETRY_BACKOFF",
    )


class StorageSettings(BaseSettings):
    """Settings for the credential and review record store."""

    model_config = _ENV_CONFIG

    backend: Literal["sqlite", "dynamodb"] = Field("sqlite", validation_alias="STORAGE_BACKEND")
    sqlite_path: str = Field(
        "data/reviewdesk.db",
        validation_alias="REVIEWDESK_DB_PATH",
    )
    dynamodb_table_name: Optional[str] = Field(
        None,
        validation_alias="DYNAMODB_TABLE_NAME",
    )
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    model_config = _ENV_CONFIG

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    previous_token_encryption_secrets: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        validation_alias="TOKEN_ENCRYPTION_PREVIOUS_SECRETS",
        description="Retired secrets still accepted for decryption during rotation.",
    )

    @field_validator("previous_token_encryption_secrets", mode="before")
    @classmethod
    def _split_previous(cls, value):
        return _split_csv(value)


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = _ENV_CONFIG

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the dashboard.",
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "AppSettings",
    "GoogleSettings",
    "OAuthSettings",
    "SecuritySettings",
    "StorageSettings",
    "get_settings",
]
