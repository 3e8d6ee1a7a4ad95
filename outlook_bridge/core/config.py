"""
Application configuration models and helpers.

Centralizes settings management so the HTTP surface, the operator scripts and
the credential store share one configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_SCOPES: tuple[str, ...] = (
    "offline_access",
    "User.Read",
    "Mail.Read",
    "Mail.ReadWrite",
    "Mail.Send",
    "Calendars.Read",
    "Calendars.ReadWrite",
    "Contacts.Read",
)


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


def _default_token_store_path() -> Path:
    home = os.environ.get("HOME") or os.environ.get("USERPROFILE") or str(Path.home())
    return Path(home) / ".outlook-mcp-tokens.json"


class MicrosoftSettings(BaseSettings):
    """Configuration required for talking to the Microsoft identity platform."""

    model_config = SettingsConfigDict(populate_by_name=True)

    client_id: str = Field("", validation_alias="MS_CLIENT_ID")
    client_secret: str = Field("", validation_alias="MS_CLIENT_SECRET")
    redirect_uri: str = Field(
        "http://localhost:3333/auth/callback", validation_alias="MS_REDIRECT_URI"
    )
    tenant_id: str = Field("common", validation_alias="MS_TENANT_ID")
    token_endpoint_override: Optional[str] = Field(
        None,
        validation_alias="MS_TOKEN_ENDPOINT",
        description="Full token endpoint URL; derived from the tenant when omitted.",
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        DEFAULT_SCOPES, validation_alias="MS_SCOPES"
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a space- or comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope for scope in value.replace(",", " ").split() if scope)

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def authority(self) -> str:
        return f"https://login.microsoftonline.com/{self.tenant_id}/oauth2/v2.0"

    @property
    def token_endpoint(self) -> str:
        return self.token_endpoint_override or f"{self.authority}/token"

    @property
    def authorize_endpoint(self) -> str:
        return f"{self.authority}/authorize"


class TokenStoreSettings(BaseSettings):
    """Where and how OAuth token sets are persisted."""

    model_config = SettingsConfigDict(populate_by_name=True)

    path: Path = Field(
        default_factory=_default_token_store_path,
        validation_alias="OUTLOOK_TOKEN_STORE_PATH",
    )
    refresh_buffer_seconds: int = Field(
        300,
        validation_alias="OUTLOOK_REFRESH_BUFFER_SECONDS",
        description="Refresh tokens this many seconds before they expire.",
    )

    @field_validator("path", mode="after")
    @classmethod
    def _expand_path(cls, value: Path) -> Path:
        return value.expanduser()


class GraphSettings(BaseSettings):
    """Microsoft Graph endpoint and pagination limits."""

    model_config = SettingsConfigDict(populate_by_name=True)

    base_url: str = Field(
        "https://graph.microsoft.com/v1.0/", validation_alias="GRAPH_API_ENDPOINT"
    )
    max_pages: int = Field(
        100,
        validation_alias="GRAPH_MAX_PAGES",
        description="Hard ceiling on pages followed by a single paginated fetch.",
    )
    max_total_results: int = Field(1000, validation_alias="GRAPH_MAX_TOTAL_RESULTS")
    page_size: int = Field(50, validation_alias="GRAPH_PAGE_SIZE")
    timeout_seconds: float = Field(30.0, validation_alias="GRAPH_TIMEOUT_SECONDS")

    @field_validator("base_url", mode="after")
    @classmethod
    def _ensure_trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else f"{value}/"


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = SettingsConfigDict(populate_by_name=True)

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    state_secret: Optional[str] = Field(
        None,
        validation_alias="OAUTH_STATE_SECRET",
        description="Key used to sign OAuth state; defaults to the client secret.",
    )


class AppSettings(BaseSettings):
    """Root settings object for the bridge."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", populate_by_name=True
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    use_test_mode: bool = Field(
        False,
        validation_alias="USE_TEST_MODE",
        description="Serve simulated Graph responses for synthetic test tokens.",
    )
    microsoft: MicrosoftSettings = Field(default_factory=MicrosoftSettings)
    token_store: TokenStoreSettings = Field(default_factory=TokenStoreSettings)
    graph: GraphSettings = Field(default_factory=GraphSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_SCOPES",
    "GraphSettings",
    "MicrosoftSettings",
    "OAuthSettings",
    "TokenStoreSettings",
    "get_settings",
]
