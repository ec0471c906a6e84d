"""Configuration management for the MCP tool server.

Supports a YAML configuration file and environment variable overrides.
Configuration is loaded once and cached.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class MCPServerSettings(BaseSettings):
    """MCP Server configuration."""
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    name: str = Field(default="example-server")
    version: str = Field(default="1.0.0")
    protocol_version: str = Field(default="2024-11-05")

    # Storage
    database_path: str = Field(default="data/mcp_tools.db")

    # Audit
    enable_audit: bool = Field(default=True)
    audit_log_path: str = Field(default="logs/audit.log")

    # Caller identity
    require_auth: bool = Field(default=False)
    secret_key: str = Field(default="change-me-in-production")

    # Tool authorization policy
    require_authorized_flag: bool = Field(default=False)

    # Token lifecycle
    token_guard_seconds: int = Field(default=300, ge=0)
    default_token_lifetime_seconds: int = Field(default=3600, gt=0)
    provider_timeout_seconds: float = Field(default=30.0, gt=0)

    # SSE
    sse_ping_seconds: int = Field(default=15, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="MCP_SERVER_",
        env_file=".env",
        extra="ignore"
    )


class GoogleSettings(BaseSettings):
    """Google OAuth client used by Gmail, Calendar and Analytics."""
    client_id: Optional[str] = Field(default=None)
    client_secret: Optional[str] = Field(default=None)
    redirect_uri: Optional[str] = Field(default=None)
    token_url: str = Field(default="https://oauth2.googleapis.com/token")

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_",
        env_file=".env",
        extra="ignore"
    )


class UberSettings(BaseSettings):
    """Uber API configuration."""
    client_id: Optional[str] = Field(default=None)
    client_secret: Optional[str] = Field(default=None)
    server_token: Optional[str] = Field(default=None)
    redirect_uri: Optional[str] = Field(default=None)
    token_url: str = Field(default="https://login.uber.com/oauth/v2/token")
    sandbox: bool = Field(default=True)
    api_url: str = Field(default="https://api.uber.com")
    sandbox_api_url: str = Field(default="https://sandbox-api.uber.com")

    model_config = SettingsConfigDict(
        env_prefix="UBER_",
        env_file=".env",
        extra="ignore"
    )

    @property
    def base_url(self) -> str:
        return self.sandbox_api_url if self.sandbox else self.api_url


class ToolSettings(BaseSettings):
    """Endpoints used by individual tools."""
    gmail_api_url: str = Field(default="https://gmail.googleapis.com/gmail/v1")
    calendar_api_url: str = Field(default="https://www.googleapis.com/calendar/v3")
    analytics_api_url: str = Field(default="https://analyticsdata.googleapis.com/v1beta")
    geocoder_url: str = Field(default="https://nominatim.openstreetmap.org/search")
    youtube_webhook_url: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="TOOLS_",
        env_file=".env",
        extra="ignore"
    )


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Component settings
    mcp_server: MCPServerSettings = Field(default_factory=MCPServerSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    uber: UberSettings = Field(default_factory=UberSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """
        Settings seeded from a YAML file.

        ``${VAR}`` references in string values are expanded from the
        environment, so secrets can stay out of the file. A missing file
        yields the defaults.
        """
        return cls(**_expand_env(read_yaml(path)))


def read_yaml(path: str | Path) -> dict[str, Any]:
    config_file = Path(path)
    if not config_file.is_file():
        return {}

    document = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise ValueError(f"{config_file}: top level must be a mapping")
    return document


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, dict):
        return {key: _expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    return value


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read once from ``MCP_CONFIG_PATH``."""
    return Settings.from_yaml(os.environ.get("MCP_CONFIG_PATH", "config/settings.yaml"))
