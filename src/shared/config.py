"""Configuration management for the Home Connect MCP server.

Supports an optional YAML configuration file with environment variable
and ``.env`` overrides. Configuration is loaded once at startup and cached.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class HomeConnectSettings(BaseSettings):
    """Home Connect API and OAuth client configuration."""
    client_id: Optional[str] = Field(default=None, description="OAuth client identifier")
    client_secret: Optional[str] = Field(default=None, description="OAuth client secret")
    redirect_uri: str = Field(default="http://localhost:3000/callback")

    # Initial credentials; refreshed tokens are kept in memory only
    access_token: Optional[str] = Field(default=None)
    refresh_token: Optional[str] = Field(default=None)

    api_base_url: str = Field(default="https://api.home-connect.com/api")
    oauth_base_url: str = Field(default="https://api.home-connect.com/security/oauth")
    timeout_seconds: float = Field(default=30, gt=0)
    retry_after_refresh: bool = Field(
        default=False,
        description="Replay the original call once after a successful token refresh"
    )

    model_config = SettingsConfigDict(
        env_prefix="HOME_CONNECT_",
        env_file=".env",
        extra="ignore"
    )


class MCPServerSettings(BaseSettings):
    """MCP Server configuration."""
    transport: Literal["stdio", "http"] = Field(default="stdio")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8001)
    enable_audit: bool = Field(default=False)
    audit_log_path: str = Field(default="logs/audit.log")

    model_config = SettingsConfigDict(
        env_prefix="MCP_SERVER_",
        env_file=".env",
        extra="ignore"
    )


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Component settings
    home_connect: HomeConnectSettings = Field(default_factory=HomeConnectSettings)
    mcp_server: MCPServerSettings = Field(default_factory=MCPServerSettings)

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """
        Load settings from a YAML file.

        Values set in the file take precedence. Keys that are missing or
        null fall back to the environment and ``.env``, for the nested
        sections as well as the top level.
        """
        data = _drop_nulls(load_yaml_config(path))

        sections = {
            "home_connect": HomeConnectSettings,
            "mcp_server": MCPServerSettings,
        }
        for key, settings_cls in sections.items():
            data[key] = settings_cls(**data.get(key, {}))

        return cls(**data)


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


def _drop_nulls(data: dict[str, Any]) -> dict[str, Any]:
    """Remove null values so the settings sources behind them apply."""
    return {
        key: _drop_nulls(value) if isinstance(value, dict) else value
        for key, value in data.items()
        if value is not None
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    config_path = os.environ.get("HOME_CONNECT_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(config_path)
