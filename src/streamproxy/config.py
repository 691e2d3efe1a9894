"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (STREAMPROXY__SERVER__PORT=8080)
  2. streamproxy.yaml       (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; every field has a default.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)


def _find_config_file() -> str | None:
    """Return the path of the first streamproxy.yaml found, or None."""
    candidates = [
        Path("streamproxy.yaml"),
        Path(platformdirs.user_config_dir("streamproxy")) / "streamproxy.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000


class UpstreamSettings(BaseModel):
    gateway_host: str = "embed.su"
    provider_tag: str = "viper"
    # Applies to connect and to each read; a stalled upstream frees its task after this.
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_connections: int = Field(default=100, ge=1)


class CacheSettings(BaseModel):
    ttl_seconds: int = Field(default=600, ge=1)
    check_period_seconds: int = Field(default=120, ge=1)
    max_entries: int = Field(default=1000, ge=1)


class ProxySettings(BaseModel):
    rewrite_mode: Literal["direct", "context"] = "direct"
    proxy_prefix: str = "/proxy-stream/"


class AdminSettings(BaseModel):
    token: str = "admin-token"


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: STREAMPROXY__CACHE__TTL_SECONDS=300
        env_prefix="STREAMPROXY__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    upstream: UpstreamSettings = UpstreamSettings()
    cache: CacheSettings = CacheSettings()
    proxy: ProxySettings = ProxySettings()
    admin: AdminSettings = AdminSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
