"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (SUBCACHE__SERVER__PORT=9090)
  2. subcache.yaml          (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have sensible defaults.
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

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("subcache")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "subscription_cache.db")


def _find_config_file() -> str | None:
    """Return the path of the first subcache.yaml found, or None."""
    candidates = [
        Path("subcache.yaml"),
        Path(platformdirs.user_config_dir("subcache")) / "subcache.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8787
    # Bearer key guarding the cache administration endpoints; empty disables auth
    admin_key: str = ""


class FetcherSettings(BaseModel):
    timeout_seconds: float = 30.0
    max_retries: int = Field(default=3, ge=1)
    max_connections: int = 20
    default_user_agent: str = "curl/7.74.0"


class CacheSettings(BaseModel):
    enabled: bool = True
    db_path: str = _DEFAULT_DB_PATH
    record_failures: bool = True


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: SUBCACHE__CACHE__DB_PATH=/tmp/c.db
        env_prefix="SUBCACHE__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    fetcher: FetcherSettings = FetcherSettings()
    cache: CacheSettings = CacheSettings()
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
