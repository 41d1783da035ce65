"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments
  2. Environment variables  (SPECSOURCES__GIT__TIMEOUT_SECONDS=60)
  3. specsources.yaml        (searched in cwd, then the platform config dir)
  4. Hardcoded defaults

The config file is optional; all fields have sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_APP_NAME = "specsources"
_DEFAULT_DATA_DIR = platformdirs.user_data_dir(_APP_NAME)
_DEFAULT_CACHE_DIR = platformdirs.user_cache_dir(_APP_NAME)
_DEFAULT_REPOS_DIR = str(Path(_DEFAULT_DATA_DIR) / "repos")
_DEFAULT_SEARCH_INDEX_PATH = str(Path(_DEFAULT_CACHE_DIR) / "search_index.db")


def _find_config_file() -> str | None:
    """Return the path of the first specsources.yaml found, or None."""
    candidates = [
        Path("specsources.yaml"),
        Path(platformdirs.user_config_dir(_APP_NAME)) / "specsources.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ReposSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    repos_dir: str = _DEFAULT_REPOS_DIR
    master_name: str = "master"


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    search_index_path: str = _DEFAULT_SEARCH_INDEX_PATH


class GitSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    executable: str = "git"
    # Upper bound for a single fetch/merge; the remote's own timeouts apply first
    timeout_seconds: float = Field(default=300.0, gt=0)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: SPECSOURCES__REPOS__MASTER_NAME=trunk
        env_prefix="SPECSOURCES__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    repos: ReposSettings = ReposSettings()
    cache: CacheSettings = CacheSettings()
    git: GitSettings = GitSettings()
    logging: LoggingSettings = LoggingSettings()

    @property
    def repos_dir(self) -> Path:
        return Path(self.repos.repos_dir).expanduser()

    @property
    def search_index_path(self) -> Path:
        return Path(self.cache.search_index_path).expanduser()

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
