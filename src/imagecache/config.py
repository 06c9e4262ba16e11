"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments
  2. Environment variables  (IMAGECACHE__CACHE__COMPRESSED=true)
  3. imagecache.yaml        (searched in cwd, then platform config dir)
  4. Hardcoded defaults

The config file is optional: all fields have sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_CACHE_DIR = platformdirs.user_cache_dir("imagecache")
DEFAULT_EXTNAME = ".cache"
DEFAULT_PROXY_ENDPOINT = (
    "https://images1-focus-opensocial.googleusercontent.com/gadgets/proxy"
    "?container=focus&url="
)


def _find_config_file() -> str | None:
    """Return the path of the first imagecache.yaml found, or None."""
    candidates = [
        Path("imagecache.yaml"),
        Path(platformdirs.user_config_dir("imagecache")) / "imagecache.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class CacheConfiguration(BaseModel):
    """Options a ``CacheService`` runs with.

    Frozen: reconfiguring builds a new value rather than editing this one.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    dir: Path = Path(_DEFAULT_CACHE_DIR)
    compressed: bool = False
    extname: str = DEFAULT_EXTNAME
    google_cache: bool = Field(default=False, alias="googleCache")

    @field_validator("dir", mode="after")
    @classmethod
    def expand_dir(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("extname")
    @classmethod
    def validate_extname(cls, v: str) -> str:
        if len(v) < 2 or not v.startswith(".") or "/" in v:
            raise ValueError(f"extname must look like '.cache', got {v!r}")
        return v

    @classmethod
    def option_names(cls) -> frozenset[str]:
        """Every name ``CacheService.configure`` accepts: field names and aliases."""
        names: set[str] = set()
        for name, field in cls.model_fields.items():
            names.add(name)
            if field.alias:
                names.add(field.alias)
        return frozenset(names)


class FetcherSettings(BaseModel):
    timeout_seconds: float = 30.0
    user_agent: str = "imagecache/1.0"
    max_connections: int = 10
    max_keepalive_connections: int = 5
    proxy_endpoint: str = DEFAULT_PROXY_ENDPOINT


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "text"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: IMAGECACHE__FETCHER__TIMEOUT_SECONDS=10
        env_prefix="IMAGECACHE__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    cache: CacheConfiguration = CacheConfiguration()
    fetcher: FetcherSettings = FetcherSettings()
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
