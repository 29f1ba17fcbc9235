"""Settings resolution: ~/.config/aura/config.toml defaults, overridden by AURA_* env vars."""

from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path

import tomlkit
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_PATH = Path.home() / ".config" / "aura" / "config.toml"

ALL_PROVIDERS = ["github", "azure", "jira", "fogbugz"]


class AuraSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="AURA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    github_api_url: str = "https://api.github.com"
    http_timeout: float = 30.0
    log_level: str = "WARNING"
    providers: list[str] = ALL_PROVIDERS  # enabled trackers, in display order

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # config file values arrive as init kwargs; the environment wins over them
        return env_settings, dotenv_settings, init_settings, file_secret_settings


@lru_cache(maxsize=1)
def _load_toml() -> tomlkit.TOMLDocument:
    """Load ~/.config/aura/config.toml, returning empty document if missing."""
    if not CONFIG_PATH.exists():
        return tomlkit.document()
    return tomlkit.load(CONFIG_PATH.open())


def _list_sections(config: Mapping) -> list[str]:
    # tomlkit Table implements MutableMapping but not dict, so check Mapping
    return [k for k, v in config.items() if isinstance(v, Mapping)]


def get_settings() -> AuraSettings:
    """Top-level scalar keys of the config file are setting defaults; tables hold credentials."""
    toml_config = _load_toml()
    sections = set(_list_sections(toml_config))
    file_defaults = {k: v for k, v in toml_config.unwrap().items() if k not in sections}
    return AuraSettings(**file_defaults)
