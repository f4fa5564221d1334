"""Configuration management with Pydantic Settings + optional YAML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from parley.utils.platform import get_config_dir, get_data_dir


DISCORD_CHANNEL_NAME = "discord-channel"
DISCORD_SETTINGS_GROUP = "discord_channel"


class DiscordSettings(BaseModel):
    bot_token: str = ""
    app_id: str = ""
    api_base_url: str = "https://discord.com/api/v10"


class HttpConfig(BaseModel):
    timeout: float = 30.0
    user_agent: str = "parley-discord-channel"


class StorageConfig(BaseModel):
    attachments_dir: str = ""
    public_base_url: str = ""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PARLEY_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    discord: DiscordSettings = Field(default_factory=DiscordSettings)
    http: HttpConfig = Field(default_factory=HttpConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    default_language: str = "en"
    data_dir: str = ""
    log_level: str = "INFO"
    log_json: bool = False

    def get_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir)
        return get_data_dir()

    def get_attachments_dir(self) -> Path:
        if self.storage.attachments_dir:
            return Path(self.storage.attachments_dir)
        return self.get_data_dir() / "attachments"


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_settings(config_path: str | Path | None = None, **overrides: Any) -> Settings:
    """Load settings from env vars, optionally overlaying a YAML config."""
    yaml_data: dict[str, Any] = {}

    if config_path is None:
        config_path = os.environ.get("PARLEY_CONFIG")
    if config_path is None:
        default = get_config_dir() / "config.yaml"
        if default.exists():
            config_path = default

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}

    if overrides:
        yaml_data = _deep_merge(yaml_data, overrides)

    # pydantic-settings gives init kwargs priority over PARLEY_* env vars
    return Settings(**yaml_data)
