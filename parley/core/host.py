"""Interfaces of the host platform services a channel depends on."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from parley.config import DiscordSettings, Settings
from parley.models import StoredAttachment


class SettingsProvider(ABC):
    @abstractmethod
    async def get_settings(self) -> DiscordSettings: ...


class AttachmentService(ABC):
    @abstractmethod
    async def store(self, data: bytes, metadata: dict[str, Any]) -> StoredAttachment:
        """Persist ``data``; metadata carries at least ``name`` and ``type`` (MIME)."""

    @abstractmethod
    async def resolve_url(self, attachment_id: str) -> str:
        """Return a URL the Discord client can fetch the stored attachment from."""


class LanguageService(ABC):
    @abstractmethod
    async def get_default_language(self) -> str: ...


class StaticSettingsProvider(SettingsProvider):
    """Serves the Discord section of loaded :class:`Settings`; can be updated at runtime."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    async def get_settings(self) -> DiscordSettings:
        return self._settings.discord

    def update(self, **changes: Any) -> DiscordSettings:
        self._settings.discord = self._settings.discord.model_copy(update=changes)
        return self._settings.discord


class StaticLanguageService(LanguageService):
    def __init__(self, code: str = "en") -> None:
        self._code = code

    async def get_default_language(self) -> str:
        return self._code
