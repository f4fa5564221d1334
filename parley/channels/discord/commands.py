"""Application (slash) command registration over the Discord REST API."""

from __future__ import annotations

from typing import Any

import httpx

from parley.config import DiscordSettings
from parley.utils.logging import get_logger

log = get_logger(__name__)

# Discord API enums
_CHAT_INPUT = 1
_STRING_OPTION = 3
_SEND_MESSAGES_PERMISSION = 1 << 11

CHAT_COMMAND: dict[str, Any] = {
    "name": "chat",
    "type": _CHAT_INPUT,
    "description": "Start a conversation with the bot",
    "options": [
        {
            "type": _STRING_OPTION,
            "name": "message",
            "description": "Your message to the bot",
            "required": True,
        }
    ],
    "default_member_permissions": str(_SEND_MESSAGES_PERMISSION),
}


async def register_slash_commands(http: httpx.AsyncClient, settings: DiscordSettings) -> bool:
    """Overwrite the application's global commands with ``/chat``.

    Returns ``False`` (after logging) on any failure; registration never
    blocks the gateway connection.
    """
    if not settings.bot_token or not settings.app_id:
        log.warning("discord_commands_skipped", reason="missing bot token or app id")
        return False

    url = f"{settings.api_base_url.rstrip('/')}/applications/{settings.app_id}/commands"
    log.info("discord_commands_registering", app_id=settings.app_id)
    try:
        response = await http.put(
            url,
            json=[CHAT_COMMAND],
            headers={"Authorization": f"Bot {settings.bot_token}"},
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        log.error(
            "discord_commands_failed",
            status=e.response.status_code,
            body=e.response.text[:200],
        )
        return False
    except httpx.HTTPError as e:
        log.error("discord_commands_failed", error=str(e))
        return False

    log.info("discord_commands_registered", count=len(response.json()))
    return True
