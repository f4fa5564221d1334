"""Raw inbound Discord event variants.

Every gateway object the channel handles is converted into exactly one of
:class:`TextMessage`, :class:`ButtonInteraction`, :class:`SlashCommand` or
:class:`UnknownEvent` before it reaches the event wrapper.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Sequence, Union

import discord

from parley.channels.discord.components import ActionRow, rows_from_message
from parley.models import AttachmentRef


class ChannelKind(str, Enum):
    GUILD_TEXT = "guild_text"
    DM = "dm"
    OTHER = "other"


# Channel types a bot can read and post messages in
TEXT_CHANNEL_TYPES = frozenset({
    discord.ChannelType.text,
    discord.ChannelType.private,
    discord.ChannelType.group,
    discord.ChannelType.news,
    discord.ChannelType.voice,
    discord.ChannelType.stage_voice,
    discord.ChannelType.public_thread,
    discord.ChannelType.private_thread,
    discord.ChannelType.news_thread,
})


@dataclass(frozen=True)
class ChannelInfo:
    id: str
    kind: ChannelKind
    name: str = ""
    guild_id: str | None = None
    guild_name: str = ""
    guild_icon_url: str | None = None


@dataclass(frozen=True)
class Author:
    id: str
    name: str
    avatar_url: str | None = None
    is_self: bool = False


@dataclass(frozen=True)
class TextMessage:
    id: str
    channel: ChannelInfo
    author: Author
    timestamp: int
    content: str
    # How many files Discord reported, even if some failed to be stored
    declared_attachments: int = 0
    attachments: tuple[AttachmentRef, ...] = ()
    original: Any = None


@dataclass(frozen=True)
class ButtonInteraction:
    id: str
    channel: ChannelInfo
    author: Author
    timestamp: int
    custom_id: str
    rows: tuple[ActionRow, ...] = ()
    original: Any = None


@dataclass(frozen=True)
class SlashCommand:
    id: str
    channel: ChannelInfo
    author: Author
    timestamp: int
    command_name: str
    message: str
    original: Any = None


@dataclass(frozen=True)
class UnknownEvent:
    id: str
    channel: ChannelInfo
    author: Author
    timestamp: int
    description: str = ""
    original: Any = None


RawEvent = Union[TextMessage, ButtonInteraction, SlashCommand, UnknownEvent]


def is_text_channel(channel: Any) -> bool:
    return getattr(channel, "type", None) in TEXT_CHANNEL_TYPES


def channel_info(channel: Any) -> ChannelInfo:
    channel_type = getattr(channel, "type", None)
    if channel_type == discord.ChannelType.text:
        kind = ChannelKind.GUILD_TEXT
    elif channel_type == discord.ChannelType.private:
        kind = ChannelKind.DM
    else:
        kind = ChannelKind.OTHER

    guild = getattr(channel, "guild", None)
    icon = getattr(guild, "icon", None) if guild is not None else None
    return ChannelInfo(
        id=str(channel.id),
        kind=kind,
        name=getattr(channel, "name", None) or "",
        guild_id=str(guild.id) if guild is not None else None,
        guild_name=guild.name if guild is not None else "",
        guild_icon_url=icon.url if icon else None,
    )


def author_info(user: Any, bot_user_id: int | None) -> Author:
    avatar = getattr(user, "display_avatar", None)
    return Author(
        id=str(user.id),
        name=user.name,
        avatar_url=avatar.url if avatar else None,
        is_self=bot_user_id is not None and user.id == bot_user_id,
    )


def _timestamp_ms(created_at: Any) -> int:
    return int(created_at.timestamp() * 1000)


def from_message(
    message: discord.Message,
    *,
    bot_user_id: int | None,
    content: str | None = None,
    attachments: Sequence[AttachmentRef] = (),
) -> TextMessage:
    """Convert a gateway message; ``content`` overrides the raw text (mention stripped)."""
    return TextMessage(
        id=str(message.id),
        channel=channel_info(message.channel),
        author=author_info(message.author, bot_user_id),
        timestamp=_timestamp_ms(message.created_at),
        content=message.content if content is None else content,
        declared_attachments=len(message.attachments),
        attachments=tuple(attachments),
        original=message,
    )


def from_interaction(interaction: discord.Interaction, *, bot_user_id: int | None) -> RawEvent:
    channel = channel_info(interaction.channel)
    author = author_info(interaction.user, bot_user_id)
    timestamp = _timestamp_ms(interaction.created_at)
    data: dict[str, Any] = interaction.data or {}

    if interaction.type == discord.InteractionType.component and \
            data.get("component_type") == discord.ComponentType.button.value:
        message = interaction.message
        return ButtonInteraction(
            id=str(interaction.id),
            channel=channel,
            author=author,
            timestamp=timestamp,
            custom_id=data.get("custom_id", ""),
            rows=tuple(rows_from_message(message.components)) if message else (),
            original=interaction,
        )

    if interaction.type == discord.InteractionType.application_command:
        options = {opt.get("name"): opt.get("value") for opt in data.get("options", [])}
        return SlashCommand(
            id=str(interaction.id),
            channel=channel,
            author=author,
            timestamp=timestamp,
            command_name=data.get("name", ""),
            message=str(options.get("message") or ""),
            original=interaction,
        )

    return UnknownEvent(
        id=str(interaction.id),
        channel=channel,
        author=author,
        timestamp=timestamp,
        description=f"interaction:{interaction.type}",
        original=interaction,
    )


def split_attachments(event: TextMessage) -> list[TextMessage]:
    """Split a message carrying both text and files into a text-only and a files-only event."""
    if not event.declared_attachments:
        return [event]
    parts: list[TextMessage] = []
    if event.content:
        parts.append(replace(event, declared_attachments=0, attachments=()))
    parts.append(replace(event, content=""))
    return parts
