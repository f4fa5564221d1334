"""Canonical view of a raw Discord event."""

from __future__ import annotations

from typing import Any

from parley.channels.base import EventWrapper
from parley.channels.discord.events import (
    ButtonInteraction,
    ChannelKind,
    RawEvent,
    SlashCommand,
    TextMessage,
)
from parley.config import DISCORD_CHANNEL_NAME
from parley.core.errors import MalformedInteraction, UnresolvableProfile, UnsupportedEventType
from parley.models import (
    AttachmentRef,
    AttachmentType,
    IncomingMessageType,
    SenderInfo,
    StdEventType,
)

ATTACHMENT_ID_PREFIX = "attachment:"


class DiscordEventWrapper(EventWrapper):
    """Immutable canonical event; everything is resolved in ``__init__``.

    Raises :class:`MalformedInteraction` when a button interaction refers to a
    custom id that is not among the original message's button rows.
    """

    def __init__(self, raw: RawEvent) -> None:
        self._raw = raw
        self._event_type, self._message_type = _classify(raw)
        self._text = _resolve_text(raw, self._message_type)
        self._profile = _resolve_profile(raw)

    def __repr__(self) -> str:
        return (
            f"DiscordEventWrapper(id={self.get_id()!r}, event_type={self._event_type.value}, "
            f"message_type={self._message_type.value})"
        )

    @property
    def channel_name(self) -> str:
        return DISCORD_CHANNEL_NAME

    # -- identity -----------------------------------------------------------

    def get_id(self) -> str:
        if self._message_type == IncomingMessageType.ATTACHMENTS:
            return f"{ATTACHMENT_ID_PREFIX}{self._raw.id}"
        return self._raw.id

    def get_event_type(self) -> StdEventType:
        return self._event_type

    def get_message_type(self) -> IncomingMessageType:
        return self._message_type

    def get_sender_foreign_id(self) -> str:
        # The conversation is the channel, not the user
        return self._raw.channel.id

    def get_recipient_foreign_id(self) -> str:
        return self._raw.channel.id

    def get_watermark(self) -> int:
        return self._raw.timestamp

    def get_delivered_messages(self) -> list[str]:
        return []

    def get_original_event(self) -> Any:
        return self._raw.original

    def get_channel_data(self) -> dict[str, Any]:
        return {
            "name": DISCORD_CHANNEL_NAME,
            "channel_id": self._raw.channel.id,
            "guild_id": self._raw.channel.guild_id,
        }

    # -- content ------------------------------------------------------------

    def _ensure_known(self, accessor: str) -> None:
        if self._event_type == StdEventType.UNKNOWN:
            raise UnsupportedEventType(f"Called {accessor}() on an unknown event ({self._raw.id})")

    def get_text(self) -> str:
        self._ensure_known("get_text")
        return self._text

    def get_attachments(self) -> list[AttachmentRef]:
        self._ensure_known("get_attachments")
        if isinstance(self._raw, TextMessage):
            return list(self._raw.attachments)
        return []

    def get_payload(self) -> str | dict[str, Any] | None:
        self._ensure_known("get_payload")
        if self._message_type == IncomingMessageType.POSTBACK:
            assert isinstance(self._raw, ButtonInteraction)
            return self._raw.custom_id
        if self._message_type == IncomingMessageType.ATTACHMENTS:
            attachments = self.get_attachments()
            if not attachments:
                return {"type": AttachmentType.UNKNOWN.value, "attachment": {"id": None, "url": None}}
            first = attachments[0]
            return {
                "type": first.type.value,
                "attachment": {"id": first.foreign_attachment_id, "url": first.url},
            }
        return None

    def get_message(self) -> dict[str, Any]:
        self._ensure_known("get_message")
        if self._message_type == IncomingMessageType.POSTBACK:
            return {"postback": self.get_payload(), "text": self._text}
        if self._message_type == IncomingMessageType.ATTACHMENTS:
            attachments = self.get_attachments()
            if not attachments:
                return {
                    "type": IncomingMessageType.ATTACHMENTS.value,
                    "serialized_text": "attachment:unknown",
                    "attachment": [{"type": AttachmentType.UNKNOWN.value, "payload": {}}],
                }
            first = attachments[0]
            return {
                "type": IncomingMessageType.ATTACHMENTS.value,
                "serialized_text": f"attachment:{first.type.value}:{first.name or first.foreign_attachment_id}",
                "attachment": [
                    {
                        "type": a.type.value,
                        "payload": {"id": a.foreign_attachment_id, "url": a.url, "name": a.name},
                    }
                    for a in attachments
                ],
            }
        return {"text": self._text}

    def get_sender_info(self) -> SenderInfo:
        self._ensure_known("get_sender_info")
        if self._profile is None:
            raise UnresolvableProfile(self._raw.channel.id, self._raw.channel.kind.value)
        return self._profile


def wrap(raw: RawEvent) -> DiscordEventWrapper:
    return DiscordEventWrapper(raw)


def _classify(raw: RawEvent) -> tuple[StdEventType, IncomingMessageType]:
    if isinstance(raw, ButtonInteraction):
        return StdEventType.MESSAGE, IncomingMessageType.POSTBACK
    if isinstance(raw, SlashCommand):
        return StdEventType.MESSAGE, IncomingMessageType.MESSAGE
    if isinstance(raw, TextMessage):
        event_type = StdEventType.ECHO if raw.author.is_self else StdEventType.MESSAGE
        if raw.declared_attachments > 0:
            return event_type, IncomingMessageType.ATTACHMENTS
        if raw.content:
            return event_type, IncomingMessageType.MESSAGE
    return StdEventType.UNKNOWN, IncomingMessageType.UNKNOWN


def _resolve_text(raw: RawEvent, message_type: IncomingMessageType) -> str:
    if isinstance(raw, ButtonInteraction):
        # Rows are scanned in order; more than five buttons wrap past the first row
        for row in raw.rows:
            button = row.find(raw.custom_id)
            if button is not None:
                return button.label
        raise MalformedInteraction(raw.custom_id)
    if isinstance(raw, SlashCommand):
        return raw.message
    if isinstance(raw, TextMessage) and message_type != IncomingMessageType.UNKNOWN:
        return raw.content
    return ""


def _resolve_profile(raw: RawEvent) -> SenderInfo | None:
    channel = raw.channel
    if channel.kind == ChannelKind.GUILD_TEXT:
        return SenderInfo(
            first_name=channel.guild_name,
            last_name=channel.name,
            avatar_url=channel.guild_icon_url,
        )
    if channel.kind == ChannelKind.DM:
        return SenderInfo(
            first_name=raw.author.name,
            last_name="",
            avatar_url=raw.author.avatar_url,
        )
    return None
