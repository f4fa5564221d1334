"""Translate outgoing envelopes into Discord messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any
from urllib.parse import urlparse

import discord

from parley.channels.discord.components import ActionRow, ButtonSpec, chunk_rows
from parley.core.errors import EmptyMessage, UnsupportedMessageFormat
from parley.core.host import AttachmentService
from parley.models import (
    AttachmentMessage,
    BlockOptions,
    Button,
    ButtonsMessage,
    ButtonType,
    ListMessage,
    OutgoingEnvelope,
    OutgoingMessageFormat,
    QuickRepliesMessage,
    QuickReply,
    TextMessage,
)
from parley.utils.logging import get_logger

log = get_logger(__name__)

VIEW_MORE_PAYLOAD = "VIEW_MORE"
VIEW_MORE_LABEL = "View More"
# Discord rejects messages with neither content nor files; embeds-only sends use this
ZERO_WIDTH_SPACE = "\u200b"


@dataclass(frozen=True)
class RemoteFile:
    """A file fetched by the channel handler right before sending."""

    url: str
    filename: str


@dataclass
class DiscordMessage:
    content: str | None = None
    embeds: list[discord.Embed] = field(default_factory=list)
    rows: list[ActionRow] = field(default_factory=list)
    files: list[RemoteFile] = field(default_factory=list)


class DiscordMessageFormatter:
    """Builds one or more :class:`DiscordMessage` per envelope.

    Text, quick replies, buttons and attachments produce a single message.
    Lists and carousels produce one message per element (its embed, its
    button row and its image travel together) and are sent in order.
    """

    def __init__(self, attachment_service: AttachmentService) -> None:
        self._attachments = attachment_service

    async def format(self, envelope: OutgoingEnvelope, options: BlockOptions | None = None) -> list[DiscordMessage]:
        fmt = envelope.format
        if fmt == OutgoingMessageFormat.TEXT:
            return [self.text_format(envelope.message)]
        if fmt == OutgoingMessageFormat.QUICK_REPLIES:
            return [self.quick_replies_format(envelope.message)]
        if fmt == OutgoingMessageFormat.BUTTONS:
            return [self.buttons_format(envelope.message)]
        if fmt == OutgoingMessageFormat.ATTACHMENT:
            return [await self.attachment_format(envelope.message)]
        if fmt in (OutgoingMessageFormat.CAROUSEL, OutgoingMessageFormat.LIST):
            if fmt == OutgoingMessageFormat.CAROUSEL:
                messages = self.carousel_format(envelope.message)
            else:
                messages = self.list_format(envelope.message)
            if not messages:
                raise EmptyMessage(fmt)
            return messages
        raise UnsupportedMessageFormat(fmt)

    def text_format(self, message: TextMessage) -> DiscordMessage:
        return DiscordMessage(content=message.text)

    def quick_replies_format(self, message: QuickRepliesMessage) -> DiscordMessage:
        return DiscordMessage(
            content=message.text,
            rows=_quick_reply_rows(message.quick_replies),
        )

    def buttons_format(self, message: ButtonsMessage) -> DiscordMessage:
        specs = [spec for spec in (_button_spec(b) for b in message.buttons) if spec is not None]
        return DiscordMessage(content=message.text, rows=chunk_rows(specs))

    async def attachment_format(self, message: AttachmentMessage) -> DiscordMessage:
        attachment = message.attachment
        url = await self._attachments.resolve_url(attachment.id)
        filename = attachment.name or _filename_from_url(url, f"{attachment.type.value}-{attachment.id}")
        return DiscordMessage(
            files=[RemoteFile(url=url, filename=filename)],
            rows=_quick_reply_rows(message.quick_replies),
        )

    def carousel_format(self, message: ListMessage) -> list[DiscordMessage]:
        return [
            self._element_message(message, element, index)
            for index, element in enumerate(message.elements)
        ]

    def list_format(self, message: ListMessage) -> list[DiscordMessage]:
        messages = self.carousel_format(message)
        if message.pagination is not None and message.pagination.has_more:
            messages.append(
                DiscordMessage(
                    content=ZERO_WIDTH_SPACE,
                    rows=[ActionRow((ButtonSpec.postback(VIEW_MORE_LABEL, VIEW_MORE_PAYLOAD),))],
                )
            )
        return messages

    def _element_message(self, message: ListMessage, element: dict[str, Any], index: int) -> DiscordMessage:
        fields = message.options.fields
        embed = discord.Embed(title=element.get(fields.title))

        if fields.subtitle and element.get(fields.subtitle):
            embed.description = element[fields.subtitle]

        element_url = element.get(fields.url) if fields.url else None
        if element_url:
            embed.url = element_url

        files: list[RemoteFile] = []
        image = element.get(fields.image_url) if fields.image_url else None
        image_url = _image_url(image)
        if image_url:
            filename = f"image-{index}{_suffix(image_url)}"
            files.append(RemoteFile(url=image_url, filename=filename))
            embed.set_image(url=f"attachment://{filename}")

        rows: list[ActionRow] = []
        if message.options.buttons:
            specs: list[ButtonSpec] = []
            for button in message.options.buttons:
                if button.type == ButtonType.WEB_URL:
                    if not element_url:
                        log.debug("discord_element_link_without_url", index=index, title=button.title)
                        continue
                    specs.append(ButtonSpec.link(button.title, element_url))
                else:
                    specs.append(ButtonSpec.postback(button.title, button.payload))
            rows = chunk_rows(specs)

        return DiscordMessage(content=ZERO_WIDTH_SPACE, embeds=[embed], rows=rows, files=files)


def _button_spec(button: Button) -> ButtonSpec | None:
    if button.type == ButtonType.WEB_URL:
        if not button.url:
            log.warning("discord_link_button_without_url", title=button.title)
            return None
        return ButtonSpec.link(button.title, button.url)
    return ButtonSpec.postback(button.title, button.payload)


def _quick_reply_rows(quick_replies: list[QuickReply]) -> list[ActionRow]:
    return chunk_rows([
        ButtonSpec.postback(reply.title, reply.payload, style=discord.ButtonStyle.primary)
        for reply in quick_replies
    ])


def _image_url(image: Any) -> str | None:
    """Image fields hold either a URL or ``{"type": "image", "payload": {"url": ...}}``."""
    if not image:
        return None
    if isinstance(image, str):
        return image
    if isinstance(image, dict):
        return (image.get("payload") or {}).get("url")
    return None


def _suffix(url: str) -> str:
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    if not suffix or len(suffix) > 5:
        return ".png"
    return suffix


def _filename_from_url(url: str, fallback: str) -> str:
    name = PurePosixPath(urlparse(url).path).name
    return name or f"{fallback}{_suffix(url)}"
