"""Typed models shared between the host platform and the Discord channel."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Incoming
# ---------------------------------------------------------------------------

class StdEventType(str, Enum):
    MESSAGE = "message"
    ECHO = "echo"
    UNKNOWN = "unknown"


class IncomingMessageType(str, Enum):
    MESSAGE = "message"
    POSTBACK = "postback"
    ATTACHMENTS = "attachments"
    UNKNOWN = "unknown"


class AttachmentType(str, Enum):
    AUDIO = "audio"
    FILE = "file"
    IMAGE = "image"
    VIDEO = "video"
    UNKNOWN = "unknown"

    @classmethod
    def from_mime(cls, mime_type: str | None) -> "AttachmentType":
        """Map a MIME type to its coarse category (``image/png`` -> image)."""
        if not mime_type:
            return cls.UNKNOWN
        primary = mime_type.split("/", 1)[0].strip().lower()
        if primary in ("image", "audio", "video"):
            return cls(primary)
        if primary in ("application", "text"):
            return cls.FILE
        return cls.UNKNOWN


@dataclass(frozen=True)
class AttachmentRef:
    type: AttachmentType
    url: str
    foreign_attachment_id: str
    name: str = ""


@dataclass
class StoredAttachment:
    """An attachment persisted by the host's attachment service."""

    id: str
    name: str
    type: str
    size: int = 0
    location: str = ""
    channel: dict[str, Any] = field(default_factory=dict)


@dataclass
class SenderInfo:
    first_name: str
    last_name: str
    avatar_url: str | None = None


@dataclass
class SubscriberProfile:
    foreign_id: str
    first_name: str
    last_name: str
    channel: dict[str, Any]
    language: str
    avatar: StoredAttachment | None = None
    gender: str = ""
    locale: str = "en"
    timezone: int = 0
    country: str = ""
    labels: list[str] = field(default_factory=list)
    assigned_to: str | None = None
    assigned_at: datetime | None = None
    last_visit: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    retained_from: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Outgoing
# ---------------------------------------------------------------------------

class OutgoingMessageFormat(str, Enum):
    TEXT = "text"
    QUICK_REPLIES = "quickReplies"
    BUTTONS = "buttons"
    ATTACHMENT = "attachment"
    LIST = "list"
    CAROUSEL = "carousel"


class ButtonType(str, Enum):
    POSTBACK = "postback"
    WEB_URL = "web_url"


@dataclass
class Button:
    type: ButtonType
    title: str
    payload: str = ""
    url: str = ""


@dataclass
class QuickReply:
    title: str
    payload: str


@dataclass
class TextMessage:
    text: str


@dataclass
class QuickRepliesMessage:
    text: str
    quick_replies: list[QuickReply]


@dataclass
class ButtonsMessage:
    text: str
    buttons: list[Button]


@dataclass
class AttachmentPayload:
    """Reference to a stored attachment: ``{"id": ..., "name": ...}`` plus its type."""

    type: AttachmentType
    id: str
    name: str = ""


@dataclass
class AttachmentMessage:
    attachment: AttachmentPayload
    quick_replies: list[QuickReply] = field(default_factory=list)


@dataclass
class ContentFields:
    """Maps element keys onto embed parts."""

    title: str = "title"
    subtitle: str | None = None
    url: str | None = None
    image_url: str | None = None


@dataclass
class ListOptions:
    fields: ContentFields = field(default_factory=ContentFields)
    buttons: list[Button] = field(default_factory=list)


@dataclass
class Pagination:
    total: int
    skip: int = 0
    limit: int = 0

    @property
    def has_more(self) -> bool:
        return self.total - self.skip - self.limit > 0


@dataclass
class ListMessage:
    elements: list[dict[str, Any]]
    options: ListOptions = field(default_factory=ListOptions)
    pagination: Pagination | None = None


@dataclass
class OutgoingEnvelope:
    # Plain strings are accepted so unknown formats reach the formatter
    format: OutgoingMessageFormat | str
    message: Any


@dataclass
class BlockOptions:
    typing: bool = False
    content: dict[str, Any] = field(default_factory=dict)
