"""Abstract channel handler and event wrapper."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from parley.core.bus import EventBus
from parley.core.host import SettingsProvider
from parley.models import (
    AttachmentRef,
    BlockOptions,
    IncomingMessageType,
    OutgoingEnvelope,
    SenderInfo,
    StdEventType,
    SubscriberProfile,
)


class EventWrapper(ABC):
    """Canonical view of one inbound platform event."""

    @property
    @abstractmethod
    def channel_name(self) -> str: ...

    @abstractmethod
    def get_id(self) -> str: ...

    @abstractmethod
    def get_event_type(self) -> StdEventType: ...

    @abstractmethod
    def get_message_type(self) -> IncomingMessageType: ...

    @abstractmethod
    def get_sender_foreign_id(self) -> str: ...

    @abstractmethod
    def get_recipient_foreign_id(self) -> str: ...

    @abstractmethod
    def get_watermark(self) -> int: ...

    @abstractmethod
    def get_text(self) -> str: ...

    @abstractmethod
    def get_message(self) -> dict[str, Any]: ...

    @abstractmethod
    def get_payload(self) -> str | dict[str, Any] | None: ...

    @abstractmethod
    def get_attachments(self) -> list[AttachmentRef]: ...

    @abstractmethod
    def get_delivered_messages(self) -> list[str]: ...

    @abstractmethod
    def get_sender_info(self) -> SenderInfo: ...

    @abstractmethod
    def get_channel_data(self) -> dict[str, Any]: ...


class ChannelHandler(ABC):
    def __init__(self, name: str, settings: SettingsProvider, bus: EventBus) -> None:
        self.name = name
        self.settings = settings
        self.bus = bus

    @abstractmethod
    async def init(self) -> None: ...

    @abstractmethod
    async def stop(self) -> None: ...

    @abstractmethod
    async def send_message(
        self,
        event: EventWrapper,
        envelope: OutgoingEnvelope,
        options: BlockOptions | None = None,
    ) -> dict[str, str]: ...

    @abstractmethod
    async def get_user_data(self, event: EventWrapper) -> SubscriberProfile: ...

    @abstractmethod
    def handle(self, request: Any, response: Any) -> None: ...
