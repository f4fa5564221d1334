"""Error taxonomy for the Discord channel adapter."""

from __future__ import annotations


class ParleyError(Exception):
    """Base class for every condition raised by Parley."""


class UnresolvableProfile(ParleyError):
    """The event's channel kind has no sender-extraction rule."""

    def __init__(self, channel_id: str, channel_kind: str) -> None:
        super().__init__(
            f"Cannot resolve a sender profile for channel {channel_id} of kind {channel_kind!r}"
        )
        self.channel_id = channel_id
        self.channel_kind = channel_kind


class UnsupportedEventType(ParleyError):
    """An accessor was called on an event that could not be classified."""


class MalformedInteraction(ParleyError):
    """A button interaction references a component that is not on the message."""

    def __init__(self, custom_id: str) -> None:
        super().__init__(f"No component with custom id {custom_id!r} on the original message")
        self.custom_id = custom_id


class UnsupportedMessageFormat(ParleyError):
    def __init__(self, message_format: object) -> None:
        super().__init__(f"Unknown message format: {message_format!r}")
        self.message_format = message_format


class ChannelUnavailable(ParleyError):
    def __init__(self, channel_id: str, reason: str) -> None:
        super().__init__(f"Channel {channel_id} is unavailable: {reason}")
        self.channel_id = channel_id
        self.reason = reason


class DeliveryFailed(ParleyError):
    """The transport rejected an outgoing message."""


class WebhookNotSupported(ParleyError):
    pass


class AttachmentError(ParleyError):
    """The attachment store could not persist or resolve an attachment."""


class EmptyMessage(ParleyError):
    """An envelope rendered to no Discord message at all (e.g. a carousel without elements)."""

    def __init__(self, message_format: object) -> None:
        super().__init__(f"Envelope of format {message_format!r} has nothing to send")
        self.message_format = message_format
