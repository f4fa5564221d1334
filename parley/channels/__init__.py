"""Parley channels."""

from parley.channels.base import ChannelHandler, EventWrapper
from parley.channels.discord import DiscordChannelHandler, DiscordEventWrapper

__all__ = [
    "ChannelHandler",
    "EventWrapper",
    "DiscordChannelHandler",
    "DiscordEventWrapper",
]
