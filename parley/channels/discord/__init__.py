"""Discord channel: event normalization and message formatting."""

from parley.channels.discord.formatter import DiscordMessage, DiscordMessageFormatter
from parley.channels.discord.handler import ConnectionState, DiscordChannelHandler
from parley.channels.discord.wrapper import DiscordEventWrapper, wrap

__all__ = [
    "ConnectionState",
    "DiscordChannelHandler",
    "DiscordEventWrapper",
    "DiscordMessage",
    "DiscordMessageFormatter",
    "wrap",
]
