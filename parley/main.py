"""Parley entry point: runs the Discord channel against local collaborators."""

from __future__ import annotations

import asyncio
import signal
import sys
from typing import Any

import click
import httpx

from parley.channels.discord import DiscordChannelHandler, DiscordEventWrapper
from parley.channels.discord.handler import RECONNECT_SETTINGS
from parley.config import DISCORD_SETTINGS_GROUP, Settings, load_settings
from parley.core.bus import EventBus, chatbot_hook, settings_hook
from parley.core.errors import ParleyError
from parley.core.host import StaticLanguageService, StaticSettingsProvider
from parley.models import (
    BlockOptions,
    IncomingMessageType,
    OutgoingEnvelope,
    OutgoingMessageFormat,
    StdEventType,
    TextMessage,
)
from parley.storage import LocalAttachmentStore
from parley.utils.logging import get_logger, setup_logging

log = get_logger(__name__)


class Parley:
    """Wires the Discord channel to an event bus and local services."""

    def __init__(self, settings: Settings, echo: bool = False) -> None:
        self.settings = settings
        self.echo = echo

        self.bus = EventBus()
        self.settings_provider = StaticSettingsProvider(settings)
        self.attachments = LocalAttachmentStore(
            settings.get_attachments_dir(),
            public_base_url=settings.storage.public_base_url,
        )
        self.http = httpx.AsyncClient(
            timeout=settings.http.timeout,
            follow_redirects=True,
            headers={"User-Agent": settings.http.user_agent},
        )
        self.channel = DiscordChannelHandler(
            self.settings_provider,
            self.bus,
            self.attachments,
            StaticLanguageService(settings.default_language),
            http=self.http,
        )

    async def start(self) -> None:
        log.info("parley_starting", echo=self.echo)
        await self.attachments.start()

        self._subscribe()
        await self.bus.start()

        await self.channel.init()

    def _subscribe(self) -> None:
        self.bus.subscribe(chatbot_hook(StdEventType.MESSAGE.value), self._on_message)
        self.bus.subscribe(chatbot_hook(StdEventType.ECHO.value), self._on_echo)
        for key in RECONNECT_SETTINGS:
            self.bus.subscribe(settings_hook(DISCORD_SETTINGS_GROUP, key), self.channel.on_settings_updated)

    async def update_settings(self, **changes: Any) -> None:
        """Apply Discord setting changes and announce each changed key on the bus."""
        self.settings_provider.update(**changes)
        for key in changes:
            log.info("parley_setting_updated", key=key)
            await self.bus.publish(settings_hook(DISCORD_SETTINGS_GROUP, key), key)

    async def stop(self) -> None:
        await self.channel.stop()
        await self.bus.stop()
        await self.attachments.stop()
        await self.http.aclose()
        log.info("parley_stopped")

    async def _on_message(self, event: DiscordEventWrapper) -> None:
        log.info(
            "parley_message_received",
            event_id=event.get_id(),
            message_type=event.get_message_type().value,
        )
        if not self.echo:
            return

        if event.get_message_type() == IncomingMessageType.ATTACHMENTS:
            reply = f"Received {event.get_message()['serialized_text']}"
        else:
            reply = event.get_text()

        try:
            await self.channel.send_message(
                event,
                OutgoingEnvelope(format=OutgoingMessageFormat.TEXT, message=TextMessage(text=reply)),
                BlockOptions(typing=True),
            )
        except ParleyError:
            log.exception("parley_echo_failed", event_id=event.get_id())

    async def _on_echo(self, event: DiscordEventWrapper) -> None:
        log.debug("parley_echo_observed", event_id=event.get_id())


async def run(settings: Settings, echo: bool = False) -> None:
    app = Parley(settings, echo=echo)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        log.info("shutdown_signal")
        stop_event.set()

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _signal_handler)

    await app.start()

    try:
        if sys.platform == "win32":
            while not stop_event.is_set():
                await asyncio.sleep(1)
        else:
            await stop_event.wait()
    except KeyboardInterrupt:
        pass
    finally:
        await app.stop()


@click.command()
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.option("--echo", is_flag=True, help="Reply to every message with its own text")
def cli(config_path: str | None, log_level: str | None, echo: bool) -> None:
    """Run the Parley Discord channel."""
    settings = load_settings(config_path)
    if log_level:
        settings.log_level = log_level
    setup_logging(level=settings.log_level, json_output=settings.log_json)
    asyncio.run(run(settings, echo=echo))


if __name__ == "__main__":
    cli()
