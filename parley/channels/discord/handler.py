"""Discord channel handler using discord.py."""

from __future__ import annotations

import asyncio
import io
from enum import Enum
from typing import Any, Callable, Iterable
from urllib.parse import urlparse
from urllib.request import url2pathname
from weakref import WeakValueDictionary

import discord
import httpx

from parley.channels.base import ChannelHandler, EventWrapper
from parley.channels.discord.commands import CHAT_COMMAND, register_slash_commands
from parley.channels.discord.components import build_view, disable_rows, rows_from_message
from parley.channels.discord.events import (
    RawEvent,
    SlashCommand,
    from_interaction,
    from_message,
    is_text_channel,
    split_attachments,
)
from parley.channels.discord.formatter import DiscordMessage, DiscordMessageFormatter, RemoteFile
from parley.channels.discord.wrapper import DiscordEventWrapper, wrap
from parley.config import DISCORD_CHANNEL_NAME
from parley.core.bus import EventBus, chatbot_hook
from parley.core.errors import (
    AttachmentError,
    ChannelUnavailable,
    DeliveryFailed,
    MalformedInteraction,
    WebhookNotSupported,
)
from parley.core.host import AttachmentService, LanguageService, SettingsProvider
from parley.models import (
    AttachmentRef,
    AttachmentType,
    BlockOptions,
    OutgoingEnvelope,
    StdEventType,
    StoredAttachment,
    SubscriberProfile,
)
from parley.utils.logging import event_context, get_logger

log = get_logger(__name__)

# Settings whose change requires a new gateway session
RECONNECT_SETTINGS = ("bot_token", "app_id")


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"


def default_client() -> discord.Client:
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.guild_messages = True
    intents.dm_messages = True
    return discord.Client(intents=intents)


def strip_mention(content: str, user_id: int, role_ids: Iterable[int] = ()) -> str:
    tokens = [f"<@{user_id}>", f"<@!{user_id}>", *(f"<@&{role_id}>" for role_id in role_ids)]
    for token in tokens:
        content = content.replace(token, "")
    return content.strip()


def managed_role_ids(guild: discord.Guild) -> set[int]:
    """Ids of the role Discord creates for the bot when it joins ``guild``."""
    me = guild.me
    if me is None:
        return set()
    return {role.id for role in me.roles if role.is_bot_managed()}


def mentions_bot(message: discord.Message, bot_user: discord.ClientUser, role_ids: set[int]) -> bool:
    if bot_user in message.mentions:
        return True
    return any(role.id in role_ids for role in message.role_mentions)


class DiscordChannelHandler(ChannelHandler):
    def __init__(
        self,
        settings: SettingsProvider,
        bus: EventBus,
        attachment_service: AttachmentService,
        language_service: LanguageService,
        *,
        http: httpx.AsyncClient | None = None,
        client_factory: Callable[[], discord.Client] = default_client,
    ) -> None:
        super().__init__(DISCORD_CHANNEL_NAME, settings, bus)
        self._attachments = attachment_service
        self._languages = language_service
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(timeout=30.0, follow_redirects=True)
        self._client_factory = client_factory
        self._client: discord.Client | None = None
        self._gateway_task: asyncio.Task[None] | None = None
        self._state = ConnectionState.DISCONNECTED
        self._channel_locks: WeakValueDictionary[str, asyncio.Lock] = WeakValueDictionary()
        self.formatter = DiscordMessageFormatter(attachment_service)

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def client(self) -> discord.Client | None:
        return self._client

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def init(self) -> None:
        """(Re)connect to the gateway. Failures are logged, never raised."""
        await self._teardown()
        self._state = ConnectionState.CONNECTING
        log.debug("discord_channel_initializing")

        try:
            settings = await self.settings.get_settings()
            if not settings.bot_token:
                log.warning("discord_missing_bot_token")
                self._state = ConnectionState.DISCONNECTED
                return

            client = self._client_factory()
            self._setup_handlers(client)
            self._client = client

            await register_slash_commands(self._http, settings)
            await client.login(settings.bot_token)
        except Exception:
            log.exception("discord_channel_init_failed")
            await self._teardown()
            return

        self._gateway_task = asyncio.create_task(
            self._run_gateway(client),
            name="discord-gateway",
        )
        log.info("discord_channel_starting")

    async def reconnect(self) -> None:
        """Rebuild the client with the current settings (e.g. after a token change)."""
        log.info("discord_channel_reconnecting")
        await self.init()

    async def on_settings_updated(self, *_: Any) -> None:
        """Bus handler for the ``RECONNECT_SETTINGS`` hooks."""
        await self.reconnect()

    async def stop(self) -> None:
        await self._teardown()
        if self._owns_http:
            await self._http.aclose()
        log.info("discord_channel_stopped")

    async def _teardown(self) -> None:
        client, self._client = self._client, None
        task, self._gateway_task = self._gateway_task, None
        if client is not None:
            await client.close()
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        self._state = ConnectionState.DISCONNECTED

    async def _run_gateway(self, client: discord.Client) -> None:
        try:
            await client.connect(reconnect=True)
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("discord_gateway_failed")
        finally:
            if self._client is client:
                self._state = ConnectionState.DISCONNECTED

    def _setup_handlers(self, client: discord.Client) -> None:
        @client.event
        async def on_ready() -> None:
            if self._client is client:
                self._state = ConnectionState.READY
            log.info("discord_connected", user=str(client.user))

        @client.event
        async def on_message(message: discord.Message) -> None:
            await self.on_message(message)

        @client.event
        async def on_interaction(interaction: discord.Interaction) -> None:
            await self.on_interaction(interaction)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def _bot_user(self) -> discord.ClientUser | None:
        return self._client.user if self._client is not None else None

    def _channel_lock(self, channel_id: str) -> asyncio.Lock:
        # Entries vanish once no coroutine holds or waits on the lock
        lock = self._channel_locks.get(channel_id)
        if lock is None:
            lock = asyncio.Lock()
            self._channel_locks[channel_id] = lock
        return lock

    async def on_message(self, message: discord.Message) -> None:
        if message.is_system():
            log.debug("discord_ignoring_system_message", message_id=message.id)
            return

        if not is_text_channel(message.channel):
            log.debug("discord_ignoring_non_text_channel", channel_id=message.channel.id)
            return

        bot_user = self._bot_user()
        content = message.content
        if message.guild is not None:
            role_ids = managed_role_ids(message.guild)
            if bot_user is None or not mentions_bot(message, bot_user, role_ids):
                log.debug("discord_ignoring_unmentioned_guild_message", channel_id=message.channel.id)
                return
            content = strip_mention(content, bot_user.id, role_ids)

        bot_user_id = bot_user.id if bot_user is not None else None
        is_echo = bot_user_id is not None and message.author.id == bot_user_id

        channel_id = str(message.channel.id)
        with event_context(channel_id=channel_id, message_id=str(message.id)):
            async with self._channel_lock(channel_id):
                await self._ingest_and_publish(message, content, bot_user_id, is_echo)

    async def _ingest_and_publish(
        self,
        message: discord.Message,
        content: str,
        bot_user_id: int | None,
        is_echo: bool,
    ) -> None:
        attachments: list[AttachmentRef] = []
        if message.attachments and not is_echo:
            attachments = await self._ingest_attachments(message)
        raw = from_message(
            message,
            bot_user_id=bot_user_id,
            content=content,
            attachments=attachments,
        )
        for part in split_attachments(raw):
            await self._publish(part)

    async def on_interaction(self, interaction: discord.Interaction) -> None:
        data: dict[str, Any] = interaction.data or {}
        channel_id = str(interaction.channel_id)

        if interaction.type == discord.InteractionType.component and \
                data.get("component_type") == discord.ComponentType.button.value:
            # Acknowledge first; Discord fails the interaction after 3 seconds
            await interaction.response.defer()
            with event_context(channel_id=channel_id, interaction_id=str(interaction.id)):
                async with self._channel_lock(channel_id):
                    await self._disable_buttons(interaction, data.get("custom_id", ""))
                    await self._publish(from_interaction(interaction, bot_user_id=self._bot_user_id()))
            return

        if interaction.type == discord.InteractionType.application_command:
            raw = from_interaction(interaction, bot_user_id=self._bot_user_id())
            if isinstance(raw, SlashCommand) and raw.command_name == CHAT_COMMAND["name"]:
                await interaction.response.send_message(f"> {raw.message}")
                with event_context(channel_id=channel_id, interaction_id=raw.id):
                    async with self._channel_lock(channel_id):
                        await self._publish(raw)
                return

        log.debug("discord_unhandled_interaction", interaction_type=str(interaction.type))

    def _bot_user_id(self) -> int | None:
        bot_user = self._bot_user()
        return bot_user.id if bot_user is not None else None

    async def _ingest_attachments(self, message: discord.Message) -> list[AttachmentRef]:
        refs: list[AttachmentRef] = []
        for attachment in message.attachments:
            try:
                data = await attachment.read()
                stored = await self._attachments.store(
                    data,
                    {
                        "name": attachment.filename,
                        "type": attachment.content_type or "application/octet-stream",
                        "size": attachment.size,
                        "channel": {"name": DISCORD_CHANNEL_NAME},
                    },
                )
                url = await self._attachments.resolve_url(stored.id)
            except (discord.HTTPException, AttachmentError) as e:
                log.warning(
                    "discord_attachment_ingest_failed",
                    message_id=message.id,
                    filename=attachment.filename,
                    error=str(e),
                )
                continue
            refs.append(
                AttachmentRef(
                    type=AttachmentType.from_mime(attachment.content_type),
                    url=url,
                    foreign_attachment_id=str(attachment.id),
                    name=attachment.filename,
                )
            )
        return refs

    async def _disable_buttons(self, interaction: discord.Interaction, custom_id: str) -> None:
        if interaction.message is None:
            return
        rows = disable_rows(rows_from_message(interaction.message.components), custom_id)
        view = build_view(rows)
        if view is None:
            return
        try:
            await interaction.edit_original_response(view=view)
        except discord.HTTPException as e:
            log.warning("discord_disable_buttons_failed", custom_id=custom_id, error=str(e))
        finally:
            view.stop()

    async def _publish(self, raw: RawEvent) -> DiscordEventWrapper | None:
        try:
            event = wrap(raw)
        except MalformedInteraction as e:
            log.error("discord_malformed_interaction", event_id=raw.id, custom_id=e.custom_id)
            return None

        event_type = event.get_event_type()
        if event_type == StdEventType.UNKNOWN:
            log.error("discord_unknown_event", event_id=raw.id, raw_type=type(raw).__name__)
            return None

        hook = chatbot_hook(event_type.value)
        log.debug(
            "discord_event_published",
            hook=hook,
            channel=event.channel_name,
            event_id=event.get_id(),
            message_type=event.get_message_type().value,
        )
        await self.bus.publish(hook, event)
        return event

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    async def send_message(
        self,
        event: EventWrapper,
        envelope: OutgoingEnvelope,
        options: BlockOptions | None = None,
    ) -> dict[str, str]:
        """Send ``envelope`` to the event's channel and return the last message id."""
        options = options or BlockOptions()
        channel_id = event.get_recipient_foreign_id()
        log.info("discord_sending_message", channel_id=channel_id, format=str(envelope.format))

        messages = await self.formatter.format(envelope, options)
        channel = await self._resolve_channel(channel_id)

        if options.typing:
            try:
                await channel.typing()
            except discord.HTTPException as e:
                log.warning("discord_typing_failed", channel_id=channel_id, error=str(e))

        # Sequential on purpose: concurrent sends may be displayed out of order
        last_id = ""
        for message in messages:
            sent = await self._send(channel, message)
            last_id = str(sent.id)
        return {"mid": last_id}

    async def _resolve_channel(self, channel_id: str) -> Any:
        if self._client is None:
            raise ChannelUnavailable(channel_id, "not connected")
        try:
            snowflake = int(channel_id)
        except ValueError:
            raise ChannelUnavailable(channel_id, "invalid channel id") from None

        channel = self._client.get_channel(snowflake)
        if channel is None:
            try:
                channel = await self._client.fetch_channel(snowflake)
            except discord.NotFound:
                raise ChannelUnavailable(channel_id, "not found") from None
            except discord.HTTPException as e:
                raise ChannelUnavailable(channel_id, str(e)) from e

        if not is_text_channel(channel):
            raise ChannelUnavailable(channel_id, "only text-based channels are supported")
        return channel

    async def _send(self, channel: Any, message: DiscordMessage) -> discord.Message:
        kwargs: dict[str, Any] = {}
        if message.content:
            kwargs["content"] = message.content
        if message.embeds:
            kwargs["embeds"] = message.embeds
        if message.files:
            kwargs["files"] = [await self._fetch_file(f) for f in message.files]

        view = build_view(message.rows)
        if view is not None:
            kwargs["view"] = view

        try:
            return await channel.send(**kwargs)
        except discord.HTTPException as e:
            raise DeliveryFailed(f"Discord rejected message to channel {channel.id}: {e}") from e
        finally:
            if view is not None:
                view.stop()

    async def _fetch_file(self, remote: RemoteFile) -> discord.File:
        parsed = urlparse(remote.url)
        if parsed.scheme == "file":
            try:
                return discord.File(url2pathname(parsed.path), filename=remote.filename)
            except OSError as e:
                raise DeliveryFailed(f"Cannot open attachment {remote.url}: {e}") from e

        try:
            response = await self._http.get(remote.url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryFailed(f"Cannot fetch attachment {remote.url}: {e}") from e
        return discord.File(io.BytesIO(response.content), filename=remote.filename)

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    async def get_user_data(self, event: EventWrapper) -> SubscriberProfile:
        foreign_id = event.get_sender_foreign_id()
        info = event.get_sender_info()

        avatar: StoredAttachment | None = None
        if info.avatar_url:
            avatar = await self._store_avatar(foreign_id, info.avatar_url)

        language = await self._languages.get_default_language()
        return SubscriberProfile(
            foreign_id=foreign_id,
            first_name=info.first_name,
            last_name=info.last_name,
            channel=event.get_channel_data(),
            language=language,
            avatar=avatar,
        )

    async def _store_avatar(self, foreign_id: str, url: str) -> StoredAttachment | None:
        try:
            response = await self._http.get(url)
            response.raise_for_status()
            return await self._attachments.store(
                response.content,
                {
                    "name": f"{foreign_id}.jpeg",
                    "type": response.headers.get("content-type", "image/jpeg"),
                    "context": "subscriber_avatar",
                    "channel": {"name": DISCORD_CHANNEL_NAME},
                },
            )
        except (httpx.HTTPError, AttachmentError) as e:
            log.warning("discord_avatar_fetch_failed", foreign_id=foreign_id, error=str(e))
            return None

    def handle(self, request: Any, response: Any) -> None:
        raise WebhookNotSupported(
            "Discord channel receives events over the gateway connection; it has no webhook endpoint"
        )
