"""Tests for the async event bus."""

import asyncio
import pytest
from parley.core.bus import EventBus, chatbot_hook, settings_hook

MESSAGE = chatbot_hook("message")
ECHO = chatbot_hook("echo")


@pytest.fixture
def bus():
    return EventBus()


class TestEventBus:
    def test_hook_name(self):
        assert chatbot_hook("message") == "hook:chatbot:message"

    def test_settings_hook_name(self):
        assert settings_hook("discord_channel", "bot_token") == "hook:discord_channel:bot_token"

    async def test_publish_subscribe(self, bus):
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(MESSAGE, handler)
        await bus.start()

        await bus.publish(MESSAGE, {"text": "hello"})

        # Give consumer time to process
        await asyncio.sleep(0.1)

        assert received == [{"text": "hello"}]

        await bus.stop()

    async def test_multiple_subscribers(self, bus):
        received_a = []
        received_b = []

        async def handler_a(event):
            received_a.append(event)

        async def handler_b(event):
            received_b.append(event)

        bus.subscribe(MESSAGE, handler_a)
        bus.subscribe(MESSAGE, handler_b)
        await bus.start()

        await bus.publish(MESSAGE, "test")
        await asyncio.sleep(0.1)

        assert len(received_a) == 1
        assert len(received_b) == 1

        await bus.stop()

    async def test_hook_filtering(self, bus):
        messages = []
        echoes = []

        async def on_message(event):
            messages.append(event)

        async def on_echo(event):
            echoes.append(event)

        bus.subscribe(MESSAGE, on_message)
        bus.subscribe(ECHO, on_echo)
        await bus.start()

        await bus.publish(MESSAGE, "in")
        await bus.publish(ECHO, "mine")
        await asyncio.sleep(0.1)

        assert messages == ["in"]
        assert echoes == ["mine"]

        await bus.stop()

    async def test_subscribe_after_start(self, bus):
        received = []

        async def handler(event):
            received.append(event)

        await bus.start()
        bus.subscribe(MESSAGE, handler)
        await bus.publish(MESSAGE, "late")
        await asyncio.sleep(0.1)

        assert received == ["late"]

        await bus.stop()

    async def test_publish_without_subscribers(self, bus):
        await bus.start()
        await bus.publish(chatbot_hook("delivery"), "nobody listens")
        await bus.stop()

    async def test_handler_error_doesnt_crash_bus(self, bus):
        good_received = []

        async def bad_handler(event):
            raise RuntimeError("boom")

        async def good_handler(event):
            good_received.append(event)

        bus.subscribe(MESSAGE, bad_handler)
        bus.subscribe(MESSAGE, good_handler)
        await bus.start()

        await bus.publish(MESSAGE, "test")
        await asyncio.sleep(0.1)

        # Good handler should still receive the event
        assert len(good_received) == 1

        await bus.stop()

    async def test_queue_overflow_doesnt_crash(self):
        bus = EventBus(max_queue_size=2)
        received = []

        async def slow_handler(event):
            await asyncio.sleep(1)
            received.append(event)

        bus.subscribe(MESSAGE, slow_handler)
        await bus.start()

        # Publish more events than queue size
        for i in range(5):
            await bus.publish(MESSAGE, i)

        await asyncio.sleep(0.1)
        await bus.stop()
        # Should not raise
