"""Shared fixtures."""

import httpx
import pytest

from parley.config import DiscordSettings, Settings
from parley.core.host import StaticLanguageService, StaticSettingsProvider

from tests.factories import FakeAttachmentService


@pytest.fixture
def attachments():
    return FakeAttachmentService()


@pytest.fixture
def settings():
    return Settings(discord=DiscordSettings(bot_token="test-token", app_id="1234"))


@pytest.fixture
def settings_provider(settings):
    return StaticSettingsProvider(settings)


@pytest.fixture
def language_service():
    return StaticLanguageService("fr")


@pytest.fixture
def http_requests():
    return []


@pytest.fixture
def http_client(http_requests):
    def respond(request: httpx.Request) -> httpx.Response:
        http_requests.append(request)
        if "/applications/" in request.url.path:
            return httpx.Response(200, json=[{"id": "1", "name": "chat"}])
        if request.url.host == "broken.example.test":
            return httpx.Response(404)
        return httpx.Response(200, content=b"image-bytes", headers={"content-type": "image/png"})

    return httpx.AsyncClient(transport=httpx.MockTransport(respond))
