"""Tests for outgoing envelope formatting."""

import discord
import pytest

from parley.channels.discord.formatter import (
    VIEW_MORE_LABEL,
    VIEW_MORE_PAYLOAD,
    ZERO_WIDTH_SPACE,
    DiscordMessageFormatter,
    RemoteFile,
)
from parley.core.errors import EmptyMessage, UnsupportedMessageFormat
from parley.models import (
    AttachmentMessage,
    AttachmentPayload,
    AttachmentType,
    Button,
    ButtonsMessage,
    ButtonType,
    ContentFields,
    ListMessage,
    ListOptions,
    OutgoingEnvelope,
    OutgoingMessageFormat,
    Pagination,
    QuickRepliesMessage,
    QuickReply,
    TextMessage,
)


@pytest.fixture
def formatter(attachments):
    return DiscordMessageFormatter(attachments)


def products(count, *, with_images=True):
    return [
        {
            "title": f"Product {i}",
            "desc": f"Description {i}",
            "link": f"https://shop.example.test/p/{i}",
            "photo": {"type": "image", "payload": {"url": f"https://cdn.example.test/p/{i}.jpg"}}
            if with_images else None,
        }
        for i in range(count)
    ]


def list_message(elements, *, buttons=None, pagination=None):
    return ListMessage(
        elements=elements,
        options=ListOptions(
            fields=ContentFields(title="title", subtitle="desc", url="link", image_url="photo"),
            buttons=buttons or [],
        ),
        pagination=pagination,
    )


class TestSimpleFormats:
    async def test_text_round_trip(self, formatter):
        envelope = OutgoingEnvelope(format=OutgoingMessageFormat.TEXT, message=TextMessage(text="Hello *there*"))
        [message] = await formatter.format(envelope)
        assert message.content == "Hello *there*"
        assert message.embeds == [] and message.rows == [] and message.files == []

    async def test_plain_string_format_tag(self, formatter):
        [message] = await formatter.format(OutgoingEnvelope(format="text", message=TextMessage(text="hi")))
        assert message.content == "hi"

    async def test_quick_replies(self, formatter):
        message = QuickRepliesMessage(
            text="Pick a color",
            quick_replies=[QuickReply(title="Red", payload="RED"), QuickReply(title="Blue", payload="BLUE")],
        )
        [result] = await formatter.format(OutgoingEnvelope(format=OutgoingMessageFormat.QUICK_REPLIES, message=message))
        assert result.content == "Pick a color"
        [row] = result.rows
        assert [(b.label, b.custom_id) for b in row.buttons] == [("Red", "RED"), ("Blue", "BLUE")]
        assert all(b.style == discord.ButtonStyle.primary for b in row.buttons)

    async def test_quick_replies_overflow_wraps(self, formatter):
        replies = [QuickReply(title=str(i), payload=f"P{i}") for i in range(7)]
        [result] = await formatter.format(
            OutgoingEnvelope(format=OutgoingMessageFormat.QUICK_REPLIES, message=QuickRepliesMessage("n?", replies))
        )
        assert [len(r.buttons) for r in result.rows] == [5, 2]

    async def test_buttons(self, formatter):
        message = ButtonsMessage(
            text="What next?",
            buttons=[
                Button(type=ButtonType.POSTBACK, title="Order", payload="ORDER"),
                Button(type=ButtonType.WEB_URL, title="Website", url="https://shop.example.test"),
            ],
        )
        [result] = await formatter.format(OutgoingEnvelope(format=OutgoingMessageFormat.BUTTONS, message=message))
        order, website = result.rows[0].buttons
        assert order.custom_id == "ORDER"
        assert order.style == discord.ButtonStyle.secondary
        assert not order.is_link
        assert website.is_link
        assert website.url == "https://shop.example.test"
        assert website.custom_id is None

    async def test_unknown_format(self, formatter):
        with pytest.raises(UnsupportedMessageFormat):
            await formatter.format(OutgoingEnvelope(format="unsupported_format", message=None))


class TestAttachmentFormat:
    async def test_resolves_stored_attachment(self, formatter):
        message = AttachmentMessage(attachment=AttachmentPayload(type=AttachmentType.IMAGE, id="att-9", name="menu.png"))
        [result] = await formatter.format(OutgoingEnvelope(format=OutgoingMessageFormat.ATTACHMENT, message=message))
        assert result.files == [RemoteFile(url="https://files.example.test/att-9", filename="menu.png")]
        assert result.rows == []

    async def test_merges_quick_replies(self, formatter):
        message = AttachmentMessage(
            attachment=AttachmentPayload(type=AttachmentType.FILE, id="att-3"),
            quick_replies=[QuickReply(title="Thanks", payload="THANKS")],
        )
        [result] = await formatter.format(OutgoingEnvelope(format=OutgoingMessageFormat.ATTACHMENT, message=message))
        assert result.files[0].filename == "att-3"
        [button] = result.rows[0].buttons
        assert button.label == "Thanks"
        assert button.custom_id == "THANKS"


class TestCarouselFormat:
    async def test_elements_are_index_aligned(self, formatter):
        message = list_message(
            products(3),
            buttons=[
                Button(type=ButtonType.POSTBACK, title="Buy", payload="BUY"),
                Button(type=ButtonType.WEB_URL, title="Open"),
            ],
        )
        results = await formatter.format(OutgoingEnvelope(format=OutgoingMessageFormat.CAROUSEL, message=message))

        embeds = [e for m in results for e in m.embeds]
        rows = [r for m in results for r in m.rows]
        files = [f for m in results for f in m.files]
        assert len(embeds) == len(rows) == len(files) == 3

        for index, result in enumerate(results):
            [embed] = result.embeds
            [file] = result.files
            assert result.content == ZERO_WIDTH_SPACE
            assert embed.title == f"Product {index}"
            assert embed.description == f"Description {index}"
            assert embed.url == f"https://shop.example.test/p/{index}"
            assert file.url == f"https://cdn.example.test/p/{index}.jpg"
            assert file.filename == f"image-{index}.jpg"
            assert embed.image.url == f"attachment://{file.filename}"

            buy, open_ = result.rows[0].buttons
            assert buy.custom_id == "BUY"
            assert open_.url == f"https://shop.example.test/p/{index}"

    async def test_optional_fields_are_skipped(self, formatter):
        elements = [{"title": "Bare"}]
        results = await formatter.format(
            OutgoingEnvelope(format=OutgoingMessageFormat.CAROUSEL, message=list_message(elements))
        )
        [result] = results
        [embed] = result.embeds
        assert embed.title == "Bare"
        assert embed.description is None
        assert embed.url is None
        assert result.files == []
        assert result.rows == []

    async def test_link_button_without_element_url_is_dropped(self, formatter):
        elements = [{"title": "No link"}]
        message = list_message(elements, buttons=[
            Button(type=ButtonType.WEB_URL, title="Open"),
            Button(type=ButtonType.POSTBACK, title="More", payload="MORE"),
        ])
        [result] = await formatter.format(OutgoingEnvelope(format=OutgoingMessageFormat.CAROUSEL, message=message))
        assert [b.label for b in result.rows[0].buttons] == ["More"]


class TestListFormat:
    async def test_view_more_when_results_remain(self, formatter):
        message = list_message(products(10, with_images=False), pagination=Pagination(total=50, skip=0, limit=10))
        results = await formatter.format(OutgoingEnvelope(format=OutgoingMessageFormat.LIST, message=message))
        assert len(results) == 11
        trailing = results[-1]
        assert trailing.embeds == []
        [row] = trailing.rows
        [button] = row.buttons
        assert button.label == VIEW_MORE_LABEL
        assert button.custom_id == VIEW_MORE_PAYLOAD

    async def test_no_view_more_on_last_page(self, formatter):
        message = list_message(products(10, with_images=False), pagination=Pagination(total=50, skip=40, limit=10))
        results = await formatter.format(OutgoingEnvelope(format=OutgoingMessageFormat.LIST, message=message))
        assert len(results) == 10
        view_more = [b for m in results for r in m.rows for b in r.buttons if b.custom_id == VIEW_MORE_PAYLOAD]
        assert view_more == []

    async def test_no_pagination(self, formatter):
        results = await formatter.format(
            OutgoingEnvelope(format=OutgoingMessageFormat.LIST, message=list_message(products(2)))
        )
        assert len(results) == 2


class TestEmptyCollections:
    @pytest.mark.parametrize("fmt", [OutgoingMessageFormat.CAROUSEL, OutgoingMessageFormat.LIST])
    async def test_no_elements_raises(self, formatter, fmt):
        with pytest.raises(EmptyMessage):
            await formatter.format(OutgoingEnvelope(format=fmt, message=list_message([])))

    async def test_empty_page_still_offers_view_more(self, formatter):
        message = list_message([], pagination=Pagination(total=30, skip=0, limit=10))
        [result] = await formatter.format(OutgoingEnvelope(format=OutgoingMessageFormat.LIST, message=message))
        assert result.rows[0].buttons[0].custom_id == VIEW_MORE_PAYLOAD
