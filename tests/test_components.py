"""Tests for button rows and their discord.py views."""

from types import SimpleNamespace

import discord

from parley.channels.discord.components import (
    MAX_BUTTONS_PER_ROW,
    SELECTED_EMOJI,
    ActionRow,
    ButtonSpec,
    build_view,
    chunk_rows,
    disable_rows,
    rows_from_message,
)

from tests.factories import make_button_component


def specs(count):
    return [ButtonSpec.postback(f"Choice {i}", f"choice-{i}") for i in range(count)]


class TestChunkRows:
    def test_fits_in_one_row(self):
        rows = chunk_rows(specs(3))
        assert len(rows) == 1
        assert [b.custom_id for b in rows[0].buttons] == ["choice-0", "choice-1", "choice-2"]

    def test_wraps_into_additional_rows(self):
        rows = chunk_rows(specs(7))
        assert [len(r.buttons) for r in rows] == [MAX_BUTTONS_PER_ROW, 2]

    def test_truncates_past_25(self):
        rows = chunk_rows(specs(30))
        assert len(rows) == 5
        assert sum(len(r.buttons) for r in rows) == 25
        assert rows[-1].buttons[-1].custom_id == "choice-24"

    def test_empty(self):
        assert chunk_rows([]) == []


class TestRowsFromMessage:
    def test_reads_buttons(self):
        row = SimpleNamespace(children=[
            make_button_component("Yes", "yes"),
            make_button_component("Site", url="https://example.test"),
        ])
        rows = rows_from_message([row])
        assert len(rows) == 1
        yes, site = rows[0].buttons
        assert yes.custom_id == "yes"
        assert not yes.is_link
        assert site.is_link
        assert site.url == "https://example.test"

    def test_skips_components_without_children(self):
        assert rows_from_message([object()]) == []


class TestDisableRows:
    def test_marks_clicked_and_disables_others(self):
        row = ActionRow((
            ButtonSpec.postback("Yes", "yes"),
            ButtonSpec.postback("No", "no"),
            ButtonSpec.link("Docs", "https://example.test/docs"),
        ))
        [result] = disable_rows([row], "no")
        yes, no, docs = result.buttons

        assert yes.disabled and no.disabled
        assert no.emoji == SELECTED_EMOJI
        assert yes.emoji is None
        assert not docs.disabled
        assert docs.emoji is None

    def test_exactly_one_marker_across_rows(self):
        rows = chunk_rows(specs(8))
        result = disable_rows(rows, "choice-6")
        marked = [b for r in result for b in r.buttons if b.emoji == SELECTED_EMOJI]
        assert [b.custom_id for b in marked] == ["choice-6"]
        assert all(b.disabled for r in result for b in r.buttons)


class TestBuildView:
    async def test_empty_rows(self):
        assert build_view([]) is None

    async def test_items_keep_row_positions(self):
        rows = chunk_rows(specs(6)) + [ActionRow((ButtonSpec.link("Docs", "https://example.test"),))]
        view = build_view(rows)
        assert view is not None
        assert len(view.children) == 7
        assert [item.row for item in view.children] == [0, 0, 0, 0, 0, 1, 2]

        link = view.children[-1]
        assert link.style == discord.ButtonStyle.link
        assert link.url == "https://example.test"
        assert link.custom_id is None
        view.stop()

    async def test_disabled_state_is_carried(self):
        [row] = disable_rows([ActionRow((ButtonSpec.postback("Yes", "yes"),))], "yes")
        view = build_view([row])
        [item] = view.children
        assert item.disabled
        assert str(item.emoji) == SELECTED_EMOJI
        view.stop()
