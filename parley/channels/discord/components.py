"""Button and action-row value objects and their discord.py counterparts.

Rows are kept as plain frozen dataclasses so payloads can be built and
inspected without an event loop; :func:`build_view` turns them into a
``discord.ui.View`` right before a message is sent or edited.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, Sequence

import discord

from parley.utils.logging import get_logger

log = get_logger(__name__)

MAX_BUTTONS_PER_ROW = 5
MAX_ROWS_PER_MESSAGE = 5
SELECTED_EMOJI = "✅"


@dataclass(frozen=True)
class ButtonSpec:
    label: str
    style: discord.ButtonStyle = discord.ButtonStyle.secondary
    custom_id: str | None = None
    url: str | None = None
    disabled: bool = False
    emoji: str | None = None

    @property
    def is_link(self) -> bool:
        return self.url is not None or self.style == discord.ButtonStyle.link

    @classmethod
    def postback(cls, label: str, payload: str, style: discord.ButtonStyle = discord.ButtonStyle.secondary) -> "ButtonSpec":
        return cls(label=label, style=style, custom_id=payload)

    @classmethod
    def link(cls, label: str, url: str) -> "ButtonSpec":
        return cls(label=label, style=discord.ButtonStyle.link, url=url)

    @classmethod
    def from_component(cls, component: Any) -> "ButtonSpec":
        """Rebuild a button description from a ``discord.Button`` found on a received message."""
        emoji = component.emoji
        return cls(
            label=component.label or "",
            style=component.style,
            custom_id=component.custom_id,
            url=component.url,
            disabled=component.disabled,
            emoji=str(emoji) if emoji else None,
        )

    def to_item(self, row: int) -> discord.ui.Button:
        return discord.ui.Button(
            label=self.label,
            style=self.style,
            custom_id=None if self.is_link else self.custom_id,
            url=self.url,
            disabled=self.disabled,
            emoji=self.emoji,
            row=row,
        )


@dataclass(frozen=True)
class ActionRow:
    buttons: tuple[ButtonSpec, ...]

    def find(self, custom_id: str) -> ButtonSpec | None:
        for button in self.buttons:
            if button.custom_id == custom_id:
                return button
        return None


def chunk_rows(buttons: Sequence[ButtonSpec]) -> list[ActionRow]:
    """Split buttons into rows of five, keeping at most five rows.

    Buttons past the 25th cannot be attached to a single Discord message and
    are dropped with a warning.
    """
    limit = MAX_BUTTONS_PER_ROW * MAX_ROWS_PER_MESSAGE
    if len(buttons) > limit:
        log.warning(
            "discord_buttons_truncated",
            supplied=len(buttons),
            kept=limit,
            dropped=[b.label for b in buttons[limit:]],
        )
        buttons = buttons[:limit]
    return [
        ActionRow(tuple(buttons[i:i + MAX_BUTTONS_PER_ROW]))
        for i in range(0, len(buttons), MAX_BUTTONS_PER_ROW)
    ]


def rows_from_message(components: Iterable[Any]) -> list[ActionRow]:
    """Extract the button rows of a received ``discord.Message``."""
    rows: list[ActionRow] = []
    for component in components:
        children = getattr(component, "children", None)
        if children is None:
            continue
        buttons = tuple(
            ButtonSpec.from_component(child)
            for child in children
            if child.type == discord.ComponentType.button
        )
        if buttons:
            rows.append(ActionRow(buttons))
    return rows


def disable_rows(rows: Iterable[ActionRow], clicked_custom_id: str) -> list[ActionRow]:
    """Disable every non-link button and mark the clicked one as selected."""
    result: list[ActionRow] = []
    for row in rows:
        buttons: list[ButtonSpec] = []
        for button in row.buttons:
            if button.is_link:
                buttons.append(replace(button, disabled=False))
                continue
            selected = button.custom_id == clicked_custom_id
            buttons.append(
                replace(
                    button,
                    disabled=True,
                    emoji=SELECTED_EMOJI if selected else button.emoji,
                )
            )
        result.append(ActionRow(tuple(buttons)))
    return result


def build_view(rows: Sequence[ActionRow]) -> discord.ui.View | None:
    """Must be called with a running event loop (discord.ui.View requirement)."""
    if not rows:
        return None
    view = discord.ui.View(timeout=None)
    for index, row in enumerate(rows[:MAX_ROWS_PER_MESSAGE]):
        for button in row.buttons:
            view.add_item(button.to_item(index))
    return view
