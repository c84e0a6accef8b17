"""Python DSL for building story canvases."""

from __future__ import annotations

import dataclasses
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from .document import Document
from .geometry import Point
from .models import Card, CardType, ChoiceOption, ChoicesPayload, ConnectionKey, default_payload
from .renderer import render_to_svg

if TYPE_CHECKING:
    from collections.abc import Generator

    from .config import CanvasConfig

# Context stacks for nested card creation
_document_stack: list[Document] = []
_location_stack: list[str] = []


def _current_document() -> Document:
    if not _document_stack:
        raise RuntimeError("Cards can only be created inside a storyboard() block")
    return _document_stack[-1]


def _current_location() -> str | None:
    return _location_stack[-1] if _location_stack else None


def _parse_type(value: CardType | str) -> CardType:
    """Convert a toolbar tag to CardType."""
    if isinstance(value, CardType):
        return value
    card_type = CardType.from_tag(value)
    if card_type is None:
        raise ValueError(f"Unknown card type: {value!r}")
    return card_type


@contextmanager
def storyboard(
        filename: str | None = None,
        config: CanvasConfig | None = None,
) -> Generator[Document]:
    """Create a canvas document context.

    Usage:
        with storyboard(filename="heist"):
            bank = card("location", title="Bank", at=(0, 0))
            with bank:
                guard = card("event", title="Guard patrol")
            escape = card("choices", title="Escape?", at=(500, 0), options=["Run", "Hide"])
            guard >> escape
            option(escape, "Run") >> card("prop", title="Getaway car", at=(900, 0))

    Args:
        filename: Output filename (without extension); nothing is written when omitted
        config: Canvas configuration

    Yields:
        The Document being built
    """
    doc = Document(config)
    _document_stack.append(doc)

    try:
        yield doc
    finally:
        _document_stack.pop()

    if filename:
        render_to_svg(doc, filename=filename)


class CardContext:
    """A card that can be used with or without context manager.

    Usage:
        # Without context manager
        car = card("prop", title="Getaway car")

        # Location with nested cards
        with card("location", title="Bank") as bank:
            card("event", title="Alarm")
    """

    def __init__(self, document: Document, card_id: str):
        self._document = document
        self._card_id = card_id
        self._entered = False

    @property
    def card(self) -> Card:
        return self._document.card(self._card_id)

    def __enter__(self) -> CardContext:
        """Enter context manager - nest subsequent cards in this location."""
        if not self.card.is_location:
            raise ValueError(f"Only location cards can hold nested cards, not {self.card.type.value}")
        _location_stack.append(self._card_id)
        self._entered = True
        return self

    def __exit__(self, *args: Any) -> None:
        if self._entered:
            _location_stack.pop()
            self._entered = False

    # Delegate attribute access to the underlying card
    def __getattr__(self, name: str) -> Any:
        return getattr(self.card, name)

    def __rshift__(self, other: CardContext) -> CardContext:
        """Connect this card to another; returns the target so connections chain."""
        connect(self, other)
        return other

    def __repr__(self) -> str:
        return f"CardContext({self.card.type.value}, {self.card.title!r}, id={self._card_id})"


class OptionContext:
    """One option of a Choices card, connectable with >>."""

    def __init__(self, choices: CardContext, option_id: str):
        self._choices = choices
        self.option_id = option_id

    def __rshift__(self, other: CardContext) -> CardContext:
        connect(self, other)
        return other

    def __repr__(self) -> str:
        return f"OptionContext({self._choices.card.id}, {self.option_id})"


def card(
        card_type: CardType | str,
        title: str = "",
        description: str | None = None,
        at: tuple[float, float] = (0.0, 0.0),
        options: list[str] | None = None,
        **fields: Any,
) -> CardContext:
    """Create a card in the current storyboard.

    Inside a ``with`` block of a location card the new card is nested in that
    location and ``at`` is taken in mini-canvas coordinates.

    Args:
        card_type: CardType or toolbar tag ("location", "choices", "prop", "event")
        title: Card title
        description: Body text, for card types that have one
        at: Desired center; the card is moved clear of its siblings
        options: Option texts for a Choices card
        **fields: Further payload fields, e.g. collapsed=True

    Returns:
        CardContext that can be used with or without 'with' statement
    """
    doc = _current_document()
    kind = _parse_type(card_type)

    payload = default_payload(kind)
    changes: dict[str, Any] = {"title": title, **fields}
    if description is not None:
        changes["description"] = description
    if options:
        changes["options"] = [ChoiceOption(text=text) for text in options]
    payload = dataclasses.replace(payload, **changes)

    result = doc.add_card(kind, Point(*at), payload=payload, parent_id=_current_location())
    return CardContext(doc, result.card_id)


def option(choices: CardContext, text: str) -> OptionContext:
    """Get a Choices option by text, adding it when missing."""
    payload = choices.card.payload
    if not isinstance(payload, ChoicesPayload):
        raise ValueError(f"Card {choices.card.id} is a {choices.card.type.value}, not choices")

    existing = next((opt for opt in payload.options if opt.text == text), None)
    if existing is not None:
        return OptionContext(choices, existing.id)

    added = ChoiceOption(text=text)
    choices._document.update_payload(choices.card.id, options=[*payload.options, added])
    return OptionContext(choices, added.id)


def connect(
        source: CardContext | OptionContext,
        target: CardContext,
        color: str | None = None,
) -> ConnectionKey:
    """Create a connection between two cards, or from a Choices option.

    Usage:
        connect(guard, escape, color="#ef4444")
        connect(option(escape, "Hide"), vault)

    Returns:
        The key identifying the connection
    """
    if isinstance(source, OptionContext):
        card_ctx, option_id = source._choices, source.option_id
    else:
        card_ctx, option_id = source, None

    doc = card_ctx._document
    doc.connect(card_ctx.card.id, target.card.id, option_id=option_id, color=color)
    return ConnectionKey(card_ctx.card.id, option_id, target.card.id)
