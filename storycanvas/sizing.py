"""Content-driven card sizing.

A card's footprint is never stored. It is recomputed from the payload on every
call, so a card's size and its stored position cannot drift apart.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from .geometry import Size
from .models import (
    CardType,
    ChoicesPayload,
    EventPayload,
    LocationPayload,
    PropPayload,
)

if TYPE_CHECKING:
    from .models import Card


class TextMeasurer(Protocol):
    def measure(self, text: str, font_size: float) -> float:
        """Rendered width of a single line of text."""
        ...


@dataclass(frozen=True)
class AverageCharWidthMeasurer:
    """Estimate text width from character count and an average glyph width."""

    # Average character width as a fraction of the font size (sans-serif, conservative)
    char_width_ratio: float = 0.55

    def measure(self, text: str, font_size: float) -> float:
        return len(text) * font_size * self.char_width_ratio


@dataclass(frozen=True)
class SizingConfig:
    """Configuration for card footprint calculations."""

    location_width: float = 300
    choices_width: float = 240
    prop_width: float = 180
    event_width: float = 240
    padding: float = 10
    spacing: float = 6
    header_height: float = 22  # Type label row
    font_size_title: float = 14
    font_size_body: float = 12
    title_line_height: float = 18
    body_line_height: float = 15
    button_height: float = 28  # "Add option" / "Add sub-event" row
    image_height: float = 90
    option_base_height: float = 28
    sub_event_base_height: float = 26
    item_text_inset: float = 12  # Horizontal chrome inside option / sub-event rows
    collapsed_columns: int = 2
    collapsed_row_height: float = 28
    collapsed_row_spacing: float = 6
    measurer: TextMeasurer = field(default_factory=AverageCharWidthMeasurer)

    def width_for(self, card_type: CardType) -> float:
        return {
            CardType.LOCATION: self.location_width,
            CardType.CHOICES: self.choices_width,
            CardType.PROP: self.prop_width,
            CardType.EVENT: self.event_width,
        }[card_type]


DEFAULT_SIZING = SizingConfig()


def wrapped_line_count(
    text: str,
    font_size: float,
    max_width: float,
    measurer: TextMeasurer | None = None,
) -> int:
    """Count the lines text occupies when greedily wrapped at max_width.

    Words are kept whole unless a single word is wider than the line, in which
    case it is broken by character. Explicit newlines start a new line.
    Empty or whitespace-only text counts as one line.
    """
    if measurer is None:
        measurer = DEFAULT_SIZING.measurer

    if not text.strip():
        return 1

    lines = 0
    for paragraph in text.split("\n"):
        lines += _wrap_paragraph(paragraph, font_size, max_width, measurer)
    return max(1, lines)


def _wrap_paragraph(
    paragraph: str,
    font_size: float,
    max_width: float,
    measurer: TextMeasurer,
) -> int:
    words = paragraph.split()
    if not words:
        return 1

    lines = 1
    current = ""
    for word in words:
        candidate = f"{current} {word}" if current else word
        if measurer.measure(candidate, font_size) <= max_width:
            current = candidate
            continue

        if current:
            lines += 1
            current = ""

        # Break words that cannot fit on a line of their own
        while measurer.measure(word, font_size) > max_width and len(word) > 1:
            cut = _fitting_prefix(word, font_size, max_width, measurer)
            word = word[cut:]
            lines += 1
        current = word

    return lines


def _fitting_prefix(word: str, font_size: float, max_width: float, measurer: TextMeasurer) -> int:
    cut = 1
    while cut < len(word) and measurer.measure(word[: cut + 1], font_size) <= max_width:
        cut += 1
    return cut


def text_block_height(
    text: str,
    font_size: float,
    max_width: float,
    base: float,
    increment: float,
    measurer: TextMeasurer,
) -> float:
    """Height of a wrapped text field: base plus one increment per extra line."""
    lines = wrapped_line_count(text, font_size, max_width, measurer)
    return base + max(0, lines - 1) * increment


def card_size(card: Card, config: SizingConfig | None = None) -> Size:
    """Calculate the pixel footprint of a card from its type and payload.

    Returns:
        Size(width, height)
    """
    if config is None:
        config = DEFAULT_SIZING

    payload = card.payload
    if isinstance(payload, LocationPayload):
        return _location_size(payload, config)
    if isinstance(payload, ChoicesPayload):
        return _choices_size(payload, config)
    if isinstance(payload, PropPayload):
        return _prop_size(payload, config)
    return _event_size(payload, config)


def _title_height(text: str, content_width: float, config: SizingConfig) -> float:
    return text_block_height(
        text,
        config.font_size_title,
        content_width,
        config.title_line_height,
        config.title_line_height,
        config.measurer,
    )


def _body_height(text: str, content_width: float, config: SizingConfig) -> float:
    return text_block_height(
        text,
        config.font_size_body,
        content_width,
        config.body_line_height,
        config.body_line_height,
        config.measurer,
    )


def _location_width(payload: LocationPayload, config: SizingConfig) -> float:
    return max(config.location_width, payload.pinned_canvas.width + config.padding * 2)


def _location_header(payload: LocationPayload, width: float, config: SizingConfig) -> float:
    """Height of everything above the mini-canvas."""
    content_width = width - config.padding * 2
    return (
        config.padding
        + config.header_height
        + _title_height(payload.title, content_width, config)
        + config.spacing
        + _body_height(payload.description, content_width, config)
        + config.spacing
    )


def _location_size(payload: LocationPayload, config: SizingConfig) -> Size:
    width = _location_width(payload, config)
    height = _location_header(payload, width, config) + payload.pinned_canvas.height + config.padding
    return Size(width, height)


def _choices_size(payload: ChoicesPayload, config: SizingConfig) -> Size:
    width = config.choices_width
    content_width = width - config.padding * 2
    height = (
        config.padding
        + config.header_height
        + _title_height(payload.title, content_width, config)
        + config.spacing
    )

    if payload.collapsed:
        rows = max(1, math.ceil(len(payload.options) / config.collapsed_columns))
        height += rows * (config.collapsed_row_height + config.collapsed_row_spacing)
    else:
        for opt in payload.options:
            height += _option_height(opt.text, content_width, config) + config.spacing
        height += config.button_height

    return Size(width, height + config.padding)


def _option_height(text: str, content_width: float, config: SizingConfig) -> float:
    return text_block_height(
        text,
        config.font_size_body,
        content_width - config.item_text_inset * 2,
        config.option_base_height,
        config.body_line_height,
        config.measurer,
    )


def _prop_size(payload: PropPayload, config: SizingConfig) -> Size:
    width = config.prop_width
    content_width = width - config.padding * 2
    height = (
        config.padding
        + config.header_height
        + _title_height(payload.title, content_width, config)
        + config.spacing
        + _body_height(payload.description, content_width, config)
    )
    if payload.image is not None:
        height += config.spacing + config.image_height
    return Size(width, height + config.padding)


def _event_size(payload: EventPayload, config: SizingConfig) -> Size:
    width = config.event_width
    content_width = width - config.padding * 2
    height = (
        config.padding
        + config.header_height
        + _title_height(payload.title, content_width, config)
        + config.spacing
        + _body_height(payload.description, content_width, config)
        + config.spacing
    )
    for sub in payload.sub_events:
        height += (
            text_block_height(
                sub.text,
                config.font_size_body,
                content_width - config.item_text_inset * 2,
                config.sub_event_base_height,
                config.body_line_height,
                config.measurer,
            )
            + config.spacing
        )
    height += config.button_height
    return Size(width, height + config.padding)


def mini_canvas_offset(card: Card, config: SizingConfig | None = None) -> tuple[float, float]:
    """Offset of a location's mini-canvas top-left from the card's top-left."""
    if config is None:
        config = DEFAULT_SIZING

    payload = card.payload
    if not isinstance(payload, LocationPayload):
        raise ValueError(f"Card {card.id} is a {card.type.value}, not a location")

    width = _location_width(payload, config)
    # Center the pinned canvas horizontally when the card is wider than it
    x = (width - payload.pinned_canvas.width) / 2
    return x, _location_header(payload, width, config)


def option_anchor_offsets(card: Card, config: SizingConfig | None = None) -> dict[str, float]:
    """Vertical center of each option row, measured from the card's top edge.

    Collapsed cards pack options into a grid; all options then share the row
    centers of that grid.
    """
    if config is None:
        config = DEFAULT_SIZING

    payload = card.payload
    if not isinstance(payload, ChoicesPayload):
        return {}

    content_width = config.choices_width - config.padding * 2
    y = (
        config.padding
        + config.header_height
        + _title_height(payload.title, content_width, config)
        + config.spacing
    )

    offsets: dict[str, float] = {}
    if payload.collapsed:
        row_span = config.collapsed_row_height + config.collapsed_row_spacing
        for i, opt in enumerate(payload.options):
            row = i // config.collapsed_columns
            offsets[opt.id] = y + row * row_span + config.collapsed_row_height / 2
        return offsets

    for opt in payload.options:
        h = _option_height(opt.text, content_width, config)
        offsets[opt.id] = y + h / 2
        y += h + config.spacing
    return offsets
