"""Coordinate model for the mini-canvas nested inside a location card.

Nested cards are positioned in local coordinates whose origin is the top-left
corner of the mini-canvas region. Nesting is one level deep: mini-canvases
never hold location cards.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .geometry import Point, Rect
from .models import LocationPayload
from .sizing import DEFAULT_SIZING, SizingConfig, card_size, mini_canvas_offset

if TYPE_CHECKING:
    from .models import Card


@dataclass(frozen=True)
class NestingConfig:
    # How far outside its mini-canvas a child's center may go before it is promoted
    promotion_tolerance: float = 20.0


DEFAULT_NESTING = NestingConfig()


def _require_location(card: Card) -> LocationPayload:
    if not isinstance(card.payload, LocationPayload):
        raise ValueError(f"Card {card.id} is a {card.type.value}, not a location")
    return card.payload


def mini_canvas_origin(
    location: Card,
    position: Point | None = None,
    sizing: SizingConfig | None = None,
) -> Point:
    """World position of the mini-canvas top-left corner.

    Args:
        location: The location card
        position: World center to use instead of the card's stored position
        sizing: Sizing configuration
    """
    if sizing is None:
        sizing = DEFAULT_SIZING

    _require_location(location)
    center = location.position if position is None else position
    size = card_size(location, sizing)
    offset_x, offset_y = mini_canvas_offset(location, sizing)
    return Point(
        center.x - size.width / 2 + offset_x,
        center.y - size.height / 2 + offset_y,
    )


def mini_canvas_rect(
    location: Card,
    position: Point | None = None,
    sizing: SizingConfig | None = None,
) -> Rect:
    """World rectangle covered by a location's mini-canvas."""
    payload = _require_location(location)
    return Rect.from_origin(mini_canvas_origin(location, position, sizing), payload.pinned_canvas)


def local_to_world(
    location: Card,
    local: Point,
    position: Point | None = None,
    sizing: SizingConfig | None = None,
) -> Point:
    return mini_canvas_origin(location, position, sizing) + local


def world_to_local(
    location: Card,
    world: Point,
    position: Point | None = None,
    sizing: SizingConfig | None = None,
) -> Point:
    return world - mini_canvas_origin(location, position, sizing)


def contains_world_point(
    location: Card,
    world: Point,
    tolerance: float = 0.0,
    sizing: SizingConfig | None = None,
) -> bool:
    """True if a world point falls inside the location's mini-canvas."""
    if not isinstance(location.payload, LocationPayload):
        return False
    return mini_canvas_rect(location, sizing=sizing).inflated(tolerance).contains(world)


def is_outside_for_promotion(
    location: Card,
    local: Point,
    config: NestingConfig | None = None,
) -> bool:
    """True when a child's local center has left the mini-canvas far enough to be promoted."""
    if config is None:
        config = DEFAULT_NESTING

    payload = _require_location(location)
    bounds = Rect(0, 0, payload.pinned_canvas.width, payload.pinned_canvas.height)
    return not bounds.inflated(config.promotion_tolerance).contains(local)
