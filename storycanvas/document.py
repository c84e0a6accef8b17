"""In-memory document tree: an arena of cards plus nesting and connection indexes.

Cards live in a flat store keyed by id. Nesting and connections refer to cards
by id and are resolved through the store. Every mutation is an explicit method
returning a MutationResult that lists the card ids whose geometry or
connections must be recomputed.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from . import nesting
from .config import CanvasConfig
from .geometry import Point, Rect, Size
from .models import (
    Card,
    CardType,
    ChoicesPayload,
    Connection,
    ConnectionKey,
    LocationPayload,
    UnknownCardError,
    default_payload,
)
from .placement import place, place_in_mini_canvas
from .routing import (
    ConnectionPoints,
    RoutedPath,
    best_connection_points,
    option_connection_points,
    route,
)
from .sizing import card_size, option_anchor_offsets

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from .models import CardPayload

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a document mutation."""

    affected: tuple[str, ...] = ()
    card_id: str | None = None

    @property
    def changed(self) -> bool:
        return bool(self.affected)


@dataclass(frozen=True)
class PendingDeletion:
    """A deletion awaiting user confirmation.

    There is no undo, so everything the deletion will discard is listed here
    for the confirmation prompt.
    """

    card_id: str
    card_type: CardType
    nested_ids: tuple[str, ...]
    connection_count: int

    @property
    def message(self) -> str:
        text = f"Delete this {self.card_type.title} card?"
        if self.nested_ids:
            noun = "card" if len(self.nested_ids) == 1 else "cards"
            text += f" The {len(self.nested_ids)} nested {noun} inside it will be deleted too."
        if self.connection_count:
            noun = "connection" if self.connection_count == 1 else "connections"
            text += f" {self.connection_count} {noun} will be removed."
        return text


def _ordered(ids: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(ids))


class Document:
    """The card tree a canvas edits."""

    def __init__(self, config: CanvasConfig | None = None):
        self.config = config or CanvasConfig()
        self.cards: dict[str, Card] = {}
        self._top_level: list[str] = []
        self._parents: dict[str, str] = {}  # child id -> location id
        self.canvas_extent: Rect | None = None

    # Queries

    def __contains__(self, card_id: object) -> bool:
        return card_id in self.cards

    def __len__(self) -> int:
        return len(self.cards)

    def iter_cards(self) -> Iterator[Card]:
        """Top-level cards in drawing order, each followed by its nested children."""
        for card_id in self._top_level:
            card = self.cards[card_id]
            yield card
            if isinstance(card.payload, LocationPayload):
                for child_id in card.payload.children:
                    yield self.cards[child_id]

    def card(self, card_id: str) -> Card:
        try:
            return self.cards[card_id]
        except KeyError:
            raise UnknownCardError(card_id) from None

    @property
    def top_level_ids(self) -> list[str]:
        return list(self._top_level)

    def children_of(self, location_id: str) -> list[str]:
        payload = self.card(location_id).payload
        if not isinstance(payload, LocationPayload):
            return []
        return list(payload.children)

    def parent_of(self, card_id: str) -> str | None:
        self.card(card_id)
        return self._parents.get(card_id)

    def siblings_of(self, card_id: str) -> list[str]:
        parent_id = self.parent_of(card_id)
        pool = self._top_level if parent_id is None else self.children_of(parent_id)
        return [other for other in pool if other != card_id]

    def size_of(self, card_id: str) -> Size:
        return card_size(self.card(card_id), self.config.sizing)

    def local_rect(self, card_id: str) -> Rect:
        """Footprint in the card's own coordinate space (world or mini-canvas)."""
        card = self.card(card_id)
        return Rect.from_center(card.position, card_size(card, self.config.sizing))

    def world_position(self, card_id: str) -> Point:
        card = self.card(card_id)
        parent_id = self._parents.get(card_id)
        if parent_id is None:
            return card.position
        return nesting.local_to_world(self.cards[parent_id], card.position, sizing=self.config.sizing)

    def world_rect(self, card_id: str) -> Rect:
        return Rect.from_center(self.world_position(card_id), self.size_of(card_id))

    def nest_target_at(self, world_point: Point, exclude: str | None = None) -> str | None:
        """Topmost location whose mini-canvas contains the world point."""
        for card_id in reversed(self._top_level):
            card = self.cards[card_id]
            if card_id == exclude or not card.is_location:
                continue
            if nesting.contains_world_point(card, world_point, sizing=self.config.sizing):
                return card_id
        return None

    def _sibling_rects(self, pool: Iterable[str], exclude: str | None = None) -> list[Rect]:
        return [self.local_rect(other) for other in pool if other != exclude]

    def _neighbors(self, card_id: str) -> set[str]:
        """Ids of cards connected to or from the given card."""
        found: set[str] = set()
        for card in self.cards.values():
            for key in card.outgoing():
                if key.source_id == card_id:
                    found.add(key.target_id)
                elif key.target_id == card_id:
                    found.add(key.source_id)
        return found

    def _moved_group(self, card_id: str) -> list[str]:
        """A card, its nested children and every card connected to any of them."""
        group = [card_id, *self.children_of(card_id)]
        affected = list(group)
        for member in group:
            affected.extend(sorted(self._neighbors(member)))
        return affected

    def _grow_extent(self, rect: Rect) -> None:
        padded = rect.inflated(self.config.canvas_margin)
        self.canvas_extent = padded if self.canvas_extent is None else self.canvas_extent.union(padded)

    # Card lifecycle

    def add_card(
        self,
        card_type: CardType,
        position: Point,
        payload: CardPayload | None = None,
        parent_id: str | None = None,
        card_id: str | None = None,
    ) -> MutationResult:
        """Create a card and place it without overlapping its siblings.

        Args:
            card_type: Kind of card
            position: Desired center (world space, or local space when nested)
            payload: Initial payload; the type's empty payload when omitted
            parent_id: Location to nest the card in
            card_id: Explicit id; generated when omitted
        """
        card = Card(type=card_type, position=position, payload=payload)
        if card_id is not None:
            card.id = card_id
        if card.id in self.cards:
            raise ValueError(f"Duplicate card id: {card.id}")

        if parent_id is None:
            siblings = self._sibling_rects(self._top_level)
            card.position = place(position, card_size(card, self.config.sizing), siblings, self.config.placement)
            self.cards[card.id] = card
            self._top_level.append(card.id)
            self._grow_extent(self.local_rect(card.id))
            affected = [card.id, *self._reflow(card.id)]
            return MutationResult(_ordered(affected), card.id)

        location = self._require_location(parent_id)
        if card.is_location:
            raise ValueError("Location cards cannot be nested")

        self.cards[card.id] = card
        affected = [card.id, parent_id, *self._nest(card, location, position, parent_id)]
        return MutationResult(_ordered(affected), card.id)

    def drop(self, type_tag: str, world_point: Point) -> MutationResult:
        """Spawn a default card from a toolbar drag payload.

        Non-location cards dropped inside a location's mini-canvas are created
        nested in that location. Unknown tags are ignored.
        """
        card_type = CardType.from_tag(type_tag)
        if card_type is None:
            logger.debug("Ignoring drop with unknown card tag %r", type_tag)
            return MutationResult()

        if card_type is not CardType.LOCATION:
            location_id = self.nest_target_at(world_point)
            if location_id is not None:
                local = nesting.world_to_local(self.cards[location_id], world_point, sizing=self.config.sizing)
                return self.add_card(card_type, local, parent_id=location_id)

        return self.add_card(card_type, world_point)

    def update_payload(self, card_id: str, **changes: object) -> MutationResult:
        """Edit payload fields, then keep siblings clear of the resized card.

        A location's child list is owned by the document and cannot be set
        here; its pinned mini-canvas size only ever grows.
        """
        card = self.card(card_id)
        if "children" in changes:
            raise ValueError("Nested cards are managed by demote_into_nest / promote_from_nest")
        if isinstance(card.payload, LocationPayload) and "pinned_canvas" in changes:
            changes["pinned_canvas"] = card.payload.pinned_canvas.grown_to(changes["pinned_canvas"])

        card.payload = dataclasses.replace(card.payload, **changes)

        affected = self._moved_group(card_id)
        parent_id = self._parents.get(card_id)
        if parent_id is None:
            affected.extend(self._reflow(card_id))
            return MutationResult(_ordered(affected), card_id)

        before = self.size_of(parent_id)
        self._keep_inside(card_id)
        self._fit_pin(parent_id)
        affected.append(parent_id)
        affected.extend(self._reflow(card_id))
        if self.size_of(parent_id) != before:
            # The location grew with its child; keep its own siblings clear of it
            affected.extend(self._moved_group(parent_id))
            affected.extend(self._reflow(parent_id))
        return MutationResult(_ordered(affected), card_id)

    def set_payload(self, card_id: str, payload: CardPayload) -> MutationResult:
        """Replace a payload wholesale, keeping a location's nested cards."""
        card = self.card(card_id)
        if getattr(payload, "kind", None) is not card.type:
            logger.warning("Payload for %s card %s has the wrong kind, using an empty one", card.type.value, card_id)
            payload = default_payload(card.type)
        if isinstance(card.payload, LocationPayload):
            payload = dataclasses.replace(
                payload,
                children=list(card.payload.children),
                pinned_canvas=card.payload.pinned_canvas.grown_to(payload.pinned_canvas),
            )
        changes = {f.name: getattr(payload, f.name) for f in dataclasses.fields(payload) if f.name != "children"}
        return self.update_payload(card_id, **changes)

    def resize_mini_canvas(self, location_id: str, size: Size) -> MutationResult:
        """Grow a location's pinned mini-canvas; shrinking requests are ignored."""
        payload = self._require_location(location_id)
        grown = payload.pinned_canvas.grown_to(size)
        if grown == payload.pinned_canvas:
            return MutationResult(card_id=location_id)
        payload.pinned_canvas = grown
        affected = [*self._moved_group(location_id), *self._reflow(location_id)]
        return MutationResult(_ordered(affected), location_id)

    # Movement

    def move_card(self, card_id: str, position: Point) -> MutationResult:
        """Live move during a drag; overlap is resolved later by settle_card."""
        card = self.card(card_id)
        card.position = position
        if card_id not in self._parents:
            self._grow_extent(self.local_rect(card_id))
        affected = self._moved_group(card_id)
        parent_id = self._parents.get(card_id)
        if parent_id is not None:
            affected.append(parent_id)
        return MutationResult(_ordered(affected), card_id)

    def settle_card(self, card_id: str) -> MutationResult:
        """Finish a drag: nest, promote, or push the card clear of its siblings."""
        card = self.card(card_id)
        parent_id = self._parents.get(card_id)

        if parent_id is None:
            if not card.is_location:
                target = self.nest_target_at(card.position, exclude=card_id)
                if target is not None:
                    return self.demote_into_nest(card_id, target)
            siblings = self._sibling_rects(self._top_level, exclude=card_id)
            card.position = place(card.position, self.size_of(card_id), siblings, self.config.placement)
            self._grow_extent(self.local_rect(card_id))
            affected = [*self._moved_group(card_id), *self._reflow(card_id)]
            return MutationResult(_ordered(affected), card_id)

        location = self.cards[parent_id]
        if nesting.is_outside_for_promotion(location, card.position, self.config.nesting):
            world = self.world_position(card_id)
            result = self.promote_from_nest(card_id, world)
            target = self.nest_target_at(world, exclude=parent_id)
            if target is not None:
                moved = self.demote_into_nest(card_id, target, world)
                return MutationResult(_ordered([*result.affected, *moved.affected]), card_id)
            return result

        affected = [card_id, parent_id, *self._nest(card, location.payload, card.position, parent_id)]
        affected.extend(self._moved_group(card_id))
        return MutationResult(_ordered(affected), card_id)

    def demote_into_nest(
        self,
        card_id: str,
        location_id: str,
        world_point: Point | None = None,
    ) -> MutationResult:
        """Move a top-level card into a location's mini-canvas."""
        card = self.card(card_id)
        location = self.card(location_id)
        payload = self._require_location(location_id)
        if card.is_location:
            raise ValueError("Location cards cannot be nested")
        if card_id in self._parents:
            raise ValueError(f"Card {card_id} is already nested")

        if world_point is None:
            world_point = card.position
        local = nesting.world_to_local(location, world_point, sizing=self.config.sizing)

        self._top_level.remove(card_id)
        affected = [card_id, location_id, *self._nest(card, payload, local, location_id)]
        affected.extend(self._moved_group(card_id))
        logger.debug("Nested card %s into location %s", card_id, location_id)
        return MutationResult(_ordered(affected), card_id)

    def promote_from_nest(self, card_id: str, world_point: Point | None = None) -> MutationResult:
        """Move a nested card back to the top level at its world position."""
        card = self.card(card_id)
        parent_id = self._parents.get(card_id)
        if parent_id is None:
            raise ValueError(f"Card {card_id} is not nested")

        if world_point is None:
            world_point = self.world_position(card_id)

        self.cards[parent_id].payload.children.remove(card_id)
        del self._parents[card_id]

        siblings = self._sibling_rects(self._top_level)
        card.position = place(world_point, self.size_of(card_id), siblings, self.config.placement)
        self._top_level.append(card_id)
        self._grow_extent(self.local_rect(card_id))
        logger.debug("Promoted card %s out of location %s", card_id, parent_id)

        affected = [card_id, parent_id, *self._moved_group(card_id), *self._reflow(card_id)]
        return MutationResult(_ordered(affected), card_id)

    def _require_location(self, location_id: str) -> LocationPayload:
        payload = self.card(location_id).payload
        if not isinstance(payload, LocationPayload):
            raise ValueError(f"Card {location_id} is not a location")
        return payload

    def _nest(
        self,
        card: Card,
        payload: LocationPayload,
        local: Point,
        location_id: str,
    ) -> list[str]:
        """Place a card inside a mini-canvas and register it as a child."""
        siblings = self._sibling_rects(payload.children, exclude=card.id)
        placed = place_in_mini_canvas(
            local,
            card_size(card, self.config.sizing),
            siblings,
            payload.pinned_canvas,
            self.config.placement,
        )
        card.position = placed.point
        if card.id not in payload.children:
            payload.children.append(card.id)
        self._parents[card.id] = location_id

        if placed.bounds != payload.pinned_canvas:
            payload.pinned_canvas = payload.pinned_canvas.grown_to(placed.bounds)
            # The location itself grew; keep its own siblings clear of it
            return self._reflow(location_id)
        return []

    def _fit_pin(self, location_id: str) -> None:
        """Grow a mini-canvas so every child footprint fits inside it."""
        payload = self._require_location(location_id)
        padding = self.config.placement.mini_padding
        required = payload.pinned_canvas
        for child_id in payload.children:
            rect = self.local_rect(child_id)
            required = required.grown_to(Size(rect.max_x + padding, rect.max_y + padding))
        payload.pinned_canvas = required

    def _keep_inside(self, card_id: str) -> None:
        """Shift a nested card so it does not cross the top or left mini-canvas edge."""
        card = self.cards[card_id]
        size = self.size_of(card_id)
        padding = self.config.placement.mini_padding
        card.position = Point(
            max(card.position.x, padding + size.width / 2),
            max(card.position.y, padding + size.height / 2),
        )

    def _reflow(self, card_id: str) -> list[str]:
        """Re-place siblings that now overlap the given card.

        Returns:
            Ids of cards that were moved, with their connected cards
        """
        margin = self.config.placement.margin
        parent_id = self._parents.get(card_id)
        pool = self._top_level if parent_id is None else self.cards[parent_id].payload.children
        anchor = self.local_rect(card_id).inflated(margin)
        pin_before = None if parent_id is None else self.cards[parent_id].payload.pinned_canvas

        moved: list[str] = []
        for other_id in list(pool):
            if other_id == card_id or not anchor.intersects(self.local_rect(other_id)):
                continue
            other = self.cards[other_id]
            siblings = self._sibling_rects(pool, exclude=other_id)
            if parent_id is None:
                other.position = place(other.position, self.size_of(other_id), siblings, self.config.placement)
                self._grow_extent(self.local_rect(other_id))
            else:
                location_payload = self.cards[parent_id].payload
                placed = place_in_mini_canvas(
                    other.position,
                    self.size_of(other_id),
                    siblings,
                    location_payload.pinned_canvas,
                    self.config.placement,
                )
                other.position = placed.point
                location_payload.pinned_canvas = location_payload.pinned_canvas.grown_to(placed.bounds)
            moved.extend(self._moved_group(other_id))

        if parent_id is not None and self.cards[parent_id].payload.pinned_canvas != pin_before:
            moved.extend(self._moved_group(parent_id))
            moved.extend(self._reflow(parent_id))
        return moved

    # Connections

    def connect(
        self,
        source_id: str,
        target_id: str,
        option_id: str | None = None,
        color: str | None = None,
    ) -> MutationResult:
        """Create a directional connection.

        Choices cards connect through one of their options, and each option
        holds at most one connection (a new one replaces it). Other cards
        accumulate targets; reconnecting to an existing target updates its color.
        """
        source = self.card(source_id)
        self.card(target_id)
        if source_id == target_id:
            logger.debug("Ignoring self-connection on %s", source_id)
            return MutationResult()

        if isinstance(source.payload, ChoicesPayload):
            if option_id is None:
                raise ValueError(f"Choices card {source_id} connects through an option")
            opt = source.payload.option(option_id)
            if opt is None:
                raise ValueError(f"Unknown option {option_id} on card {source_id}")
            previous = opt.connection.target_id if opt.connection else None
            opt.connection = Connection(target_id, color)
            affected = [source_id, target_id] + ([previous] if previous else [])
            return MutationResult(_ordered(affected), source_id)

        if option_id is not None:
            raise ValueError(f"Card {source_id} is a {source.type.value} and has no options")

        existing = next((c for c in source.connections if c.target_id == target_id), None)
        if existing is not None:
            existing.color = color
        else:
            source.connections.append(Connection(target_id, color))
        return MutationResult((source_id, target_id), source_id)

    def disconnect(self, source_id: str, target_id: str, option_id: str | None = None) -> MutationResult:
        source = self.card(source_id)
        if option_id is not None:
            if not isinstance(source.payload, ChoicesPayload):
                return MutationResult()
            opt = source.payload.option(option_id)
            if opt is None or opt.connection is None or opt.connection.target_id != target_id:
                return MutationResult()
            opt.connection = None
            return MutationResult((source_id, target_id), source_id)

        before = len(source.connections)
        source.connections = [c for c in source.connections if c.target_id != target_id]
        if len(source.connections) == before:
            return MutationResult()
        return MutationResult((source_id, target_id), source_id)

    def disconnect_key(self, key: ConnectionKey) -> MutationResult:
        return self.disconnect(key.source_id, key.target_id, key.option_id)

    def connections(self) -> list[ConnectionKey]:
        keys: list[ConnectionKey] = []
        for card in self.iter_cards():
            keys.extend(card.outgoing())
        return keys

    def connections_touching(self, card_ids: Iterable[str]) -> list[ConnectionKey]:
        wanted = set(card_ids)
        return [key for key in self.connections() if key.source_id in wanted or key.target_id in wanted]

    def connection_points(self, key: ConnectionKey) -> ConnectionPoints:
        source_rect = self.world_rect(key.source_id)
        target_rect = self.world_rect(key.target_id)
        if key.option_id is not None:
            offsets = option_anchor_offsets(self.card(key.source_id), self.config.sizing)
            if key.option_id in offsets:
                return option_connection_points(
                    source_rect,
                    source_rect.min_y + offsets[key.option_id],
                    target_rect,
                    self.config.routing,
                )
        return best_connection_points(source_rect, target_rect, self.config.routing)

    def obstacles_for(self, key: ConnectionKey) -> list[Rect]:
        """World footprints a connection must avoid.

        Cards sharing a canvas with either endpoint, minus the endpoints and
        the locations that contain them.
        """
        excluded = {key.source_id, key.target_id}
        pools = [self._top_level]
        for endpoint in (key.source_id, key.target_id):
            parent_id = self._parents.get(endpoint)
            if parent_id is not None:
                excluded.add(parent_id)
                pools.append(self.cards[parent_id].payload.children)

        seen: set[str] = set()
        rects: list[Rect] = []
        for pool in pools:
            for card_id in pool:
                if card_id in excluded or card_id in seen:
                    continue
                seen.add(card_id)
                rects.append(self.world_rect(card_id))
        return rects

    def route_connection(self, key: ConnectionKey) -> RoutedPath:
        points = self.connection_points(key)
        return route(
            points.from_point,
            points.to_point,
            points.from_side,
            points.to_side,
            self.obstacles_for(key),
            self.config.routing,
        )

    def route_all(self, card_ids: Iterable[str] | None = None) -> dict[ConnectionKey, RoutedPath]:
        """Route every connection, or only those touching the given cards."""
        keys = self.connections() if card_ids is None else self.connections_touching(card_ids)
        return {key: self.route_connection(key) for key in keys}

    # Deletion

    def request_delete(self, card_id: str) -> PendingDeletion:
        card = self.card(card_id)
        nested = tuple(self.children_of(card_id))
        doomed = {card_id, *nested}
        count = sum(
            1 for key in self.connections() if key.source_id in doomed or key.target_id in doomed
        )
        return PendingDeletion(card_id, card.type, nested, count)

    def confirm_delete(self, pending: PendingDeletion) -> MutationResult:
        """Delete a card, its nested cards and every connection touching them."""
        if pending.card_id not in self.cards:
            return MutationResult()

        card_id = pending.card_id
        doomed = [card_id, *self.children_of(card_id)]
        doomed_set = set(doomed)
        affected = list(doomed)

        parent_id = self._parents.pop(card_id, None)
        if parent_id is not None:
            self.cards[parent_id].payload.children.remove(card_id)
            affected.append(parent_id)
        else:
            self._top_level.remove(card_id)

        for doomed_id in doomed:
            self._parents.pop(doomed_id, None)
            del self.cards[doomed_id]

        for card in self.cards.values():
            kept = [c for c in card.connections if c.target_id not in doomed_set]
            if len(kept) != len(card.connections):
                card.connections = kept
                affected.append(card.id)
            if isinstance(card.payload, ChoicesPayload):
                for opt in card.payload.options:
                    if opt.connection is not None and opt.connection.target_id in doomed_set:
                        opt.connection = None
                        affected.append(card.id)

        logger.debug("Deleted card %s with %d nested cards", card_id, len(doomed) - 1)
        return MutationResult(_ordered(affected), card_id)
