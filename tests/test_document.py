from __future__ import annotations

import pytest

from storycanvas.document import Document
from storycanvas.geometry import Point, Rect, Size, segment_intersects_rect
from storycanvas.models import (
    CardType,
    ChoiceOption,
    ChoicesPayload,
    ConnectionKey,
    LocationPayload,
    PropPayload,
    SubEvent,
    UnknownCardError,
)


def _overlaps(document: Document, a: str, b: str) -> bool:
    return document.local_rect(a).intersects(document.local_rect(b))


def test_add_card_avoids_siblings(document: Document) -> None:
    first = document.add_card(CardType.PROP, Point(0, 0)).card_id
    second = document.add_card(CardType.PROP, Point(10, 10)).card_id

    assert document.card(first).position == Point(0, 0)
    assert document.card(second).position != Point(10, 10)
    assert not _overlaps(document, first, second)
    assert document.top_level_ids == [first, second]


def test_mismatched_payload_replaced_with_default(document: Document) -> None:
    card_id = document.add_card(CardType.EVENT, Point(0, 0), payload=PropPayload(title="Lamp")).card_id

    assert document.card(card_id).payload.kind is CardType.EVENT
    assert document.card(card_id).title == ""


def test_unknown_ids_raise(document: Document) -> None:
    with pytest.raises(UnknownCardError):
        document.card("missing")
    with pytest.raises(KeyError):
        document.move_card("missing", Point(0, 0))


def test_duplicate_id_rejected(document: Document) -> None:
    document.add_card(CardType.PROP, Point(0, 0), card_id="lamp")

    with pytest.raises(ValueError):
        document.add_card(CardType.PROP, Point(500, 0), card_id="lamp")


def test_drop_unknown_tag_is_ignored(document: Document) -> None:
    result = document.drop("spaceship", Point(0, 0))

    assert not result.changed
    assert len(document) == 0


def test_drop_inside_mini_canvas_nests(document: Document) -> None:
    location_id = document.drop("location", Point(0, 0)).card_id
    prop_id = document.drop("prop", Point(0, 30)).card_id

    assert document.parent_of(prop_id) == location_id
    assert document.children_of(location_id) == [prop_id]
    assert prop_id not in document.top_level_ids
    # Location cards are never nested, even when dropped on a mini-canvas
    other = document.drop("location", Point(0, 30)).card_id
    assert document.parent_of(other) is None


def test_location_cannot_be_nested(document: Document) -> None:
    location_id = document.add_card(CardType.LOCATION, Point(0, 0)).card_id

    with pytest.raises(ValueError):
        document.add_card(CardType.LOCATION, Point(10, 10), parent_id=location_id)


def test_nested_card_world_position_follows_location(document: Document) -> None:
    location_id = document.add_card(CardType.LOCATION, Point(0, 0)).card_id
    prop_id = document.add_card(CardType.PROP, Point(140, 60), parent_id=location_id).card_id

    assert document.world_position(prop_id) == Point(0, 33.5)

    document.move_card(location_id, Point(100, 0))
    assert document.card(prop_id).position == Point(140, 60)
    assert document.world_position(prop_id) == Point(100, 33.5)


def test_settle_dragged_card_into_location_nests(document: Document) -> None:
    location_id = document.add_card(CardType.LOCATION, Point(0, 0)).card_id
    prop_id = document.add_card(CardType.PROP, Point(0, 400)).card_id

    document.move_card(prop_id, Point(0, 33.5))
    result = document.settle_card(prop_id)

    assert document.parent_of(prop_id) == location_id
    assert document.card(prop_id).position == Point(140, 60)
    assert location_id in result.affected


def test_settle_far_outside_promotes(document: Document) -> None:
    location_id = document.add_card(CardType.LOCATION, Point(0, 0)).card_id
    prop_id = document.add_card(CardType.PROP, Point(140, 60), parent_id=location_id).card_id

    document.move_card(prop_id, Point(140, 660))
    document.settle_card(prop_id)

    assert document.parent_of(prop_id) is None
    assert document.children_of(location_id) == []
    assert document.card(prop_id).position == Point(0, 633.5)


def test_nesting_grows_full_mini_canvas(document: Document) -> None:
    location_id = document.add_card(CardType.LOCATION, Point(0, 0)).card_id
    before = document.card(location_id).payload.pinned_canvas

    children = [
        document.add_card(CardType.EVENT, Point(0, 0), parent_id=location_id).card_id
        for _ in range(3)
    ]

    after = document.card(location_id).payload.pinned_canvas
    assert after.height > before.height
    for i, a in enumerate(children):
        for b in children[i + 1:]:
            assert not _overlaps(document, a, b)


def test_pinned_canvas_only_grows(document: Document) -> None:
    location_id = document.add_card(CardType.LOCATION, Point(0, 0)).card_id

    document.resize_mini_canvas(location_id, Size(400, 200))
    document.resize_mini_canvas(location_id, Size(100, 100))
    document.update_payload(location_id, pinned_canvas=Size(50, 50))

    assert document.card(location_id).payload.pinned_canvas == Size(400, 200)
    assert document.size_of(location_id).width == 420


def test_update_payload_rejects_children(document: Document) -> None:
    location_id = document.add_card(CardType.LOCATION, Point(0, 0)).card_id

    with pytest.raises(ValueError):
        document.update_payload(location_id, children=["x"])


def test_growing_card_pushes_overlapping_sibling(document: Document) -> None:
    top = document.add_card(CardType.PROP, Point(0, 0)).card_id
    below = document.add_card(CardType.PROP, Point(0, 90)).card_id
    assert not _overlaps(document, top, below)

    result = document.update_payload(top, description="A very long description " * 20)

    assert below in result.affected
    assert not _overlaps(document, top, below)


def _clear(document: Document, a: str, b: str) -> bool:
    margin = document.config.placement.margin
    return not document.world_rect(a).inflated(margin).intersects(document.world_rect(b))


def _inside_mini_canvas(document: Document, location_id: str, card_id: str) -> bool:
    pinned = document.card(location_id).payload.pinned_canvas
    return Rect.from_origin(Point(0, 0), pinned).contains_rect(document.local_rect(card_id))


def test_growing_nested_card_pushes_location_siblings(document: Document) -> None:
    location_id = document.add_card(CardType.LOCATION, Point(0, 0)).card_id
    event_id = document.add_card(CardType.EVENT, Point(140, 60), parent_id=location_id).card_id
    below = document.add_card(CardType.PROP, Point(0, 160)).card_id
    assert document.card(below).position == Point(0, 160)
    height_before = document.size_of(location_id).height

    result = document.update_payload(event_id, sub_events=[SubEvent(text=f"Step {i}") for i in range(6)])

    assert document.size_of(location_id).height > height_before
    assert below in result.affected
    assert _clear(document, location_id, below)
    assert _inside_mini_canvas(document, location_id, event_id)


def test_nested_sibling_pushed_by_growth_grows_location(document: Document) -> None:
    location_id = document.add_card(CardType.LOCATION, Point(0, 0)).card_id
    first = document.add_card(CardType.PROP, Point(96, 46.5), parent_id=location_id).card_id
    second = document.add_card(CardType.PROP, Point(96, 46.5), parent_id=location_id).card_id
    below = document.add_card(CardType.PROP, Point(0, 200)).card_id
    assert document.card(below).position == Point(0, 200)

    result = document.update_payload(first, description="A very long description " * 20)

    assert second in result.affected
    assert not _overlaps(document, first, second)
    assert _inside_mini_canvas(document, location_id, first)
    assert _inside_mini_canvas(document, location_id, second)
    assert _clear(document, location_id, below)


def test_set_payload_keeps_children(document: Document) -> None:
    location_id = document.add_card(CardType.LOCATION, Point(0, 0)).card_id
    prop_id = document.add_card(CardType.PROP, Point(140, 60), parent_id=location_id).card_id

    document.set_payload(location_id, LocationPayload(title="Docks"))

    assert document.card(location_id).title == "Docks"
    assert document.children_of(location_id) == [prop_id]


def test_connect_rules(document: Document) -> None:
    event_id = document.add_card(CardType.EVENT, Point(0, 0)).card_id
    prop_id = document.add_card(CardType.PROP, Point(600, 0)).card_id
    option = ChoiceOption(text="Run")
    choices_id = document.add_card(
        CardType.CHOICES, Point(0, 400), payload=ChoicesPayload(options=[option])
    ).card_id

    assert not document.connect(event_id, event_id).changed

    document.connect(event_id, prop_id)
    document.connect(event_id, prop_id, color="#ff0000")
    assert len(document.card(event_id).connections) == 1
    assert document.card(event_id).connections[0].color == "#ff0000"

    with pytest.raises(ValueError):
        document.connect(choices_id, prop_id)
    with pytest.raises(ValueError):
        document.connect(choices_id, prop_id, option_id="nope")
    with pytest.raises(ValueError):
        document.connect(event_id, prop_id, option_id=option.id)

    document.connect(choices_id, prop_id, option_id=option.id)
    document.connect(choices_id, event_id, option_id=option.id)
    assert document.connections() == [
        ConnectionKey(event_id, None, prop_id),
        ConnectionKey(choices_id, option.id, event_id),
    ]


def test_disconnect(document: Document) -> None:
    a = document.add_card(CardType.EVENT, Point(0, 0)).card_id
    b = document.add_card(CardType.EVENT, Point(600, 0)).card_id
    document.connect(a, b)

    assert document.disconnect_key(ConnectionKey(a, None, b)).changed
    assert document.connections() == []
    assert not document.disconnect(a, b).changed


def test_routes_avoid_cards_between_endpoints(document: Document) -> None:
    a = document.add_card(CardType.EVENT, Point(0, 0)).card_id
    document.add_card(CardType.PROP, Point(400, 0))
    b = document.add_card(CardType.EVENT, Point(800, 0)).card_id
    document.connect(a, b)

    key = ConnectionKey(a, None, b)
    path = document.route_all()[key]

    assert path.strategy == "grid"
    for obstacle in document.obstacles_for(key):
        for start, end in zip(path.points, path.points[1:]):
            assert not segment_intersects_rect(start, end, obstacle)


def test_option_connection_starts_at_option_row(document: Document) -> None:
    option = ChoiceOption(text="Run")
    choices_id = document.add_card(
        CardType.CHOICES, Point(0, 0), payload=ChoicesPayload(options=[option])
    ).card_id
    prop_id = document.add_card(CardType.PROP, Point(600, 0)).card_id
    document.connect(choices_id, prop_id, option_id=option.id)

    path = document.route_connection(ConnectionKey(choices_id, option.id, prop_id))

    rect = document.world_rect(choices_id)
    # Option row center: padding + header + title line + spacing + half an option row
    assert path.points[0] == Point(rect.max_x, rect.min_y + 70)


def test_obstacles_exclude_endpoints_and_parent(document: Document) -> None:
    location_id = document.add_card(CardType.LOCATION, Point(0, 0)).card_id
    nested = document.add_card(CardType.PROP, Point(140, 60), parent_id=location_id).card_id
    outside = document.add_card(CardType.EVENT, Point(700, 0)).card_id
    bystander = document.add_card(CardType.PROP, Point(0, 600)).card_id
    document.connect(nested, outside)

    obstacles = document.obstacles_for(ConnectionKey(nested, None, outside))

    assert obstacles == [document.world_rect(bystander)]


def test_delete_cascades_to_nested_cards_and_connections(document: Document) -> None:
    location_id = document.add_card(CardType.LOCATION, Point(0, 0)).card_id
    nested = document.add_card(CardType.PROP, Point(140, 60), parent_id=location_id).card_id
    option = ChoiceOption(text="Go")
    choices_id = document.add_card(
        CardType.CHOICES, Point(700, 0), payload=ChoicesPayload(options=[option])
    ).card_id
    document.connect(nested, choices_id)
    document.connect(choices_id, location_id, option_id=option.id)

    pending = document.request_delete(location_id)

    assert pending.nested_ids == (nested,)
    assert pending.connection_count == 2
    assert "1 nested card" in pending.message
    assert len(document) == 3

    document.confirm_delete(pending)

    assert set(document.cards) == {choices_id}
    assert document.connections() == []
    assert document.card(choices_id).payload.options[0].connection is None
    # Confirming twice is harmless
    assert not document.confirm_delete(pending).changed


def test_delete_nested_card_leaves_location(document: Document) -> None:
    location_id = document.add_card(CardType.LOCATION, Point(0, 0)).card_id
    nested = document.add_card(CardType.PROP, Point(140, 60), parent_id=location_id).card_id

    document.confirm_delete(document.request_delete(nested))

    assert document.children_of(location_id) == []
    assert location_id in document


def test_canvas_extent_grows_with_cards(document: Document) -> None:
    assert document.canvas_extent is None

    card_id = document.add_card(CardType.PROP, Point(0, 0)).card_id
    first = document.canvas_extent
    document.move_card(card_id, Point(2000, 0))

    assert first is not None
    assert document.canvas_extent.contains_rect(first)
    assert document.canvas_extent.contains_rect(document.world_rect(card_id))
