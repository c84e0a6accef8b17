from __future__ import annotations

import logging

import pytest

from storycanvas.geometry import Point, Rect, Size
from storycanvas.placement import (
    DEFAULT_PLACEMENT,
    PlacementConfig,
    is_free,
    place,
    place_in_mini_canvas,
    ring_offsets,
    ring_step_for,
)


def _rects(*centers: tuple[float, float], size: Size = Size(100, 50)) -> list[Rect]:
    return [Rect.from_center(Point(x, y), size) for x, y in centers]


def test_place_finds_free_spot_next_to_overlapping_cards() -> None:
    siblings = _rects((0, 0), (40, 40))
    item = Size(100, 50)

    result = place(Point(0, 0), item, siblings)

    assert result != Point(0, 0)
    assert is_free(result, item, siblings, DEFAULT_PLACEMENT.margin)


def test_place_is_idempotent() -> None:
    siblings = _rects((0, 0), (40, 40), (-120, 10))
    item = Size(100, 50)

    first = place(Point(10, 5), item, siblings)

    assert place(first, item, siblings) == first


def test_free_point_is_kept() -> None:
    assert place(Point(500, 500), Size(100, 50), _rects((0, 0))) == Point(500, 500)


def test_ring_offsets_cover_perimeter_nearest_first() -> None:
    offsets = list(ring_offsets(2))

    assert len(offsets) == 16
    assert len(set(offsets)) == 16
    assert all(max(abs(dx), abs(dy)) == 2 for dx, dy in offsets)
    assert offsets[0] in {(0, -2), (-2, 0), (2, 0), (0, 2)}


def test_ring_step_follows_item_size() -> None:
    assert ring_step_for(Size(240, 115)) == 57.5
    assert ring_step_for(Size(180, 81)) == 40.5
    assert ring_step_for(Size(240, 115), PlacementConfig(ring_step=24)) == 24


def test_place_moves_in_ring_steps() -> None:
    item = Size(100, 50)

    result = place(Point(0, 0), item, _rects((0, 0)))

    assert result != Point(0, 0)
    assert result.x % 25 == 0
    assert result.y % 25 == 0
    assert is_free(result, item, _rects((0, 0)), DEFAULT_PLACEMENT.margin)


def test_place_falls_back_to_fixed_offset(caplog: pytest.LogCaptureFixture) -> None:
    config = PlacementConfig(max_rings=2)
    wall = [Rect(-1000, -1000, 1000, 1000)]

    with caplog.at_level(logging.WARNING, logger="storycanvas.placement"):
        result = place(Point(0, 0), Size(100, 50), wall, config)

    assert result == Point(24, 24)
    assert "accepting overlap" in caplog.text


def test_mini_canvas_keeps_free_desired_point() -> None:
    placed = place_in_mini_canvas(Point(60, 40), Size(100, 50), [], Size(280, 120))

    assert placed.point == Point(60, 40)
    assert placed.bounds == Size(280, 120)
    assert not placed.grew


def test_mini_canvas_scans_row_major_for_free_slot() -> None:
    siblings = [Rect(0, 0, 120, 120)]

    placed = place_in_mini_canvas(Point(60, 60), Size(100, 50), siblings, Size(280, 120))

    assert placed.point.y == pytest.approx(31)
    assert placed.point.x > 120
    assert is_free(placed.point, Size(100, 50), siblings, DEFAULT_PLACEMENT.margin)
    assert not placed.grew


def test_mini_canvas_grows_when_full() -> None:
    item = Size(100, 50)
    siblings = [Rect(0, 0, 280, 120)]

    placed = place_in_mini_canvas(Point(140, 60), item, siblings, Size(280, 120))

    assert placed.grew
    assert placed.bounds.width == 280
    assert placed.bounds.height > 120
    rect = Rect.from_center(placed.point, item)
    assert Rect(0, 0, placed.bounds.width, placed.bounds.height).contains_rect(rect)
    assert is_free(placed.point, item, siblings, DEFAULT_PLACEMENT.margin)


def test_mini_canvas_widens_for_oversized_item() -> None:
    placed = place_in_mini_canvas(Point(0, 0), Size(400, 50), [], Size(280, 120))

    assert placed.bounds.width == 412
    assert placed.grew
