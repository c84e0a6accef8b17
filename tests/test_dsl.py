from __future__ import annotations

from pathlib import Path

import pytest

from storycanvas import card, connect, option, storyboard
from storycanvas.models import CardType, ConnectionKey


def test_storyboard_builds_document() -> None:
    with storyboard() as doc:
        with card("location", title="Bank", at=(0, 0)) as bank:
            alarm = card("event", title="Silent alarm")
        escape = card(CardType.CHOICES, title="Escape?", at=(600, 0), options=["Run", "Hide"])
        car = card("prop", title="Getaway car", description="Idling.", at=(1000, 0))

        alarm >> escape
        option(escape, "Run") >> car

    assert len(doc) == 4
    assert doc.parent_of(alarm.id) == bank.id
    assert car.payload.description == "Idling."
    run_id = escape.payload.options[0].id
    assert doc.connections() == [
        ConnectionKey(alarm.id, None, escape.id),
        ConnectionKey(escape.id, run_id, car.id),
    ]


def test_option_adds_missing_option() -> None:
    with storyboard() as doc:
        choices = card("choices", title="Door?")
        before = doc.size_of(choices.id).height

        ref = option(choices, "Knock")

        assert [opt.text for opt in choices.payload.options] == ["Knock"]
        assert option(choices, "Knock").option_id == ref.option_id
        assert doc.size_of(choices.id).height > before


def test_connect_with_color_returns_key() -> None:
    with storyboard():
        a = card("event", title="A")
        b = card("event", title="B", at=(600, 0))

        key = connect(a, b, color="#8b5cf6")

    assert key == ConnectionKey(a.id, None, b.id)
    assert a.connections[0].color == "#8b5cf6"


def test_chained_connections() -> None:
    with storyboard() as doc:
        a = card("event", title="A")
        b = card("event", title="B", at=(600, 0))
        c = card("event", title="C", at=(1200, 0))

        a >> b >> c

    assert len(doc.connections()) == 2


def test_card_outside_storyboard_fails() -> None:
    with pytest.raises(RuntimeError):
        card("prop", title="Orphan")


def test_only_locations_hold_nested_cards() -> None:
    with storyboard():
        prop = card("prop", title="Lamp")
        with pytest.raises(ValueError):
            with prop:
                pass


def test_unknown_card_type_rejected() -> None:
    with storyboard():
        with pytest.raises(ValueError):
            card("spaceship")


def test_storyboard_writes_svg(tmp_path: Path) -> None:
    target = tmp_path / "board"

    with storyboard(filename=str(target)):
        card("location", title="Harbour")

    assert "Harbour" in (tmp_path / "board.svg").read_text()
