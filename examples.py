"""Showcase examples for storycanvas."""

from storycanvas import CanvasEditor, Camera, Point, Size, card, connect, option, render_to_svg, storyboard
from storycanvas.nesting import mini_canvas_rect


def hero_example():
    """Hero example: every card type, a nested location and option connections."""
    with storyboard(filename="docs/hero"):
        # Location with nested cards
        with card(
                "location",
                title="The Bank",
                description="Marble lobby, one guard, too many cameras.",
                at=(0, 0),
        ):
            alarm = card("event", title="Silent alarm", description="Tripped by the vault door.")
            card("prop", title="Keycard", at=(200, 40))

        escape = card(
            "choices",
            title="Escape route?",
            at=(520, 0),
            options=["Front door", "Rooftop"],
        )
        car = card("prop", title="Getaway car", description="Idling in the alley.", at=(900, -120))
        chopper = card("event", title="Helicopter pickup", at=(900, 160))

        alarm >> escape
        option(escape, "Front door") >> car
        connect(option(escape, "Rooftop"), chopper, color="#8b5cf6")


def example_blocked_route():
    """A connection that has to detour around a card standing in its way."""
    with storyboard(filename="docs/example_blocked_route"):
        start = card("event", title="Briefing", at=(0, 0))
        card("location", title="Checkpoint", at=(420, 0))
        goal = card("event", title="Rendezvous", at=(860, 0))
        start >> goal


def example_editor_session():
    """Drive the editor like a touch canvas: drop, drag into a location, connect."""
    with storyboard() as doc:
        harbour = card("location", title="Harbour", at=(0, 0))
        ship = card("prop", title="Cargo ship", at=(0, 400))

    editor = CanvasEditor(doc, Camera(Size(1200, 800)))

    # Drop an event from the toolbar onto empty canvas
    dropped = editor.drop("event", Point(900, 600))

    # Drag the ship into the harbour's mini-canvas
    start = editor.camera.world_to_viewport(doc.world_position(ship.id))
    editor.begin_drag(start)
    target = editor.camera.world_to_viewport(mini_canvas_rect(harbour.card).center)
    editor.drag_moved(target - start)
    editor.end_drag()

    editor.tap_anchor(ship.id)
    editor.tap(editor.camera.world_to_viewport(doc.world_position(dropped.card_id)))

    render_to_svg(doc, editor.camera, filename="docs/example_editor_session", routes=editor.routes)


if __name__ == "__main__":
    import os

    os.makedirs("docs", exist_ok=True)

    print("Generating hero example...")
    hero_example()

    print("Generating blocked route example...")
    example_blocked_route()

    print("Generating editor session example...")
    example_editor_session()
