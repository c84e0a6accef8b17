"""Gesture state machines and the editor that applies their effects.

Each machine is a pure transition function taking (state, event) and returning
(new state, effects). The machines never touch the document; CanvasEditor feeds
events through them and applies the resulting effects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Union

from .camera import Camera
from .document import MutationResult, PendingDeletion
from .geometry import Point, Rect, Size
from .routing import hit_test

if TYPE_CHECKING:
    from .document import Document
    from .models import ConnectionKey
    from .routing import RoutedPath

logger = logging.getLogger(__name__)


# Effects


@dataclass(frozen=True)
class MoveCard:
    card_id: str
    position: Point


@dataclass(frozen=True)
class SettleCard:
    card_id: str


@dataclass(frozen=True)
class Connect:
    source_id: str
    target_id: str
    option_id: str | None = None


@dataclass(frozen=True)
class Disconnect:
    key: ConnectionKey


@dataclass(frozen=True)
class DeleteCard:
    pending: PendingDeletion


Effect = Union[MoveCard, SettleCard, Connect, Disconnect, DeleteCard]


# Drag


class DragPhase(Enum):
    IDLE = "idle"
    ARMED = "armed"  # Gesture recognized, no movement yet
    DRAGGING = "dragging"
    SETTLED = "settled"  # Released; the card has been resolved


@dataclass(frozen=True)
class DragState:
    phase: DragPhase = DragPhase.IDLE
    card_id: str | None = None
    start_position: Point | None = None


@dataclass(frozen=True)
class GestureContext:
    """Editor modes that suppress new drags."""

    resizing: bool = False
    editing_mini_canvas: bool = False


@dataclass(frozen=True)
class DragStarted:
    card_id: str
    start_position: Point  # In the card's own coordinate space


@dataclass(frozen=True)
class DragMoved:
    translation: Point  # Total translation since the drag began, document units


@dataclass(frozen=True)
class DragEnded:
    pass


DragEvent = Union[DragStarted, DragMoved, DragEnded]


def drag_transition(
    state: DragState,
    event: DragEvent,
    context: GestureContext | None = None,
) -> tuple[DragState, tuple[Effect, ...]]:
    """Advance the drag machine: IDLE -> ARMED -> DRAGGING -> SETTLED."""
    if context is None:
        context = GestureContext()

    active = state.phase in (DragPhase.ARMED, DragPhase.DRAGGING)

    if isinstance(event, DragStarted):
        if active or context.resizing or context.editing_mini_canvas:
            return state, ()
        return DragState(DragPhase.ARMED, event.card_id, event.start_position), ()

    if isinstance(event, DragMoved):
        if not active:
            return state, ()
        position = state.start_position + event.translation
        return replace(state, phase=DragPhase.DRAGGING), (MoveCard(state.card_id, position),)

    if isinstance(event, DragEnded):
        if state.phase is DragPhase.DRAGGING:
            return replace(state, phase=DragPhase.SETTLED), (SettleCard(state.card_id),)
        # Released without moving: nothing to settle
        return DragState(), ()

    return state, ()


# Pending connection


@dataclass(frozen=True)
class Anchor:
    card_id: str
    option_id: str | None = None


@dataclass(frozen=True)
class PendingConnection:
    source: Anchor | None = None

    @property
    def armed(self) -> bool:
        return self.source is not None


@dataclass(frozen=True)
class AnchorTapped:
    anchor: Anchor


@dataclass(frozen=True)
class CardTapped:
    card_id: str


ConnectionEvent = Union[AnchorTapped, CardTapped]


def connection_transition(
    state: PendingConnection,
    event: ConnectionEvent,
) -> tuple[PendingConnection, tuple[Effect, ...]]:
    """Arm a source anchor, then commit on the next tapped target card."""
    if isinstance(event, AnchorTapped):
        if state.source == event.anchor:
            return PendingConnection(), ()
        return PendingConnection(event.anchor), ()

    if isinstance(event, CardTapped):
        if state.source is None or event.card_id == state.source.card_id:
            return state, ()
        effect = Connect(state.source.card_id, event.card_id, state.source.option_id)
        return PendingConnection(), (effect,)

    return state, ()


# Connection selection


@dataclass(frozen=True)
class ConnectionSelection:
    selected: ConnectionKey | None = None


@dataclass(frozen=True)
class PathTapped:
    key: ConnectionKey


@dataclass(frozen=True)
class CanvasTapped:
    pass


@dataclass(frozen=True)
class DeleteAffordanceTapped:
    pass


SelectionEvent = Union[PathTapped, CanvasTapped, DeleteAffordanceTapped]


def selection_transition(
    state: ConnectionSelection,
    event: SelectionEvent,
) -> tuple[ConnectionSelection, tuple[Effect, ...]]:
    if isinstance(event, PathTapped):
        if state.selected == event.key:
            return ConnectionSelection(), ()
        return ConnectionSelection(event.key), ()

    if isinstance(event, CanvasTapped):
        return ConnectionSelection(), ()

    if isinstance(event, DeleteAffordanceTapped):
        if state.selected is None:
            return state, ()
        return ConnectionSelection(), (Disconnect(state.selected),)

    return state, ()


# Deletion prompt


@dataclass(frozen=True)
class DeletionPrompt:
    pending: PendingDeletion | None = None


@dataclass(frozen=True)
class DeleteRequested:
    pending: PendingDeletion


@dataclass(frozen=True)
class DeleteConfirmed:
    pass


@dataclass(frozen=True)
class DeleteCancelled:
    pass


DeletionEvent = Union[DeleteRequested, DeleteConfirmed, DeleteCancelled]


def deletion_transition(
    state: DeletionPrompt,
    event: DeletionEvent,
) -> tuple[DeletionPrompt, tuple[Effect, ...]]:
    if isinstance(event, DeleteRequested):
        return DeletionPrompt(event.pending), ()

    if isinstance(event, DeleteConfirmed):
        if state.pending is None:
            return state, ()
        return DeletionPrompt(), (DeleteCard(state.pending),)

    if isinstance(event, DeleteCancelled):
        return DeletionPrompt(), ()

    return state, ()


# Editor


@dataclass
class EditorState:
    drag: DragState = field(default_factory=DragState)
    connection: PendingConnection = field(default_factory=PendingConnection)
    selection: ConnectionSelection = field(default_factory=ConnectionSelection)
    deletion: DeletionPrompt = field(default_factory=DeletionPrompt)
    context: GestureContext = field(default_factory=GestureContext)


class CanvasEditor:
    """Drives a document from viewport-space gestures.

    Keeps the routed polyline of every connection up to date: after each
    mutation only connections touching the affected cards are re-routed.
    """

    def __init__(self, document: Document, camera: Camera | None = None):
        self.document = document
        self.camera = camera or Camera(Size(1024, 768), config=document.config.camera)
        self.state = EditorState()
        self.routes: dict[ConnectionKey, RoutedPath] = document.route_all()

    # Hit testing

    def card_at(self, viewport_point: Point) -> str | None:
        """Topmost card under a viewport point; nested cards win over their location."""
        world = self.camera.viewport_to_world(viewport_point)
        hit = None
        for card in self.document.iter_cards():
            if self.document.world_rect(card.id).contains(world):
                hit = card.id
        return hit

    def connection_at(self, viewport_point: Point) -> ConnectionKey | None:
        world = self.camera.viewport_to_world(viewport_point)
        # Hit region is a fixed screen width
        hit_width = self.document.config.routing.hit_width / self.camera.zoom_scale
        for key, path in self.routes.items():
            if hit_test(path, world, hit_width):
                return key
        return None

    # Gestures

    def begin_drag(self, viewport_point: Point) -> MutationResult:
        card_id = self.card_at(viewport_point)
        if card_id is None:
            return MutationResult()
        start = self.document.card(card_id).position
        return self._drag(DragStarted(card_id, start))

    def drag_moved(self, viewport_translation: Point) -> MutationResult:
        translation = viewport_translation.scaled(1 / self.camera.zoom_scale)
        return self._drag(DragMoved(translation))

    def end_drag(self) -> MutationResult:
        result = self._drag(DragEnded())
        if self.state.drag.phase is DragPhase.SETTLED:
            self.state.drag = DragState()
        return result

    def tap(self, viewport_point: Point) -> MutationResult:
        """A tap commits a pending connection, selects a path, or clears selection."""
        card_id = self.card_at(viewport_point)
        if card_id is not None and self.state.connection.armed:
            return self._run(connection_transition, "connection", CardTapped(card_id))

        key = self.connection_at(viewport_point)
        if key is not None:
            return self._run(selection_transition, "selection", PathTapped(key))
        return self._run(selection_transition, "selection", CanvasTapped())

    def tap_anchor(self, card_id: str, option_id: str | None = None) -> MutationResult:
        return self._run(connection_transition, "connection", AnchorTapped(Anchor(card_id, option_id)))

    def tap_delete_affordance(self) -> MutationResult:
        return self._run(selection_transition, "selection", DeleteAffordanceTapped())

    def request_delete(self, card_id: str) -> PendingDeletion:
        pending = self.document.request_delete(card_id)
        self._run(deletion_transition, "deletion", DeleteRequested(pending))
        return pending

    def confirm_delete(self) -> MutationResult:
        return self._run(deletion_transition, "deletion", DeleteConfirmed())

    def cancel_delete(self) -> MutationResult:
        return self._run(deletion_transition, "deletion", DeleteCancelled())

    def drop(self, type_tag: str, viewport_point: Point) -> MutationResult:
        result = self.document.drop(type_tag, self.camera.viewport_to_world(viewport_point))
        self._refresh_routes(result)
        return result

    def set_mini_canvas_editing(self, editing: bool) -> None:
        self.state.context = replace(self.state.context, editing_mini_canvas=editing)

    def begin_resize(self) -> None:
        self.state.context = replace(self.state.context, resizing=True)

    def resize_mini_canvas(self, location_id: str, size: Size) -> MutationResult:
        result = self.document.resize_mini_canvas(location_id, size)
        self._refresh_routes(result)
        return result

    def end_resize(self) -> None:
        self.state.context = replace(self.state.context, resizing=False)

    # Overlays

    def overlay_rect(self, card_id: str) -> Rect:
        """Viewport rectangle of a card, for placing delete and resize handles."""
        return self.camera.world_rect_to_viewport(self.document.world_rect(card_id))

    def delete_affordance_position(self) -> Point | None:
        """Viewport position of the selected connection's delete button."""
        key = self.state.selection.selected
        if key is None or key not in self.routes:
            return None
        return self.camera.world_to_viewport(self.routes[key].midpoint)

    # Plumbing

    def _drag(self, event: DragEvent) -> MutationResult:
        state, effects = drag_transition(self.state.drag, event, self.state.context)
        self.state.drag = state
        return self._apply(effects)

    def _run(self, transition, slot: str, event: object) -> MutationResult:
        state, effects = transition(getattr(self.state, slot), event)
        setattr(self.state, slot, state)
        return self._apply(effects)

    def _apply(self, effects: tuple[Effect, ...]) -> MutationResult:
        affected: list[str] = []
        card_id = None
        for effect in effects:
            result = self._apply_one(effect)
            affected.extend(result.affected)
            card_id = result.card_id or card_id
        combined = MutationResult(tuple(dict.fromkeys(affected)), card_id)
        self._refresh_routes(combined)
        return combined

    def _apply_one(self, effect: Effect) -> MutationResult:
        doc = self.document
        if isinstance(effect, MoveCard):
            return doc.move_card(effect.card_id, effect.position)
        if isinstance(effect, SettleCard):
            return doc.settle_card(effect.card_id)
        if isinstance(effect, Connect):
            return doc.connect(effect.source_id, effect.target_id, effect.option_id)
        if isinstance(effect, Disconnect):
            return doc.disconnect_key(effect.key)
        if isinstance(effect, DeleteCard):
            return doc.confirm_delete(effect.pending)
        logger.debug("Ignoring unknown effect %r", effect)
        return MutationResult()

    def _refresh_routes(self, result: MutationResult) -> None:
        if not result.changed:
            return
        live = set(self.document.connections())
        self.routes = {key: path for key, path in self.routes.items() if key in live}
        self.routes.update(self.document.route_all(result.affected))
        if self.state.selection.selected is not None and self.state.selection.selected not in live:
            self.state.selection = ConnectionSelection()
