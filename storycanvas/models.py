"""Data models for storycanvas documents."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Union

from .geometry import Point, Size

logger = logging.getLogger(__name__)

DEFAULT_MINI_CANVAS = Size(280, 120)


def new_id() -> str:
    return uuid.uuid4().hex


class UnknownCardError(KeyError):
    """Raised when a card id is not present in the document."""


class CardType(Enum):
    """Kind of card; the value doubles as the toolbar drag tag."""

    LOCATION = "location"
    CHOICES = "choices"
    PROP = "prop"
    EVENT = "event"

    @classmethod
    def toolbar_order(cls) -> list[CardType]:
        return [cls.LOCATION, cls.CHOICES, cls.PROP, cls.EVENT]

    @classmethod
    def from_tag(cls, tag: str) -> CardType | None:
        """Parse a drag-and-drop tag, returning None for unknown tags."""
        try:
            return cls(tag.strip().lower())
        except ValueError:
            return None

    @property
    def title(self) -> str:
        return self.value.capitalize()

    @property
    def fill_color(self) -> str:
        return _FILL_COLORS[self]

    @property
    def border_color(self) -> str:
        return _BORDER_COLORS[self]


_FILL_COLORS = {
    CardType.LOCATION: "#fff3b0",
    CardType.CHOICES: "#c2f0f7",
    CardType.PROP: "#c8efc8",
    CardType.EVENT: "#f8cccc",
}

_BORDER_COLORS = {
    CardType.LOCATION: "#f59e0b",
    CardType.CHOICES: "#06b6d4",
    CardType.PROP: "#22c55e",
    CardType.EVENT: "#ef4444",
}


@dataclass
class Connection:
    """An outgoing link to another card."""

    target_id: str
    color: str | None = None


@dataclass(frozen=True)
class ConnectionKey:
    """Identity of a connection: source card, optional option, target card."""

    source_id: str
    option_id: str | None
    target_id: str


@dataclass
class ChoiceOption:
    """One option of a Choices card; owns at most one outgoing connection."""

    id: str = field(default_factory=new_id)
    text: str = ""
    connection: Connection | None = None


@dataclass
class SubEvent:
    id: str = field(default_factory=new_id)
    text: str = ""


@dataclass(frozen=True)
class ImageRef:
    """Opaque handle to an image owned by the image collaborator."""

    image_id: str
    pixel_size: Size | None = None


@dataclass
class LocationPayload:
    kind: ClassVar[CardType] = CardType.LOCATION

    title: str = ""
    description: str = ""
    # Ids of nested cards, positioned in local mini-canvas coordinates
    children: list[str] = field(default_factory=list)
    # Only ever grows
    pinned_canvas: Size = DEFAULT_MINI_CANVAS


@dataclass
class ChoicesPayload:
    kind: ClassVar[CardType] = CardType.CHOICES

    title: str = ""
    options: list[ChoiceOption] = field(default_factory=list)
    collapsed: bool = False

    def option(self, option_id: str) -> ChoiceOption | None:
        return next((opt for opt in self.options if opt.id == option_id), None)


@dataclass
class PropPayload:
    kind: ClassVar[CardType] = CardType.PROP

    title: str = ""
    description: str = ""
    image: ImageRef | None = None


@dataclass
class EventPayload:
    kind: ClassVar[CardType] = CardType.EVENT

    title: str = ""
    description: str = ""
    sub_events: list[SubEvent] = field(default_factory=list)
    # Decorations only; not used for sizing or routing
    character_ids: list[str] = field(default_factory=list)


CardPayload = Union[LocationPayload, ChoicesPayload, PropPayload, EventPayload]

_PAYLOAD_TYPES: dict[CardType, type] = {
    CardType.LOCATION: LocationPayload,
    CardType.CHOICES: ChoicesPayload,
    CardType.PROP: PropPayload,
    CardType.EVENT: EventPayload,
}


def default_payload(card_type: CardType) -> CardPayload:
    """Canonical empty payload for a card type."""
    return _PAYLOAD_TYPES[card_type]()


@dataclass
class Card:
    """A diagram node."""

    type: CardType
    position: Point = Point(0, 0)
    payload: CardPayload | None = None
    connections: list[Connection] = field(default_factory=list)
    id: str = field(default_factory=new_id)

    def __post_init__(self) -> None:
        if self.payload is None:
            self.payload = default_payload(self.type)
        elif getattr(self.payload, "kind", None) is not self.type:
            logger.warning(
                "Card %s of type %s had a %s payload, using an empty one",
                self.id,
                self.type.value,
                type(self.payload).__name__,
            )
            self.payload = default_payload(self.type)

    @property
    def is_location(self) -> bool:
        return self.type is CardType.LOCATION

    @property
    def title(self) -> str:
        return self.payload.title

    def outgoing(self) -> list[ConnectionKey]:
        """Keys of every connection leaving this card, options included."""
        keys = [ConnectionKey(self.id, None, conn.target_id) for conn in self.connections]
        if isinstance(self.payload, ChoicesPayload):
            keys.extend(
                ConnectionKey(self.id, opt.id, opt.connection.target_id)
                for opt in self.payload.options
                if opt.connection is not None
            )
        return keys

    def connection_for(self, key: ConnectionKey) -> Connection | None:
        if key.option_id is not None:
            if not isinstance(self.payload, ChoicesPayload):
                return None
            opt = self.payload.option(key.option_id)
            if opt is None or opt.connection is None or opt.connection.target_id != key.target_id:
                return None
            return opt.connection
        return next((c for c in self.connections if c.target_id == key.target_id), None)
