"""Events emitted by the room manager after a successful persist."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from party.logic.room import Room


@dataclass(frozen=True)
class RoomChanged:
    """A room was persisted (``room`` set) or deleted (``room`` is None)."""

    room_id: str
    room: Room | None


RoomListener = Callable[[RoomChanged], Awaitable[None]]
