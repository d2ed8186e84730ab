"""Push per-player room views to every connection bound to a room."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

from party.messaging.projection import project_room
from party.messaging.types import RoomUpdatedMessage

if TYPE_CHECKING:
    from party.logic.room import Room
    from party.messaging.protocol import ConnectionProtocol
    from party.session.events import RoomChanged
    from party.session.registry import SessionRegistry


class RoomBroadcaster:
    """RoomChanged subscriber.

    Tracks the last revision delivered to each connection and drops older
    snapshots, so a client never sees a room go backwards even when two
    deliveries for the same room interleave.
    """

    def __init__(self, registry: SessionRegistry) -> None:
        self._registry = registry
        self._delivered: dict[str, tuple[str, int]] = {}  # connection_id -> (room_id, revision)

    async def on_room_changed(self, event: RoomChanged) -> None:
        bindings = self._registry.connections_for(event.room_id)
        if event.room is None:
            for binding in bindings:
                self.forget(binding.connection.connection_id)
            return
        for binding in bindings:
            await self.deliver(binding.connection, event.room, binding.player_id)

    async def deliver(self, connection: ConnectionProtocol, room: Room, player_id: str) -> None:
        last = self._delivered.get(connection.connection_id)
        if last is not None and last[0] == room.id and last[1] >= room.revision:
            return
        self._delivered[connection.connection_id] = (room.id, room.revision)
        message = RoomUpdatedMessage(room=project_room(room, player_id)).model_dump()
        with contextlib.suppress(RuntimeError, OSError):
            await connection.send_message(message)

    def forget(self, connection_id: str) -> None:
        self._delivered.pop(connection_id, None)
