"""Connection -> (room, player) bindings, owned by the transport layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from party.messaging.protocol import ConnectionProtocol


@dataclass(frozen=True)
class SessionBinding:
    connection: ConnectionProtocol
    room_id: str
    player_id: str


class SessionRegistry:
    def __init__(self) -> None:
        self._connections: dict[str, ConnectionProtocol] = {}  # connection_id -> connection
        self._bindings: dict[str, SessionBinding] = {}  # connection_id -> binding

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def register(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def unregister(self, connection: ConnectionProtocol) -> SessionBinding | None:
        self._connections.pop(connection.connection_id, None)
        return self._bindings.pop(connection.connection_id, None)

    def bind(self, connection: ConnectionProtocol, room_id: str, player_id: str) -> SessionBinding:
        binding = SessionBinding(connection=connection, room_id=room_id, player_id=player_id)
        self._bindings[connection.connection_id] = binding
        return binding

    def unbind(self, connection: ConnectionProtocol) -> SessionBinding | None:
        return self._bindings.pop(connection.connection_id, None)

    def get_binding(self, connection_id: str) -> SessionBinding | None:
        return self._bindings.get(connection_id)

    def connections_for(self, room_id: str) -> list[SessionBinding]:
        """Snapshot of bindings for a room, safe to iterate across awaits."""
        return [b for b in self._bindings.values() if b.room_id == room_id]

    def is_player_bound(self, room_id: str, player_id: str) -> bool:
        return any(b.room_id == room_id and b.player_id == player_id for b in self._bindings.values())
