"""In-process room store."""

from party.logic.room import Room
from party.repository.base import RoomRepository


class InMemoryRoomRepository(RoomRepository):
    def __init__(self) -> None:
        self._rooms: dict[str, Room] = {}

    async def get(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    async def set(self, room: Room) -> None:
        self._rooms[room.id] = room

    async def delete(self, room_id: str) -> None:
        self._rooms.pop(room_id, None)

    async def exists(self, room_id: str) -> bool:
        return room_id in self._rooms

    async def count(self) -> int:
        return len(self._rooms)
