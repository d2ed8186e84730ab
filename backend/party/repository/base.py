"""Abstract key-value store for rooms."""

from abc import ABC, abstractmethod

from party.logic.room import Room


class RoomRepository(ABC):
    """Room-by-id store. Rooms are immutable, so readers never see a half-written value."""

    @abstractmethod
    async def get(self, room_id: str) -> Room | None: ...

    @abstractmethod
    async def set(self, room: Room) -> None: ...

    @abstractmethod
    async def delete(self, room_id: str) -> None: ...

    @abstractmethod
    async def exists(self, room_id: str) -> bool: ...

    @abstractmethod
    async def count(self) -> int: ...
