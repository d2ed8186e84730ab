"""Abstract client connection speaking MessagePack frames."""

from abc import ABC, abstractmethod
from typing import Any

from party.messaging.encoder import decode, encode


class ConnectionProtocol(ABC):
    """
    A single client connection.

    Lets the router, registry and broadcaster run against test doubles
    instead of real WebSockets.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Unique identifier for this connection."""
        ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, data: dict[str, Any]) -> None:
        await self.send_bytes(encode(data))

    async def receive_message(self) -> dict[str, Any]:
        raw = await self.receive_bytes()
        return decode(raw)
