from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from party.logic.enums import ErrorCode
from party.logic.exceptions import PartyError
from party.messaging.types import (
    CreateRoomMessage,
    ErrorMessage,
    JoinRoomMessage,
    LeaveRoomMessage,
    NextRoundMessage,
    PingMessage,
    PongMessage,
    RegenerateTopicMessage,
    ReturnToLobbyMessage,
    RoomCommandMessage,
    RoomCreatedMessage,
    RoomJoinedMessage,
    StartGameMessage,
    SubmitAnswerMessage,
    SubmitHintMessage,
    parse_client_message,
)

if TYPE_CHECKING:
    from party.logic.room import Room
    from party.messaging.protocol import ConnectionProtocol
    from party.session.broadcast import RoomBroadcaster
    from party.session.manager import RoomManager
    from party.session.registry import SessionBinding, SessionRegistry

logger = structlog.get_logger()


class MessageRouter:
    """
    Routes decoded client frames to room manager commands.

    Rejections (PartyError) and malformed input are answered with an error
    message to the sending connection only. Successful commands are not
    answered directly: the room manager publishes RoomChanged and the
    broadcaster pushes the new views.
    """

    def __init__(self, manager: RoomManager, registry: SessionRegistry, broadcaster: RoomBroadcaster) -> None:
        self._manager = manager
        self._registry = registry
        self._broadcaster = broadcaster

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._registry.register(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        binding = self._registry.unregister(connection)
        self._broadcaster.forget(connection.connection_id)
        if binding is None:
            return
        try:
            await self._release(binding)
        except Exception:
            logger.exception("failed to mark player disconnected", room_id=binding.room_id)

    async def handle_message(self, connection: ConnectionProtocol, raw_message: dict[str, Any]) -> None:
        structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message", error=str(e))
            await self._send_error(connection, ErrorCode.INVALID_MESSAGE, str(e))
            return

        try:
            await self._dispatch(connection, message)
        except PartyError as e:
            logger.info("command rejected", command=message.type, code=e.code, reason=e.message)
            await self._send_error(connection, e.code, e.message)
        except Exception:
            logger.exception("command failed", command=message.type)
            await self._send_error(connection, ErrorCode.INTERNAL_ERROR, "Internal server error")

    async def _dispatch(self, connection: ConnectionProtocol, message: Any) -> None:  # noqa: ANN401
        if isinstance(message, CreateRoomMessage):
            await self._handle_create_room(connection, message)
        elif isinstance(message, JoinRoomMessage):
            await self._handle_join_room(connection, message)
        elif isinstance(message, LeaveRoomMessage):
            await self._handle_leave_room(connection)
        elif isinstance(message, PingMessage):
            await connection.send_message(PongMessage().model_dump())
        else:
            await self._handle_room_command(connection, message)

    async def _send_error(self, connection: ConnectionProtocol, code: ErrorCode, message: str) -> None:
        await connection.send_message(ErrorMessage(code=code, message=message).model_dump())

    async def _bind_and_sync(self, connection: ConnectionProtocol, room: Room, player_id: str) -> None:
        """Bind the connection to the room, then push the latest view to it."""
        previous = self._registry.get_binding(connection.connection_id)
        self._registry.bind(connection, room.id, player_id)
        if previous is not None and (previous.room_id, previous.player_id) != (room.id, player_id):
            self._broadcaster.forget(connection.connection_id)
            await self._release(previous)
        latest = await self._manager.get_room(room.id) or room
        await self._broadcaster.deliver(connection, latest, player_id)

    async def _release(self, binding: SessionBinding) -> None:
        """Mark the binding's player disconnected unless another connection still holds them."""
        if self._registry.is_player_bound(binding.room_id, binding.player_id):
            return
        await self._manager.set_connection(binding.room_id, binding.player_id, is_connected=False)

    async def _handle_create_room(self, connection: ConnectionProtocol, message: CreateRoomMessage) -> None:
        room = await self._manager.create_room(message.player_id, message.player_name, message.game_type)
        await connection.send_message(RoomCreatedMessage(room_id=room.id).model_dump())
        await self._bind_and_sync(connection, room, message.player_id)

    async def _handle_join_room(self, connection: ConnectionProtocol, message: JoinRoomMessage) -> None:
        room = await self._manager.join_room(message.room_id, message.player_id, message.player_name)
        await connection.send_message(RoomJoinedMessage(room_id=room.id).model_dump())
        await self._bind_and_sync(connection, room, message.player_id)

    async def _handle_leave_room(self, connection: ConnectionProtocol) -> None:
        binding = self._registry.unbind(connection)
        self._broadcaster.forget(connection.connection_id)
        if binding is not None:
            await self._release(binding)

    async def _handle_room_command(self, connection: ConnectionProtocol, message: RoomCommandMessage) -> None:
        binding = self._registry.get_binding(connection.connection_id)
        if binding is None:
            await self._send_error(connection, ErrorCode.NOT_IN_ROOM, "Join a room first")
            return

        room_id, player_id = binding.room_id, binding.player_id
        if isinstance(message, StartGameMessage):
            await self._manager.start_game(room_id, player_id, message.total_rounds, message.exclude_topics)
        elif isinstance(message, SubmitHintMessage):
            await self._manager.submit_hint(room_id, player_id, message.hint)
        elif isinstance(message, SubmitAnswerMessage):
            await self._manager.submit_answer(room_id, player_id, message.answer)
        elif isinstance(message, NextRoundMessage):
            await self._manager.next_round(room_id, player_id)
        elif isinstance(message, RegenerateTopicMessage):
            await self._manager.regenerate_topic(room_id, player_id)
        elif isinstance(message, ReturnToLobbyMessage):
            await self._manager.return_to_lobby(room_id, player_id)
