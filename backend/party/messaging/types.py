from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from party.logic.enums import ErrorCode, GameType
from party.messaging.projection import RoomView

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

_ROOM_ID_FIELD = Field(min_length=1, max_length=16, pattern=r"^[a-zA-Z]+$")
_PLAYER_ID_FIELD = Field(min_length=1, max_length=64, pattern=r"^[a-zA-Z0-9_-]+$")
_NAME_FIELD = Field(min_length=1, max_length=32)
_WORD_FIELD = Field(min_length=1, max_length=50)

MAX_TOTAL_ROUNDS = 20
MAX_EXCLUDED_TOPICS = 200


class ClientMessageType(StrEnum):
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    START_GAME = "start_game"
    SUBMIT_HINT = "submit_hint"
    SUBMIT_ANSWER = "submit_answer"
    NEXT_ROUND = "next_round"
    REGENERATE_TOPIC = "regenerate_topic"
    RETURN_TO_LOBBY = "return_to_lobby"
    LEAVE_ROOM = "leave_room"
    PING = "ping"


class ServerMessageType(StrEnum):
    ROOM_CREATED = "room_created"
    ROOM_JOINED = "room_joined"
    ROOM_UPDATED = "room_updated"
    ERROR = "error"
    PONG = "pong"


def _reject_control_chars(v: str) -> str:
    if any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in v):
        raise ValueError("text must not contain control characters")
    stripped = v.strip()
    if not stripped:
        raise ValueError("text must not be blank")
    return stripped


class CreateRoomMessage(BaseModel):
    type: Literal[ClientMessageType.CREATE_ROOM] = ClientMessageType.CREATE_ROOM
    player_id: str = _PLAYER_ID_FIELD
    player_name: str = _NAME_FIELD
    game_type: GameType = GameType.JUST_ONE

    @field_validator("player_name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        return _reject_control_chars(v)


class JoinRoomMessage(BaseModel):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    room_id: str = _ROOM_ID_FIELD
    player_id: str = _PLAYER_ID_FIELD
    player_name: str = _NAME_FIELD

    @field_validator("player_name")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        return _reject_control_chars(v)


class StartGameMessage(BaseModel):
    type: Literal[ClientMessageType.START_GAME] = ClientMessageType.START_GAME
    total_rounds: int | None = Field(default=None, ge=1, le=MAX_TOTAL_ROUNDS)
    exclude_topics: list[Annotated[str, Field(max_length=50)]] = Field(
        default_factory=list,
        max_length=MAX_EXCLUDED_TOPICS,
    )


class SubmitHintMessage(BaseModel):
    type: Literal[ClientMessageType.SUBMIT_HINT] = ClientMessageType.SUBMIT_HINT
    hint: str = _WORD_FIELD

    @field_validator("hint")
    @classmethod
    def _validate_hint(cls, v: str) -> str:
        return _reject_control_chars(v)


class SubmitAnswerMessage(BaseModel):
    type: Literal[ClientMessageType.SUBMIT_ANSWER] = ClientMessageType.SUBMIT_ANSWER
    answer: str = _WORD_FIELD

    @field_validator("answer")
    @classmethod
    def _validate_answer(cls, v: str) -> str:
        return _reject_control_chars(v)


class NextRoundMessage(BaseModel):
    type: Literal[ClientMessageType.NEXT_ROUND] = ClientMessageType.NEXT_ROUND


class RegenerateTopicMessage(BaseModel):
    type: Literal[ClientMessageType.REGENERATE_TOPIC] = ClientMessageType.REGENERATE_TOPIC


class ReturnToLobbyMessage(BaseModel):
    type: Literal[ClientMessageType.RETURN_TO_LOBBY] = ClientMessageType.RETURN_TO_LOBBY


class LeaveRoomMessage(BaseModel):
    type: Literal[ClientMessageType.LEAVE_ROOM] = ClientMessageType.LEAVE_ROOM


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


# commands that act on the room the connection is bound to
RoomCommandMessage = (
    StartGameMessage
    | SubmitHintMessage
    | SubmitAnswerMessage
    | NextRoundMessage
    | RegenerateTopicMessage
    | ReturnToLobbyMessage
)

ClientMessage = CreateRoomMessage | JoinRoomMessage | RoomCommandMessage | LeaveRoomMessage | PingMessage


class RoomCreatedMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_CREATED] = ServerMessageType.ROOM_CREATED
    room_id: str


class RoomJoinedMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_JOINED] = ServerMessageType.ROOM_JOINED
    room_id: str


class RoomUpdatedMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_UPDATED] = ServerMessageType.ROOM_UPDATED
    room: RoomView


class ErrorMessage(BaseModel):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    code: ErrorCode
    message: str


class PongMessage(BaseModel):
    type: Literal[ServerMessageType.PONG] = ServerMessageType.PONG


_client_message_adapter = TypeAdapter(Annotated[ClientMessage, Field(discriminator="type")])


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a raw decoded frame into a typed client message."""
    return _client_message_adapter.validate_python(data)
