"""Typed domain exceptions for rejected room and game commands.

Every user-facing rejection is a subclass of PartyError carrying an
ErrorCode. The orchestrator raises them before anything is persisted;
the message router converts them to an error message for the sender
only. JudgeError is separate: it never leaves the judging layer.
"""

from party.logic.enums import ErrorCode


class PartyError(Exception):
    """Base exception for rejected commands.

    Subclasses set ``code`` and a default message; callers may pass a
    more specific message.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "Command failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class RoomNotFoundError(PartyError):
    code = ErrorCode.ROOM_NOT_FOUND
    default_message = "Room not found"


class GameNotStartedError(PartyError):
    code = ErrorCode.GAME_NOT_STARTED
    default_message = "Game has not started"


class GameAlreadyStartedError(PartyError):
    code = ErrorCode.GAME_ALREADY_STARTED
    default_message = "Game already in progress"


class InvalidGameTypeError(PartyError):
    code = ErrorCode.INVALID_GAME_TYPE
    default_message = "Invalid game type"


class NotHostError(PartyError):
    code = ErrorCode.NOT_HOST
    default_message = "Only the host can do that"


class NotAnswererError(PartyError):
    code = ErrorCode.NOT_ANSWERER
    default_message = "Only the answerer can do that"


class InvalidPhaseError(PartyError):
    code = ErrorCode.INVALID_PHASE
    default_message = "Not allowed in the current phase"


class NotEnoughPlayersError(PartyError):
    code = ErrorCode.NOT_ENOUGH_PLAYERS
    default_message = "Not enough players"


class HintNotSingleWordError(PartyError):
    code = ErrorCode.HINT_NOT_SINGLE_WORD
    default_message = "Hint must be a single word"


class HintContainsTopicError(PartyError):
    code = ErrorCode.HINT_CONTAINS_TOPIC
    default_message = "Hint gives away the topic"


class PlayerNotInRoomError(PartyError):
    code = ErrorCode.PLAYER_NOT_IN_ROOM
    default_message = "Player is not in this room"


class StaleStateError(PartyError):
    """Room moved on while the command was waiting for the judge."""

    code = ErrorCode.STATE_CHANGED
    default_message = "Room state changed, please retry"


class RoomFullError(PartyError):
    code = ErrorCode.ROOM_FULL
    default_message = "Room is full"


class RoomCapacityError(PartyError):
    code = ErrorCode.SERVER_FULL
    default_message = "Server at capacity"


class JudgeError(Exception):
    """External judge call failed (transport, timeout, or malformed output)."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")
