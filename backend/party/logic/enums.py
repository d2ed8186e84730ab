"""
String enum definitions for party game concepts.
"""

from enum import StrEnum


class GameType(StrEnum):
    """Game variants a room can host."""

    JUST_ONE = "just-one"


class GamePhase(StrEnum):
    """Phase of a round. HINTING -> GUESSING -> RESULT -> HINTING | FINISHED."""

    HINTING = "HINTING"
    GUESSING = "GUESSING"
    RESULT = "RESULT"
    FINISHED = "FINISHED"


class ErrorCode(StrEnum):
    """Error codes sent to clients for rejected commands."""

    ROOM_NOT_FOUND = "room_not_found"
    GAME_NOT_STARTED = "game_not_started"
    GAME_ALREADY_STARTED = "game_already_started"
    INVALID_GAME_TYPE = "invalid_game_type"
    NOT_HOST = "not_host"
    NOT_ANSWERER = "not_answerer"
    INVALID_PHASE = "invalid_phase"
    NOT_ENOUGH_PLAYERS = "not_enough_players"
    HINT_NOT_SINGLE_WORD = "hint_not_single_word"
    HINT_CONTAINS_TOPIC = "hint_contains_topic"
    PLAYER_NOT_IN_ROOM = "player_not_in_room"
    STATE_CHANGED = "state_changed"
    ROOM_FULL = "room_full"
    SERVER_FULL = "server_full"
    INVALID_MESSAGE = "invalid_message"
    NOT_IN_ROOM = "not_in_room"
    INTERNAL_ERROR = "internal_error"
