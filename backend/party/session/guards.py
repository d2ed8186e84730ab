"""Reusable precondition checks applied at the top of each command."""

from party.logic.enums import GamePhase
from party.logic.exceptions import (
    GameNotStartedError,
    InvalidGameTypeError,
    InvalidPhaseError,
    NotAnswererError,
    NotHostError,
    PlayerNotInRoomError,
)
from party.logic.just_one import JustOneGame
from party.logic.room import Player, Room, get_player
from party.logic.variants import PhaseMachine


def require_game(room: Room, machine: PhaseMachine) -> JustOneGame:
    if room.game is None:
        raise GameNotStartedError
    if room.game.type != machine.game_type or not machine.accepts(room.game):
        raise InvalidGameTypeError(f"Room is not playing {machine.game_type}")
    return room.game


def require_member(room: Room, player_id: str) -> Player:
    player = get_player(room, player_id)
    if player is None:
        raise PlayerNotInRoomError
    return player


def require_host(room: Room, player_id: str) -> Player:
    player = require_member(room, player_id)
    if not player.is_host:
        raise NotHostError
    return player


def require_answerer(game: JustOneGame, player_id: str) -> None:
    if game.answerer_id != player_id:
        raise NotAnswererError


def require_phase(game: JustOneGame, *phases: GamePhase) -> None:
    if game.phase not in phases:
        expected = ", ".join(phases)
        raise InvalidPhaseError(f"Expected phase {expected}, game is in {game.phase}")
