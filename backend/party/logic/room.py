"""
Room and player records plus their invariant-preserving helpers.

Rooms are immutable values; every helper returns a new Room (or the same
one when nothing changes). ``players`` keeps join order with the host first
and never holds the same player id twice.
"""

import secrets
import string
import time

from pydantic import BaseModel, ConfigDict, Field

from party.logic.enums import GameType
from party.logic.just_one import JustOneGame

ROOM_ID_LENGTH = 4
ROOM_ID_ALPHABET = string.ascii_uppercase


class Player(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    is_host: bool = False
    is_connected: bool = True


class Room(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    players: tuple[Player, ...] = Field(min_length=1)
    game_type: GameType = GameType.JUST_ONE
    game: JustOneGame | None = None
    created_at: float = Field(default_factory=time.time)
    # bumped on every persist so subscribers can order snapshots
    revision: int = 0


def create_player(player_id: str, name: str, *, is_host: bool = False) -> Player:
    return Player(id=player_id, name=name, is_host=is_host, is_connected=True)


def create_room(room_id: str, host: Player, game_type: GameType = GameType.JUST_ONE) -> Room:
    return Room(id=room_id, players=(host,), game_type=game_type)


def get_player(room: Room, player_id: str) -> Player | None:
    for player in room.players:
        if player.id == player_id:
            return player
    return None


def add_player_to_room(room: Room, player: Player) -> Room:
    if get_player(room, player.id) is not None:
        return room
    return room.model_copy(update={"players": (*room.players, player)})


def update_player_connection(room: Room, player_id: str, *, is_connected: bool) -> Room:
    if get_player(room, player_id) is None:
        return room
    players = tuple(
        p.model_copy(update={"is_connected": is_connected}) if p.id == player_id else p for p in room.players
    )
    return room.model_copy(update={"players": players})


def get_host(room: Room) -> Player | None:
    return next((p for p in room.players if p.is_host), None)


def connected_players(room: Room) -> list[Player]:
    return [p for p in room.players if p.is_connected]


def generate_room_id() -> str:
    """Four uppercase letters; collision checks are the caller's job."""
    return "".join(secrets.choice(ROOM_ID_ALPHABET) for _ in range(ROOM_ID_LENGTH))
