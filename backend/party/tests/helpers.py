"""Builders and WebSocket helpers shared by the party tests."""

from party.logic.enums import GamePhase
from party.logic.just_one import Hint, JustOneGame
from party.logic.room import Player, Room
from party.messaging.encoder import decode, encode
from party.messaging.types import ServerMessageType


def make_players(count: int, *, disconnected: tuple[str, ...] = ()) -> tuple[Player, ...]:
    """Players p1..pN in join order; p1 is the host."""
    return tuple(
        Player(id=f"p{i}", name=f"Player{i}", is_host=i == 1, is_connected=f"p{i}" not in disconnected)
        for i in range(1, count + 1)
    )


def make_game(
    *,
    answerer_id: str = "p1",
    phase: GamePhase = GamePhase.HINTING,
    topic: str = "りんご",
    hints: tuple[Hint, ...] = (),
    round: int = 1,  # noqa: A002
    total_rounds: int = 5,
    used_topics: tuple[str, ...] | None = None,
) -> JustOneGame:
    return JustOneGame(
        phase=phase,
        topic=topic,
        answerer_id=answerer_id,
        hints=hints,
        round=round,
        total_rounds=total_rounds,
        used_topics=used_topics if used_topics is not None else (topic,),
    )


def make_room(
    player_count: int = 3,
    *,
    game: JustOneGame | None = None,
    room_id: str = "ABCD",
    disconnected: tuple[str, ...] = (),
) -> Room:
    return Room(id=room_id, players=make_players(player_count, disconnected=disconnected), game=game)


async def create_lobby(manager, player_count: int = 3) -> Room:
    """Create a room through the manager with p1 as host and p2..pN joined."""
    room = await manager.create_room("p1", "Player1")
    for i in range(2, player_count + 1):
        room = await manager.join_room(room.id, f"p{i}", f"Player{i}")
    return room


async def start_game(manager, player_count: int = 3, total_rounds: int = 5) -> Room:
    room = await create_lobby(manager, player_count)
    return await manager.start_game(room.id, "p1", total_rounds=total_rounds)


def hinters(room: Room) -> list[str]:
    """Connected non-answerer player ids in join order."""
    assert room.game is not None
    return [p.id for p in room.players if p.is_connected and p.id != room.game.answerer_id]


async def play_to_guessing(manager, room: Room, texts: tuple[str, ...] | None = None) -> Room:
    ids = hinters(room)
    words = texts or tuple(f"ヒント{i}" for i in range(len(ids)))
    for player_id, text in zip(ids, words, strict=True):
        room = await manager.submit_hint(room.id, player_id, text)
    return room


async def play_to_result(manager, room: Room, answer: str = "はずれ") -> Room:
    room = await play_to_guessing(manager, room)
    assert room.game is not None
    return await manager.submit_answer(room.id, room.game.answerer_id, answer)


def send_ws(ws, data: dict) -> None:
    """Send a MessagePack-encoded message over a test WebSocket."""
    ws.send_bytes(encode(data))


def recv_ws(ws) -> dict:
    """Receive and decode a MessagePack message from a test WebSocket."""
    return decode(ws.receive_bytes())


def recv_room_until(ws, predicate, limit: int = 20) -> dict:
    """Drain room_updated messages until one whose room view satisfies ``predicate``."""
    for _ in range(limit):
        message = recv_ws(ws)
        if message["type"] == ServerMessageType.ROOM_UPDATED and predicate(message["room"]):
            return message["room"]
    raise AssertionError(f"no matching room_updated within {limit} messages")
