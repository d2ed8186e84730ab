"""
Per-viewer redacted views of a room.

Hint redaction by phase:

| phase            | hint text                    | is_valid      |
|------------------|------------------------------|---------------|
| HINTING          | hidden for everyone          | always true   |
| GUESSING         | shown only for valid hints   | actual value  |
| RESULT/FINISHED  | shown for all hints          | actual value  |

The topic (and the used-topic log, which contains it) is hidden from the
answerer until the round reaches RESULT.
"""

from pydantic import BaseModel

from party.logic.enums import GamePhase, GameType
from party.logic.just_one import Hint, JustOneGame, RoundResult
from party.logic.room import Player, Room

_REVEALED_PHASES = frozenset({GamePhase.RESULT, GamePhase.FINISHED})


class PlayerView(BaseModel):
    id: str
    name: str
    is_host: bool
    is_connected: bool


class HintView(BaseModel):
    player_id: str
    player_name: str
    text: str | None
    is_valid: bool


class RoundResultView(BaseModel):
    round: int
    topic: str
    answerer_id: str
    answerer_name: str
    answer: str
    is_correct: bool


class GameView(BaseModel):
    type: GameType
    phase: GamePhase
    topic: str | None
    answerer_id: str
    hints: list[HintView]
    answer: str | None
    is_correct: bool | None
    round: int
    total_rounds: int
    used_topics: list[str]
    round_results: list[RoundResultView]


class RoomView(BaseModel):
    id: str
    players: list[PlayerView]
    game_type: GameType
    game: GameView | None
    created_at: float
    revision: int


def _project_hint(hint: Hint, phase: GamePhase) -> HintView:
    if phase == GamePhase.HINTING:
        text, is_valid = None, True
    elif phase == GamePhase.GUESSING:
        text, is_valid = (hint.text if hint.is_valid else None), hint.is_valid
    else:
        text, is_valid = hint.text, hint.is_valid
    return HintView(player_id=hint.player_id, player_name=hint.player_name, text=text, is_valid=is_valid)


def _project_result(result: RoundResult) -> RoundResultView:
    return RoundResultView(**result.model_dump())


def _project_player(player: Player) -> PlayerView:
    return PlayerView(**player.model_dump())


def project_game(game: JustOneGame, viewer_id: str) -> GameView:
    topic_hidden = viewer_id == game.answerer_id and game.phase not in _REVEALED_PHASES
    return GameView(
        type=game.type,
        phase=game.phase,
        topic=None if topic_hidden else game.topic,
        answerer_id=game.answerer_id,
        hints=[_project_hint(h, game.phase) for h in game.hints],
        answer=game.answer,
        is_correct=game.is_correct,
        round=game.round,
        total_rounds=game.total_rounds,
        used_topics=[] if topic_hidden else list(game.used_topics),
        round_results=[_project_result(r) for r in game.round_results],
    )


def project_room(room: Room, viewer_id: str) -> RoomView:
    return RoomView(
        id=room.id,
        players=[_project_player(p) for p in room.players],
        game_type=room.game_type,
        game=project_game(room.game, viewer_id) if room.game is not None else None,
        created_at=room.created_at,
        revision=room.revision,
    )
