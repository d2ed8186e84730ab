"""Game variant table and the phase-machine interface the orchestrator dispatches through."""

from collections.abc import Mapping
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from party.logic import just_one
from party.logic.enums import GameType
from party.logic.exceptions import InvalidGameTypeError
from party.logic.just_one import JustOneGame


class GameConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    min_players: int
    max_players: int


GAME_CONFIGS: dict[GameType, GameConfig] = {
    GameType.JUST_ONE: GameConfig(
        name="Just One",
        description="Everyone but the answerer writes a one-word hint; duplicate hints are discarded.",
        min_players=3,
        max_players=10,
    ),
}


class PhaseMachine(Protocol):
    """Round transitions for one game variant."""

    game_type: GameType

    def accepts(self, game: object) -> bool: ...

    def create(
        self,
        answerer_id: str,
        topic: str,
        total_rounds: int,
        excluded_topics: tuple[str, ...] = (),
    ) -> JustOneGame: ...

    def submit_hint(self, game: JustOneGame, player_id: str, player_name: str, text: str) -> JustOneGame: ...

    def all_hints_submitted(self, game: JustOneGame, total_players: int) -> bool: ...

    def set_hint_validity(self, game: JustOneGame, validity: Mapping[str, bool]) -> JustOneGame: ...

    def transition_to_guessing(self, game: JustOneGame) -> JustOneGame: ...

    def submit_answer(
        self,
        game: JustOneGame,
        answer: str,
        answerer_name: str,
        *,
        is_correct: bool,
    ) -> JustOneGame: ...

    def is_last_round(self, game: JustOneGame) -> bool: ...

    def finish_game(self, game: JustOneGame) -> JustOneGame: ...

    def reset_for_next_round(self, game: JustOneGame, new_answerer_id: str, new_topic: str) -> JustOneGame: ...

    def regenerate_topic(self, game: JustOneGame, new_topic: str) -> JustOneGame: ...


class JustOneMachine:
    game_type = GameType.JUST_ONE

    def accepts(self, game: object) -> bool:
        return isinstance(game, JustOneGame)

    def create(
        self,
        answerer_id: str,
        topic: str,
        total_rounds: int,
        excluded_topics: tuple[str, ...] = (),
    ) -> JustOneGame:
        return just_one.create_game(answerer_id, topic, total_rounds, excluded_topics)

    def submit_hint(self, game: JustOneGame, player_id: str, player_name: str, text: str) -> JustOneGame:
        return just_one.submit_hint(game, player_id, player_name, text)

    def all_hints_submitted(self, game: JustOneGame, total_players: int) -> bool:
        return just_one.all_hints_submitted(game, total_players)

    def set_hint_validity(self, game: JustOneGame, validity: Mapping[str, bool]) -> JustOneGame:
        return just_one.set_hint_validity(game, validity)

    def transition_to_guessing(self, game: JustOneGame) -> JustOneGame:
        return just_one.transition_to_guessing(game)

    def submit_answer(
        self,
        game: JustOneGame,
        answer: str,
        answerer_name: str,
        *,
        is_correct: bool,
    ) -> JustOneGame:
        return just_one.submit_answer(game, answer, answerer_name, is_correct=is_correct)

    def is_last_round(self, game: JustOneGame) -> bool:
        return just_one.is_last_round(game)

    def finish_game(self, game: JustOneGame) -> JustOneGame:
        return just_one.finish_game(game)

    def reset_for_next_round(self, game: JustOneGame, new_answerer_id: str, new_topic: str) -> JustOneGame:
        return just_one.reset_game_for_next_round(game, new_answerer_id, new_topic)

    def regenerate_topic(self, game: JustOneGame, new_topic: str) -> JustOneGame:
        return just_one.regenerate_topic(game, new_topic)


PHASE_MACHINES: dict[GameType, PhaseMachine] = {
    GameType.JUST_ONE: JustOneMachine(),
}


def get_machine(game_type: GameType | str) -> PhaseMachine:
    try:
        return PHASE_MACHINES[GameType(game_type)]
    except (KeyError, ValueError):
        raise InvalidGameTypeError(f"Unknown game type: {game_type}") from None


def get_config(game_type: GameType | str) -> GameConfig:
    try:
        return GAME_CONFIGS[GameType(game_type)]
    except (KeyError, ValueError):
        raise InvalidGameTypeError(f"Unknown game type: {game_type}") from None
