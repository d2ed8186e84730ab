"""
Just One round state machine.

Pure functions over an immutable JustOneGame record:
HINTING -> GUESSING -> RESULT -> HINTING (next round) | FINISHED.
Every transition that does not apply in the current phase returns the game
unchanged; the orchestrator decides whether that is an error.
"""

from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from party.logic.enums import GamePhase, GameType


class Hint(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: str
    player_name: str
    text: str
    is_valid: bool = True


class RoundResult(BaseModel):
    """Frozen facts of one judged round, kept for the end-of-game summary."""

    model_config = ConfigDict(frozen=True)

    round: int
    topic: str
    answerer_id: str
    answerer_name: str
    answer: str
    is_correct: bool


class JustOneGame(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal[GameType.JUST_ONE] = GameType.JUST_ONE
    phase: GamePhase = GamePhase.HINTING
    topic: str
    answerer_id: str
    hints: tuple[Hint, ...] = ()
    answer: str | None = None
    is_correct: bool | None = None
    round: int = 1
    total_rounds: int = Field(ge=1)
    used_topics: tuple[str, ...] = ()
    excluded_topics: tuple[str, ...] = ()
    round_results: tuple[RoundResult, ...] = ()


def create_game(
    answerer_id: str,
    topic: str,
    total_rounds: int,
    excluded_topics: tuple[str, ...] = (),
) -> JustOneGame:
    """Start round 1 in HINTING.

    ``excluded_topics`` carries topics from earlier games in the room. They are
    kept apart from ``used_topics``, which only lists this game's topics, and
    stay excluded for the lifetime of this game.
    """
    return JustOneGame(
        topic=topic,
        answerer_id=answerer_id,
        total_rounds=total_rounds,
        used_topics=(topic,),
        excluded_topics=tuple(dict.fromkeys(t for t in excluded_topics if t != topic)),
    )


def topics_to_avoid(game: JustOneGame) -> tuple[str, ...]:
    """Topics a new topic must not repeat, oldest first."""
    return tuple(dict.fromkeys((*game.excluded_topics, *game.used_topics)))


def has_submitted(game: JustOneGame, player_id: str) -> bool:
    return any(h.player_id == player_id for h in game.hints)


def submit_hint(game: JustOneGame, player_id: str, player_name: str, text: str) -> JustOneGame:
    if game.phase != GamePhase.HINTING:
        return game
    if player_id == game.answerer_id or has_submitted(game, player_id):
        return game
    hint = Hint(player_id=player_id, player_name=player_name, text=text)
    return game.model_copy(update={"hints": (*game.hints, hint)})


def all_hints_submitted(game: JustOneGame, total_players: int) -> bool:
    """Check whether every connected non-answerer has hinted.

    ``total_players`` counts connected players including the answerer.
    """
    return len(game.hints) >= total_players - 1


def set_hint_validity(game: JustOneGame, validity: Mapping[str, bool]) -> JustOneGame:
    """Fold judge verdicts keyed by player id; absent ids keep their current value."""
    hints = tuple(
        h.model_copy(update={"is_valid": validity[h.player_id]}) if h.player_id in validity else h
        for h in game.hints
    )
    return game.model_copy(update={"hints": hints})


def transition_to_guessing(game: JustOneGame) -> JustOneGame:
    if game.phase != GamePhase.HINTING:
        return game
    return game.model_copy(update={"phase": GamePhase.GUESSING})


def submit_answer(game: JustOneGame, answer: str, answerer_name: str, *, is_correct: bool) -> JustOneGame:
    """Record the judged answer and move to RESULT.

    ``is_correct`` comes from the judge; this function never compares text.
    """
    if game.phase != GamePhase.GUESSING:
        return game
    result = RoundResult(
        round=game.round,
        topic=game.topic,
        answerer_id=game.answerer_id,
        answerer_name=answerer_name,
        answer=answer,
        is_correct=is_correct,
    )
    return game.model_copy(
        update={
            "phase": GamePhase.RESULT,
            "answer": answer,
            "is_correct": is_correct,
            "round_results": (*game.round_results, result),
        },
    )


def is_last_round(game: JustOneGame) -> bool:
    return game.round >= game.total_rounds


def finish_game(game: JustOneGame) -> JustOneGame:
    return game.model_copy(update={"phase": GamePhase.FINISHED})


def reset_game_for_next_round(game: JustOneGame, new_answerer_id: str, new_topic: str) -> JustOneGame:
    if game.phase != GamePhase.RESULT:
        return game
    return game.model_copy(
        update={
            "phase": GamePhase.HINTING,
            "round": game.round + 1,
            "hints": (),
            "answer": None,
            "is_correct": None,
            "topic": new_topic,
            "answerer_id": new_answerer_id,
            "used_topics": (*game.used_topics, new_topic),
        },
    )


def regenerate_topic(game: JustOneGame, new_topic: str) -> JustOneGame:
    """Swap the topic during HINTING and drop any hints aimed at the old one."""
    if game.phase != GamePhase.HINTING:
        return game
    return game.model_copy(
        update={
            "topic": new_topic,
            "hints": (),
            "used_topics": (*game.used_topics, new_topic),
        },
    )
