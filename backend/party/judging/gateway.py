"""Abstract boundary to the external hint/answer judge."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from party.logic.just_one import Hint


class HintCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_valid: bool
    error: str | None = None


class HintVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: str
    is_valid: bool
    reason: str | None = None


class AnswerVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_correct: bool
    reason: str | None = None


class JudgingGateway(ABC):
    """
    Async judge consulted by the orchestrator.

    Concrete judges may raise JudgeError on any failure; GuardedJudge turns
    those failures into the permissive defaults.
    """

    @abstractmethod
    async def generate_topic(self, exclude_topics: Sequence[str]) -> str:
        """Return a fresh single-concept topic not in ``exclude_topics``."""
        ...

    @abstractmethod
    async def validate_hint_format(self, hint: str) -> HintCheck:
        """Check that the hint is a single lexical unit."""
        ...

    @abstractmethod
    async def validate_hint_against_topic(self, topic: str, hint: str) -> HintCheck:
        """Reject hints that are the topic, a variant of it, or a direct translation."""
        ...

    @abstractmethod
    async def judge_hints(self, topic: str, hints: Sequence[Hint]) -> list[HintVerdict]:
        """Invalidate every member of each group of equivalent hints."""
        ...

    @abstractmethod
    async def judge_answer(self, topic: str, answer: str) -> AnswerVerdict:
        """Decide whether the answer names the topic, accepting orthographic variants."""
        ...

    async def aclose(self) -> None:  # noqa: B027
        """Release any network resources held by the judge."""
