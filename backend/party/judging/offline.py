"""Deterministic judge used when no external judge is configured, and in tests."""

import random
from collections import defaultdict
from collections.abc import Sequence

from party.judging.gateway import AnswerVerdict, HintCheck, HintVerdict, JudgingGateway
from party.judging.rules import answers_match, check_hint_against_topic, is_single_token, normalize
from party.judging.topics import DEFAULT_TOPICS, pick_fallback_topic
from party.logic.just_one import Hint


class OfflineJudge(JudgingGateway):
    def __init__(self, topics: Sequence[str] = DEFAULT_TOPICS, rng: random.Random | None = None) -> None:
        self._topics = tuple(topics)
        self._rng = rng or random.Random()  # noqa: S311

    async def generate_topic(self, exclude_topics: Sequence[str]) -> str:
        return pick_fallback_topic(self._topics, exclude_topics, self._rng)

    async def validate_hint_format(self, hint: str) -> HintCheck:
        if is_single_token(hint):
            return HintCheck(is_valid=True)
        return HintCheck(is_valid=False, error="Hint must be a single word")

    async def validate_hint_against_topic(self, topic: str, hint: str) -> HintCheck:
        reason = check_hint_against_topic(topic, hint)
        return HintCheck(is_valid=reason is None, error=reason)

    async def judge_hints(self, topic: str, hints: Sequence[Hint]) -> list[HintVerdict]:  # noqa: ARG002
        groups: dict[str, list[str]] = defaultdict(list)
        for hint in hints:
            groups[normalize(hint.text)].append(hint.player_id)
        verdicts = []
        for hint in hints:
            duplicated = len(groups[normalize(hint.text)]) > 1
            verdicts.append(
                HintVerdict(
                    player_id=hint.player_id,
                    is_valid=not duplicated,
                    reason="Duplicate hint" if duplicated else None,
                ),
            )
        return verdicts

    async def judge_answer(self, topic: str, answer: str) -> AnswerVerdict:
        return AnswerVerdict(is_correct=answers_match(topic, answer))
