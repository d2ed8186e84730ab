"""
Fail-open wrapper around any judge.

Each call to the wrapped judge is bounded by a timeout. Any failure of the
wrapped judge (JudgeError, timeout, unexpected exception) is logged and
replaced by the permissive default, so a judge outage never blocks a room:

- generate_topic: retry, then pick from the static fallback list
- validate_hint_format / validate_hint_against_topic: valid
- judge_hints: every hint valid
- judge_answer: normalized exact match
"""

import asyncio
import random
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import structlog

from party.judging.gateway import AnswerVerdict, HintCheck, HintVerdict, JudgingGateway
from party.judging.rules import answers_match, check_hint_against_topic, clean_topic
from party.judging.topics import DEFAULT_TOPICS, pick_fallback_topic
from party.logic.just_one import Hint

logger = structlog.get_logger()

TOPIC_ATTEMPTS = 3


class GuardedJudge(JudgingGateway):
    def __init__(
        self,
        inner: JudgingGateway,
        *,
        timeout_seconds: float = 8.0,
        topics: Sequence[str] = DEFAULT_TOPICS,
        rng: random.Random | None = None,
    ) -> None:
        self._inner = inner
        self._timeout = timeout_seconds
        self._topics = tuple(topics) or DEFAULT_TOPICS
        self._rng = rng or random.Random()  # noqa: S311

    @property
    def inner(self) -> JudgingGateway:
        return self._inner

    async def aclose(self) -> None:
        await self._inner.aclose()

    async def _call(self, operation: str, call: Callable[[], Awaitable[Any]]) -> Any:  # noqa: ANN401
        """Run one bounded call to the wrapped judge. Returns None on any failure."""
        try:
            async with asyncio.timeout(self._timeout):
                return await call()
        except TimeoutError:
            logger.warning("judge call timed out", operation=operation, timeout=self._timeout)
        except Exception as e:
            logger.warning("judge call failed", operation=operation, error=str(e) or type(e).__name__)
        return None

    async def generate_topic(self, exclude_topics: Sequence[str]) -> str:
        excluded = set(exclude_topics)
        for attempt in range(1, TOPIC_ATTEMPTS + 1):
            candidate = await self._call("generate_topic", lambda: self._inner.generate_topic(exclude_topics))
            topic = clean_topic(candidate)
            if topic is not None and topic not in excluded:
                return topic
            if candidate is not None:
                logger.info("rejected generated topic", candidate=candidate, attempt=attempt)

        topic = pick_fallback_topic(self._topics, exclude_topics, self._rng)
        logger.warning("using fallback topic", topic=topic)
        return topic

    async def validate_hint_format(self, hint: str) -> HintCheck:
        result = await self._call("validate_hint_format", lambda: self._inner.validate_hint_format(hint))
        return result if result is not None else HintCheck(is_valid=True)

    async def validate_hint_against_topic(self, topic: str, hint: str) -> HintCheck:
        reason = check_hint_against_topic(topic, hint)
        if reason is not None:
            return HintCheck(is_valid=False, error=reason)
        result = await self._call(
            "validate_hint_against_topic",
            lambda: self._inner.validate_hint_against_topic(topic, hint),
        )
        return result if result is not None else HintCheck(is_valid=True)

    async def judge_hints(self, topic: str, hints: Sequence[Hint]) -> list[HintVerdict]:
        if not hints:
            return []
        all_valid = [HintVerdict(player_id=h.player_id, is_valid=True) for h in hints]
        result = await self._call("judge_hints", lambda: self._inner.judge_hints(topic, hints))
        if not result:
            return all_valid

        known = {h.player_id for h in hints}
        verdicts: dict[str, HintVerdict] = {}
        for verdict in result:
            if verdict.player_id in known:
                verdicts[verdict.player_id] = verdict
            else:
                logger.warning("judge returned verdict for unknown hint", player_id=verdict.player_id)
        if not verdicts:
            return all_valid
        return [verdicts[h.player_id] for h in hints if h.player_id in verdicts]

    async def judge_answer(self, topic: str, answer: str) -> AnswerVerdict:
        result = await self._call("judge_answer", lambda: self._inner.judge_answer(topic, answer))
        if result is not None:
            return result
        return AnswerVerdict(is_correct=answers_match(topic, answer))
