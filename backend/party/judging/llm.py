"""Judge backed by an OpenAI-compatible chat completions endpoint."""

import json
import random
from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from party.judging.gateway import AnswerVerdict, HintCheck, HintVerdict, JudgingGateway
from party.logic.exceptions import JudgeError
from party.logic.just_one import Hint

logger = structlog.get_logger()

TOPIC_CATEGORIES = (
    "食べ物",
    "動物",
    "場所",
    "道具",
    "乗り物",
    "スポーツ",
    "職業",
    "イベント",
    "楽器",
    "服",
    "キャラクター",
    "家電",
    "植物",
    "お菓子",
    "文房具",
    "家具",
    "飲み物",
    "国",
    "野菜",
    "果物",
    "料理",
    "建物",
    "天気",
)

TOPIC_VARIATIONS = ("", "", "", "身近な", "有名な", "子供も知っている", "日常でよく見る", "人気の")

# keep the exclusion note in the prompt bounded
_MAX_EXCLUDED_IN_PROMPT = 30

_JSON_ONLY = "Reply with a single JSON object and nothing else."


class LLMJudge(JudgingGateway):
    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._model = model
        self._rng = rng or random.Random()  # noqa: S311
        self._client = client or httpx.AsyncClient(
            base_url=api_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _complete(
        self,
        operation: str,
        system: str,
        prompt: str,
        *,
        max_tokens: int,
        json_mode: bool = True,
        temperature: float | None = None,
    ) -> str:
        body: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}
        if temperature is not None:
            body["temperature"] = temperature

        try:
            response = await self._client.post("/chat/completions", json=body)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise JudgeError(operation, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise JudgeError(operation, f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise JudgeError(operation, "response body is not JSON") from e

        try:
            content = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise JudgeError(operation, "response has no message content") from e
        if not isinstance(content, str) or not content.strip():
            raise JudgeError(operation, "empty message content")
        return content.strip()

    async def _complete_json(self, operation: str, prompt: str, *, max_tokens: int) -> dict[str, Any]:
        content = await self._complete(operation, _JSON_ONLY, prompt, max_tokens=max_tokens)
        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as e:
            raise JudgeError(operation, "content is not valid JSON") from e
        if not isinstance(parsed, dict):
            raise JudgeError(operation, "content is not a JSON object")
        return parsed

    async def generate_topic(self, exclude_topics: Sequence[str]) -> str:
        category = self._rng.choice(TOPIC_CATEGORIES)
        variation = self._rng.choice(TOPIC_VARIATIONS)
        flavour = f" ({variation}もの)" if variation else ""
        prompt = (
            f"Give one Japanese noun from the category 「{category}」{flavour}. "
            "Avoid overly obvious words and avoid jargon. Output the word only."
        )
        recent = list(exclude_topics)[-_MAX_EXCLUDED_IN_PROMPT:]
        if recent:
            prompt += f"\nDo not use: {'、'.join(recent)}"
        return await self._complete(
            "generate_topic",
            "Output exactly one Japanese noun with no explanation.",
            prompt,
            max_tokens=15,
            json_mode=False,
            temperature=1.0,
        )

    async def validate_hint_format(self, hint: str) -> HintCheck:
        prompt = (
            f"Is 「{hint}」 a single word? Nouns, adjectives, verbs, proper nouns and compound words count "
            "as one word. A word with a trailing particle or auxiliary (猫の, 赤いです), two or more words, "
            "or a sentence does not. "
            'Answer as {"valid": true|false, "error": "reason when false"}.'
        )
        parsed = await self._complete_json("validate_hint_format", prompt, max_tokens=60)
        return _parse_check("validate_hint_format", parsed)

    async def validate_hint_against_topic(self, topic: str, hint: str) -> HintCheck:
        prompt = (
            f"Topic 「{topic}」, hint 「{hint}」. The hint is invalid only if it is the topic in another "
            "script or spelling (猫=ねこ=ネコ) or a direct translation of it (犬=dog). "
            "Associated words, related words, broader or narrower terms are all valid. When unsure, valid. "
            'Answer as {"valid": true|false, "error": "reason when false"}.'
        )
        parsed = await self._complete_json("validate_hint_against_topic", prompt, max_tokens=60)
        return _parse_check("validate_hint_against_topic", parsed)

    async def judge_hints(self, topic: str, hints: Sequence[Hint]) -> list[HintVerdict]:
        if not hints:
            return []
        numbered = "\n".join(f'{i}. "{h.text}"' for i, h in enumerate(hints, start=1))
        prompt = (
            f"Hints for the topic 「{topic}」:\n{numbered}\n"
            "Hints that are the same word, a spelling variant, a synonym, or a translation of each other are "
            "duplicates, and every member of a duplicate group is invalid. Related but different words are "
            "both valid. When unsure, valid. "
            'Answer as {"results": [{"index": 1, "valid": true|false, "reason": "..."}]}.'
        )
        parsed = await self._complete_json("judge_hints", prompt, max_tokens=200)
        results = parsed.get("results")
        if not isinstance(results, list):
            raise JudgeError("judge_hints", "missing results list")

        verdicts: list[HintVerdict] = []
        for item in results:
            if not isinstance(item, dict):
                continue
            index = item.get("index")
            valid = item.get("valid")
            if not isinstance(index, int) or not isinstance(valid, bool) or not 1 <= index <= len(hints):
                continue
            reason = item.get("reason")
            verdicts.append(
                HintVerdict(
                    player_id=hints[index - 1].player_id,
                    is_valid=valid,
                    reason=reason if isinstance(reason, str) else None,
                ),
            )
        return verdicts

    async def judge_answer(self, topic: str, answer: str) -> AnswerVerdict:
        prompt = (
            f"Topic 「{topic}」, answer 「{answer}」. The answer is correct if it is the same word in any "
            "script or spelling (財布=さいふ=サイフ, りんご=リンゴ=林檎); a different word is incorrect. "
            'Answer as {"correct": true|false, "reason": "..."}.'
        )
        parsed = await self._complete_json("judge_answer", prompt, max_tokens=50)
        correct = parsed.get("correct")
        if not isinstance(correct, bool):
            raise JudgeError("judge_answer", "missing boolean 'correct'")
        reason = parsed.get("reason")
        return AnswerVerdict(is_correct=correct, reason=reason if isinstance(reason, str) else None)


def _parse_check(operation: str, parsed: dict[str, Any]) -> HintCheck:
    valid = parsed.get("valid")
    if not isinstance(valid, bool):
        raise JudgeError(operation, "missing boolean 'valid'")
    error = parsed.get("error")
    return HintCheck(is_valid=valid, error=error if isinstance(error, str) and error else None)
