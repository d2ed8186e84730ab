"""Deterministic judging rules applied locally regardless of judge availability."""

import re

# a topic candidate containing these connectives is a phrase, not a concept
_PHRASE_PARTICLES = re.compile(r"[のなとや]")
_PHRASE_MAX_LENGTH = 4
_WHITESPACE = re.compile(r"\s")
_NULL_LITERALS = {"null", "undefined", "none"}

# a hint this short may legitimately be a character of the topic
_MIN_FRAGMENT_LENGTH = 2


def normalize(text: str) -> str:
    return text.strip().casefold()


def answers_match(topic: str, answer: str) -> bool:
    return normalize(topic) == normalize(answer)


def check_hint_against_topic(topic: str, hint: str) -> str | None:
    """Return a rejection reason if the hint reveals the topic, else None."""
    t = normalize(topic)
    h = normalize(hint)
    if not h or not t:
        return None
    if h == t:
        return "Hint is the topic itself"
    if t in h:
        return "Hint contains the topic"
    if len(h) >= _MIN_FRAGMENT_LENGTH and h in t:
        return "Hint is part of the topic"
    return None


def is_single_token(hint: str) -> bool:
    stripped = hint.strip()
    return bool(stripped) and _WHITESPACE.search(stripped) is None


def clean_topic(candidate: str | None) -> str | None:
    """Return the candidate stripped, or None if it is not a usable single concept."""
    if candidate is None:
        return None
    text = candidate.strip().strip("「」\"'。.")
    if not text or text.casefold() in _NULL_LITERALS:
        return None
    if _PHRASE_PARTICLES.search(text) and len(text) > _PHRASE_MAX_LENGTH:
        return None
    if _WHITESPACE.search(text):
        return None
    return text
