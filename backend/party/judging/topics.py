"""Static fallback topic list, loaded from YAML with a built-in default."""

import random
from collections.abc import Sequence
from pathlib import Path

import structlog
import yaml

logger = structlog.get_logger()

DEFAULT_TOPICS: tuple[str, ...] = (
    "りんご",
    "電車",
    "猫",
    "太陽",
    "学校",
    "傘",
    "カレー",
    "海",
    "時計",
    "本",
    "桜",
    "雨",
    "犬",
    "月",
    "山",
    "パン",
    "ドラえもん",
    "ピカチュウ",
    "アンパンマン",
    "サンタクロース",
)


def _get_default_topics_path() -> Path:
    backend_root = Path(__file__).parent.parent.parent
    return backend_root / "config" / "topics.yaml"


def load_topics(path: Path | str | None = None) -> tuple[str, ...]:
    """Read the ``topics:`` list from YAML; fall back to DEFAULT_TOPICS if missing or empty."""
    config_path = Path(path) if path is not None else _get_default_topics_path()
    if not config_path.exists():
        logger.warning("topics file not found, using built-in list", path=str(config_path))
        return DEFAULT_TOPICS

    with config_path.open(encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    topics: list[str] = []
    for item in config.get("topics", []):
        text = str(item).strip()
        if text and text not in topics:
            topics.append(text)
    if not topics:
        logger.warning("topics file has no entries, using built-in list", path=str(config_path))
        return DEFAULT_TOPICS
    return tuple(topics)


def pick_fallback_topic(
    topics: Sequence[str],
    exclude_topics: Sequence[str],
    rng: random.Random | None = None,
) -> str:
    """Pick a random topic not in ``exclude_topics``.

    When every topic is excluded, the one used longest ago is recycled.
    """
    chooser = rng or random
    excluded = set(exclude_topics)
    available = [t for t in topics if t not in excluded]
    if available:
        return chooser.choice(available)

    known = set(topics)
    oldest = next((t for t in exclude_topics if t in known), topics[0])
    logger.warning("fallback topics exhausted, recycling", topic=oldest)
    return oldest
