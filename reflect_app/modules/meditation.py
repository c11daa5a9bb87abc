# reflect_app/modules/meditation.py

import logging
from collections import namedtuple
from typing import Any, Dict, Iterable, List, Optional

from reflect_app.config.constants import (
    BODY_LOCATIONS,
    MEDITATION_MATCH_SCORE,
    MEDITATION_SUGGESTION_COUNT,
    THOUGHT_CATEGORIES,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

Meditation = namedtuple("Meditation", ["id", "name", "duration", "description", "emoji", "keywords"])

# Library order is the tie-break order for suggestions.
MEDITATIONS = (
    Meditation(
        "body_scan", "Body Scan", 5,
        "Ground yourself by bringing awareness to each part of your body.", "🧘",
        ("tense_shoulders", "tight_chest", "tired_everywhere", "jittery_stomach"),
    ),
    Meditation(
        "breath_focus", "Breath Focus", 5,
        "Find calm through the simple rhythm of your breathing.", "🌬️",
        ("racing_heart", "jittery_stomach", "tight_chest"),
    ),
    Meditation(
        "thought_observation", "Thought Observation", 6,
        "Watch your thoughts pass like clouds, without judgment.", "☁️",
        ("work", "future", "self", "heavy_head"),
    ),
    Meditation(
        "loving_kindness", "Loving Kindness", 7,
        "Cultivate compassion for yourself and others.", "💝",
        ("relationship", "family", "self"),
    ),
    Meditation(
        "grounding", "5-4-3-2-1 Grounding", 5,
        "Connect with the present moment through your senses.", "🌿",
        ("racing_heart", "heavy_head", "work"),
    ),
)

MEDITATIONS_BY_ID = {m.id: m for m in MEDITATIONS}


def meditation_to_dict(meditation: Meditation, score: Optional[int] = None) -> Dict[str, Any]:
    data = meditation._asdict()
    data["keywords"] = list(meditation.keywords)
    if score is not None:
        data["score"] = score
    return data


def get_meditation(meditation_id: str) -> Optional[Meditation]:
    return MEDITATIONS_BY_ID.get(meditation_id)


def _validated(values: Optional[Iterable[str]], allowed, label: str) -> List[str]:
    values = list(values or [])
    unknown = [v for v in values if v not in allowed]
    if unknown:
        raise ValueError(f"Unknown {label}: {', '.join(unknown)}")
    return values


def score_meditation(meditation: Meditation, thought_categories: List[str], body_locations: List[str]) -> int:
    matches = sum(1 for v in body_locations if v in meditation.keywords)
    matches += sum(1 for v in thought_categories if v in meditation.keywords)
    return matches * MEDITATION_MATCH_SCORE


def suggest_meditations(
    thought_categories: Optional[Iterable[str]] = None,
    body_locations: Optional[Iterable[str]] = None,
    limit: int = MEDITATION_SUGGESTION_COUNT,
) -> List[Dict[str, Any]]:
    """
    Rank the library against triage answers: each matching body location or
    thought category is worth ``MEDITATION_MATCH_SCORE``. Ties keep library
    order. Returns the top *limit* meditations with their scores.
    """
    thought_categories = _validated(thought_categories, THOUGHT_CATEGORIES, "thought categories")
    body_locations = _validated(body_locations, BODY_LOCATIONS, "body locations")

    scored = [(m, score_meditation(m, thought_categories, body_locations)) for m in MEDITATIONS]
    scored.sort(key=lambda pair: pair[1], reverse=True)
    suggestions = scored[:limit]

    logger.debug(
        "Meditation suggestions for %s / %s: %s",
        thought_categories, body_locations, [(m.id, s) for m, s in suggestions],
    )
    return [meditation_to_dict(m, s) for m, s in suggestions]
