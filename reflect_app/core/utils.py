# reflect_app/core/utils.py

import random
from datetime import datetime, timezone
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")


def shuffle_sequence(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """
    Return a uniformly random permutation of *items* (Fisher–Yates).
    The caller's sequence is never mutated; a fresh list is shuffled.
    """
    rng = rng or random
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def utcnow() -> datetime:
    """Naive UTC timestamp, matching what the DateTime columns round-trip."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_list(value) -> List[str]:
    """Coerce a legacy single value (or None) into a list of non-empty strings."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return [v for v in value if v]
    return [value] if value else []


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
