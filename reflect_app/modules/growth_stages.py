# reflect_app/modules/growth_stages.py

"""
Stage arithmetic for the garden.

Every function here is pure and reads the single ordered table
``GROWTH_STAGES``; stage count, names, image filenames and placeholders
are all taken from that table. Breakpoints are stored as integer
percentages and compared as ``points * 100 < max_points * pct`` so the
stage reported for a point total and the "points to next stage" figure
can never disagree through floating point rounding.
"""

import logging
from typing import Any, Dict

from reflect_app.config.constants import BLOOMED_STAGE, GROWTH_STAGES, GrowthStage
from reflect_app.core.errors import InvalidThreshold

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def _check_threshold(max_points) -> None:
    if isinstance(max_points, bool) or not isinstance(max_points, int) or max_points <= 0:
        raise InvalidThreshold(max_points)


def get_plant_stage(current_points: int, max_points: int) -> int:
    """
    Map accumulated points to a stage index in ``[0, BLOOMED_STAGE]``.
    0 or fewer points is always the seed stage; reaching or passing
    ``max_points`` is always the terminal stage.
    """
    _check_threshold(max_points)
    if current_points <= 0:
        return GROWTH_STAGES[0].index
    if current_points >= max_points:
        return BLOOMED_STAGE

    for stage in GROWTH_STAGES:
        if stage.upper_pct is not None and current_points * 100 < max_points * stage.upper_pct:
            return stage.index
    return BLOOMED_STAGE


def get_stage(index: int) -> GrowthStage:
    """Table row for *index*; unknown indexes fall back to the seed row."""
    if 0 <= index < len(GROWTH_STAGES):
        return GROWTH_STAGES[index]
    return GROWTH_STAGES[0]


def get_stage_name(index: int) -> str:
    return get_stage(index).name


def get_stage_filename(index: int) -> str:
    return get_stage(index).filename


def get_stage_placeholder(index: int) -> str:
    return get_stage(index).placeholder


def get_progress_percentage(current_points: int, max_points: int) -> int:
    """Percent complete, rounded half-up and clamped to [0, 100]."""
    _check_threshold(max_points)
    # half-up rounding in integer arithmetic
    pct = (current_points * 200 + max_points) // (2 * max_points)
    return max(0, min(100, pct))


def stage_entry_points(index: int, max_points: int) -> int:
    """Smallest point total that reaches stage *index*."""
    _check_threshold(max_points)
    if index <= 0:
        return 0
    previous = GROWTH_STAGES[min(index, BLOOMED_STAGE) - 1]
    # ceil(max_points * pct / 100)
    return -(-max_points * previous.upper_pct // 100)


def get_points_to_next_stage(current_points: int, max_points: int) -> int:
    """Points still needed to enter the next stage; 0 once bloomed."""
    stage = get_plant_stage(current_points, max_points)
    if stage >= BLOOMED_STAGE:
        return 0
    return stage_entry_points(stage + 1, max_points) - max(current_points, 0)


def describe_progress(current_points: int, max_points: int) -> Dict[str, Any]:
    """Bundle every derived figure the presentation layer reads."""
    stage = get_plant_stage(current_points, max_points)
    row = get_stage(stage)
    return {
        "stage": stage,
        "stage_key": row.key,
        "stage_name": row.name,
        "placeholder": row.placeholder,
        "percentage": get_progress_percentage(current_points, max_points),
        "points_to_next_stage": get_points_to_next_stage(current_points, max_points),
        "is_bloomed": stage == BLOOMED_STAGE,
    }
