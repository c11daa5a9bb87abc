import pytest

from reflect_app.config.constants import BLOOMED_STAGE, GROWTH_STAGES
from reflect_app.core.errors import InvalidThreshold
from reflect_app.modules.growth_stages import (
    describe_progress,
    get_plant_stage,
    get_points_to_next_stage,
    get_progress_percentage,
    get_stage_filename,
    get_stage_name,
    get_stage_placeholder,
    stage_entry_points,
)


@pytest.mark.parametrize(
    "points,expected",
    [(-5, 0), (0, 0), (1, 0), (2, 1), (3, 1), (4, 2), (6, 2), (7, 3), (9, 3), (10, 4), (11, 4), (100, 4)],
)
def test_stage_boundaries_for_ten_points(points, expected):
    assert get_plant_stage(points, 10) == expected


@pytest.mark.parametrize("max_points", [1, 3, 5, 7, 10, 18, 33, 50, 101])
def test_stage_is_monotonic_and_bounded(max_points):
    stages = [get_plant_stage(p, max_points) for p in range(-2, max_points + 3)]
    assert stages == sorted(stages)
    assert stages[0] == 0
    assert stages[-1] == BLOOMED_STAGE
    assert get_plant_stage(max_points, max_points) == BLOOMED_STAGE
    assert get_plant_stage(max_points - 1, max_points) < BLOOMED_STAGE


@pytest.mark.parametrize("max_points", [1, 3, 7, 10, 18, 33])
def test_entry_points_agree_with_stage(max_points):
    for index in range(1, BLOOMED_STAGE + 1):
        entry = stage_entry_points(index, max_points)
        assert get_plant_stage(entry, max_points) >= index
        if entry > 0:
            assert get_plant_stage(entry - 1, max_points) < index


def test_sapling_breakpoint_uses_exact_percentage():
    # 70% of 10 is exactly 7 points
    assert stage_entry_points(3, 10) == 7
    assert get_plant_stage(7, 10) == 3
    assert get_points_to_next_stage(6, 10) == 1


@pytest.mark.parametrize(
    "points,max_points,expected",
    [(0, 10, 0), (5, 10, 50), (15, 10, 100), (-1, 10, 0), (1, 3, 33), (2, 3, 67), (1, 8, 13)],
)
def test_progress_percentage_is_rounded_and_clamped(points, max_points, expected):
    assert get_progress_percentage(points, max_points) == expected


@pytest.mark.parametrize(
    "points,max_points,expected",
    [(0, 10, 2), (3, 10, 1), (9, 10, 1), (10, 10, 0), (12, 10, 0), (4, 7, 1), (0, 7, 2)],
)
def test_points_to_next_stage(points, max_points, expected):
    assert get_points_to_next_stage(points, max_points) == expected


@pytest.mark.parametrize("bad", [0, -1, 1.5, True, None, "10"])
def test_invalid_threshold_rejected(bad):
    with pytest.raises(InvalidThreshold):
        get_plant_stage(1, bad)
    with pytest.raises(InvalidThreshold):
        get_progress_percentage(1, bad)


def test_stage_lookups_fall_back_to_seed():
    assert get_stage_name(3) == "Budding"
    assert get_stage_filename(BLOOMED_STAGE) == "bloomed.png"
    assert get_stage_placeholder(99) == GROWTH_STAGES[0].placeholder
    assert get_stage_name(-1) == "Seed"


def test_describe_progress():
    progress = describe_progress(4, 10)
    assert progress == {
        "stage": 2,
        "stage_key": "sapling",
        "stage_name": "Sapling",
        "placeholder": GROWTH_STAGES[2].placeholder,
        "percentage": 40,
        "points_to_next_stage": 3,
        "is_bloomed": False,
    }
    assert describe_progress(10, 10)["is_bloomed"] is True
