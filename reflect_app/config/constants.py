# reflect_app/config/constants.py

"""
Centralized configuration of the quantitative and qualitative parameters
used by the garden, journal and time-capsule features.
"""

import os
from collections import namedtuple

# ━━━━━━━━━━━━━━━━━━━━━━━━━━ PATH & ENV CONFIG ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
PLANT_TYPES_FILE = os.getenv(
    "PLANT_TYPES_FILE",
    os.path.join(os.path.dirname(__file__), "plant_types.json")
)
# Bundled sample catalog, loaded into an empty plant_types table.

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ GROWTH STAGES ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
GrowthStage = namedtuple(
    "GrowthStage", ["index", "key", "name", "upper_pct", "filename", "placeholder"]
)

# Ordered seed -> bloomed. ``upper_pct`` is the exclusive upper bound of the
# stage as a percentage of max points; the terminal stage has none.
GROWTH_STAGES = (
    GrowthStage(0, "seed",    "Seed",    20,   "seed.png",    "🌰"),
    GrowthStage(1, "sprout",  "Sprout",  40,   "sprout.png",  "🌱"),
    GrowthStage(2, "sapling", "Sapling", 70,   "sapling.png", "🌿"),
    GrowthStage(3, "bud",     "Budding", 100,  "bud.png",     "🌺"),
    GrowthStage(4, "bloomed", "Bloomed", None, "bloomed.png", "🌸"),
)

SEED_STAGE = GROWTH_STAGES[0].index
BLOOMED_STAGE = GROWTH_STAGES[-1].index

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ POINTS ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
QUICK_THOUGHT_POINTS = 1
REFLECTION_POINTS = 2

DEFAULT_POINTS_TO_BLOOM = 10
# Used when a catalog entry is missing or unreadable at assignment time.

DEFAULT_PLANT_ID = "default_plant"
DEFAULT_PLANT_NAME = "Unknown Plant"

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ JOURNAL ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
ENTRY_TYPE_QUICK_THOUGHT = "quick_thought"
ENTRY_TYPE_REFLECTION = "daily_reflection"
ENTRY_TYPES = (ENTRY_TYPE_QUICK_THOUGHT, ENTRY_TYPE_REFLECTION)

ENTRY_SCHEMA_LEGACY = 1   # single mood / category fields
ENTRY_SCHEMA_CURRENT = 2  # list-valued moods / categories

THOUGHT_CATEGORIES = ("work", "relationship", "self", "family", "health", "future", "other")
BODY_LOCATIONS = (
    "tense_shoulders",
    "jittery_stomach",
    "tight_chest",
    "racing_heart",
    "heavy_head",
    "calm_body",
    "tired_everywhere",
)

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━ TIME CAPSULES ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
CAPSULE_SEALED = "sealed"
CAPSULE_OPENED = "opened"

CAPSULE_DURATIONS = {
    "1-week": 7,
    "1-month": 30,
    "3-months": 90,
    "6-months": 180,
    "1-year": 365,
    "2-years": 730,
}

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ ON THIS DAY ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
ON_THIS_DAY_PERIODS = {
    "yesterday": 1,
    "week_ago": 7,
    "month_ago": 30,
    "year_ago": 365,
}

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━ MEDITATION ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
MEDITATION_MATCH_SCORE = 2
MEDITATION_SUGGESTION_COUNT = 3
