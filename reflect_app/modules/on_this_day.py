# reflect_app/modules/on_this_day.py

import logging
from datetime import datetime, time, timedelta
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from reflect_app.config.constants import ON_THIS_DAY_PERIODS
from reflect_app.core.utils import utcnow
from reflect_app.modules.journal import entry_from_record
from reflect_app.modules.time_capsules import capsule_to_dict
from reflect_app.persistence.repository import JournalEntryRepository, TimeCapsuleRepository

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def day_bounds(now: datetime, days_ago: int) -> Tuple[datetime, datetime]:
    """First and last instant of the UTC calendar day *days_ago* days before *now*."""
    day = (now - timedelta(days=days_ago)).date()
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def on_this_day(db: Session, user_id: str, now: Optional[datetime] = None) -> Dict[str, Dict[str, Any]]:
    """
    Memories from yesterday, a week, a month and a year ago.

    Returns ``{period: {"date", "entries", "capsules"}}``; capsules are the
    opened ones whose open date falls on that day. Both lists are newest first.
    """
    now = now or utcnow()
    entries_repo = JournalEntryRepository(db)
    capsules_repo = TimeCapsuleRepository(db)

    memories = {}
    for period, days_ago in ON_THIS_DAY_PERIODS.items():
        start, end = day_bounds(now, days_ago)
        entries = sorted(
            entries_repo.list_entries_between(user_id, start, end),
            key=lambda m: m.created_at,
            reverse=True,
        )
        capsules = sorted(
            capsules_repo.list_opened_between(user_id, start, end),
            key=lambda m: m.open_date,
            reverse=True,
        )
        memories[period] = {
            "date": start.date().isoformat(),
            "entries": [entry_from_record(m).model_dump(mode="json") for m in entries],
            "capsules": [capsule_to_dict(c, now) for c in capsules],
        }

    found = sum(len(m["entries"]) + len(m["capsules"]) for m in memories.values())
    logger.info("Found %d On This Day memories for user %s.", found, user_id)
    return memories
