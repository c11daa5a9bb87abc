from datetime import datetime, timedelta

from reflect_app.modules.journal import JournalService
from reflect_app.modules.on_this_day import day_bounds, on_this_day
from reflect_app.modules.plant_growth import PlantGrowthEngine
from reflect_app.modules.time_capsules import TimeCapsuleService

NOW = datetime(2024, 6, 15, 12, 0, 0)


def test_day_bounds_cover_whole_utc_day():
    start, end = day_bounds(NOW, 7)
    assert start == datetime(2024, 6, 8, 0, 0, 0)
    assert end.date() == start.date()
    assert end > datetime(2024, 6, 8, 23, 59, 59)


def test_memories_by_period(db):
    journal = JournalService(db, PlantGrowthEngine(db))
    journal.import_entries(
        "user-1",
        [
            {"text": "Yesterday early", "moods": ["calm"], "created_at": "2024-06-14T00:05:00"},
            {"text": "Yesterday late", "moods": ["calm"], "created_at": "2024-06-14T23:55:00"},
            {"text": "Three days ago", "moods": ["calm"], "created_at": "2024-06-12T10:00:00"},
            {"text": "A week ago", "mood": "sad", "createdAt": "2024-06-08T18:00:00"},
            {"text": "Last year", "moods": ["proud"], "created_at": "2023-06-16T09:00:00"},
        ],
    )
    journal.import_entries("user-2", [{"text": "Other user", "created_at": "2024-06-14T10:00:00"}])

    capsules = TimeCapsuleService(db)
    month_ago = NOW - timedelta(days=30)
    opened = capsules.create("user-1", "Opened a month ago", open_date=month_ago, now=month_ago - timedelta(days=7))
    capsules.open("user-1", opened["id"], now=month_ago + timedelta(hours=1))
    capsules.create("user-1", "Never opened", open_date=month_ago, now=month_ago - timedelta(days=7))

    memories = on_this_day(db, "user-1", now=NOW)

    assert set(memories) == {"yesterday", "week_ago", "month_ago", "year_ago"}
    assert memories["yesterday"]["date"] == "2024-06-14"
    assert [e["text"] for e in memories["yesterday"]["entries"]] == ["Yesterday late", "Yesterday early"]
    assert [e["moods"] for e in memories["week_ago"]["entries"]] == [["sad"]]
    assert [c["text"] for c in memories["month_ago"]["capsules"]] == ["Opened a month ago"]
    assert memories["month_ago"]["entries"] == []
    # 365 days before 2024-06-15 is 2023-06-16 (leap year)
    assert [e["text"] for e in memories["year_ago"]["entries"]] == ["Last year"]
    assert memories["yesterday"]["capsules"] == []
