from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from reflect_app.core.errors import ResourceNotFound
from reflect_app.modules.journal import (
    EntryDocument,
    JournalService,
    detect_schema_version,
    normalize_entry_document,
)
from reflect_app.modules.plant_growth import PlantGrowthEngine
from reflect_app.modules.time_capsules import TimeCapsuleService
from reflect_app.persistence.models import JournalEntryModel, UserGardenModel

NOW = datetime(2024, 6, 15, 12, 0, 0)

LEGACY_REFLECTION = {
    "id": "legacy-1",
    "authorUid": "someone-else",
    "text": "Long day at the office",
    "mood": "tired",
    "category": "work",
    "thoughtCategory": "work",
    "bodyLocation": "tense_shoulders",
    "meditationType": "body_scan",
    "meditationName": "Body Scan",
    "meditationDuration": 5,
    "entryType": "daily_reflection",
    "createdAt": "2024-06-13T20:30:00",
}


@pytest.fixture
def journal(db, growth_engine):
    return JournalService(db, growth_engine)


def test_detect_schema_version():
    assert detect_schema_version({"text": "x", "moods": ["calm"]}) == 2
    assert detect_schema_version({"text": "x", "mood": "calm"}) == 1
    assert detect_schema_version({"text": "x", "createdAt": "2024-01-01"}) == 1
    assert detect_schema_version({"schema_version": 1, "moods": ["calm"]}) == 1


def test_legacy_single_fields_become_lists():
    doc = normalize_entry_document(LEGACY_REFLECTION)

    assert isinstance(doc, EntryDocument)
    assert doc.moods == ["tired"]
    assert doc.categories == ["work"]
    assert doc.thought_categories == ["work"]
    assert doc.body_locations == ["tense_shoulders"]
    assert doc.meditation_type == "body_scan"
    assert doc.meditation_duration == 5


def test_legacy_lists_win_over_single_values():
    doc = normalize_entry_document({"schema_version": 1, "text": "x", "moods": ["a", "b"], "mood": "c"})
    assert doc.moods == ["a", "b"]


def test_legacy_empty_values_become_empty_lists():
    doc = normalize_entry_document({"text": "x", "mood": "", "category": None, "bodyLocation": None})
    assert doc.moods == []
    assert doc.categories == []
    assert doc.body_locations == []


def test_current_documents_pass_through():
    doc = normalize_entry_document({"text": "x", "moods": ["calm"], "tags": ["t"], "unknown": 1})
    assert doc.moods == ["calm"]
    assert doc.tags == ["t"]


def test_quick_thought_saves_entry_and_awards_one_point(journal, db):
    result = journal.save_quick_thought("user-1", "  Grateful for coffee  ", moods=["happy"], now=NOW)

    entry = result["entry"]
    assert entry.text == "Grateful for coffee"
    assert entry.entry_type == "quick_thought"
    assert entry.moods == ["happy"]
    assert entry.created_date == "2024-06-15"
    assert (entry.created_month, entry.created_day) == (6, 15)
    assert result["growth"]["points_added"] == 1
    assert result["growth_error"] is None

    garden = db.get(UserGardenModel, "user-1")
    assert garden.total_check_ins == 1
    assert garden.total_quick_thoughts == 1
    assert garden.total_reflections == 0


def test_reflection_requires_text_and_mood(journal):
    with pytest.raises(ValueError):
        journal.save_reflection("user-1", "Some text", moods=[])
    with pytest.raises(ValueError):
        journal.save_reflection("user-1", "   ", moods=["calm"])
    with pytest.raises(ValueError):
        journal.save_quick_thought("user-1", "")


def test_reflection_awards_two_points_and_keeps_context(journal, db):
    result = journal.save_reflection(
        "user-1",
        "Breathing helped",
        moods=["anxious", "calm"],
        meditation_type="breath_focus",
        meditation_name="Breath Focus",
        meditation_duration=5,
        thought_categories=["future"],
        thought_content="Exams next week",
        body_locations=["racing_heart"],
        now=NOW,
    )

    entry = result["entry"]
    assert entry.entry_type == "daily_reflection"
    assert entry.thought_categories == ["future"]
    assert entry.body_locations == ["racing_heart"]
    assert result["growth"]["points_added"] == 2

    garden = db.get(UserGardenModel, "user-1")
    assert garden.total_check_ins == 1
    assert garden.total_reflections == 1


def test_growth_failure_keeps_the_entry(db):
    # no catalog: the first plant cannot be drawn
    journal = JournalService(db, PlantGrowthEngine(db))

    result = journal.save_quick_thought("user-1", "Still counts", now=NOW)

    assert result["growth"] is None
    assert "No active plant types" in result["growth_error"]
    assert db.query(JournalEntryModel).count() == 1
    assert db.get(UserGardenModel, "user-1").total_check_ins == 1


def test_import_and_list_normalizes_legacy_documents(journal):
    imported = journal.import_entries(
        "user-1",
        [
            LEGACY_REFLECTION,
            {"text": "Quick one", "quickThought": True, "mood": "happy", "createdAt": "2024-06-14T09:00:00"},
            {"text": "New style", "moods": ["calm"], "entry_type": "quick_thought", "created_at": "2024-06-15T08:00:00"},
        ],
    )
    assert imported == 3

    entries = journal.list_entries("user-1")
    assert [e.text for e in entries] == ["New style", "Quick one", "Long day at the office"]

    legacy = entries[-1]
    assert legacy.id == "legacy-1"
    assert legacy.user_id == "user-1"
    assert legacy.entry_type == "daily_reflection"
    assert legacy.moods == ["tired"]
    assert legacy.created_date == "2024-06-13"
    assert entries[1].entry_type == "quick_thought"


def test_import_rejects_invalid_documents(journal, db):
    with pytest.raises(ValueError):
        journal.import_entries("user-1", [{"text": "ok"}, {"text": {"not": "a string"}}])
    assert db.query(JournalEntryModel).count() == 0


def test_import_rejects_repeated_ids_in_one_batch(journal, db):
    with pytest.raises(ValueError, match="dup"):
        journal.import_entries("user-1", [{"id": "dup", "text": "a"}, {"id": "dup", "text": "b"}])
    assert db.query(JournalEntryModel).count() == 0


def test_import_rejects_ids_already_stored(journal, db):
    journal.import_entries("user-1", [{"id": "dup", "text": "a"}])

    with pytest.raises(ValueError, match="already exist"):
        journal.import_entries("user-2", [{"id": "fresh", "text": "b"}, {"id": "dup", "text": "c"}])

    assert db.query(JournalEntryModel).count() == 1
    assert db.get(JournalEntryModel, "dup").user_id == "user-1"


def test_import_integrity_error_is_a_value_error(journal, monkeypatch):
    def unique_violation(models):
        raise IntegrityError("INSERT INTO journal_entries", {}, Exception("UNIQUE constraint failed"))

    monkeypatch.setattr(journal.repo, "bulk_create", unique_violation)
    with pytest.raises(ValueError, match="conflicts"):
        journal.import_entries("user-1", [{"id": "raced", "text": "a"}])


def test_delete_entry_checks_owner(journal):
    entry = journal.save_quick_thought("user-1", "Delete me", now=NOW)["entry"]

    with pytest.raises(ResourceNotFound):
        journal.delete_entry("user-2", entry.id)

    journal.delete_entry("user-1", entry.id)
    assert journal.list_entries("user-1") == []
    with pytest.raises(ResourceNotFound):
        journal.delete_entry("user-1", entry.id)


def test_feed_merges_delivered_capsules_newest_first(journal, db):
    journal.save_quick_thought("user-1", "Two days ago", now=NOW - timedelta(days=2))
    journal.save_quick_thought("user-1", "This morning", now=NOW - timedelta(hours=6))

    capsules = TimeCapsuleService(db)
    capsules.create("user-1", "Delivered yesterday", open_date=NOW - timedelta(days=1),
                    now=NOW - timedelta(days=10))
    capsules.create("user-1", "Still sealed", open_date=NOW + timedelta(days=5), now=NOW)

    feed = journal.feed("user-1", now=NOW)

    assert [item["type"] for item in feed] == ["entry", "time_capsule", "entry"]
    assert feed[0]["item"]["text"] == "This morning"
    assert feed[1]["item"]["text"] == "Delivered yesterday"
    assert feed[1]["timestamp"] == (NOW - timedelta(days=1)).isoformat()
