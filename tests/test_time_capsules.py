from datetime import datetime, timedelta, timezone

import pytest

from reflect_app.core.errors import ResourceNotFound
from reflect_app.modules.time_capsules import TimeCapsuleService

NOW = datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def capsules(db):
    return TimeCapsuleService(db)


def test_create_with_duration(capsules):
    capsule = capsules.create("user-1", "Hello future me", duration="1-month", moods=["hopeful"], now=NOW)

    assert capsule["status"] == "sealed"
    assert capsule["delivered"] is False
    assert capsule["open_date"] == (NOW + timedelta(days=30)).isoformat()
    assert capsule["moods"] == ["hopeful"]
    assert capsule["reply_text"] == ""


def test_create_with_aware_open_date(capsules):
    open_date = datetime(2024, 7, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    capsule = capsules.create("user-1", "Summer", open_date=open_date, now=NOW)
    assert capsule["open_date"] == "2024-07-01T12:00:00"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"text": "", "duration": "1-week"},
        {"text": "x", "duration": "10-years"},
        {"text": "x"},
        {"text": "x", "open_date": NOW - timedelta(days=1)},
        {"text": "x", "open_date": NOW},
    ],
)
def test_create_rejects_invalid_input(capsules, kwargs):
    with pytest.raises(ValueError):
        capsules.create("user-1", now=NOW, **kwargs)


def test_list_splits_sealed_and_delivered(capsules):
    capsules.create("user-1", "Due soon", open_date=NOW + timedelta(days=1), now=NOW)
    capsules.create("user-1", "Due now", open_date=NOW + timedelta(hours=1), now=NOW)
    capsules.create("user-2", "Not mine", duration="1-week", now=NOW)

    later = NOW + timedelta(hours=2)
    listing = capsules.list_capsules("user-1", now=later)

    assert [c["text"] for c in listing["sealed"]] == ["Due soon"]
    assert [c["text"] for c in listing["delivered"]] == ["Due now"]


def test_open_early_is_flagged(capsules):
    capsule = capsules.create("user-1", "Patience", duration="1-week", now=NOW)

    opened = capsules.open("user-1", capsule["id"], now=NOW + timedelta(days=1))

    assert opened["status"] == "opened"
    assert opened["opened_prematurely"] is True
    assert opened["delivered"] is True
    assert opened["opened_at"] == (NOW + timedelta(days=1)).isoformat()


def test_open_on_time_and_idempotent(capsules):
    capsule = capsules.create("user-1", "Right on time", duration="1-week", now=NOW)
    first_open = NOW + timedelta(days=8)

    opened = capsules.open("user-1", capsule["id"], now=first_open)
    again = capsules.open("user-1", capsule["id"], now=first_open + timedelta(days=1))

    assert opened["opened_prematurely"] is False
    assert again["opened_at"] == first_open.isoformat()


def test_reply_only_when_delivered(capsules):
    capsule = capsules.create("user-1", "Write back", duration="1-week", include_reply=True, now=NOW)

    with pytest.raises(ValueError):
        capsules.reply("user-1", capsule["id"], "Too soon", now=NOW + timedelta(days=1))

    replied = capsules.reply("user-1", capsule["id"], "  I made it  ", now=NOW + timedelta(days=7))
    assert replied["reply_text"] == "I made it"
    assert replied["replied_at"] == (NOW + timedelta(days=7)).isoformat()

    with pytest.raises(ValueError):
        capsules.reply("user-1", capsule["id"], "   ", now=NOW + timedelta(days=8))


def test_other_users_cannot_touch_capsule(capsules):
    capsule = capsules.create("user-1", "Private", duration="1-week", now=NOW)

    with pytest.raises(ResourceNotFound):
        capsules.open("user-2", capsule["id"], now=NOW)
    with pytest.raises(ResourceNotFound):
        capsules.delete("user-2", capsule["id"])


def test_delete(capsules):
    capsule = capsules.create("user-1", "Gone", duration="1-week", now=NOW)
    capsules.delete("user-1", capsule["id"])

    assert capsules.list_capsules("user-1", now=NOW) == {"sealed": [], "delivered": []}
    with pytest.raises(ResourceNotFound):
        capsules.delete("user-1", capsule["id"])
