import pytest

from reflect_app.modules.meditation import MEDITATIONS, get_meditation, suggest_meditations


def ids(suggestions):
    return [s["id"] for s in suggestions]


def test_library():
    assert len(MEDITATIONS) == 5
    assert get_meditation("grounding").name == "5-4-3-2-1 Grounding"
    assert get_meditation("nope") is None


def test_no_answers_keeps_library_order():
    suggestions = suggest_meditations()
    assert ids(suggestions) == ["body_scan", "breath_focus", "thought_observation"]
    assert all(s["score"] == 0 for s in suggestions)


def test_scores_body_locations_and_thought_categories():
    suggestions = suggest_meditations(thought_categories=["work"], body_locations=["racing_heart"])
    assert ids(suggestions) == ["grounding", "breath_focus", "thought_observation"]
    assert [s["score"] for s in suggestions] == [4, 2, 2]


def test_ties_keep_library_order():
    suggestions = suggest_meditations(body_locations=["tight_chest", "jittery_stomach"])
    assert ids(suggestions) == ["body_scan", "breath_focus", "thought_observation"]
    assert [s["score"] for s in suggestions] == [4, 4, 0]


def test_relationship_worries_suggest_loving_kindness():
    suggestions = suggest_meditations(thought_categories=["relationship", "family"])
    assert suggestions[0]["id"] == "loving_kindness"
    assert suggestions[0]["score"] == 4


def test_unknown_answers_rejected():
    with pytest.raises(ValueError):
        suggest_meditations(thought_categories=["aliens"])
    with pytest.raises(ValueError):
        suggest_meditations(body_locations=["left_elbow"])
