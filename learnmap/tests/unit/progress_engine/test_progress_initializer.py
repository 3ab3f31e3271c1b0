"""Unit tests for progress_initializer.py"""

import pytest

from learnmap.services.progress_engine.errors import ContentIncompleteError
from learnmap.services.progress_engine.progress_initializer import (
    build_initial_progress,
    reconcile_progress,
)

NOW = "2026-01-01T00:00:00+00:00"


@pytest.fixture
def outline():
    return [
        {"id": "UNIT-1", "sort_order": 1, "lessons": [
            {"id": "LESSON-1-1", "sort_order": 1},
            {"id": "LESSON-1-2", "sort_order": 2},
        ]},
        {"id": "UNIT-2", "sort_order": 2, "lessons": [
            {"id": "LESSON-2-1", "sort_order": 1},
        ]},
    ]


def test_initial_progress_unlocks_first_unit_and_lesson(outline):
    document = build_initial_progress("user-1", "COURSE-001", outline, now=NOW)

    unit_1, unit_2 = document["unit_progress"]
    assert unit_1["status"] == "unlocked"
    assert [l["status"] for l in unit_1["lesson_progress"]] == ["unlocked", "locked"]
    assert unit_2["status"] == "locked"
    assert [l["status"] for l in unit_2["lesson_progress"]] == ["locked"]


def test_initial_progress_document_fields(outline):
    document = build_initial_progress("user-1", "COURSE-001", outline, now=NOW, hearts=3)

    assert document["user_id"] == "user-1"
    assert document["course_id"] == "COURSE-001"
    assert document["hearts"] == 3
    assert document["last_heart_update"] == NOW
    assert document["fast_track_history"] == []
    assert document["version"] == 0
    lesson = document["unit_progress"][0]["lesson_progress"][0]
    assert lesson["exercise_progress"] == []
    assert lesson["review_history"] == []
    assert lesson["completed_at"] is None


def test_initial_progress_without_units_fails():
    with pytest.raises(ContentIncompleteError):
        build_initial_progress("user-1", "COURSE-001", [], now=NOW)


def test_reconcile_adds_new_lesson_and_unit(outline):
    document = build_initial_progress("user-1", "COURSE-001", outline, now=NOW)
    outline[0]["lessons"].insert(1, {"id": "LESSON-1-NEW", "sort_order": 1})
    outline.insert(1, {"id": "UNIT-NEW", "sort_order": 2, "lessons": [{"id": "LESSON-N-1", "sort_order": 1}]})

    added = reconcile_progress(document, outline)

    assert added == 3
    assert [u["unit_id"] for u in document["unit_progress"]] == ["UNIT-1", "UNIT-NEW", "UNIT-2"]
    unit_1 = document["unit_progress"][0]
    assert [l["lesson_id"] for l in unit_1["lesson_progress"]] == ["LESSON-1-1", "LESSON-1-NEW", "LESSON-1-2"]
    assert unit_1["lesson_progress"][1]["status"] == "locked"
    assert document["unit_progress"][1]["status"] == "locked"


def test_reconcile_keeps_unpublished_nodes_last(outline):
    document = build_initial_progress("user-1", "COURSE-001", outline, now=NOW)
    document["unit_progress"][0]["lesson_progress"][0]["status"] = "completed"
    del outline[0]

    added = reconcile_progress(document, outline)

    assert added == 0
    assert [u["unit_id"] for u in document["unit_progress"]] == ["UNIT-2", "UNIT-1"]
    assert document["unit_progress"][1]["lesson_progress"][0]["status"] == "completed"


def test_reconcile_is_noop_when_in_sync(outline):
    document = build_initial_progress("user-1", "COURSE-001", outline, now=NOW)

    assert reconcile_progress(document, outline) == 0
