"""Unit tests for progress_summary.py"""

from learnmap.services.progress_engine.progress_summary import find_next_lesson, summarize_progress


def _document(*units):
    return {
        "unit_progress": [
            {
                "unit_id": unit_id,
                "status": unit_status,
                "lesson_progress": [
                    {"lesson_id": f"{unit_id}-L{i}", "status": status}
                    for i, status in enumerate(lesson_statuses, start=1)
                ],
            }
            for unit_id, unit_status, lesson_statuses in units
        ]
    }


def test_summary_counts_and_percentage():
    document = _document(
        ("U1", "completed", ["completed", "completed"]),
        ("U2", "in_progress", ["completed", "unlocked", "locked"]),
    )

    summary = summarize_progress(document)

    assert summary["completed_lessons"] == 3
    assert summary["total_lessons"] == 5
    assert summary["completed_units"] == 1
    assert summary["completion_percentage"] == 60.0
    assert summary["suggested_next_lesson_id"] == "U2-L2"


def test_summary_percentage_rounds_to_two_decimals():
    document = _document(("U1", "in_progress", ["completed", "unlocked", "locked"]))

    assert summarize_progress(document)["completion_percentage"] == 33.33


def test_summary_of_empty_document():
    summary = summarize_progress({"unit_progress": []})

    assert summary["completion_percentage"] == 0.0
    assert summary["suggested_next_lesson_id"] is None


def test_next_lesson_skips_locked_units():
    """A lesson left unlocked by a fast track inside a locked unit is not suggested."""
    document = _document(
        ("U1", "locked", ["completed", "unlocked"]),
        ("U2", "unlocked", ["in_progress"]),
    )

    assert find_next_lesson(document) == "U2-L1"


def test_next_lesson_none_when_all_completed():
    document = _document(("U1", "completed", ["completed"]))

    assert find_next_lesson(document) is None
