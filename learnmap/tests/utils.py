"""
Test Utilities for Learnmap

Helpers for building course structures, engines wired to an in-memory store,
and progress documents in a known state.
"""

from learnmap.services.catalog import StructureCatalog
from learnmap.services.progress_engine.progression_engine import ProgressionEngine
from learnmap.services.progress_store import InMemoryProgressStore


FIXED_NOW = "2026-01-01T00:00:00+00:00"


def make_course(course_id="COURSE-001", units=2, lessons=2, exercises=2):
    """
    Build a course structure with predictable ids.

    Units are UNIT-{u}, lessons LESSON-{u}-{l}, exercises EX-{u}-{l}-{e},
    all 1-based and with sort_order spaced by 10 to show gaps are fine.

    Returns:
        dict: Course structure accepted by StructureCatalog
    """
    return {
        "id": course_id,
        "title": "Test Course",
        "units": [
            {
                "id": f"UNIT-{u}",
                "sort_order": u * 10,
                "lessons": [
                    {
                        "id": f"LESSON-{u}-{l}",
                        "sort_order": l * 10,
                        "exercises": [
                            {"id": f"EX-{u}-{l}-{e}", "sort_order": e}
                            for e in range(1, exercises + 1)
                        ],
                    }
                    for l in range(1, lessons + 1)
                ],
            }
            for u in range(1, units + 1)
        ],
    }


def make_engine(*structures, clock=None, reconcile_on_load=True):
    """
    Build an engine over an in-memory store.

    Returns:
        tuple: (engine, catalog, store)
    """
    catalog = StructureCatalog(structures)
    store = InMemoryProgressStore()
    engine = ProgressionEngine(
        catalog,
        store,
        clock=clock or (lambda: FIXED_NOW),
        default_hearts=5,
        reconcile_on_load=reconcile_on_load,
    )
    return engine, catalog, store


def complete_lesson_exercises(engine, user_id, lesson_id, exercise_ids):
    """Report every given exercise as COMPLETED and return the last result."""
    result = None
    for exercise_id in exercise_ids:
        result = engine.update_exercise_progress(
            user_id,
            lesson_id,
            {"exercise_id": exercise_id, "status": "COMPLETED", "score": 100},
        )
    return result


def statuses(document):
    """
    Flatten a document to comparable statuses.

    Returns:
        dict: unit_id -> (unit status, [lesson statuses])
    """
    return {
        unit["unit_id"]: (unit["status"], [lesson["status"] for lesson in unit["lesson_progress"]])
        for unit in document["unit_progress"]
    }
