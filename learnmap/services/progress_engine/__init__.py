"""
Progress Engine Service Module

This module tracks, per user and per course, which units and lessons are
locked, unlocked, in progress or completed.

Services:
    - structure_loader: LRU-cached course JSON loading and ordered outlines
    - unlock_evaluator: Locked -> unlocked cascade over the unit/lesson graph
    - transitions: Normal and fast track status transitions
    - progress_initializer: Fresh documents and catalog reconciliation
    - review_ledger: Post-completion review history
    - progress_summary: Completion percentage and next lesson suggestion
    - progression_engine: Event handling orchestration
"""

from learnmap.services.progress_engine.errors import (
    ErrorKind,
    LearnmapError,
)
from learnmap.services.progress_engine.structure_loader import (
    load_course_structure,
    clear_cache,
    validate_structure,
    build_course_outline,
)
from learnmap.services.progress_engine.unlock_evaluator import (
    evaluate_unlocks,
    apply_unlocks,
    cascade_unlocks,
    find_unit_progress,
    find_lesson_progress,
)
from learnmap.services.progress_engine.progress_initializer import (
    build_initial_progress,
    reconcile_progress,
)
from learnmap.services.progress_engine.review_ledger import (
    build_review_entry,
    append_review,
    list_reviews,
)
from learnmap.services.progress_engine.progress_summary import (
    summarize_progress,
    find_next_lesson,
)
from learnmap.services.progress_engine.progression_engine import (
    ProgressionEngine,
)

__all__ = [
    "ErrorKind",
    "LearnmapError",
    "load_course_structure",
    "clear_cache",
    "validate_structure",
    "build_course_outline",
    "evaluate_unlocks",
    "apply_unlocks",
    "cascade_unlocks",
    "find_unit_progress",
    "find_lesson_progress",
    "build_initial_progress",
    "reconcile_progress",
    "build_review_entry",
    "append_review",
    "list_reviews",
    "summarize_progress",
    "find_next_lesson",
    "ProgressionEngine",
]
