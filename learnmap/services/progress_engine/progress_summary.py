# Copyright (c) 2026, Learnmap and contributors
# For license information, please see license.txt

"""Progress summary for progress engine.

Derives the numbers a learnmap screen shows next to the tree: completion
percentage, lesson and unit counts, and the lesson to continue with.
"""

from typing import Any, Dict, Optional

from learnmap.services.progress_engine.constants import (
	STATUS_COMPLETED,
	STATUS_IN_PROGRESS,
	STATUS_LOCKED,
	STATUS_UNLOCKED,
)
from learnmap.services.progress_engine.unlock_evaluator import flatten_lessons


def summarize_progress(document: Dict[str, Any]) -> Dict[str, Any]:
	"""Summarize a progress document.

	Args:
		document: The progress document

	Returns:
		Dictionary containing:
		- completion_percentage: Percentage of lessons completed (0-100)
		- completed_lessons: Number of completed lessons
		- total_lessons: Total number of lessons
		- completed_units: Number of completed units
		- suggested_next_lesson_id: Next open lesson ID or None
	"""
	lessons = flatten_lessons(document)
	completed_lessons = sum(1 for lesson in lessons if lesson["status"] == STATUS_COMPLETED)
	completed_units = sum(
		1 for unit in document.get("unit_progress", [])
		if unit["status"] == STATUS_COMPLETED
	)

	return {
		"completion_percentage": _calculate_completion_percentage(completed_lessons, len(lessons)),
		"completed_lessons": completed_lessons,
		"total_lessons": len(lessons),
		"completed_units": completed_units,
		"suggested_next_lesson_id": find_next_lesson(document),
	}


def _calculate_completion_percentage(completed_lessons: int, total_lessons: int) -> float:
	if total_lessons == 0:
		return 0.0

	percentage = (completed_lessons / total_lessons) * 100
	return round(percentage, 2)


def find_next_lesson(document: Dict[str, Any]) -> Optional[str]:
	"""Find the first open lesson inside a unit that is not locked.

	Returns:
		Lesson ID or None if nothing is open
	"""
	for unit in document.get("unit_progress", []):
		if unit["status"] in (STATUS_LOCKED, STATUS_COMPLETED):
			continue

		for lesson in unit.get("lesson_progress", []):
			if lesson["status"] in (STATUS_UNLOCKED, STATUS_IN_PROGRESS):
				return lesson["lesson_id"]

	return None
