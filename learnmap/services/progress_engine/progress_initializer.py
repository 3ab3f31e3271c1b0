# Copyright (c) 2026, Learnmap and contributors
# For license information, please see license.txt

"""Progress initializer for progress engine.

Builds the progress document for a user's first interaction with a course
and keeps existing documents aligned with content published later on.
"""

import logging
from typing import Any, Dict, List

from learnmap.services.progress_engine.constants import (
	DEFAULT_HEARTS,
	STATUS_LOCKED,
	STATUS_UNLOCKED,
)
from learnmap.services.progress_engine.errors import ContentIncompleteError

logger = logging.getLogger(__name__)


def build_initial_progress(
	user_id: str,
	course_id: str,
	outline: List[Dict[str, Any]],
	now: str,
	hearts: int = DEFAULT_HEARTS
) -> Dict[str, Any]:
	"""Build a fresh progress document for a user and course.

	The first unit and its first lesson start unlocked, everything else
	starts locked. Exercise progress is filled in lazily on first attempt.

	Args:
		user_id: The user identifier
		course_id: The course identifier
		outline: Ordered course outline, units without lessons already removed
		now: Creation timestamp
		hearts: Starting hearts

	Returns:
		New progress document

	Raises:
		ContentIncompleteError: If the outline has no unit with lessons
	"""
	if not outline:
		raise ContentIncompleteError("No units with lessons found for this course")

	unit_progress = []
	for unit in outline:
		is_first_unit = not unit_progress
		unit_node = new_unit_node(unit, STATUS_UNLOCKED if is_first_unit else STATUS_LOCKED)
		if is_first_unit:
			unit_node["lesson_progress"][0]["status"] = STATUS_UNLOCKED
		unit_progress.append(unit_node)

	logger.info(
		f"Initialized progress for user={user_id}, course={course_id} "
		f"with {len(unit_progress)} units"
	)

	return {
		"user_id": user_id,
		"course_id": course_id,
		"unit_progress": unit_progress,
		"hearts": hearts,
		"last_heart_update": now,
		"fast_track_history": [],
		"version": 0,
		"created_at": now,
		"updated_at": now,
	}


def new_unit_node(unit: Dict[str, Any], status: str = STATUS_LOCKED) -> Dict[str, Any]:
	return {
		"unit_id": unit["id"],
		"status": status,
		"completed_at": None,
		"lesson_progress": [new_lesson_node(lesson) for lesson in unit.get("lessons", [])],
	}


def new_lesson_node(lesson: Dict[str, Any], status: str = STATUS_LOCKED) -> Dict[str, Any]:
	return {
		"lesson_id": lesson["id"],
		"status": status,
		"completed_at": None,
		"exercise_progress": [],
		"review_history": [],
	}


def reconcile_progress(document: Dict[str, Any], outline: List[Dict[str, Any]]) -> int:
	"""Add locked nodes for catalog content the document does not know yet.

	Units and lessons are re-ordered to catalog order. Nodes whose content is
	no longer published are kept, after the catalog ones, since progress is
	never deleted.

	Args:
		document: The progress document (will be mutated)
		outline: Ordered course outline

	Returns:
		Number of unit and lesson nodes added
	"""
	added = 0
	units_by_id = {unit["unit_id"]: unit for unit in document.get("unit_progress", [])}
	unit_order = {unit["id"]: position for position, unit in enumerate(outline)}

	for catalog_unit in outline:
		unit = units_by_id.get(catalog_unit["id"])

		if unit is None:
			unit = new_unit_node(catalog_unit)
			units_by_id[catalog_unit["id"]] = unit
			added += 1 + len(unit["lesson_progress"])
			logger.info(f"Added progress for new unit={catalog_unit['id']}")
			continue

		known_lessons = {lesson["lesson_id"] for lesson in unit["lesson_progress"]}
		for catalog_lesson in catalog_unit["lessons"]:
			if catalog_lesson["id"] not in known_lessons:
				unit["lesson_progress"].append(new_lesson_node(catalog_lesson))
				added += 1
				logger.info(f"Added progress for new lesson={catalog_lesson['id']}")

		lesson_order = {lesson["id"]: position for position, lesson in enumerate(catalog_unit["lessons"])}
		unit["lesson_progress"].sort(key=lambda lesson: _position(lesson_order, lesson["lesson_id"]))

	document["unit_progress"] = sorted(
		units_by_id.values(),
		key=lambda unit: _position(unit_order, unit["unit_id"])
	)

	return added


def _position(order: Dict[str, int], node_id: str) -> int:
	return order.get(node_id, len(order))
