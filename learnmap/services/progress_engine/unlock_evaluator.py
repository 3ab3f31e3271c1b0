# Copyright (c) 2026, Learnmap and contributors
# For license information, please see license.txt

"""Unlock evaluator for progress engine.

This module computes which units and lessons of a progress document should
be unlocked, given the catalog outline of the course and the completion
facts already recorded in the document.

Rules (siblings are always ordered by catalog sort_order):
1. The first unit is unlocked unconditionally.
2. Any other unit is unlocked once the unit before it is completed.
3. The first lesson of a unit is unlocked once its unit is unlocked (or further).
4. Any other lesson is unlocked once the lesson before it is completed.

The evaluator only ever moves a node from locked to unlocked. It never
touches completion facts and never demotes a status, so running it again on
its own output changes nothing.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from learnmap.services.progress_engine.constants import (
	STATUS_COMPLETED,
	STATUS_LOCKED,
	STATUS_UNLOCKED,
)
from learnmap.services.progress_engine.errors import CatalogStructureError
from learnmap.services.progress_engine.structure_loader import sort_siblings

logger = logging.getLogger(__name__)


def evaluate_unlocks(outline: List[Dict[str, Any]], document: Dict[str, Any]) -> List[Dict[str, Any]]:
	"""Compute unlock mutations for a progress document.

	Args:
		outline: Ordered course outline (units with lessons) from the catalog
		document: The progress document (not mutated)

	Returns:
		List of mutations, each {"type", "unit_id", "lesson_id", "from", "to"}

	Raises:
		CatalogStructureError: If the outline is missing or badly ordered
	"""
	if outline is None:
		raise CatalogStructureError("Catalog ordering is missing")

	units_by_id = {unit["unit_id"]: unit for unit in document.get("unit_progress", [])}
	mutations = []
	prev_unit_status = None

	for i, catalog_unit in enumerate(sort_siblings(outline, "unit")):
		unit = units_by_id.get(catalog_unit["id"])

		if unit is None:
			logger.debug(f"No progress for unit={catalog_unit['id']}, skipping")
			prev_unit_status = None
			continue

		unit_status = unit["status"]
		if unit_status == STATUS_LOCKED and _should_unlock_unit(i, prev_unit_status):
			mutations.append(_mutation("unit", unit["unit_id"], None))
			unit_status = STATUS_UNLOCKED

		mutations.extend(_evaluate_lessons(catalog_unit, unit, unit_status))
		prev_unit_status = unit_status

	if mutations:
		logger.debug(f"Evaluator produced {len(mutations)} unlock mutations")

	return mutations


def _evaluate_lessons(catalog_unit: Dict[str, Any], unit: Dict[str, Any], unit_status: str) -> List[Dict[str, Any]]:
	lessons_by_id = {lesson["lesson_id"]: lesson for lesson in unit.get("lesson_progress", [])}
	mutations = []
	prev_lesson_status = None

	for j, catalog_lesson in enumerate(sort_siblings(catalog_unit.get("lessons", []), "lesson")):
		lesson = lessons_by_id.get(catalog_lesson["id"])

		if lesson is None:
			logger.debug(f"No progress for lesson={catalog_lesson['id']}, skipping")
			prev_lesson_status = None
			continue

		if lesson["status"] == STATUS_LOCKED and _should_unlock_lesson(j, unit_status, prev_lesson_status):
			mutations.append(_mutation("lesson", unit["unit_id"], lesson["lesson_id"]))
			prev_lesson_status = STATUS_UNLOCKED
		else:
			prev_lesson_status = lesson["status"]

	return mutations


def _should_unlock_unit(index: int, prev_unit_status: Optional[str]) -> bool:
	"""Determine if a unit qualifies for unlock.

	Args:
		index: Position of the unit in catalog order
		prev_unit_status: Status of the previous unit, None if it has no progress

	Returns:
		True if the unit should be unlocked
	"""
	if index == 0:
		return True

	return prev_unit_status == STATUS_COMPLETED


def _should_unlock_lesson(index: int, unit_status: str, prev_lesson_status: Optional[str]) -> bool:
	"""Determine if a lesson qualifies for unlock.

	Args:
		index: Position of the lesson in its unit
		unit_status: Effective status of the owning unit
		prev_lesson_status: Status of the previous lesson, None if first or missing

	Returns:
		True if the lesson should be unlocked
	"""
	if index == 0 and unit_status != STATUS_LOCKED:
		return True

	return prev_lesson_status == STATUS_COMPLETED


def _mutation(node_type: str, unit_id: str, lesson_id: Optional[str]) -> Dict[str, Any]:
	return {
		"type": node_type,
		"unit_id": unit_id,
		"lesson_id": lesson_id,
		"from": STATUS_LOCKED,
		"to": STATUS_UNLOCKED,
	}


def apply_unlocks(document: Dict[str, Any], mutations: List[Dict[str, Any]]) -> int:
	"""Apply unlock mutations to a progress document in place.

	Args:
		document: The progress document (will be mutated)
		mutations: Mutations produced by evaluate_unlocks

	Returns:
		Number of nodes actually unlocked
	"""
	applied = 0

	for mutation in mutations:
		unit = find_unit_progress(document, mutation["unit_id"])
		if unit is None:
			continue

		node = unit
		if mutation["type"] == "lesson":
			node = _find_lesson_in_unit(unit, mutation["lesson_id"])
			if node is None:
				continue

		if node["status"] != mutation["from"]:
			continue

		node["status"] = mutation["to"]
		applied += 1
		logger.info(
			f"Unlocked {mutation['type']} "
			f"{mutation['lesson_id'] if mutation['type'] == 'lesson' else mutation['unit_id']}"
		)

	return applied


def cascade_unlocks(outline: List[Dict[str, Any]], document: Dict[str, Any]) -> List[Dict[str, Any]]:
	"""Evaluate and apply unlocks in one step.

	Args:
		outline: Ordered course outline
		document: The progress document (will be mutated)

	Returns:
		The mutations that were applied
	"""
	mutations = evaluate_unlocks(outline, document)
	apply_unlocks(document, mutations)
	return mutations


def is_unlock_allowed(
	outline: List[Dict[str, Any]],
	document: Dict[str, Any],
	unit_id: str,
	lesson_id: Optional[str] = None
) -> bool:
	"""Check whether the evaluator would unlock a node from the current document.

	Args:
		outline: Ordered course outline
		document: The progress document (not mutated)
		unit_id: Unit to check, or the owning unit of lesson_id
		lesson_id: Lesson to check, None to check the unit itself
	"""
	node_type = "lesson" if lesson_id else "unit"
	return any(
		mutation["type"] == node_type
		and mutation["unit_id"] == unit_id
		and mutation["lesson_id"] == lesson_id
		for mutation in evaluate_unlocks(outline, document)
	)


def find_unit_progress(document: Dict[str, Any], unit_id: str) -> Optional[Dict[str, Any]]:
	"""Find a unit progress node by unit ID."""
	for unit in document.get("unit_progress", []):
		if unit["unit_id"] == unit_id:
			return unit
	return None


def find_lesson_progress(document: Dict[str, Any], lesson_id: str) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
	"""Find a lesson progress node anywhere in the document.

	Args:
		document: The progress document
		lesson_id: The lesson ID to find

	Returns:
		Tuple of (unit node, lesson node), both None if not found
	"""
	for unit in document.get("unit_progress", []):
		lesson = _find_lesson_in_unit(unit, lesson_id)
		if lesson is not None:
			return unit, lesson
	return None, None


def _find_lesson_in_unit(unit: Dict[str, Any], lesson_id: str) -> Optional[Dict[str, Any]]:
	for lesson in unit.get("lesson_progress", []):
		if lesson["lesson_id"] == lesson_id:
			return lesson
	return None


def flatten_lessons(document: Dict[str, Any]) -> List[Dict[str, Any]]:
	"""Flatten a progress document to its lesson nodes in document order."""
	return [
		lesson
		for unit in document.get("unit_progress", [])
		for lesson in unit.get("lesson_progress", [])
	]
