# Copyright (c) 2026, Learnmap and contributors
# For license information, please see license.txt

"""
Catalog Reader

Read-only view over authored course content (course -> unit -> lesson ->
exercise). The progress engine never writes content; it only asks for the
published units of a course, the published lessons of a unit and the
exercises of a lesson.

Course structures are dictionaries shaped like:

	{
		"id": "COURSE-001",
		"units": [
			{"id": "UNIT-001", "sort_order": 1, "is_published": true,
			 "lessons": [
				{"id": "LESSON-001", "sort_order": 1,
				 "exercises": [{"id": "EX-001", "sort_order": 1}]}
			 ]}
		]
	}

`is_published` defaults to true when absent.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from learnmap.services.progress_engine.structure_loader import (
	load_course_structure,
	validate_structure,
)

logger = logging.getLogger(__name__)


class StructureCatalog:
	"""
	Catalog reader backed by course structure dictionaries

	Structures can be registered up front or, when none is registered for a
	course, loaded lazily from the content directory.
	"""

	def __init__(self, structures: Optional[Iterable[Dict[str, Any]]] = None, load_from_files: bool = False):
		self.load_from_files = load_from_files
		self._courses: Dict[str, Dict[str, Any]] = {}
		self._units: Dict[str, Dict[str, Any]] = {}
		self._lessons: Dict[str, Dict[str, Any]] = {}

		for structure in structures or []:
			self.register(structure)

	def register(self, structure: Dict[str, Any]) -> None:
		"""Index a course structure by course, unit and lesson id."""
		validate_structure(structure)
		course_id = structure["id"]
		self._courses[course_id] = structure

		for unit in structure["units"]:
			self._units[unit["id"]] = dict(unit, course_id=course_id)
			for lesson in unit.get("lessons", []):
				self._lessons[lesson["id"]] = dict(lesson, unit_id=unit["id"], course_id=course_id)

		logger.debug(f"Registered course={course_id} with {len(structure['units'])} units")

	def _get_course(self, course_id: str) -> Optional[Dict[str, Any]]:
		if course_id not in self._courses and self.load_from_files:
			try:
				self.register(load_course_structure(course_id))
			except FileNotFoundError:
				logger.debug(f"No structure file for course={course_id}")
				return None
		return self._courses.get(course_id)

	def has_course(self, course_id: str) -> bool:
		return self._get_course(course_id) is not None

	def get_published_units(self, course_id: str) -> List[Dict[str, Any]]:
		course = self._get_course(course_id)
		if course is None:
			return []

		units = [
			_catalog_node(unit, parent_id=course_id)
			for unit in course["units"]
			if _is_published(unit)
		]
		return sorted(units, key=_sort_key)

	def get_published_lessons(self, unit_id: str) -> List[Dict[str, Any]]:
		unit = self._units.get(unit_id)
		if unit is None:
			return []

		lessons = [
			_catalog_node(lesson, parent_id=unit_id)
			for lesson in unit.get("lessons", [])
			if _is_published(lesson)
		]
		return sorted(lessons, key=_sort_key)

	def get_exercises(self, lesson_id: str) -> List[Dict[str, Any]]:
		"""Get published exercises of a lesson sorted by sort_order."""
		lesson = self._lessons.get(lesson_id)
		if lesson is None:
			return []

		exercises = [
			dict(exercise, lesson_id=lesson_id)
			for exercise in lesson.get("exercises", [])
			if _is_published(exercise)
		]
		return sorted(exercises, key=_sort_key)

	def count_exercises(self, lesson_id: str) -> int:
		return len(self.get_exercises(lesson_id))


def _is_published(node: Dict[str, Any]) -> bool:
	return bool(node.get("is_published", True))


def _sort_key(node: Dict[str, Any]):
	sort_order = node.get("sort_order")
	return (sort_order is None, sort_order if sort_order is not None else 0)


def _catalog_node(node: Dict[str, Any], parent_id: str) -> Dict[str, Any]:
	return {
		"id": node.get("id"),
		"parent_id": parent_id,
		"sort_order": node.get("sort_order"),
		"is_published": _is_published(node),
		"title": node.get("title"),
	}
