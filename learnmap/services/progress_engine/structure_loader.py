# Copyright (c) 2026, Learnmap and contributors
# For license information, please see license.txt

"""Structure loader for progress engine.

This module handles loading and caching of course structure JSON files and
turns the catalog reader's view of a course into the ordered outline the
unlock evaluator and the initializer work from.
"""

import json
import logging
import os
from functools import lru_cache
from typing import Any, Dict, List

from learnmap.config import get_conf
from learnmap.services.progress_engine.errors import CatalogStructureError

logger = logging.getLogger(__name__)


COURSE_CACHE_SIZE = 32

# Child list key and level name at each depth below a course
_CHILD_LEVELS = (("units", "unit"), ("lessons", "lesson"), ("exercises", "exercise"))


def course_file_path(course_id: str) -> str:
	"""Path of a course's JSON file inside the configured content directory."""
	return os.path.abspath(os.path.join(get_conf()["content_path"], f"{course_id}.json"))


@lru_cache(maxsize=COURSE_CACHE_SIZE)
def load_course_structure(course_id: str) -> Dict[str, Any]:
	"""Read a course JSON file, caching the parsed structure per course.

	Raises:
		FileNotFoundError: If the course has no JSON file
		json.JSONDecodeError: If the file is not valid JSON
	"""
	path = course_file_path(course_id)
	with open(path, "r", encoding="utf-8") as f:
		structure = json.load(f)

	logger.debug(f"Read course={course_id} from {path}")
	return structure


def clear_cache():
	"""Drop cached course structures after content files change."""
	load_course_structure.cache_clear()


def validate_structure(structure: Dict[str, Any]) -> bool:
	"""Check that a course and every unit, lesson and exercise under it has an id.

	Ordering is not checked here; sort_siblings rejects bad sort orders when
	an outline is built.

	Raises:
		ValueError: If an id is missing or a child list is not a list
	"""
	if not structure.get("id"):
		raise ValueError("Course structure missing id")
	if "units" not in structure:
		raise ValueError(f"Course {structure['id']} missing units")

	_check_children(structure, depth=0)
	return True


def _check_children(node: Dict[str, Any], depth: int) -> None:
	if depth == len(_CHILD_LEVELS):
		return

	key, level = _CHILD_LEVELS[depth]
	children = node.get(key, [])
	if not isinstance(children, list):
		raise ValueError(f"{node['id']} {key} must be a list")

	for child in children:
		if not isinstance(child, dict) or not child.get("id"):
			raise ValueError(f"{node['id']} has a {level} without id")
		_check_children(child, depth + 1)


def sort_siblings(nodes: List[Dict[str, Any]], level: str) -> List[Dict[str, Any]]:
	"""Sort sibling catalog nodes by sort_order.

	Args:
		nodes: Sibling nodes (units of a course or lessons of a unit)
		level: Node level name used in error messages

	Returns:
		New list sorted by sort_order

	Raises:
		CatalogStructureError: If a node lacks an id or sort_order, or two
			siblings share the same sort_order
	"""
	seen_orders = set()

	for node in nodes:
		if not node.get("id"):
			raise CatalogStructureError(f"Catalog {level} missing id")

		sort_order = node.get("sort_order")
		if not isinstance(sort_order, int) or isinstance(sort_order, bool):
			raise CatalogStructureError(f"Catalog {level} {node['id']} missing sort_order")

		if sort_order in seen_orders:
			raise CatalogStructureError(
				f"Catalog {level} {node['id']} shares sort_order {sort_order} with a sibling"
			)
		seen_orders.add(sort_order)

	return sorted(nodes, key=lambda node: node["sort_order"])


def build_course_outline(catalog, course_id: str) -> List[Dict[str, Any]]:
	"""Build the ordered unit/lesson outline for a course.

	Units without published lessons are left out: they can never anchor an
	unlock chain and would otherwise block the unit after them.

	Args:
		catalog: Catalog reader
		course_id: The course identifier

	Returns:
		List of {"id", "sort_order", "lessons": [{"id", "sort_order"}]}
		in catalog order
	"""
	outline = []

	for unit in sort_siblings(catalog.get_published_units(course_id), "unit"):
		lessons = sort_siblings(catalog.get_published_lessons(unit["id"]), "lesson")

		if not lessons:
			logger.debug(f"Unit {unit['id']} has no published lessons, skipping")
			continue

		outline.append({
			"id": unit["id"],
			"sort_order": unit["sort_order"],
			"lessons": [
				{"id": lesson["id"], "sort_order": lesson["sort_order"]}
				for lesson in lessons
			],
		})

	logger.debug(f"Built outline for course={course_id} with {len(outline)} units")
	return outline


def get_lesson_ids(outline: List[Dict[str, Any]]) -> List[str]:
	"""Get all lesson IDs from the outline in catalog order."""
	return [lesson["id"] for unit in outline for lesson in unit["lessons"]]
