# Copyright (c) 2026, Learnmap and contributors
# For license information, please see license.txt

"""State transitions for unit and lesson progress nodes.

Nodes move one way through locked -> unlocked -> in_progress -> completed.
Two tables describe the legal forward moves: the normal one and the fast
track one, which may jump straight to completed. Requests that would move a
node backwards (or leave it where it is) are no-ops, so replayed events are
harmless.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from learnmap.services.progress_engine.constants import (
	EXERCISE_STATUS_RANK,
	EXERCISE_STATUSES,
	FAST_TRACK_TRANSITIONS,
	NODE_STATUS_RANK,
	NODE_STATUSES,
	NORMAL_TRANSITIONS,
	STATUS_COMPLETED,
	STATUS_IN_PROGRESS,
	STATUS_UNLOCKED,
)
from learnmap.services.progress_engine.errors import InvalidStateError

logger = logging.getLogger(__name__)


def utc_now() -> str:
	return datetime.now(timezone.utc).isoformat()


def coerce_timestamp(value: Any, default: str) -> str:
	"""Normalize a caller supplied timestamp to an ISO string.

	Args:
		value: datetime, ISO string, or None
		default: Timestamp used when value is empty

	Returns:
		ISO-8601 timestamp string

	Raises:
		InvalidStateError: If value is not a parseable timestamp
	"""
	if value is None or value == "":
		return default

	if isinstance(value, datetime):
		return value.isoformat()

	try:
		return datetime.fromisoformat(str(value).replace("Z", "+00:00")).isoformat()
	except ValueError:
		raise InvalidStateError(f"Invalid timestamp: {value}")


def normalize_node_status(status: str) -> str:
	normalized = str(status).strip().lower()
	if normalized not in NODE_STATUSES:
		raise InvalidStateError(f"Invalid status: {status}")
	return normalized


def normalize_exercise_status(status: str) -> str:
	normalized = str(status).strip().upper()
	if normalized not in EXERCISE_STATUSES:
		raise InvalidStateError(f"Invalid exercise status: {status}")
	return normalized


def transition_status(node: Dict[str, Any], target: str, fast_track: bool = False) -> bool:
	"""Move a unit or lesson node forward to target status.

	Args:
		node: Unit or lesson progress node (will be mutated)
		target: Requested status
		fast_track: Use the fast track table instead of the normal one

	Returns:
		True if the status changed, False for a same-state or backward request

	Raises:
		InvalidStateError: If the forward move is not allowed
	"""
	current = node["status"]

	if NODE_STATUS_RANK[target] <= NODE_STATUS_RANK[current]:
		if target != current:
			logger.debug(f"Ignoring regression {current} -> {target}")
		return False

	table = FAST_TRACK_TRANSITIONS if fast_track else NORMAL_TRANSITIONS
	if target not in table[current]:
		raise InvalidStateError(f"Cannot move from {current} to {target}")

	node["status"] = target
	return True


def complete_node(node: Dict[str, Any], completed_at: str, fast_track: bool = False) -> bool:
	"""Mark a unit or lesson node completed.

	An already completed node keeps its original completion timestamp.

	Returns:
		True if the node was newly completed
	"""
	if not transition_status(node, STATUS_COMPLETED, fast_track=fast_track):
		return False

	node["completed_at"] = completed_at
	return True


def mark_lesson_started(unit: Dict[str, Any], lesson: Dict[str, Any]) -> None:
	"""Move an unlocked lesson and its unit to in_progress."""
	if lesson["status"] == STATUS_UNLOCKED:
		transition_status(lesson, STATUS_IN_PROGRESS)
	if unit["status"] == STATUS_UNLOCKED:
		transition_status(unit, STATUS_IN_PROGRESS)


def roll_up_unit_completion(document: Dict[str, Any], completed_at: str) -> int:
	"""Complete every unit whose lessons are all completed.

	Completion of every lesson is itself the proof for the unit, so this
	uses the fast track table: a unit whose lessons were all skipped ahead
	completes even if it was never unlocked.

	Returns:
		Number of units newly completed
	"""
	completed = 0

	for unit in document.get("unit_progress", []):
		lessons = unit.get("lesson_progress", [])
		if not lessons:
			continue
		if all(lesson["status"] == STATUS_COMPLETED for lesson in lessons):
			if complete_node(unit, completed_at, fast_track=True):
				completed += 1
				logger.info(f"Unit {unit['unit_id']} completed")

	return completed


def merge_exercise_status(current: Optional[str], requested: str) -> str:
	"""Keep the furthest of the current and requested exercise statuses."""
	if current is None:
		return requested
	if EXERCISE_STATUS_RANK[requested] < EXERCISE_STATUS_RANK[current]:
		return current
	return requested
