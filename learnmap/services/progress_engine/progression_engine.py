# Copyright (c) 2026, Learnmap and contributors
# For license information, please see license.txt

"""Progression engine for the learnmap.

This module orchestrates every progress event:
1. Identity check
2. Progress document load (built in memory on first interaction)
3. Event applied to the target node
4. Lesson completion rolled up to units
5. Unlock cascade through the unlock evaluator
6. Single write of the whole document

All public operations return a result dictionary
{"success", "message", "error_kind", <payload>} and never raise. Failures
are reported with an ErrorKind, and nothing is written when an operation
fails.
"""

import functools
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from learnmap.config import get_conf
from learnmap.services.progress_engine.constants import (
	ANONYMOUS_USERS,
	EXERCISE_COMPLETED,
	STATUS_COMPLETED,
	STATUS_IN_PROGRESS,
	STATUS_LOCKED,
	STATUS_UNLOCKED,
)
from learnmap.services.progress_engine.errors import (
	ContentIncompleteError,
	DuplicateProgressError,
	ErrorKind,
	InvalidStateError,
	LearnmapError,
	NotAuthenticatedError,
	NotFoundError,
)
from learnmap.services.progress_engine.progress_initializer import (
	build_initial_progress,
	reconcile_progress,
)
from learnmap.services.progress_engine.progress_summary import summarize_progress
from learnmap.services.progress_engine.review_ledger import append_review, build_review_entry
from learnmap.services.progress_engine.structure_loader import build_course_outline
from learnmap.services.progress_engine.transitions import (
	coerce_timestamp,
	complete_node,
	mark_lesson_started,
	merge_exercise_status,
	normalize_exercise_status,
	normalize_node_status,
	roll_up_unit_completion,
	transition_status,
	utc_now,
)
from learnmap.services.progress_engine.unlock_evaluator import (
	cascade_unlocks,
	find_lesson_progress,
	find_unit_progress,
	is_unlock_allowed,
)

logger = logging.getLogger(__name__)


def _result(success: bool, message: str, error_kind: Optional[ErrorKind] = None, **payload) -> Dict[str, Any]:
	result = {"success": success, "message": message, "error_kind": error_kind}
	result.update(payload)
	return result


def engine_operation(payload_key: str) -> Callable:
	"""Report engine failures as results instead of exceptions.

	Args:
		payload_key: Result key set to None when the operation fails
	"""
	def decorator(func):
		@functools.wraps(func)
		def wrapper(self, *args, **kwargs):
			try:
				return func(self, *args, **kwargs)
			except LearnmapError as e:
				logger.warning(f"[{func.__name__}] {e.kind.value}: {e.message}")
				return _result(False, e.message, error_kind=e.kind, **{payload_key: None})
			except Exception:
				logger.exception(f"[{func.__name__}] Unexpected error")
				return _result(False, "Internal server error", error_kind=ErrorKind.INTERNAL, **{payload_key: None})
		return wrapper
	return decorator


class ProgressionEngine:
	"""
	Applies progress events to per-user, per-course progress documents

	Args:
		catalog: Catalog reader (get_published_units, get_published_lessons,
			count_exercises, has_course, get_exercises)
		store: Progress store (find_progress, find_progress_by_lesson,
			create_progress, save_progress)
		clock: Callable returning the current ISO timestamp
		default_hearts: Hearts given to a new document
		reconcile_on_load: Add nodes for newly published content on every load
	"""

	def __init__(
		self,
		catalog,
		store,
		clock: Optional[Callable[[], str]] = None,
		default_hearts: Optional[int] = None,
		reconcile_on_load: Optional[bool] = None
	):
		self.catalog = catalog
		self.store = store
		self.clock = clock or utc_now

		if default_hearts is None or reconcile_on_load is None:
			conf = get_conf()
			if default_hearts is None:
				default_hearts = int(conf["default_hearts"])
			if reconcile_on_load is None:
				reconcile_on_load = bool(conf["reconcile_on_load"])

		self.default_hearts = default_hearts
		self.reconcile_on_load = reconcile_on_load

	# ------------------------------------------------------------------
	# Operations
	# ------------------------------------------------------------------

	@engine_operation("progress")
	def start_course(self, user_id: str, course_id: str) -> Dict[str, Any]:
		"""Create the progress document for a course, or return the existing one."""
		user_id = self._require_user(user_id)

		document = self.store.find_progress(user_id, course_id)
		if document is not None:
			logger.debug(f"Progress already exists for user={user_id}, course={course_id}")
			return _result(True, "Progress already exists", progress=document)

		outline = build_course_outline(self.catalog, course_id)
		document = self._build_document(user_id, course_id, outline)

		try:
			document = self.store.create_progress(document)
		except DuplicateProgressError:
			# Lost a creation race; the other request's document stands
			document = self.store.find_progress(user_id, course_id)
			return _result(True, "Progress already exists", progress=document)

		return _result(True, "Progress initialized", progress=document)

	@engine_operation("exercise_progress")
	def update_exercise_progress(self, user_id: str, lesson_id: str, exercise_update: Dict[str, Any]) -> Dict[str, Any]:
		"""Record an exercise attempt and complete the lesson once every exercise is done.

		Args:
			user_id: Resolved caller identity
			lesson_id: Lesson owning the exercise; the course is looked up from it
			exercise_update: {"exercise_id", "status", "score"?, "attempts"?, "wrong_answers"?}
		"""
		user_id = self._require_user(user_id)

		exercise_id = exercise_update.get("exercise_id")
		if not exercise_id:
			raise InvalidStateError("Exercise ID is required")
		if not exercise_update.get("status"):
			raise InvalidStateError("Exercise status is required")

		document = self.store.find_progress_by_lesson(user_id, lesson_id)
		if document is None:
			raise NotFoundError("No learnmap progress found for this lesson")

		outline = build_course_outline(self.catalog, document["course_id"])
		if self.reconcile_on_load:
			reconcile_progress(document, outline)

		unit, lesson = find_lesson_progress(document, lesson_id)
		if lesson is None:
			raise NotFoundError("Lesson not found in progress")

		now = self.clock()
		exercise = self._apply_exercise_update(unit, lesson, exercise_update, attempted_at=now)
		self._commit(document, outline, now, is_new=False)

		return _result(True, "Exercise progress updated", exercise_progress=dict(exercise))

	@engine_operation("progress")
	def update_learnmap_progress(self, user_id: str, course_id: str, update: Dict[str, Any]) -> Dict[str, Any]:
		"""Apply a hearts, unit, lesson or exercise level update.

		Routing:
		- unit_id + lesson_id + exercise_id: exercise update
		- lesson_id (unit_id optional) without exercise_id: lesson update
		- unit_id alone: unit update
		- hearts may accompany any of the above
		"""
		user_id = self._require_user(user_id)
		document, outline, is_new = self._load_document(user_id, course_id)

		now = self.clock()
		unit_id = update.get("unit_id")
		lesson_id = update.get("lesson_id")
		exercise_id = update.get("exercise_id")
		updated = False

		if update.get("hearts") is not None:
			self._apply_hearts(document, update["hearts"], now)
			updated = True

		if lesson_id and exercise_id:
			unit, lesson = self._resolve_lesson(document, unit_id, lesson_id)
			attempted_at = coerce_timestamp(update.get("completed_at"), now)
			self._apply_exercise_update(unit, lesson, update, attempted_at=attempted_at, default_status=EXERCISE_COMPLETED)
			updated = True
		elif lesson_id:
			unit, lesson = self._resolve_lesson(document, unit_id, lesson_id)
			if self._apply_lesson_update(document, outline, unit, lesson, update, now):
				updated = True
		elif unit_id and not exercise_id:
			unit = find_unit_progress(document, unit_id)
			if unit is None:
				raise NotFoundError("Unit not found")
			if self._apply_unit_update(document, outline, unit, update, now):
				updated = True

		if not updated:
			logger.warning(f"No update performed for user={user_id}, course={course_id}")
			return _result(False, "No update performed", progress=document)

		document = self._commit(document, outline, now, is_new)
		return _result(True, "Progress updated", progress=document)

	@engine_operation("progress")
	def fast_track_learnmap(self, user_id: str, course_id: str, fast_track: Dict[str, Any]) -> Dict[str, Any]:
		"""Complete a unit or a set of lessons without normal sequencing.

		Every call appends one fast track history record, including calls that
		resolve nothing.

		Args:
			fast_track: {"unit_id"?, "lesson_ids"?, "challenge_attempt_id"?, "completed_at"?}
		"""
		user_id = self._require_user(user_id)
		document, outline, is_new = self._load_document(user_id, course_id)

		now = self.clock()
		completed_at = coerce_timestamp(fast_track.get("completed_at"), now)
		unit_id = fast_track.get("unit_id")
		lesson_ids = list(fast_track.get("lesson_ids") or [])
		resolved = False

		if unit_id:
			unit = find_unit_progress(document, unit_id)
			if unit is None:
				logger.warning(f"Fast track unit={unit_id} not found for user={user_id}")
			else:
				for lesson in unit["lesson_progress"]:
					complete_node(lesson, completed_at, fast_track=True)
				complete_node(unit, completed_at, fast_track=True)
				resolved = True
				logger.info(f"Fast tracked unit={unit_id} for user={user_id}")

		if lesson_ids:
			wanted = set(lesson_ids)
			for unit in document["unit_progress"]:
				for lesson in unit["lesson_progress"]:
					if lesson["lesson_id"] in wanted:
						complete_node(lesson, completed_at, fast_track=True)
						resolved = True
			logger.info(f"Fast tracked lessons={lesson_ids} for user={user_id}")

		document["fast_track_history"].append({
			"unit_id": unit_id or None,
			"lesson_ids": lesson_ids,
			"challenge_attempt_id": fast_track.get("challenge_attempt_id"),
			"completed_at": completed_at,
		})

		document = self._commit(document, outline, now, is_new, completed_at=completed_at)

		if not resolved:
			return _result(False, "No update performed", progress=document)

		return _result(True, "Fast track completed", progress=document)

	@engine_operation("progress")
	def review_completed_lesson(self, user_id: str, course_id: str, review: Dict[str, Any]) -> Dict[str, Any]:
		"""Append a review entry to a completed lesson.

		Args:
			review: {"unit_id", "lesson_id", "score"?, "xp_earned"?, "coin_earned"?, "reviewed_at"?}
		"""
		user_id = self._require_user(user_id)
		document, outline, is_new = self._load_document(user_id, course_id)

		unit = find_unit_progress(document, review.get("unit_id"))
		if unit is None:
			raise NotFoundError("Unit not found")

		lesson = next(
			(lesson for lesson in unit["lesson_progress"] if lesson["lesson_id"] == review.get("lesson_id")),
			None
		)
		if lesson is None:
			raise NotFoundError("Lesson not found")

		now = self.clock()
		entry = build_review_entry(
			reviewed_at=coerce_timestamp(review.get("reviewed_at"), now),
			score=review.get("score"),
			xp_earned=review.get("xp_earned"),
			coin_earned=review.get("coin_earned"),
		)
		append_review(lesson, entry)

		document = self._commit(document, outline, now, is_new, cascade=False)
		return _result(True, "Lesson reviewed", progress=document)

	@engine_operation("progress")
	def get_learnmap_progress(self, user_id: str, course_id: str) -> Dict[str, Any]:
		"""Read a progress document with its summary, without creating it."""
		user_id = self._require_user(user_id)

		document = self.store.find_progress(user_id, course_id)
		if document is None:
			return _result(True, "No progress found", progress=None, summary=None)

		return _result(True, "Progress found", progress=document, summary=summarize_progress(document))

	@engine_operation("exercises")
	def get_lesson_exercises(self, user_id: str, lesson_id: str) -> Dict[str, Any]:
		"""List a lesson's published exercises in catalog order."""
		self._require_user(user_id)

		exercises = self.catalog.get_exercises(lesson_id)
		return _result(True, f"Found {len(exercises)} exercises", exercises=exercises)

	# ------------------------------------------------------------------
	# Loading and persistence
	# ------------------------------------------------------------------

	def _require_user(self, user_id: Optional[str]) -> str:
		if user_id is None or user_id in ANONYMOUS_USERS:
			raise NotAuthenticatedError("Not authenticated")
		return user_id

	def _build_document(self, user_id: str, course_id: str, outline: List[Dict[str, Any]]) -> Dict[str, Any]:
		if not self.catalog.has_course(course_id):
			raise NotFoundError("Course not found")

		if not outline:
			raise ContentIncompleteError("No units with lessons found for this course")

		return build_initial_progress(user_id, course_id, outline, now=self.clock(), hearts=self.default_hearts)

	def _load_document(self, user_id: str, course_id: str) -> Tuple[Dict[str, Any], List[Dict[str, Any]], bool]:
		"""Load the progress document, building it in memory if absent.

		Returns:
			Tuple of (document, outline, is_new)
		"""
		outline = build_course_outline(self.catalog, course_id)
		document = self.store.find_progress(user_id, course_id)

		if document is None:
			logger.debug(f"No progress for user={user_id}, course={course_id}, initializing")
			return self._build_document(user_id, course_id, outline), outline, True

		if self.reconcile_on_load:
			reconcile_progress(document, outline)

		return document, outline, False

	def _commit(
		self,
		document: Dict[str, Any],
		outline: List[Dict[str, Any]],
		now: str,
		is_new: bool,
		cascade: bool = True,
		completed_at: Optional[str] = None
	) -> Dict[str, Any]:
		"""Roll up completion, cascade unlocks and write the document once."""
		if cascade:
			roll_up_unit_completion(document, completed_at or now)
			cascade_unlocks(outline, document)

		document["updated_at"] = now

		if is_new:
			return self.store.create_progress(document)

		self.store.save_progress(document)
		return document

	# ------------------------------------------------------------------
	# Node updates
	# ------------------------------------------------------------------

	def _resolve_lesson(self, document: Dict[str, Any], unit_id: Optional[str], lesson_id: str):
		"""Find a lesson, within the given unit if one is named."""
		if unit_id:
			unit = find_unit_progress(document, unit_id)
			if unit is None:
				raise NotFoundError("Unit not found")
			lesson = next((l for l in unit["lesson_progress"] if l["lesson_id"] == lesson_id), None)
		else:
			unit, lesson = find_lesson_progress(document, lesson_id)

		if lesson is None:
			raise NotFoundError("Lesson not found")

		return unit, lesson

	def _apply_hearts(self, document: Dict[str, Any], hearts: Any, now: str) -> None:
		if isinstance(hearts, bool) or not isinstance(hearts, int) or hearts < 0:
			raise InvalidStateError("Hearts must be a non-negative integer")

		document["hearts"] = hearts
		document["last_heart_update"] = now
		logger.debug(f"Hearts set to {hearts}")

	def _apply_exercise_update(
		self,
		unit: Dict[str, Any],
		lesson: Dict[str, Any],
		update: Dict[str, Any],
		attempted_at: str,
		default_status: Optional[str] = None
	) -> Dict[str, Any]:
		"""Upsert an exercise progress node and check lesson completion.

		Returns:
			The exercise progress node
		"""
		if lesson["status"] == STATUS_LOCKED:
			raise InvalidStateError("Lesson is locked")

		exercise_id = update["exercise_id"]
		if exercise_id not in self._catalog_exercise_ids(lesson):
			raise NotFoundError("Exercise not found in lesson")

		requested = normalize_exercise_status(update["status"]) if update.get("status") else default_status
		score = update.get("score")
		attempts = update.get("attempts")
		wrong_answers = update.get("wrong_answers")

		exercise = next((e for e in lesson["exercise_progress"] if e["exercise_id"] == exercise_id), None)

		if exercise is None:
			exercise = {
				"exercise_id": exercise_id,
				"status": requested or EXERCISE_COMPLETED,
				"score": score if _is_number(score) else 0,
				"attempts": attempts if _is_number(attempts) else 1,
				"last_attempted_at": attempted_at,
				"wrong_answers": _unique(wrong_answers or []),
			}
			lesson["exercise_progress"].append(exercise)
		else:
			if requested:
				exercise["status"] = merge_exercise_status(exercise["status"], requested)
			if _is_number(score):
				exercise["score"] = score
			if _is_number(attempts):
				exercise["attempts"] = attempts
			exercise["last_attempted_at"] = attempted_at
			if wrong_answers is not None:
				exercise["wrong_answers"] = _unique(wrong_answers)

		if lesson["status"] != STATUS_COMPLETED:
			mark_lesson_started(unit, lesson)
			self._complete_lesson_if_done(lesson, attempted_at)

		return exercise

	def _count_exercises(self, lesson: Dict[str, Any]) -> Tuple[int, int]:
		"""Count completed exercises the catalog lists for a lesson.

		Exercise nodes for ids the catalog no longer publishes are ignored.

		Returns:
			Tuple of (completed, total)
		"""
		catalog_ids = self._catalog_exercise_ids(lesson)
		completed = sum(
			1 for e in lesson["exercise_progress"]
			if e["exercise_id"] in catalog_ids and e["status"] == EXERCISE_COMPLETED
		)
		return completed, len(catalog_ids)

	def _catalog_exercise_ids(self, lesson: Dict[str, Any]) -> set:
		return {exercise["id"] for exercise in self.catalog.get_exercises(lesson["lesson_id"])}

	def _complete_lesson_if_done(self, lesson: Dict[str, Any], completed_at: str) -> bool:
		completed, total = self._count_exercises(lesson)
		logger.debug(f"Lesson {lesson['lesson_id']}: {completed}/{total} exercises completed")

		if total > 0 and completed == total:
			complete_node(lesson, completed_at)
			logger.info(f"Lesson {lesson['lesson_id']} completed")
			return True

		return False

	def _apply_lesson_update(
		self,
		document: Dict[str, Any],
		outline: List[Dict[str, Any]],
		unit: Dict[str, Any],
		lesson: Dict[str, Any],
		update: Dict[str, Any],
		now: str
	) -> bool:
		"""Apply an explicit lesson status or completion time.

		Returns:
			True if the lesson changed
		"""
		completed_at = coerce_timestamp(update.get("completed_at"), now)
		changed = False

		if update.get("status"):
			target = normalize_node_status(update["status"])

			if target == STATUS_COMPLETED and lesson["status"] != STATUS_COMPLETED:
				if lesson["status"] == STATUS_LOCKED:
					raise InvalidStateError("Lesson is locked")
				completed, total = self._count_exercises(lesson)
				if completed < total:
					raise InvalidStateError("Lesson has incomplete exercises")
				mark_lesson_started(unit, lesson)
				complete_node(lesson, completed_at)
				logger.info(f"Lesson {lesson['lesson_id']} completed")
				return True

			if target == STATUS_UNLOCKED and lesson["status"] == STATUS_LOCKED:
				if not is_unlock_allowed(outline, document, unit["unit_id"], lesson["lesson_id"]):
					raise InvalidStateError("Lesson cannot be unlocked yet")

			changed = transition_status(lesson, target)
			if target == STATUS_IN_PROGRESS and unit["status"] == STATUS_UNLOCKED:
				transition_status(unit, STATUS_IN_PROGRESS)

		if update.get("completed_at") and lesson["status"] == STATUS_COMPLETED:
			if lesson["completed_at"] != completed_at:
				lesson["completed_at"] = completed_at
				changed = True

		return changed

	def _apply_unit_update(
		self,
		document: Dict[str, Any],
		outline: List[Dict[str, Any]],
		unit: Dict[str, Any],
		update: Dict[str, Any],
		now: str
	) -> bool:
		"""Apply an explicit unit status or completion time.

		Returns:
			True if the unit changed
		"""
		completed_at = coerce_timestamp(update.get("completed_at"), now)
		changed = False

		if update.get("status"):
			target = normalize_node_status(update["status"])

			if target == STATUS_COMPLETED and unit["status"] != STATUS_COMPLETED:
				if any(lesson["status"] != STATUS_COMPLETED for lesson in unit["lesson_progress"]):
					raise InvalidStateError("Unit has incomplete lessons")
				if unit["status"] == STATUS_UNLOCKED:
					transition_status(unit, STATUS_IN_PROGRESS)
				complete_node(unit, completed_at)
				logger.info(f"Unit {unit['unit_id']} completed")
				return True

			if target == STATUS_UNLOCKED and unit["status"] == STATUS_LOCKED:
				if not is_unlock_allowed(outline, document, unit["unit_id"]):
					raise InvalidStateError("Unit cannot be unlocked yet")

			changed = transition_status(unit, target)

		if update.get("completed_at") and unit["status"] == STATUS_COMPLETED:
			if unit["completed_at"] != completed_at:
				unit["completed_at"] = completed_at
				changed = True

		return changed


def _is_number(value: Any) -> bool:
	return isinstance(value, (int, float)) and not isinstance(value, bool)


def _unique(values) -> List[Any]:
	"""Drop duplicates while keeping first-seen order."""
	return list(dict.fromkeys(values))
