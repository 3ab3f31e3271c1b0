# Copyright (c) 2026, Learnmap and contributors
# For license information, please see license.txt

"""
Progress Store

Durable storage for learnmap progress documents, one per (user, course).
The progress engine reads a whole document, mutates it in memory and writes
it back in a single replace.

Every document carries a `version` counter. Saving checks that the stored
version is still the one that was loaded and bumps it; a mismatch means
another writer got there first and the save is refused instead of silently
dropping the other writer's changes.

Redis layout (see learnmap.utils.redis_keys):
- learnmap:progress:{user}:{course}  STRING  JSON document
- learnmap:lesson_index:{user}       HASH    lesson_id -> course_id
- learnmap:user_courses:{user}       SET     course ids with progress
"""

import copy
import json
import logging
from typing import Any, Dict, Optional, Tuple

import redis

from learnmap.config import get_conf, get_redis_url
from learnmap.services.progress_engine.errors import (
	ConcurrentUpdateError,
	DuplicateProgressError,
	NotFoundError,
)
from learnmap.utils.redis_keys import (
	get_lesson_index_key,
	get_progress_key,
	get_user_courses_key,
)

logger = logging.getLogger(__name__)


class ProgressStore:
	"""Interface the progress engine expects from its persistence collaborator"""

	def find_progress(self, user_id: str, course_id: str) -> Optional[Dict[str, Any]]:
		raise NotImplementedError

	def find_progress_by_lesson(self, user_id: str, lesson_id: str) -> Optional[Dict[str, Any]]:
		raise NotImplementedError

	def create_progress(self, document: Dict[str, Any]) -> Dict[str, Any]:
		raise NotImplementedError

	def save_progress(self, document: Dict[str, Any]) -> None:
		raise NotImplementedError


class InMemoryProgressStore(ProgressStore):
	"""
	Process-local progress store

	Documents are deep-copied on the way in and out so callers never share
	state with the stored copy, matching the replace semantics of a real store.
	"""

	def __init__(self):
		self._documents: Dict[Tuple[str, str], Dict[str, Any]] = {}

	def find_progress(self, user_id: str, course_id: str) -> Optional[Dict[str, Any]]:
		document = self._documents.get((user_id, course_id))
		return copy.deepcopy(document) if document is not None else None

	def find_progress_by_lesson(self, user_id: str, lesson_id: str) -> Optional[Dict[str, Any]]:
		for (owner, _course_id), document in self._documents.items():
			if owner != user_id:
				continue
			for unit in document["unit_progress"]:
				if any(lesson["lesson_id"] == lesson_id for lesson in unit["lesson_progress"]):
					return copy.deepcopy(document)
		return None

	def create_progress(self, document: Dict[str, Any]) -> Dict[str, Any]:
		key = (document["user_id"], document["course_id"])
		if key in self._documents:
			raise DuplicateProgressError(f"Progress already exists for user={key[0]}, course={key[1]}")

		self._documents[key] = copy.deepcopy(document)
		return copy.deepcopy(document)

	def save_progress(self, document: Dict[str, Any]) -> None:
		key = (document["user_id"], document["course_id"])
		stored = self._documents.get(key)

		if stored is None:
			raise NotFoundError(f"No progress found for user={key[0]}, course={key[1]}")

		if stored["version"] != document["version"]:
			raise ConcurrentUpdateError("Progress was modified by another request")

		document["version"] += 1
		self._documents[key] = copy.deepcopy(document)


class RedisProgressStore(ProgressStore):
	"""
	Progress store keeping each document as a JSON string in Redis

	This class provides methods for:
	- Loading a document by course or by one of its lessons
	- Creating a document only if none exists (SET NX)
	- Replacing a document under an optimistic version check (WATCH/MULTI)
	"""

	def __init__(self, redis_client=None, ttl: Optional[int] = None):
		"""Initialize Redis connection"""
		self.redis = redis_client if redis_client is not None else self._get_redis_connection()
		self.ttl = ttl if ttl is not None else int(get_conf().get("progress_ttl") or 0)

	def _get_redis_connection(self):
		redis_url = get_redis_url()
		logger.debug(f"Connecting progress store to {redis_url}")
		return redis.from_url(redis_url, decode_responses=True)

	def is_available(self) -> bool:
		"""
		Check if Redis is available

		Returns:
			bool: True if Redis is responsive, False otherwise
		"""
		try:
			self.redis.ping()
			return True
		except redis.RedisError:
			return False

	def find_progress(self, user_id: str, course_id: str) -> Optional[Dict[str, Any]]:
		raw = self.redis.get(get_progress_key(user_id, course_id))
		if raw is None:
			return None
		return json.loads(raw)

	def find_progress_by_lesson(self, user_id: str, lesson_id: str) -> Optional[Dict[str, Any]]:
		course_id = self.redis.hget(get_lesson_index_key(user_id), lesson_id)
		if not course_id:
			logger.debug(f"No lesson index entry for user={user_id}, lesson={lesson_id}")
			return None
		return self.find_progress(user_id, course_id)

	def create_progress(self, document: Dict[str, Any]) -> Dict[str, Any]:
		user_id, course_id = document["user_id"], document["course_id"]
		key = get_progress_key(user_id, course_id)

		created = self.redis.set(key, json.dumps(document), nx=True, ex=self.ttl or None)
		if not created:
			raise DuplicateProgressError(f"Progress already exists for user={user_id}, course={course_id}")

		pipe = self.redis.pipeline()
		self._queue_indexes(pipe, document)
		pipe.execute()

		logger.debug(f"Created progress key={key}")
		return copy.deepcopy(document)

	def save_progress(self, document: Dict[str, Any]) -> None:
		user_id, course_id = document["user_id"], document["course_id"]
		key = get_progress_key(user_id, course_id)
		new_version = document["version"] + 1

		try:
			with self.redis.pipeline() as pipe:
				pipe.watch(key)
				raw = pipe.get(key)

				if raw is None:
					raise NotFoundError(f"No progress found for user={user_id}, course={course_id}")

				if json.loads(raw).get("version") != document["version"]:
					raise ConcurrentUpdateError("Progress was modified by another request")

				pipe.multi()
				pipe.set(key, json.dumps(dict(document, version=new_version)), ex=self.ttl or None)
				self._queue_indexes(pipe, document)
				pipe.execute()
		except redis.WatchError:
			raise ConcurrentUpdateError("Progress was modified by another request")

		document["version"] = new_version
		logger.debug(f"Saved progress key={key} version={new_version}")

	def _queue_indexes(self, pipe, document: Dict[str, Any]) -> None:
		"""Queue lesson index and course set updates on a pipeline."""
		user_id, course_id = document["user_id"], document["course_id"]
		lesson_map = {
			lesson["lesson_id"]: course_id
			for unit in document["unit_progress"]
			for lesson in unit["lesson_progress"]
		}

		if lesson_map:
			pipe.hset(get_lesson_index_key(user_id), mapping=lesson_map)
		pipe.sadd(get_user_courses_key(user_id), course_id)
