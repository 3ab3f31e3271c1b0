# Copyright (c) 2026, Learnmap and contributors
# For license information, please see license.txt

"""Error taxonomy for the progress engine.

Every failure raised inside the engine carries an ErrorKind so that the
boundary can report it as a structured result instead of a message string.
"""

from enum import Enum


class ErrorKind(str, Enum):
	NOT_AUTHENTICATED = "not_authenticated"
	NOT_FOUND = "not_found"
	INVALID_STATE = "invalid_state"
	CONTENT_INCOMPLETE = "content_incomplete"
	INTERNAL = "internal"


class LearnmapError(Exception):
	"""Base exception for progress engine failures"""

	kind = ErrorKind.INTERNAL

	def __init__(self, message: str):
		super().__init__(message)
		self.message = message


class NotAuthenticatedError(LearnmapError):
	kind = ErrorKind.NOT_AUTHENTICATED


class NotFoundError(LearnmapError):
	kind = ErrorKind.NOT_FOUND


class InvalidStateError(LearnmapError):
	kind = ErrorKind.INVALID_STATE


class ContentIncompleteError(LearnmapError):
	kind = ErrorKind.CONTENT_INCOMPLETE


class CatalogStructureError(LearnmapError):
	"""Catalog ordering is missing or ambiguous"""

	kind = ErrorKind.INTERNAL


class ConcurrentUpdateError(LearnmapError):
	"""Stored document changed between load and save"""

	kind = ErrorKind.INTERNAL


class DuplicateProgressError(LearnmapError):
	"""A progress document already exists for the user-course pair"""

	kind = ErrorKind.INVALID_STATE
