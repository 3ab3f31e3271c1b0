# Copyright (c) 2026, Learnmap and contributors
# For license information, please see license.txt

"""
Review Ledger - Post-completion review history for lessons.

Reviews are replays of lessons the player already completed. Each one is
recorded as an immutable entry on the lesson; entries never change the
lesson's status and never trigger unlocks.
"""

import logging
from typing import Any, Dict, List, Optional

from learnmap.services.progress_engine.constants import STATUS_COMPLETED
from learnmap.services.progress_engine.errors import InvalidStateError

logger = logging.getLogger(__name__)


def build_review_entry(
	reviewed_at: str,
	score: Optional[int] = None,
	xp_earned: Optional[int] = None,
	coin_earned: Optional[int] = None
) -> Dict[str, Any]:
	"""Build a review ledger entry.

	Non-numeric values are stored as None.

	Args:
		reviewed_at: Review timestamp
		score: Score achieved in the review
		xp_earned: XP awarded for the review
		coin_earned: Coins awarded for the review

	Returns:
		Review entry dictionary
	"""
	return {
		"score": _number_or_none(score),
		"xp_earned": _number_or_none(xp_earned),
		"coin_earned": _number_or_none(coin_earned),
		"reviewed_at": reviewed_at,
	}


def append_review(lesson: Dict[str, Any], entry: Dict[str, Any]) -> Dict[str, Any]:
	"""Append a review entry to a completed lesson.

	Args:
		lesson: Lesson progress node (will be mutated)
		entry: Entry built by build_review_entry

	Returns:
		The appended entry

	Raises:
		InvalidStateError: If the lesson is not completed
	"""
	if lesson["status"] != STATUS_COMPLETED:
		raise InvalidStateError("Lesson is not completed, cannot review")

	lesson.setdefault("review_history", []).append(dict(entry))
	logger.info(
		f"Review recorded for lesson={lesson['lesson_id']}, score={entry['score']}, "
		f"xp={entry['xp_earned']}, coins={entry['coin_earned']}"
	)
	return entry


def list_reviews(lesson: Dict[str, Any]) -> List[Dict[str, Any]]:
	return list(lesson.get("review_history") or [])


def _number_or_none(value: Any) -> Optional[int]:
	if isinstance(value, bool) or not isinstance(value, (int, float)):
		return None
	return value
