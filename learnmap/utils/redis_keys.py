"""
Redis key pattern constants for the learnmap progress store

All keys are namespaced under the `learnmap:` prefix to avoid collisions
with other apps sharing the same Redis instance.

Key patterns follow namespace format: learnmap:{type}:{identifier}:{subkey}
"""

PROGRESS_KEY = "learnmap:progress:{user_id}:{course_id}"
LESSON_INDEX_KEY = "learnmap:lesson_index:{user_id}"
USER_COURSES_KEY = "learnmap:user_courses:{user_id}"


def get_progress_key(user_id, course_id):
    """Get Redis key for a user's progress document in a course (STRING, JSON)"""
    return PROGRESS_KEY.format(user_id=user_id, course_id=course_id)


def get_lesson_index_key(user_id):
    """Get Redis key mapping lesson_id -> course_id for a user (HASH)"""
    return LESSON_INDEX_KEY.format(user_id=user_id)


def get_user_courses_key(user_id):
    """Get Redis key for the set of courses a user has progress in (SET)"""
    return USER_COURSES_KEY.format(user_id=user_id)
