# Copyright (c) 2026, Learnmap and contributors
# For license information, please see license.txt

"""
Constants for the learnmap progress engine
"""

# Unit and lesson statuses
STATUS_LOCKED = "locked"
STATUS_UNLOCKED = "unlocked"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"

NODE_STATUSES = (STATUS_LOCKED, STATUS_UNLOCKED, STATUS_IN_PROGRESS, STATUS_COMPLETED)

# Position of each status in the one-way lattice
NODE_STATUS_RANK = {status: rank for rank, status in enumerate(NODE_STATUSES)}

# Exercise statuses
EXERCISE_NOT_STARTED = "NOT_STARTED"
EXERCISE_IN_PROGRESS = "IN_PROGRESS"
EXERCISE_COMPLETED = "COMPLETED"

EXERCISE_STATUSES = (EXERCISE_NOT_STARTED, EXERCISE_IN_PROGRESS, EXERCISE_COMPLETED)

EXERCISE_STATUS_RANK = {status: rank for rank, status in enumerate(EXERCISE_STATUSES)}

# Allowed forward moves under normal sequencing, one step at a time
NORMAL_TRANSITIONS = {
	STATUS_LOCKED: {STATUS_UNLOCKED},
	STATUS_UNLOCKED: {STATUS_IN_PROGRESS},
	STATUS_IN_PROGRESS: {STATUS_COMPLETED},
	STATUS_COMPLETED: set(),
}

# Fast track may skip straight to completed from any open state
FAST_TRACK_TRANSITIONS = {
	STATUS_LOCKED: {STATUS_UNLOCKED, STATUS_COMPLETED},
	STATUS_UNLOCKED: {STATUS_IN_PROGRESS, STATUS_COMPLETED},
	STATUS_IN_PROGRESS: {STATUS_COMPLETED},
	STATUS_COMPLETED: set(),
}

DEFAULT_HEARTS = 5

# Identities treated as anonymous
ANONYMOUS_USERS = ("", "Guest")
