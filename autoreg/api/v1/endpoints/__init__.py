"""
API endpoints module
"""

from . import auth, waitlist, cron, scheduler, courses, schedule, preferences, student, health

__all__ = [
    "auth",
    "waitlist",
    "cron",
    "scheduler",
    "courses",
    "schedule",
    "preferences",
    "student",
    "health"
]
