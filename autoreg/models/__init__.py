"""
Database models
"""

from autoreg.models.user_config import UserConfig
from autoreg.models.waitlist import WaitlistEntry, WaitlistStatus
from autoreg.models.registration_schedule import ScheduledRegistration, ScheduleStatus
from autoreg.models.registration_log import RegistrationLog, LogAction, LogStatus

__all__ = [
    "UserConfig",
    "WaitlistEntry",
    "WaitlistStatus",
    "ScheduledRegistration",
    "ScheduleStatus",
    "RegistrationLog",
    "LogAction",
    "LogStatus",
]
