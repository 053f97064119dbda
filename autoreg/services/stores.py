"""
Persistence for waitlist entries, scheduled registrations, the registration
log and per-user portal configuration.

Every status transition goes through ``db_manager.conditional_update`` so that
two overlapping invocations (a cron sweep and an on-demand check, say) cannot
both move the same record: the one that loses sees zero rows updated.
"""

from datetime import datetime
from typing import Dict, List, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from autoreg.core.database import db_manager
from autoreg.models.base import utcnow
from autoreg.models.user_config import UserConfig
from autoreg.models.waitlist import WaitlistEntry, WaitlistStatus
from autoreg.models.registration_schedule import ScheduledRegistration, ScheduleStatus
from autoreg.models.registration_log import RegistrationLog, LogAction, LogStatus

logger = logging.getLogger(__name__)


class UserConfigStore:
    """Portal session material keyed by ``user_session``"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_session(self, user_session: str) -> Optional[UserConfig]:
        stmt = (
            select(UserConfig)
            .where(UserConfig.user_session == user_session)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_many(self, user_sessions: List[str]) -> Dict[str, UserConfig]:
        if not user_sessions:
            return {}
        stmt = select(UserConfig).where(UserConfig.user_session.in_(user_sessions))
        result = await self.session.execute(stmt)
        return {config.user_session: config for config in result.scalars().all()}

    async def upsert(self, user_session: str, cookies: Dict[str, str], token: str) -> UserConfig:
        """
        Save fresh portal credentials; existing preferences survive a re-login
        """
        config = await self.find_by_session(user_session)
        if config is None:
            config = UserConfig(user_session=user_session)
            self.session.add(config)
        config.portal_cookies = cookies
        config.portal_token = token
        await db_manager.commit(self.session)
        return config

    async def update_notification_email(self, user_session: str, email: Optional[str]) -> bool:
        stmt = (
            update(UserConfig)
            .where(UserConfig.user_session == user_session)
            .values(notification_email=email, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await db_manager.commit(self.session)
        return result.rowcount > 0


class WaitlistStore:
    """Waitlist entries and their status transitions"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(
        self,
        user_session: str,
        course_code: str,
        class_id: str,
        course_name: str = "",
        class_code: str = "",
        priority: int = 1,
        check_interval: int = 30,
    ) -> WaitlistEntry:
        entry = WaitlistEntry(
            user_session=user_session,
            course_code=course_code,
            course_name=course_name,
            class_id=class_id,
            class_code=class_code,
            priority=priority,
            check_interval=check_interval,
            status=WaitlistStatus.WAITING,
        )
        self.session.add(entry)
        await db_manager.commit(self.session)
        await self.session.refresh(entry)
        return entry

    async def find_by_id(self, entry_id: int) -> Optional[WaitlistEntry]:
        stmt = (
            select(WaitlistEntry)
            .where(WaitlistEntry.id == entry_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_user_session(self, user_session: str) -> List[WaitlistEntry]:
        """All of a session's entries for display, newest first"""
        stmt = (
            select(WaitlistEntry)
            .where(WaitlistEntry.user_session == user_session)
            .order_by(WaitlistEntry.created_at.desc(), WaitlistEntry.id.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_waiting(self, user_session: Optional[str] = None) -> List[WaitlistEntry]:
        """
        Entries eligible for a processing cycle, priority first then oldest first.

        Terminal entries are never returned, which is what makes a second cycle
        after a successful registration a no-op for that entry.
        """
        stmt = select(WaitlistEntry).where(WaitlistEntry.status == WaitlistStatus.WAITING)
        if user_session is not None:
            stmt = stmt.where(WaitlistEntry.user_session == user_session)
        stmt = stmt.order_by(
            WaitlistEntry.priority.asc(),
            WaitlistEntry.created_at.asc(),
            WaitlistEntry.id.asc(),
        ).execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def update_last_checked(self, entry_id: int, checked_at: Optional[datetime] = None):
        stmt = (
            update(WaitlistEntry)
            .where(WaitlistEntry.id == entry_id)
            .values(last_checked_at=checked_at or utcnow())
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        await db_manager.commit(self.session)

    async def mark_registered(self, entry_id: int) -> bool:
        return await db_manager.conditional_update(
            self.session, WaitlistEntry, entry_id, WaitlistStatus.WAITING,
            status=WaitlistStatus.REGISTERED, updated_at=utcnow(),
        )

    async def cancel(self, entry_id: int) -> bool:
        return await db_manager.conditional_update(
            self.session, WaitlistEntry, entry_id, WaitlistStatus.WAITING,
            status=WaitlistStatus.CANCELLED, updated_at=utcnow(),
        )


class ScheduleStore:
    """One-shot scheduled registrations"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(
        self,
        user_session: str,
        course_code: str,
        class_id: str,
        schedule_time: datetime,
        max_retries: int,
        course_name: str = "",
        class_code: str = "",
    ) -> ScheduledRegistration:
        schedule = ScheduledRegistration(
            user_session=user_session,
            course_code=course_code,
            course_name=course_name,
            class_id=class_id,
            class_code=class_code,
            schedule_time=schedule_time,
            max_retries=max_retries,
            retry_count=0,
            status=ScheduleStatus.PENDING,
        )
        self.session.add(schedule)
        await db_manager.commit(self.session)
        await self.session.refresh(schedule)
        return schedule

    async def find_by_id(self, schedule_id: int) -> Optional[ScheduledRegistration]:
        stmt = (
            select(ScheduledRegistration)
            .where(ScheduledRegistration.id == schedule_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_user_session(self, user_session: str) -> List[ScheduledRegistration]:
        stmt = (
            select(ScheduledRegistration)
            .where(ScheduledRegistration.user_session == user_session)
            .order_by(ScheduledRegistration.created_at.desc(), ScheduledRegistration.id.desc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_pending_for_class(self, user_session: str, class_id: str) -> Optional[ScheduledRegistration]:
        stmt = (
            select(ScheduledRegistration)
            .where(
                ScheduledRegistration.user_session == user_session,
                ScheduledRegistration.class_id == class_id,
                ScheduledRegistration.status == ScheduleStatus.PENDING,
            )
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_due(self, user_session: str, now: datetime) -> List[ScheduledRegistration]:
        """Pending schedules whose fire time has passed and that still have attempts left"""
        stmt = (
            select(ScheduledRegistration)
            .where(
                ScheduledRegistration.user_session == user_session,
                ScheduledRegistration.status == ScheduleStatus.PENDING,
                ScheduledRegistration.schedule_time <= now,
                ScheduledRegistration.retry_count < ScheduledRegistration.max_retries,
            )
            .order_by(ScheduledRegistration.schedule_time.asc(), ScheduledRegistration.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_succeeded(self, schedule_id: int) -> bool:
        return await db_manager.conditional_update(
            self.session, ScheduledRegistration, schedule_id, ScheduleStatus.PENDING,
            status=ScheduleStatus.SUCCEEDED, error_message=None, updated_at=utcnow(),
        )

    async def record_failed_attempt(
        self,
        schedule_id: int,
        retry_count: int,
        max_retries: int,
        error_message: str,
    ) -> Optional[ScheduleStatus]:
        """
        Count one failed attempt, guarded on the attempt count we read.

        Returns the resulting status (``failed`` once the attempt budget is
        spent, otherwise ``pending``), or None when another invocation changed
        the schedule first.
        """
        attempts = retry_count + 1
        new_status = ScheduleStatus.FAILED if attempts >= max_retries else ScheduleStatus.PENDING
        stmt = (
            update(ScheduledRegistration)
            .where(
                ScheduledRegistration.id == schedule_id,
                ScheduledRegistration.status == ScheduleStatus.PENDING,
                ScheduledRegistration.retry_count == retry_count,
            )
            .values(
                retry_count=attempts,
                status=new_status,
                error_message=error_message,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        await db_manager.commit(self.session)
        if result.rowcount == 0:
            return None
        return new_status

    async def cancel(self, schedule_id: int) -> bool:
        return await db_manager.conditional_update(
            self.session, ScheduledRegistration, schedule_id, ScheduleStatus.PENDING,
            status=ScheduleStatus.CANCELLED, updated_at=utcnow(),
        )


class RegistrationLogStore:
    """Append-only audit trail. There is intentionally no update or delete."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        user_session: str,
        action: LogAction,
        status: LogStatus,
        message: str,
        course_name: str = "",
        class_code: str = "",
    ) -> RegistrationLog:
        log = RegistrationLog(
            user_session=user_session,
            action=action,
            course_name=course_name or "",
            class_code=class_code or "",
            status=status,
            message=message,
        )
        self.session.add(log)
        await db_manager.commit(self.session)
        return log

    async def find_by_user_session(self, user_session: str, limit: int = 50) -> List[RegistrationLog]:
        stmt = (
            select(RegistrationLog)
            .where(RegistrationLog.user_session == user_session)
            .order_by(RegistrationLog.created_at.desc(), RegistrationLog.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
