"""
One-shot scheduled registration with bounded retries

Execution is pull-based: ``check_and_execute_pending_schedules`` runs whenever
the owning session polls ``GET /scheduler``. There is no background timer, so a
schedule whose fire time has passed waits for that session's next poll. Each
poll makes at most one attempt per due schedule; a failed attempt counts
against ``max_retries`` and the schedule becomes ``failed`` once the budget is
spent.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from autoreg.config import settings
from autoreg.core.exceptions import AuthenticationError, PortalError
from autoreg.core.logging import mask_session
from autoreg.core.metrics import record_schedule_outcome
from autoreg.models.base import utcnow
from autoreg.models.registration_log import LogAction, LogStatus
from autoreg.models.registration_schedule import ScheduledRegistration, ScheduleStatus
from autoreg.services.email_service import EmailService
from autoreg.services.portal_client import PortalClient, PortalClientFactory, PortalSession
from autoreg.services.stores import RegistrationLogStore, ScheduleStore, UserConfigStore

logger = logging.getLogger(__name__)


class AttemptOutcome(str, enum.Enum):
    SUCCEEDED = "succeeded"
    RETRY = "retry"
    FAILED = "failed"
    ALREADY_HANDLED = "already_handled"
    ERROR = "error"


@dataclass
class ScheduleRequest:
    user_session: str
    course_code: str
    class_id: str
    course_name: str = ""
    class_code: str = ""
    schedule_time: Optional[datetime] = None
    max_retries: Optional[int] = None


@dataclass
class ScheduleResult:
    accepted: bool
    message: str
    id: Optional[int] = None


@dataclass(frozen=True)
class ScheduleTask:
    id: int
    user_session: str
    course_name: str
    class_id: str
    class_code: str
    retry_count: int
    max_retries: int

    @classmethod
    def from_schedule(cls, schedule: ScheduledRegistration) -> "ScheduleTask":
        return cls(
            id=schedule.id,
            user_session=schedule.user_session,
            course_name=schedule.course_name or "",
            class_id=str(schedule.class_id),
            class_code=schedule.class_code or "",
            retry_count=schedule.retry_count,
            max_retries=schedule.max_retries,
        )


@dataclass
class AttemptResult:
    schedule_id: int
    class_code: str
    outcome: AttemptOutcome
    message: str

    def to_dict(self) -> Dict:
        return {
            "schedule_id": self.schedule_id,
            "class_code": self.class_code,
            "outcome": self.outcome.value,
            "message": self.message,
        }


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class AutoRegistrationScheduler:
    """
    Create, run, cancel and list one-shot scheduled registrations
    """

    def __init__(
        self,
        session: AsyncSession,
        portal_factory: PortalClientFactory,
        email_service: Optional[EmailService] = None,
        period_id: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.portal_factory = portal_factory
        self.email_service = email_service
        self.period_id = period_id or settings.PORTAL_PERIOD_ID
        self.clock = clock
        self.schedules = ScheduleStore(session)
        self.logs = RegistrationLogStore(session)
        self.user_configs = UserConfigStore(session)

    async def schedule_registration(self, request: ScheduleRequest) -> ScheduleResult:
        if not request.course_code or not request.class_id:
            return ScheduleResult(accepted=False, message="Thiếu thông tin bắt buộc")

        max_retries = request.max_retries
        if max_retries is None:
            max_retries = settings.SCHEDULER_DEFAULT_MAX_RETRIES
        if max_retries < 1:
            return ScheduleResult(accepted=False, message="Số lần thử phải lớn hơn 0")

        class_id = str(request.class_id)
        duplicate = await self.schedules.find_pending_for_class(request.user_session, class_id)
        if duplicate is not None:
            return ScheduleResult(
                accepted=False,
                message="Lớp học phần này đã có lịch đăng ký đang chờ",
                id=duplicate.id,
            )

        schedule_time = as_utc(request.schedule_time) if request.schedule_time else self.clock()
        schedule = await self.schedules.insert(
            user_session=request.user_session,
            course_code=request.course_code,
            class_id=class_id,
            schedule_time=schedule_time,
            max_retries=max_retries,
            course_name=request.course_name or "",
            class_code=request.class_code or "",
        )

        logger.info(
            f"[Scheduler] New schedule {schedule.id} for {mask_session(request.user_session)} "
            f"at {schedule_time.isoformat()} (max {max_retries} attempts)"
        )
        return ScheduleResult(accepted=True, message="Đã lên lịch đăng ký tự động", id=schedule.id)

    async def check_and_execute_pending_schedules(self, user_session: str) -> List[AttemptResult]:
        """
        One attempt for each of the session's due schedules
        """
        due = [ScheduleTask.from_schedule(s) for s in await self.schedules.find_due(user_session, self.clock())]
        if not due:
            return []

        config = await self.user_configs.find_by_session(user_session)
        if config is None:
            raise AuthenticationError("Phiên đăng nhập không hợp lệ")
        portal_session = PortalSession.from_config(config)

        logger.info(f"[Scheduler] {len(due)} due schedules for {mask_session(user_session)}")
        results = []
        async with self.portal_factory(portal_session) as portal:
            for task in due:
                try:
                    result = await self._execute(portal, task, portal_session)
                except Exception as e:
                    logger.error(f"[Scheduler] Error executing schedule {task.id}: {e}", exc_info=True)
                    await self.session.rollback()
                    result = AttemptResult(task.id, task.class_code, AttemptOutcome.ERROR, str(e) or "Lỗi không xác định")

                record_schedule_outcome(result.outcome.value)
                results.append(result)

        return results

    async def cancel_schedule(self, user_session: str, schedule_id: int) -> bool:
        """
        ``pending -> cancelled``. False when missing, owned by another session,
        or already terminal.
        """
        schedule = await self.get_schedule(user_session, schedule_id)
        if schedule is None:
            return False
        return await self.schedules.cancel(schedule_id)

    async def get_schedule(self, user_session: str, schedule_id: int) -> Optional[ScheduledRegistration]:
        schedule = await self.schedules.find_by_id(schedule_id)
        if schedule is None or schedule.user_session != user_session:
            return None
        return schedule

    async def get_user_schedules(self, user_session: str) -> List[ScheduledRegistration]:
        return await self.schedules.find_by_user_session(user_session)

    async def _already_registered(self, portal: PortalClient, task: ScheduleTask) -> bool:
        if not task.class_code:
            return False
        try:
            registered = await portal.get_registered_courses(self.period_id)
            return any(course.get("maLopHocPhan") == task.class_code for course in registered)
        except PortalError as e:
            logger.info(f"[Scheduler] Could not check registered courses ({e.message}), proceeding")
            return False
        except Exception as e:
            logger.warning(f"[Scheduler] Registered courses check failed for schedule {task.id}: {e}, proceeding")
            return False

    async def _execute(self, portal: PortalClient, task: ScheduleTask, portal_session: PortalSession) -> AttemptResult:
        if await self._already_registered(portal, task):
            logger.info(f"[Scheduler] Class {task.class_code} already registered, marking schedule {task.id} succeeded")
            return await self._succeed(
                task, portal_session, "Đã đăng ký thành công (phát hiện từ danh sách đã đăng ký)", registered_now=False
            )

        try:
            success = await portal.register_for_class(int(task.class_id), verification_token="")
            error = None if success else "Đăng ký không thành công"
        except PortalError as e:
            success, error = False, e.message
        except Exception as e:
            logger.error(f"[Scheduler] Registration call failed for schedule {task.id}: {e}", exc_info=True)
            success, error = False, str(e) or type(e).__name__

        if success:
            return await self._succeed(task, portal_session, "Đăng ký tự động thành công")

        new_status = await self.schedules.record_failed_attempt(task.id, task.retry_count, task.max_retries, error)
        attempts = task.retry_count + 1

        if new_status is None:
            return AttemptResult(task.id, task.class_code, AttemptOutcome.ALREADY_HANDLED, "Lịch đã được xử lý")

        if new_status is ScheduleStatus.PENDING:
            logger.info(f"[Scheduler] Schedule {task.id} attempt {attempts}/{task.max_retries} failed: {error}")
            return AttemptResult(
                task.id, task.class_code, AttemptOutcome.RETRY,
                f"Thử lại lần sau ({attempts}/{task.max_retries}): {error}"
            )

        message = f"Đăng ký tự động thất bại sau {task.max_retries} lần thử: {error}"
        logger.warning(f"[Scheduler] Schedule {task.id} exhausted its attempts")
        await self._append_log(task, LogStatus.FAILED, message)
        if self.email_service and portal_session.notification_email:
            await self.email_service.send_registration_failed(
                portal_session.notification_email, task.course_name, task.class_code,
                error, attempts, task.max_retries
            )
        return AttemptResult(task.id, task.class_code, AttemptOutcome.FAILED, message)

    async def _succeed(
        self, task: ScheduleTask, portal_session: PortalSession, message: str, registered_now: bool = True
    ) -> AttemptResult:
        if not await self.schedules.mark_succeeded(task.id):
            if registered_now:
                # Enrolled at the portal after the schedule left pending
                await self._append_log(
                    task, LogStatus.SUCCESS, "Đăng ký thành công nhưng lịch đã bị hủy hoặc đã được xử lý trước đó"
                )
            return AttemptResult(task.id, task.class_code, AttemptOutcome.ALREADY_HANDLED, "Lịch đã được xử lý")

        await self._append_log(task, LogStatus.SUCCESS, message)
        if self.email_service and portal_session.notification_email:
            await self.email_service.send_registration_success(
                portal_session.notification_email, task.course_name, task.class_code
            )
        return AttemptResult(task.id, task.class_code, AttemptOutcome.SUCCEEDED, message)

    async def _append_log(self, task: ScheduleTask, status: LogStatus, message: str):
        await self.logs.append(
            user_session=task.user_session,
            action=LogAction.REGISTER,
            status=status,
            message=message,
            course_name=task.course_name,
            class_code=task.class_code,
        )
