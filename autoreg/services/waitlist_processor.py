"""
Waitlist processing: check section availability and register when a seat opens

The processor is a stateless batch function. It holds no timers; recurrence is
owned by whoever calls it (the cron endpoint every minute, or a student pressing
"check now"). Both shapes run the same per-entry cycle:

1. stamp ``last_checked_at``
2. look the section up in the portal's section list for the course
3. not found -> ``not_found``; not accepting registrations -> ``full``
4. otherwise register, then move the entry ``waiting -> registered`` with a
   conditional update

Only entries still ``waiting`` are ever loaded. Two overlapping invocations can
both load the same entry and both call the portal; the conditional update lets
exactly one of them record the registration, and the portal is expected to
refuse the second enrolment.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from autoreg.config import settings
from autoreg.core.exceptions import AuthenticationError, PortalError
from autoreg.core.logging import mask_session
from autoreg.core.metrics import record_waitlist_outcome
from autoreg.models.registration_log import LogAction, LogStatus
from autoreg.models.waitlist import WaitlistEntry
from autoreg.services.email_service import EmailService
from autoreg.services.portal_client import PortalClient, PortalClientFactory, PortalSession
from autoreg.services.stores import RegistrationLogStore, UserConfigStore, WaitlistStore

logger = logging.getLogger(__name__)


class WaitlistOutcome(str, enum.Enum):
    REGISTERED = "registered"
    NOT_FOUND = "not_found"
    FULL = "full"
    FAILED = "failed"
    ERROR = "error"
    ALREADY_HANDLED = "already_handled"


class Trigger(str, enum.Enum):
    ON_DEMAND = "on_demand"
    SWEEP = "sweep"


@dataclass(frozen=True)
class WaitlistTask:
    """Snapshot of the entry fields one cycle needs"""
    id: int
    user_session: str
    course_code: str
    course_name: str
    class_id: str
    class_code: str

    @classmethod
    def from_entry(cls, entry: WaitlistEntry) -> "WaitlistTask":
        return cls(
            id=entry.id,
            user_session=entry.user_session,
            course_code=entry.course_code,
            course_name=entry.course_name or "",
            class_id=str(entry.class_id),
            class_code=entry.class_code or "",
        )


@dataclass
class EntryResult:
    entry_id: int
    class_code: str
    status: WaitlistOutcome
    message: str
    user_session: Optional[str] = None

    def to_dict(self) -> Dict:
        data = {
            "entry_id": self.entry_id,
            "class_code": self.class_code,
            "status": self.status.value,
            "message": self.message,
        }
        if self.user_session is not None:
            data["user_session"] = self.user_session
        return data


@dataclass
class WaitlistRunResult:
    processed: int = 0
    registered: int = 0
    results: List[EntryResult] = field(default_factory=list)

    def add(self, result: EntryResult):
        self.processed += 1
        if result.status is WaitlistOutcome.REGISTERED:
            self.registered += 1
        self.results.append(result)

    def to_dict(self) -> Dict:
        return {
            "processed": self.processed,
            "registered": self.registered,
            "results": [r.to_dict() for r in self.results],
        }


class WaitlistProcessor:
    """
    Runs availability-check-and-register cycles over waiting entries
    """

    def __init__(
        self,
        session: AsyncSession,
        portal_factory: PortalClientFactory,
        email_service: Optional[EmailService] = None,
        period_id: Optional[int] = None,
    ):
        self.session = session
        self.portal_factory = portal_factory
        self.email_service = email_service
        self.period_id = period_id or settings.PORTAL_PERIOD_ID
        self.waitlist = WaitlistStore(session)
        self.logs = RegistrationLogStore(session)
        self.user_configs = UserConfigStore(session)

    async def process_session(self, user_session: str) -> WaitlistRunResult:
        """
        On-demand cycle over one session's waiting entries
        """
        config = await self.user_configs.find_by_session(user_session)
        if config is None:
            raise AuthenticationError("Phiên đăng nhập không hợp lệ")
        portal_session = PortalSession.from_config(config)

        tasks = [WaitlistTask.from_entry(e) for e in await self.waitlist.find_waiting(user_session)]
        run = WaitlistRunResult()
        if not tasks:
            return run

        logger.info(f"[Waitlist] Checking {len(tasks)} entries for {mask_session(user_session)}")
        async with self.portal_factory(portal_session) as portal:
            for task in tasks:
                run.add(await self._process_entry(portal, task, portal_session, Trigger.ON_DEMAND))

        return run

    async def process_all(self) -> WaitlistRunResult:
        """
        Global sweep: every waiting entry whose owner has saved portal credentials.

        Entries are grouped by session so one portal client serves all of a
        session's entries. A failure while handling one session (for instance
        its client cannot be built) is logged and the sweep moves on.
        """
        entries = await self.waitlist.find_waiting()
        run = WaitlistRunResult()
        if not entries:
            logger.info("[Cron Waitlist] No waiting entries found")
            return run

        grouped: Dict[str, List[WaitlistTask]] = {}
        for entry in entries:
            grouped.setdefault(entry.user_session, []).append(WaitlistTask.from_entry(entry))

        configs = await self.user_configs.find_many(list(grouped))
        portal_sessions = {key: PortalSession.from_config(config) for key, config in configs.items()}

        logger.info(f"[Cron Waitlist] Found {len(entries)} waiting entries across {len(grouped)} sessions")

        for user_session, tasks in grouped.items():
            portal_session = portal_sessions.get(user_session)
            if portal_session is None:
                logger.warning(f"[Cron Waitlist] No portal credentials for {mask_session(user_session)}, skipping")
                continue

            try:
                async with self.portal_factory(portal_session) as portal:
                    for task in tasks:
                        result = await self._process_entry(portal, task, portal_session, Trigger.SWEEP)
                        result.user_session = mask_session(user_session)
                        run.add(result)
            except Exception as e:
                logger.error(f"[Cron Waitlist] Error processing session {mask_session(user_session)}: {e}", exc_info=True)

        logger.info(f"[Cron Waitlist] Completed: {run.processed} processed, {run.registered} registered")
        return run

    async def _process_entry(
        self,
        portal: PortalClient,
        task: WaitlistTask,
        portal_session: PortalSession,
        trigger: Trigger,
    ) -> EntryResult:
        try:
            result = await self._check_and_register(portal, task, portal_session, trigger)
        except Exception as e:
            logger.error(f"[Waitlist] Error processing {task.class_code}: {e}", exc_info=True)
            await self.session.rollback()
            result = EntryResult(task.id, task.class_code, WaitlistOutcome.ERROR, str(e) or "Lỗi không xác định")

        record_waitlist_outcome(trigger.value, result.status.value)
        return result

    async def _check_and_register(
        self,
        portal: PortalClient,
        task: WaitlistTask,
        portal_session: PortalSession,
        trigger: Trigger,
    ) -> EntryResult:
        await self.waitlist.update_last_checked(task.id)

        sections = await portal.get_class_sections(self.period_id, task.course_code)
        target = next((s for s in sections if str(s.get("id")) == task.class_id), None)

        if target is None:
            logger.info(f"[Waitlist] Class {task.class_code} not found")
            return EntryResult(task.id, task.class_code, WaitlistOutcome.NOT_FOUND, "Không tìm thấy lớp học phần")

        if not target.get("choDangKy"):
            fill = target.get("phanTramDangKy")
            message = f"Lớp đã đầy ({fill}%)" if fill is not None else "Lớp đã đầy"
            return EntryResult(task.id, task.class_code, WaitlistOutcome.FULL, message)

        logger.info(f"[Waitlist] Slot available for {task.class_code}, attempting registration")
        try:
            # Automated path: no human verification token
            success = await portal.register_for_class(int(task.class_id), verification_token="")
        except PortalError as e:
            await self._append_log(task, LogStatus.FAILED, f"Đăng ký tự động từ waitlist lỗi: {e.message}")
            return EntryResult(task.id, task.class_code, WaitlistOutcome.ERROR, e.message)
        except Exception as e:
            logger.error(f"[Waitlist] Registration call failed for {task.class_code}: {e}", exc_info=True)
            error = str(e) or type(e).__name__
            await self._append_log(task, LogStatus.FAILED, f"Đăng ký tự động từ waitlist lỗi: {error}")
            return EntryResult(task.id, task.class_code, WaitlistOutcome.ERROR, error)

        if not success:
            await self._append_log(task, LogStatus.FAILED, "Đăng ký tự động từ waitlist thất bại")
            return EntryResult(task.id, task.class_code, WaitlistOutcome.FAILED, "Đăng ký thất bại")

        if not await self.waitlist.mark_registered(task.id):
            # The portal enrolment happened, so it is logged even though the entry moved on
            logger.info(f"[Waitlist] Entry {task.id} was already handled by another invocation")
            await self._append_log(
                task, LogStatus.SUCCESS, "Đăng ký thành công nhưng mục đã bị hủy hoặc đã được xử lý trước đó"
            )
            return EntryResult(
                task.id, task.class_code, WaitlistOutcome.ALREADY_HANDLED, "Mục đã được xử lý bởi lượt kiểm tra khác"
            )

        source = "cron job" if trigger is Trigger.SWEEP else "waitlist"
        await self._append_log(task, LogStatus.SUCCESS, f"Đăng ký tự động từ {source} thành công")
        logger.info(f"[Waitlist] Successfully registered {task.class_code}")

        if self.email_service and portal_session.notification_email:
            await self.email_service.send_registration_success(
                portal_session.notification_email, task.course_name, task.class_code
            )

        return EntryResult(task.id, task.class_code, WaitlistOutcome.REGISTERED, "Đăng ký thành công!")

    async def _append_log(self, task: WaitlistTask, status: LogStatus, message: str):
        await self.logs.append(
            user_session=task.user_session,
            action=LogAction.REGISTER,
            status=status,
            message=message,
            course_name=task.course_name,
            class_code=task.class_code,
        )
