"""
Scheduled registration endpoints
"""

from typing import Any
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from autoreg.config import settings
from autoreg.core.database import get_session
from autoreg.core.exceptions import ConflictError, NotFoundError, ValidationError
from autoreg.core.security import get_current_session
from autoreg.schemas.response import ApiResponse
from autoreg.schemas.scheduler import (
    RegistrationLogResponse,
    ScheduleCreate,
    ScheduleResponse,
    SchedulerOverview,
)
from autoreg.services.email_service import EmailService, get_email_service
from autoreg.services.portal_client import PortalClientFactory, get_portal_client_factory
from autoreg.services.scheduler import AutoRegistrationScheduler, ScheduleRequest
from autoreg.services.stores import RegistrationLogStore

logger = logging.getLogger(__name__)

router = APIRouter()


def get_scheduler(
    db: AsyncSession = Depends(get_session),
    portal_factory: PortalClientFactory = Depends(get_portal_client_factory),
    email_service: EmailService = Depends(get_email_service),
) -> AutoRegistrationScheduler:
    return AutoRegistrationScheduler(db, portal_factory, email_service)


@router.post("", response_model=ApiResponse)
async def create_schedule(
    schedule_data: ScheduleCreate,
    user_session: str = Depends(get_current_session),
    scheduler: AutoRegistrationScheduler = Depends(get_scheduler),
) -> Any:
    """
    Schedule a one-shot registration attempt at (or after) a given time
    """
    result = await scheduler.schedule_registration(
        ScheduleRequest(
            user_session=user_session,
            course_code=schedule_data.course_code,
            class_id=schedule_data.class_id,
            course_name=schedule_data.course_name,
            class_code=schedule_data.class_code,
            schedule_time=schedule_data.schedule_time,
            max_retries=schedule_data.max_retries,
        )
    )

    if not result.accepted:
        error = ValidationError(result.message)
        if result.id is not None:
            error.details["registrationId"] = result.id
        raise error

    return ApiResponse(message=result.message, data={"registrationId": result.id})


@router.get("", response_model=ApiResponse)
async def list_schedules(
    user_session: str = Depends(get_current_session),
    db: AsyncSession = Depends(get_session),
    scheduler: AutoRegistrationScheduler = Depends(get_scheduler),
) -> Any:
    """
    Run the caller's due schedules, then list schedules and recent log entries.

    This poll is what drives scheduled registrations; nothing fires between polls.
    """
    await scheduler.check_and_execute_pending_schedules(user_session)

    schedules = await scheduler.get_user_schedules(user_session)
    logs = await RegistrationLogStore(db).find_by_user_session(user_session, limit=settings.SCHEDULER_LOG_LIMIT)

    overview = SchedulerOverview(
        schedules=[ScheduleResponse.model_validate(s) for s in schedules],
        logs=[RegistrationLogResponse.model_validate(log) for log in logs],
    )
    return ApiResponse(data=overview)


@router.delete("", response_model=ApiResponse)
async def cancel_schedule(
    id: int = Query(..., description="Schedule id"),
    user_session: str = Depends(get_current_session),
    scheduler: AutoRegistrationScheduler = Depends(get_scheduler),
) -> Any:
    """
    Cancel one of the caller's pending schedules
    """
    if await scheduler.get_schedule(user_session, id) is None:
        raise NotFoundError("Schedule", id)

    if not await scheduler.cancel_schedule(user_session, id):
        raise ConflictError("Không thể hủy lịch đăng ký")

    return ApiResponse(message="Đã hủy lịch đăng ký")
