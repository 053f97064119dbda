"""
Course and section endpoints: portal lookups plus manual register and cancel
"""

from typing import Any, Optional
import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from autoreg.config import settings
from autoreg.core.database import get_session
from autoreg.core.exceptions import PortalError, ValidationError
from autoreg.core.logging import mask_session
from autoreg.core.security import get_current_portal_session
from autoreg.models.registration_log import LogAction, LogStatus
from autoreg.schemas.courses import SectionCancelRequest, SectionRegisterRequest
from autoreg.schemas.response import ApiResponse
from autoreg.services.portal_client import PortalClientFactory, PortalSession, get_portal_client_factory
from autoreg.services.recaptcha import RecaptchaService, get_recaptcha_service
from autoreg.services.stores import RegistrationLogStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/available", response_model=ApiResponse)
async def get_available_courses(
    period_id: Optional[int] = Query(None, alias="idDot"),
    portal_session: PortalSession = Depends(get_current_portal_session),
    portal_factory: PortalClientFactory = Depends(get_portal_client_factory),
) -> Any:
    """
    Courses the student may register for in the period
    """
    async with portal_factory(portal_session) as portal:
        courses = await portal.get_available_courses(period_id or settings.PORTAL_PERIOD_ID)
    return ApiResponse(data=courses)


@router.get("/registered", response_model=ApiResponse)
async def get_registered_courses(
    period_id: Optional[int] = Query(None, alias="idDot"),
    portal_session: PortalSession = Depends(get_current_portal_session),
    portal_factory: PortalClientFactory = Depends(get_portal_client_factory),
) -> Any:
    async with portal_factory(portal_session) as portal:
        courses = await portal.get_registered_courses(period_id or settings.PORTAL_PERIOD_ID)
    return ApiResponse(data=courses)


@router.get("/classes", response_model=ApiResponse)
async def get_class_sections(
    course_code: str = Query(..., alias="courseCode", min_length=1),
    period_id: Optional[int] = Query(None, alias="idDot"),
    filter_conflicts: bool = Query(False, alias="isLocTrung"),
    filter_conflicts_without_elearning: bool = Query(False, alias="isLocTrungWithoutElearning"),
    portal_session: PortalSession = Depends(get_current_portal_session),
    portal_factory: PortalClientFactory = Depends(get_portal_client_factory),
) -> Any:
    """
    Sections open for registration in a course
    """
    async with portal_factory(portal_session) as portal:
        sections = await portal.get_class_sections(
            period_id or settings.PORTAL_PERIOD_ID,
            course_code,
            filter_conflicts,
            filter_conflicts_without_elearning,
        )
    return ApiResponse(data=sections)


@router.get("/schedule-detail", response_model=ApiResponse)
async def get_schedule_detail(
    class_id: int = Query(..., alias="classId"),
    portal_session: PortalSession = Depends(get_current_portal_session),
    portal_factory: PortalClientFactory = Depends(get_portal_client_factory),
) -> Any:
    async with portal_factory(portal_session) as portal:
        detail = await portal.get_class_schedule_detail(class_id)
    return ApiResponse(data=detail)


async def _call_and_log(
    logs: RegistrationLogStore,
    portal_session: PortalSession,
    action: LogAction,
    course_name: str,
    class_code: str,
    call,
) -> bool:
    """
    Run one portal register/cancel call and append its audit row, whatever
    the result. Exceptions are re-raised after they are logged.
    """
    labels = {
        LogAction.REGISTER: ("Đăng ký thành công", "Đăng ký thất bại"),
        LogAction.CANCEL: ("Hủy đăng ký thành công", "Hủy đăng ký thất bại"),
    }[action]

    async def record(status: LogStatus, message: str):
        await logs.append(
            user_session=portal_session.user_session,
            action=action,
            status=status,
            message=message,
            course_name=course_name,
            class_code=class_code,
        )

    try:
        success = await call()
    except PortalError as e:
        await record(LogStatus.FAILED, e.message)
        raise
    except Exception as e:
        logger.error(f"Manual {action.value} failed for {mask_session(portal_session.user_session)}: {e}")
        await record(LogStatus.FAILED, str(e) or type(e).__name__)
        raise

    await record(LogStatus.SUCCESS if success else LogStatus.FAILED, labels[0] if success else labels[1])
    return success


@router.post("/register", response_model=ApiResponse)
async def register_section(
    registration: SectionRegisterRequest,
    request: Request,
    portal_session: PortalSession = Depends(get_current_portal_session),
    portal_factory: PortalClientFactory = Depends(get_portal_client_factory),
    recaptcha: RecaptchaService = Depends(get_recaptcha_service),
    db: AsyncSession = Depends(get_session),
) -> Any:
    """
    Register into a section on the student's behalf.

    The reCAPTCHA token is verified here and forwarded to the portal. Bulk
    submissions carry no token and skip the check.
    """
    logs = RegistrationLogStore(db)

    if not registration.is_bulk:
        if not registration.recaptcha_token:
            raise ValidationError("Thiếu thông tin đăng ký", field="recaptchaToken")

        remote_ip = request.client.host if request.client else None
        if not await recaptcha.verify(registration.recaptcha_token, remote_ip):
            await logs.append(
                user_session=portal_session.user_session,
                action=LogAction.REGISTER,
                status=LogStatus.FAILED,
                message="Xác thực reCAPTCHA thất bại",
                course_name=registration.course_name,
                class_code=registration.class_code,
            )
            raise ValidationError("Xác thực reCAPTCHA thất bại", field="recaptchaToken")

    async with portal_factory(portal_session) as portal:
        success = await _call_and_log(
            logs, portal_session, LogAction.REGISTER,
            registration.course_name, registration.class_code,
            lambda: portal.register_for_class(registration.class_id, registration.recaptcha_token),
        )

    if not success:
        raise ValidationError("Đăng ký học phần thất bại")
    return ApiResponse(message="Đăng ký học phần thành công")


@router.post("/cancel", response_model=ApiResponse)
async def cancel_section(
    cancellation: SectionCancelRequest,
    portal_session: PortalSession = Depends(get_current_portal_session),
    portal_factory: PortalClientFactory = Depends(get_portal_client_factory),
    db: AsyncSession = Depends(get_session),
) -> Any:
    """
    Cancel one of the student's registrations at the portal
    """
    async with portal_factory(portal_session) as portal:
        success = await _call_and_log(
            RegistrationLogStore(db), portal_session, LogAction.CANCEL,
            cancellation.course_name, cancellation.class_code,
            lambda: portal.cancel_registration(cancellation.registration_id, cancellation.recaptcha_token),
        )

    if not success:
        raise ValidationError("Hủy đăng ký học phần thất bại")
    return ApiResponse(message="Hủy đăng ký học phần thành công")
