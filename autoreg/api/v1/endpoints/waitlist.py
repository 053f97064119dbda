"""
Waitlist endpoints
"""

from typing import Any
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from autoreg.core.database import get_session
from autoreg.core.exceptions import ConflictError, NotFoundError
from autoreg.core.security import get_current_session
from autoreg.models.waitlist import WaitlistStatus
from autoreg.schemas.response import ApiResponse
from autoreg.schemas.waitlist import WaitlistCreate, WaitlistCreated, WaitlistEntryResponse
from autoreg.services.email_service import EmailService, get_email_service
from autoreg.services.portal_client import PortalClientFactory, get_portal_client_factory
from autoreg.services.stores import WaitlistStore
from autoreg.services.waitlist_processor import WaitlistProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=ApiResponse)
async def list_waitlist(
    user_session: str = Depends(get_current_session),
    db: AsyncSession = Depends(get_session),
) -> Any:
    """
    The caller's waitlist entries, newest first, in every status
    """
    entries = await WaitlistStore(db).find_by_user_session(user_session)
    return ApiResponse(data=[WaitlistEntryResponse.model_validate(e) for e in entries])


@router.post("", response_model=ApiResponse)
async def add_to_waitlist(
    entry_data: WaitlistCreate,
    user_session: str = Depends(get_current_session),
    db: AsyncSession = Depends(get_session),
) -> Any:
    """
    Queue a section for automatic registration once it has room
    """
    entry = await WaitlistStore(db).insert(
        user_session=user_session,
        course_code=entry_data.course_code,
        class_id=entry_data.class_id,
        course_name=entry_data.course_name,
        class_code=entry_data.class_code,
        priority=entry_data.priority,
        check_interval=entry_data.check_interval,
    )
    logger.info(f"Waitlist entry {entry.id} added for class {entry.class_code or entry.class_id}")

    return ApiResponse(
        message="Đã thêm vào danh sách chờ",
        data=WaitlistCreated(waitlist_id=entry.id).model_dump(by_alias=True),
    )


@router.delete("", response_model=ApiResponse)
async def remove_from_waitlist(
    id: int = Query(..., description="Waitlist entry id"),
    user_session: str = Depends(get_current_session),
    db: AsyncSession = Depends(get_session),
) -> Any:
    """
    Cancel one of the caller's waiting entries.

    Entries owned by another session are reported as not found.
    """
    store = WaitlistStore(db)
    entry = await store.find_by_id(id)
    if entry is None or entry.user_session != user_session:
        raise NotFoundError("Waitlist entry", id)

    if not await store.cancel(id):
        # Registered, expired or cancelled by a concurrent request
        raise ConflictError(
            "Mục này không còn ở trạng thái chờ",
            details={"status": WaitlistStatus(entry.status).value},
        )

    return ApiResponse(message="Đã xóa khỏi danh sách chờ")


@router.post("/check", response_model=ApiResponse)
async def check_waitlist(
    user_session: str = Depends(get_current_session),
    db: AsyncSession = Depends(get_session),
    portal_factory: PortalClientFactory = Depends(get_portal_client_factory),
    email_service: EmailService = Depends(get_email_service),
) -> Any:
    """
    Run one availability-check-and-register cycle over the caller's waiting entries
    """
    processor = WaitlistProcessor(db, portal_factory, email_service)
    run = await processor.process_session(user_session)

    if run.processed == 0:
        message = "Không có mục nào trong danh sách chờ"
    else:
        message = f"Đã kiểm tra {run.processed} mục, đăng ký thành công {run.registered}"

    return ApiResponse(message=message, data=run.to_dict())
