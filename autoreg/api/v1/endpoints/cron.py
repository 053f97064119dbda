"""
Externally triggered sweeps

Recurrence belongs to the deployment: an external scheduler calls these
endpoints (every minute for the waitlist).
"""

from typing import Any
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from autoreg.core.database import get_session
from autoreg.core.security import verify_cron_secret
from autoreg.schemas.response import CronResponse
from autoreg.services.email_service import EmailService, get_email_service
from autoreg.services.portal_client import PortalClientFactory, get_portal_client_factory
from autoreg.services.waitlist_processor import WaitlistProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/waitlist", response_model=CronResponse, dependencies=[Depends(verify_cron_secret)])
async def sweep_waitlist(
    db: AsyncSession = Depends(get_session),
    portal_factory: PortalClientFactory = Depends(get_portal_client_factory),
    email_service: EmailService = Depends(get_email_service),
) -> Any:
    """
    Global waitlist sweep across every session with saved portal credentials
    """
    logger.info("[Cron Waitlist] Starting automatic waitlist check")
    run = await WaitlistProcessor(db, portal_factory, email_service).process_all()

    if run.processed == 0:
        message = "Không có mục nào trong danh sách chờ"
    else:
        message = f"Đã xử lý {run.processed} mục, đăng ký thành công {run.registered}"

    return CronResponse(message=message, data=run.to_dict())
