"""
Per-user settings (notification email)
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from autoreg.core.database import get_session
from autoreg.core.exceptions import NotFoundError
from autoreg.core.security import get_current_portal_session, get_current_session
from autoreg.schemas.auth import NotificationSettings
from autoreg.schemas.response import ApiResponse
from autoreg.services.portal_client import PortalSession
from autoreg.services.stores import UserConfigStore

router = APIRouter()


@router.get("", response_model=ApiResponse)
async def get_settings(
    portal_session: PortalSession = Depends(get_current_portal_session),
) -> Any:
    return ApiResponse(data={"notification_email": portal_session.notification_email})


@router.post("", response_model=ApiResponse)
async def update_settings(
    preferences: NotificationSettings,
    user_session: str = Depends(get_current_session),
    db: AsyncSession = Depends(get_session),
) -> Any:
    """
    Set the address registration outcomes are mailed to; empty turns mail off
    """
    email = str(preferences.email) if preferences.email else None
    if not await UserConfigStore(db).update_notification_email(user_session, email):
        raise NotFoundError("User config")

    message = "Đã cập nhật email thông báo" if email else "Đã tắt thông báo email"
    return ApiResponse(message=message)
