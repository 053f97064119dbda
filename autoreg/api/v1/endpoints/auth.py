"""
Authentication endpoints
"""

from typing import Any
import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from autoreg.config import settings
from autoreg.core.database import get_session
from autoreg.core.exceptions import AuthenticationError, ValidationError
from autoreg.core.logging import mask_session
from autoreg.core.security import create_session_token, read_session_cookie, session_key_for
from autoreg.schemas.auth import LoginData, LoginRequest
from autoreg.schemas.response import ApiResponse
from autoreg.services.portal_client import PortalClientFactory, PortalSession, get_portal_client_factory
from autoreg.services.recaptcha import RecaptchaService, get_recaptcha_service
from autoreg.services.stores import UserConfigStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=ApiResponse)
async def login(
    credentials: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_session),
    portal_factory: PortalClientFactory = Depends(get_portal_client_factory),
    recaptcha: RecaptchaService = Depends(get_recaptcha_service),
) -> Any:
    """
    Log in to the student portal and open a session here.

    The portal cookies and token are saved under ``uth_<username>`` so that
    background work can act for the student later.
    """
    remote_ip = request.client.host if request.client else None
    if not await recaptcha.verify(credentials.recaptcha_token, remote_ip):
        raise ValidationError("Xác thực reCAPTCHA thất bại", field="recaptchaToken")

    async with portal_factory(PortalSession(user_session="")) as portal:
        result = await portal.login(credentials.username, credentials.password, credentials.recaptcha_token)

    if not result.success:
        raise AuthenticationError(result.message or "Đăng nhập thất bại")

    user_session = session_key_for(credentials.username)
    await UserConfigStore(db).upsert(user_session, result.cookies, result.token)
    logger.info(f"Login succeeded for {mask_session(user_session)}")

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=create_session_token(user_session),
        max_age=settings.SESSION_EXPIRE_HOURS * 3600,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )

    data = LoginData(user_session=user_session, student_type=result.student_type)
    return ApiResponse(message="Đăng nhập thành công", data=data.model_dump(by_alias=True))


@router.delete("/login", response_model=ApiResponse)
async def logout(response: Response) -> Any:
    """
    Clear the session cookie. Saved waitlists, schedules and settings are kept.
    """
    response.delete_cookie(settings.SESSION_COOKIE_NAME, path="/")
    return ApiResponse(message="Đăng xuất thành công")


@router.get("/check")
async def check(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> Any:
    """
    Whether the caller holds a valid session
    """
    user_session = read_session_cookie(request)
    if user_session is None:
        return {"authenticated": False}

    if await UserConfigStore(db).find_by_session(user_session) is None:
        return {"authenticated": False}

    return {"authenticated": True, "userSession": user_session}
