"""
Session cookie handling and request authentication
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import hmac
import logging

from fastapi import Depends, Request
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from autoreg.config import settings
from autoreg.core.database import get_session
from autoreg.core.exceptions import AuthenticationError
from autoreg.services.portal_client import PortalSession
from autoreg.services.stores import UserConfigStore

logger = logging.getLogger(__name__)


def session_key_for(username: str) -> str:
    """
    Stable session key per portal account, so waitlists, schedules and
    settings survive a logout and a later login.
    """
    return f"uth_{username}"


class SecurityManager:
    """
    Signs and verifies the ``user-session`` cookie
    """

    @staticmethod
    def create_session_token(user_session: str, expires_delta: Optional[timedelta] = None) -> str:
        expire = datetime.now(timezone.utc) + (
            expires_delta or timedelta(hours=settings.SESSION_EXPIRE_HOURS)
        )
        to_encode = {
            "sub": user_session,
            "exp": expire,
            "type": "session",
        }
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    @staticmethod
    def decode_session_token(token: str) -> Dict[str, Any]:
        """
        Decode and verify a session token
        """
        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        except JWTError as e:
            logger.info(f"Rejected session token: {e}")
            raise AuthenticationError()

        if payload.get("type") != "session" or not payload.get("sub"):
            raise AuthenticationError()
        return payload


security_manager = SecurityManager()


def create_session_token(user_session: str, expires_delta: Optional[timedelta] = None) -> str:
    return security_manager.create_session_token(user_session, expires_delta)


def read_session_cookie(request: Request) -> Optional[str]:
    """
    ``user_session`` carried by a valid cookie, or None
    """
    token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        return None
    try:
        return security_manager.decode_session_token(token)["sub"]
    except AuthenticationError:
        return None


async def get_current_session(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> str:
    """
    The authenticated ``user_session``. The cookie must verify and the
    session must still have saved portal credentials.
    """
    user_session = read_session_cookie(request)
    if user_session is None:
        raise AuthenticationError()

    if await UserConfigStore(db).find_by_session(user_session) is None:
        raise AuthenticationError("Phiên đăng nhập không hợp lệ")

    return user_session


async def verify_cron_secret(request: Request):
    """
    Bearer check for the cron trigger. Open when ``CRON_SECRET`` is unset.
    """
    if not settings.CRON_SECRET:
        return

    expected = f"Bearer {settings.CRON_SECRET}"
    provided = request.headers.get("authorization", "")
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Cron trigger rejected: bad or missing bearer token")
        raise AuthenticationError("Unauthorized")


async def get_current_portal_session(
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> PortalSession:
    """
    Like ``get_current_session`` but returns the saved portal credentials
    """
    user_session = read_session_cookie(request)
    if user_session is None:
        raise AuthenticationError()

    config = await UserConfigStore(db).find_by_session(user_session)
    if config is None:
        raise AuthenticationError("Phiên đăng nhập không hợp lệ")

    return PortalSession.from_config(config)
