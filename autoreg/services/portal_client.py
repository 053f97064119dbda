"""
Student portal (UTH) API client

Thin async wrapper around the portal's JSON endpoints. Every portal response
uses the envelope ``{success, status, message, body, token}``; a failure
envelope or an HTTP error is raised as ``PortalError``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import httpx

from autoreg.config import settings
from autoreg.core.exceptions import PortalError
from autoreg.models.user_config import UserConfig

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/143.0.0.0 Safari/537.36"
)


@dataclass
class PortalLoginResult:
    success: bool
    message: str
    token: str
    cookies: Dict[str, str] = field(default_factory=dict)
    student_type: Any = None


class PortalClient:
    """
    Client bound to one student's portal session (cookies + bearer token)
    """

    def __init__(
        self,
        cookies: Optional[Dict[str, str]] = None,
        token: str = "",
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cookies = dict(cookies or {})
        self.token = token or ""
        self.base_url = (base_url or settings.PORTAL_BASE_URL).rstrip("/")
        self.retry_attempts = max(1, settings.PORTAL_RETRY_ATTEMPTS)
        self.retry_delay = settings.PORTAL_RETRY_DELAY_SECONDS
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.PORTAL_TIMEOUT_SECONDS,
            transport=transport,
            headers={
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
                "Origin": settings.PORTAL_ORIGIN,
                "Referer": f"{settings.PORTAL_ORIGIN}/coursesregistration",
            },
        )

    async def __aenter__(self) -> "PortalClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    def _auth_headers(self) -> Dict[str, str]:
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.cookies:
            headers["Cookie"] = "; ".join(f"{name}={value}" for name, value in self.cookies.items())
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Authenticated request with retry on transport errors and non-2xx answers.

        Failure envelopes are not retried: the portal answered and said no.
        """
        last_error: Optional[PortalError] = None

        for attempt in range(1, self.retry_attempts + 1):
            try:
                response = await self._client.request(
                    method, path, params=params, headers=self._auth_headers()
                )
                if response.is_error:
                    raise PortalError(
                        f"HTTP {response.status_code}: {response.reason_phrase}",
                        response.status_code,
                    )
                break
            except httpx.HTTPError as e:
                last_error = PortalError(f"Lỗi kết nối tới server UTH: {type(e).__name__}")
            except PortalError as e:
                last_error = e

            logger.warning(
                f"Portal {method} {path} failed (attempt {attempt}/{self.retry_attempts}): {last_error.message}"
            )
            if attempt < self.retry_attempts:
                await asyncio.sleep(self.retry_delay * attempt)
        else:
            raise last_error

        try:
            data = response.json()
        except ValueError:
            raise PortalError("Phản hồi không hợp lệ từ server UTH", response.status_code)

        if not data.get("success"):
            raise PortalError(data.get("message") or "API request failed", data.get("status"))

        return data

    async def login(self, username: str, password: str, recaptcha_token: str = "") -> PortalLoginResult:
        """
        Log in with portal credentials; the token and cookies are kept on the client.

        A rejected login comes back as ``success=False``; only transport
        failures raise ``PortalError``.
        """
        try:
            response = await self._client.post(
                "/user/login",
                params={"g-recaptcha-response": recaptcha_token},
                json={"username": username, "password": password},
            )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Portal login error: {e}")
            raise PortalError("Lỗi kết nối tới server UTH")

        if not data.get("success"):
            return PortalLoginResult(
                success=False,
                message=data.get("message") or "Đăng nhập thất bại",
                token="",
            )

        self.token = data.get("token") or ""
        self.cookies = {name: value for name, value in response.cookies.items()}

        return PortalLoginResult(
            success=True,
            message=data.get("message") or "",
            token=self.token,
            cookies=self.cookies,
            student_type=data.get("body"),
        )

    async def get_available_courses(self, period_id: int) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/dkhp/getHocPhanHocMoi", {"idDot": period_id})
        return data.get("body") or []

    async def get_class_sections(
        self,
        period_id: int,
        course_code: str,
        filter_conflicts: bool = False,
        filter_conflicts_without_elearning: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Sections open for a course. Each item carries at least ``id``,
        ``maLopHocPhan``, ``choDangKy`` (accepting registrations) and
        ``phanTramDangKy`` (fill percentage).
        """
        data = await self._request(
            "GET",
            "/dkhp/getLopHocPhanChoDangKy",
            {
                "idDot": period_id,
                "maHocPhan": course_code,
                "isLocTrung": str(filter_conflicts).lower(),
                "isLocTrungWithoutElearning": str(filter_conflicts_without_elearning).lower(),
            },
        )
        return data.get("body") or []

    async def get_registered_courses(self, period_id: int) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/dkhp/getLHPDaDangKy", {"idDot": period_id})
        return data.get("body") or []

    async def register_for_class(self, class_id: int, verification_token: str = "") -> bool:
        data = await self._request(
            "POST",
            "/dkhp/dangKyLopHocPhan",
            {"idLopHocPhan": class_id, "g-recaptcha-response": verification_token},
        )
        return bool(data.get("success")) and data.get("status") == 200

    async def cancel_registration(self, registration_id: int, verification_token: Optional[str] = None) -> bool:
        params: Dict[str, Any] = {"idDangKy": registration_id}
        if verification_token:
            params["g-recaptcha-response"] = verification_token
        data = await self._request("DELETE", "/dkhp/huyDangKy", params)
        return bool(data.get("success")) and data.get("status") == 200

    async def get_student_info(self) -> Optional[Dict[str, Any]]:
        try:
            data = await self._request("GET", "/user/getSummaryProfile")
            return data.get("body")
        except PortalError as e:
            logger.error(f"Failed to get student info: {e.message}")
            return None

    async def get_student_image(self) -> Optional[str]:
        try:
            data = await self._request("GET", "/user/image")
            return data.get("body")
        except PortalError as e:
            logger.error(f"Failed to get student image: {e.message}")
            return None

    async def get_lich_hoc(self, date: str) -> List[Dict[str, Any]]:
        """Weekly timetable around ``date`` (YYYY-MM-DD)"""
        data = await self._request("GET", "/lichhoc/lichTuan", {"date": date})
        return data.get("body") or []

    async def get_class_schedule_detail(self, class_id: int) -> List[Dict[str, Any]]:
        data = await self._request("GET", "/dkhp/getLopHocPhanDetail", {"idLopHocPhan": class_id})
        return data.get("body") or []


@dataclass(frozen=True)
class PortalSession:
    """
    Plain snapshot of a UserConfig row.

    Engines read it once up front so that a rollback (which expires ORM
    instances) never forces a lazy load in the middle of a batch.
    """
    user_session: str
    cookies: Dict[str, str] = field(default_factory=dict)
    token: str = ""
    notification_email: Optional[str] = None

    @classmethod
    def from_config(cls, config: UserConfig) -> "PortalSession":
        return cls(
            user_session=config.user_session,
            cookies=dict(config.portal_cookies or {}),
            token=config.portal_token or "",
            notification_email=config.notification_email,
        )


PortalClientFactory = Callable[[PortalSession], PortalClient]


def portal_client_for(portal_session: PortalSession) -> PortalClient:
    """
    Build a client from the session material saved at login
    """
    return PortalClient(cookies=portal_session.cookies, token=portal_session.token)


def get_portal_client_factory() -> PortalClientFactory:
    """
    Dependency returning the factory used to build per-session clients
    """
    return portal_client_for
