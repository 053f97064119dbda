"""
Test configuration and fixtures
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment before the application reads its settings
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-at-least-32-characters"
os.environ["SENDGRID_API_KEY"] = ""
os.environ["PORTAL_RETRY_DELAY_SECONDS"] = "0"
os.environ["PROMETHEUS_ENABLED"] = "false"

from autoreg.config import settings
from autoreg.core.database import Base, get_session
from autoreg.core.exceptions import PortalError
from autoreg.core.security import create_session_token
import autoreg.models  # noqa: F401
from autoreg.services.email_service import EmailService, get_email_service
from autoreg.services.portal_client import PortalLoginResult, PortalSession, get_portal_client_factory
from autoreg.services.recaptcha import RecaptchaService, get_recaptcha_service
from autoreg.services.stores import UserConfigStore

STUDENT_SESSION = "uth_2251120001"
OTHER_SESSION = "uth_2251120002"


class FakePortal:
    """
    In-memory stand-in for PortalClient.

    ``sections`` maps a course code to the section list the portal would
    return; a value that is an exception instance is raised instead.
    ``register_result`` is returned by ``register_for_class`` (or raised when
    it is an exception).
    """

    def __init__(self):
        self.sections: Dict[str, Any] = {}
        self.registered_courses: Any = []
        self.register_result: Any = True
        self.on_register: Optional[Callable] = None
        self.cancel_result: Any = True
        self.available_courses: List[Dict[str, Any]] = []
        self.student_info: Optional[Dict[str, Any]] = None
        self.student_image: Optional[str] = None
        self.timetable: List[Dict[str, Any]] = []
        self.login_result = PortalLoginResult(
            success=True,
            message="OK",
            token="portal-token",
            cookies={"ASP.NET_SessionId": "abc123"},
            student_type={"loaiSinhVien": 1},
        )
        self.register_calls: List[int] = []
        self.register_tokens: List[str] = []
        self.cancel_calls: List[int] = []
        self.timetable_dates: List[str] = []
        self.section_calls: List[str] = []
        self.sessions_used: List[PortalSession] = []

    async def __aenter__(self) -> "FakePortal":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def login(self, username: str, password: str, recaptcha_token: str = "") -> PortalLoginResult:
        return self.login_result

    async def get_class_sections(self, period_id: int, course_code: str, *args) -> List[Dict[str, Any]]:
        self.section_calls.append(course_code)
        sections = self.sections.get(course_code, [])
        if isinstance(sections, Exception):
            raise sections
        return sections

    async def get_registered_courses(self, period_id: int) -> List[Dict[str, Any]]:
        if isinstance(self.registered_courses, Exception):
            raise self.registered_courses
        return self.registered_courses

    async def register_for_class(self, class_id: int, verification_token: str = "") -> bool:
        self.register_calls.append(class_id)
        self.register_tokens.append(verification_token)
        if self.on_register is not None:
            await self.on_register(class_id)
        if isinstance(self.register_result, Exception):
            raise self.register_result
        return self.register_result

    async def get_class_schedule_detail(self, class_id: int) -> List[Dict[str, Any]]:
        return [{"id": class_id, "thu": 2, "tietBatDau": 1, "tietKetThuc": 3}]

    async def get_available_courses(self, period_id: int) -> List[Dict[str, Any]]:
        return self.available_courses

    async def cancel_registration(self, registration_id: int, verification_token: Optional[str] = None) -> bool:
        self.cancel_calls.append(registration_id)
        if isinstance(self.cancel_result, Exception):
            raise self.cancel_result
        return self.cancel_result

    async def get_student_info(self) -> Optional[Dict[str, Any]]:
        return self.student_info

    async def get_student_image(self) -> Optional[str]:
        return self.student_image

    async def get_lich_hoc(self, date: str) -> List[Dict[str, Any]]:
        self.timetable_dates.append(date)
        return self.timetable


class RecordingEmailService(EmailService):
    """Captures outgoing mail instead of calling SendGrid"""

    def __init__(self):
        super().__init__(api_key="", from_email="noreply@test.local")
        self.sent: List[Dict[str, str]] = []

    async def send_email(self, to_email: str, subject: str, html: str) -> bool:
        self.sent.append({"to": to_email, "subject": subject, "html": html})
        return True


def section(class_id: int, open_: bool = True, fill: int = 50, code: str = "") -> Dict[str, Any]:
    return {
        "id": class_id,
        "maLopHocPhan": code or f"LHP{class_id}",
        "choDangKy": open_,
        "phanTramDangKy": fill,
    }


@pytest_asyncio.fixture(scope="function")
async def test_db():
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_db) -> AsyncGenerator[AsyncSession, None]:
    async_session_maker = async_sessionmaker(
        test_db,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        try:
            yield session
        finally:
            if session.in_transaction():
                await session.rollback()


@pytest.fixture
def fake_portal() -> FakePortal:
    return FakePortal()


@pytest.fixture
def portal_factory(fake_portal):
    def factory(portal_session: PortalSession) -> FakePortal:
        fake_portal.sessions_used.append(portal_session)
        return fake_portal
    return factory


@pytest.fixture
def email_service() -> RecordingEmailService:
    return RecordingEmailService()


@pytest.fixture
def clock():
    """Settable clock for the scheduler"""
    class Clock:
        now = datetime(2026, 1, 5, 7, 0, tzinfo=timezone.utc)

        def __call__(self) -> datetime:
            return self.now

        def advance(self, **kwargs):
            self.now = self.now + timedelta(**kwargs)

    return Clock()


@pytest_asyncio.fixture
async def student(db_session) -> str:
    """A logged-in student with saved portal credentials"""
    await UserConfigStore(db_session).upsert(STUDENT_SESSION, {"ASP.NET_SessionId": "abc123"}, "portal-token")
    return STUDENT_SESSION


@pytest_asyncio.fixture
async def other_student(db_session) -> str:
    await UserConfigStore(db_session).upsert(OTHER_SESSION, {"ASP.NET_SessionId": "def456"}, "other-token")
    return OTHER_SESSION


@pytest_asyncio.fixture
async def client(db_session, portal_factory, email_service):
    """Create test client with dependency overrides"""
    from autoreg.main import app

    def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_portal_client_factory] = lambda: portal_factory
    app.dependency_overrides[get_email_service] = lambda: email_service
    app.dependency_overrides[get_recaptcha_service] = lambda: RecaptchaService(secret_key="")

    try:
        transport = ASGITransport(app=app, raise_app_exceptions=False)
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def auth_client(client, student) -> AsyncClient:
    """Client carrying the student's session cookie"""
    client.cookies.set(settings.SESSION_COOKIE_NAME, create_session_token(student))
    return client


@pytest.fixture
def portal_error() -> PortalError:
    return PortalError("Lỗi kết nối tới server UTH")
