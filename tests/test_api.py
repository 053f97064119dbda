"""
Tests for the HTTP endpoints
"""

import httpx
import pytest
from httpx import AsyncClient

from autoreg.config import settings
from autoreg.core.security import create_session_token
from autoreg.models.registration_log import LogAction, LogStatus
from autoreg.models.waitlist import WaitlistStatus
from autoreg.services.portal_client import PortalLoginResult
from autoreg.services.recaptcha import RecaptchaService, get_recaptcha_service
from autoreg.services.stores import RegistrationLogStore, WaitlistStore
from tests.conftest import section

pytestmark = pytest.mark.integration

API = settings.API_PREFIX


class TestAuthEndpoints:

    @pytest.mark.asyncio
    async def test_login_sets_session_cookie(self, client: AsyncClient, fake_portal):
        response = await client.post(
            f"{API}/auth/login",
            json={"username": "2251120001", "password": "secret", "recaptchaToken": "tok"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["userSession"] == "uth_2251120001"
        assert settings.SESSION_COOKIE_NAME in response.cookies

        check = await client.get(f"{API}/auth/check")
        assert check.json() == {"authenticated": True, "userSession": "uth_2251120001"}

    @pytest.mark.asyncio
    async def test_rejected_login_is_401(self, client: AsyncClient, fake_portal):
        fake_portal.login_result = PortalLoginResult(success=False, message="Sai mật khẩu", token="")

        response = await client.post(
            f"{API}/auth/login",
            json={"username": "2251120001", "password": "wrong", "recaptchaToken": "tok"},
        )

        assert response.status_code == 401
        assert response.json() == {"success": False, "message": "Sai mật khẩu", "code": "AUTH_ERROR"}

    @pytest.mark.asyncio
    async def test_login_missing_fields_is_400(self, client: AsyncClient):
        response = await client.post(f"{API}/auth/login", json={"username": "2251120001"})

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_check_without_cookie(self, client: AsyncClient):
        response = await client.get(f"{API}/auth/check")
        assert response.json() == {"authenticated": False}

    @pytest.mark.asyncio
    async def test_forged_cookie_is_not_a_session(self, client: AsyncClient, student):
        client.cookies.set(settings.SESSION_COOKIE_NAME, student)

        response = await client.get(f"{API}/waitlist")

        assert response.status_code == 401


class TestWaitlistEndpoints:

    @pytest.mark.asyncio
    async def test_requires_session(self, client: AsyncClient):
        response = await client.get(f"{API}/waitlist")

        assert response.status_code == 401
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_add_and_list(self, auth_client: AsyncClient):
        response = await auth_client.post(
            f"{API}/waitlist",
            json={"courseCode": "MATH1", "courseName": "Giải tích", "classId": 101, "classCode": "LHP101"},
        )
        assert response.status_code == 200
        waitlist_id = response.json()["data"]["waitlistId"]

        listing = await auth_client.get(f"{API}/waitlist")
        entries = listing.json()["data"]
        assert [e["id"] for e in entries] == [waitlist_id]
        assert entries[0]["class_id"] == "101"
        assert entries[0]["status"] == "waiting"
        assert entries[0]["priority"] == settings.WAITLIST_DEFAULT_PRIORITY

    @pytest.mark.asyncio
    async def test_add_without_class_id_is_400(self, auth_client: AsyncClient):
        response = await auth_client.post(f"{API}/waitlist", json={"courseCode": "MATH1"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_delete_cancels_own_entry(self, auth_client: AsyncClient, db_session, student):
        entry = await WaitlistStore(db_session).insert(student, "MATH1", "101")

        response = await auth_client.delete(f"{API}/waitlist", params={"id": entry.id})

        assert response.status_code == 200
        stored = await WaitlistStore(db_session).find_by_id(entry.id)
        assert stored.status == WaitlistStatus.CANCELLED

        again = await auth_client.delete(f"{API}/waitlist", params={"id": entry.id})
        assert again.status_code == 409

    @pytest.mark.asyncio
    async def test_delete_foreign_entry_is_404(
        self, auth_client: AsyncClient, db_session, other_student
    ):
        entry = await WaitlistStore(db_session).insert(other_student, "MATH1", "101")

        response = await auth_client.delete(f"{API}/waitlist", params={"id": entry.id})

        assert response.status_code == 404
        stored = await WaitlistStore(db_session).find_by_id(entry.id)
        assert stored.status == WaitlistStatus.WAITING

    @pytest.mark.asyncio
    async def test_delete_without_id_is_400(self, auth_client: AsyncClient):
        response = await auth_client.delete(f"{API}/waitlist")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_check_runs_a_cycle(self, auth_client: AsyncClient, db_session, student, fake_portal):
        await WaitlistStore(db_session).insert(student, "MATH1", "101", class_code="LHP101")
        fake_portal.sections["MATH1"] = [section(101)]

        response = await auth_client.post(f"{API}/waitlist/check")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["processed"] == 1
        assert data["registered"] == 1
        assert data["results"][0]["class_code"] == "LHP101"
        assert data["results"][0]["status"] == "registered"


class TestCronEndpoint:

    @pytest.mark.asyncio
    async def test_open_when_no_secret(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", None)

        response = await client.get(f"{API}/cron/waitlist")

        assert response.status_code == 200
        body = response.json()
        assert body["data"]["processed"] == 0
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_secret_required_when_configured(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "cron-secret")

        missing = await client.get(f"{API}/cron/waitlist")
        wrong = await client.get(f"{API}/cron/waitlist", headers={"Authorization": "Bearer nope"})
        right = await client.get(f"{API}/cron/waitlist", headers={"Authorization": "Bearer cron-secret"})

        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert right.status_code == 200

    @pytest.mark.asyncio
    async def test_sweep_registers_across_sessions(
        self, client: AsyncClient, db_session, student, other_student, fake_portal, monkeypatch
    ):
        monkeypatch.setattr(settings, "CRON_SECRET", None)
        await WaitlistStore(db_session).insert(student, "MATH1", "101")
        await WaitlistStore(db_session).insert(other_student, "PHYS1", "202")
        fake_portal.sections["MATH1"] = [section(101)]
        fake_portal.sections["PHYS1"] = [section(202)]

        response = await client.get(f"{API}/cron/waitlist")

        data = response.json()["data"]
        assert data["processed"] == 2
        assert data["registered"] == 2


class TestSchedulerEndpoints:

    @pytest.mark.asyncio
    async def test_create_then_poll_executes(self, auth_client: AsyncClient, fake_portal):
        created = await auth_client.post(
            f"{API}/scheduler",
            json={"courseCode": "MATH1", "classId": "101", "classCode": "LHP101", "maxRetries": 3},
        )
        assert created.status_code == 200
        schedule_id = created.json()["data"]["registrationId"]

        polled = await auth_client.get(f"{API}/scheduler")

        assert polled.status_code == 200
        data = polled.json()["data"]
        assert [s["id"] for s in data["schedules"]] == [schedule_id]
        assert data["schedules"][0]["status"] == "succeeded"
        assert [log["status"] for log in data["logs"]] == ["success"]
        assert fake_portal.register_calls == [101]

    @pytest.mark.asyncio
    async def test_duplicate_schedule_is_400(self, auth_client: AsyncClient):
        payload = {"courseCode": "MATH1", "classId": "101", "scheduleTime": "2099-01-01T00:00:00Z"}

        first = await auth_client.post(f"{API}/scheduler", json=payload)
        second = await auth_client.post(f"{API}/scheduler", json=payload)

        assert first.status_code == 200
        assert second.status_code == 400
        assert second.json()["details"]["registrationId"] == first.json()["data"]["registrationId"]

    @pytest.mark.asyncio
    async def test_cancel_schedule(self, auth_client: AsyncClient):
        created = await auth_client.post(
            f"{API}/scheduler",
            json={"courseCode": "MATH1", "classId": "101", "scheduleTime": "2099-01-01T00:00:00Z"},
        )
        schedule_id = created.json()["data"]["registrationId"]

        cancelled = await auth_client.delete(f"{API}/scheduler", params={"id": schedule_id})
        missing = await auth_client.delete(f"{API}/scheduler", params={"id": 9999})

        assert cancelled.status_code == 200
        assert missing.status_code == 404

        polled = await auth_client.get(f"{API}/scheduler")
        assert polled.json()["data"]["schedules"][0]["status"] == "cancelled"


class TestSupportingEndpoints:

    @pytest.mark.asyncio
    async def test_settings_round_trip(self, auth_client: AsyncClient):
        updated = await auth_client.post(f"{API}/settings", json={"email": "sv@example.com"})
        fetched = await auth_client.get(f"{API}/settings")

        assert updated.status_code == 200
        assert fetched.json()["data"] == {"notification_email": "sv@example.com"}

        cleared = await auth_client.post(f"{API}/settings", json={"email": ""})
        assert cleared.json()["message"] == "Đã tắt thông báo email"

    @pytest.mark.asyncio
    async def test_settings_invalid_email_is_400(self, auth_client: AsyncClient):
        response = await auth_client.post(f"{API}/settings", json={"email": "not-an-email"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_class_sections_passthrough(self, auth_client: AsyncClient, fake_portal):
        fake_portal.sections["MATH1"] = [section(101)]

        response = await auth_client.get(f"{API}/courses/classes", params={"courseCode": "MATH1"})

        assert response.status_code == 200
        assert response.json()["data"][0]["id"] == 101
        assert fake_portal.sessions_used[0].token == "portal-token"

    @pytest.mark.asyncio
    async def test_conflict_check(self, auth_client: AsyncClient):
        response = await auth_client.post(
            f"{API}/schedule/conflicts",
            json={
                "candidate": {"classCode": "NEW", "courseName": "Hóa", "schedule": "Thứ 2 (1-3)"},
                "existing": [
                    {"classCode": "A", "courseName": "Lý", "schedule": "Thứ 2 (3-5)"},
                    {"classCode": "B", "courseName": "Sinh", "schedule": "Thứ 4 (1-3)"},
                ],
            },
        )

        data = response.json()["data"]
        assert data["has_conflict"] is True
        assert [c["class_code"] for c in data["conflicts"]] == ["A"]
        assert data["conflicts"][0]["conflicting_slots"] == [{"day": 2, "periods": [3]}]

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        live = await client.get(f"{API}/health/live")
        ready = await client.get(f"{API}/health/ready")

        assert live.json()["status"] == "alive"
        assert ready.json()["status"] == "ready"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_500(self, auth_client: AsyncClient, fake_portal):
        async def explode(*args):
            raise RuntimeError("database on fire")

        fake_portal.get_class_sections = explode

        response = await auth_client.get(f"{API}/courses/classes", params={"courseCode": "MATH1"})

        assert response.status_code == 500
        assert response.json()["message"] == "Lỗi server không xác định"


def test_session_token_round_trip():
    from autoreg.core.security import security_manager

    token = create_session_token("uth_2251120001")
    assert security_manager.decode_session_token(token)["sub"] == "uth_2251120001"


class TestManualRegistrationEndpoints:

    @pytest.mark.asyncio
    async def test_register_forwards_token_and_logs(self, auth_client: AsyncClient, db_session, student, fake_portal):
        response = await auth_client.post(
            f"{API}/courses/register",
            json={"idLopHocPhan": 101, "recaptchaToken": "tok", "courseName": "Giải tích", "classCode": "LHP101"},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Đăng ký học phần thành công"
        assert fake_portal.register_calls == [101]
        assert fake_portal.register_tokens == ["tok"]
        logs = await RegistrationLogStore(db_session).find_by_user_session(student)
        assert [(log.action, log.status) for log in logs] == [(LogAction.REGISTER, LogStatus.SUCCESS)]
        assert logs[0].class_code == "LHP101"

    @pytest.mark.asyncio
    async def test_register_without_token_is_400_unless_bulk(self, auth_client: AsyncClient, fake_portal):
        single = await auth_client.post(f"{API}/courses/register", json={"idLopHocPhan": 101})
        bulk = await auth_client.post(f"{API}/courses/register", json={"idLopHocPhan": 101, "isBulk": True})

        assert single.status_code == 400
        assert bulk.status_code == 200
        assert fake_portal.register_calls == [101]

    @pytest.mark.asyncio
    async def test_declined_register_is_400_and_logged(
        self, auth_client: AsyncClient, db_session, student, fake_portal
    ):
        fake_portal.register_result = False

        response = await auth_client.post(f"{API}/courses/register", json={"idLopHocPhan": 101, "isBulk": True})

        assert response.status_code == 400
        assert response.json()["message"] == "Đăng ký học phần thất bại"
        logs = await RegistrationLogStore(db_session).find_by_user_session(student)
        assert [log.status for log in logs] == [LogStatus.FAILED]

    @pytest.mark.asyncio
    async def test_portal_error_on_register_is_502_and_logged(
        self, auth_client: AsyncClient, db_session, student, fake_portal, portal_error
    ):
        fake_portal.register_result = portal_error

        response = await auth_client.post(f"{API}/courses/register", json={"idLopHocPhan": 101, "isBulk": True})

        assert response.status_code == 502
        logs = await RegistrationLogStore(db_session).find_by_user_session(student)
        assert [log.message for log in logs] == [portal_error.message]

    @pytest.mark.asyncio
    async def test_rejected_recaptcha_is_logged(self, auth_client: AsyncClient, db_session, student, fake_portal):
        from autoreg.main import app

        def reject(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False, "error-codes": ["invalid-input-response"]})

        app.dependency_overrides[get_recaptcha_service] = lambda: RecaptchaService(
            secret_key="secret", transport=httpx.MockTransport(reject)
        )

        response = await auth_client.post(
            f"{API}/courses/register", json={"idLopHocPhan": 101, "recaptchaToken": "stale"}
        )

        assert response.status_code == 400
        assert fake_portal.register_calls == []
        logs = await RegistrationLogStore(db_session).find_by_user_session(student)
        assert [log.message for log in logs] == ["Xác thực reCAPTCHA thất bại"]

    @pytest.mark.asyncio
    async def test_cancel_writes_cancel_log(self, auth_client: AsyncClient, db_session, student, fake_portal):
        response = await auth_client.post(
            f"{API}/courses/cancel", json={"idDangKy": 555, "courseName": "Giải tích", "classCode": "LHP101"}
        )

        assert response.status_code == 200
        assert fake_portal.cancel_calls == [555]
        logs = await RegistrationLogStore(db_session).find_by_user_session(student)
        assert [(log.action, log.status) for log in logs] == [(LogAction.CANCEL, LogStatus.SUCCESS)]

    @pytest.mark.asyncio
    async def test_declined_cancel_is_400(self, auth_client: AsyncClient, db_session, student, fake_portal):
        fake_portal.cancel_result = False

        response = await auth_client.post(f"{API}/courses/cancel", json={"idDangKy": 555})

        assert response.status_code == 400
        logs = await RegistrationLogStore(db_session).find_by_user_session(student)
        assert [(log.action, log.status) for log in logs] == [(LogAction.CANCEL, LogStatus.FAILED)]

    @pytest.mark.asyncio
    async def test_cancel_requires_registration_id(self, auth_client: AsyncClient, fake_portal):
        response = await auth_client.post(f"{API}/courses/cancel", json={"classCode": "LHP101"})

        assert response.status_code == 400
        assert fake_portal.cancel_calls == []

    @pytest.mark.asyncio
    async def test_available_and_registered_courses(self, auth_client: AsyncClient, fake_portal):
        fake_portal.available_courses = [{"maHocPhan": "MATH1"}]
        fake_portal.registered_courses = [{"maLopHocPhan": "LHP101"}]

        available = await auth_client.get(f"{API}/courses/available")
        registered = await auth_client.get(f"{API}/courses/registered", params={"idDot": 75})

        assert available.json()["data"] == [{"maHocPhan": "MATH1"}]
        assert registered.json()["data"] == [{"maLopHocPhan": "LHP101"}]


class TestStudentAndTimetableEndpoints:

    @pytest.mark.asyncio
    async def test_student_profile_and_image(self, auth_client: AsyncClient, fake_portal):
        fake_portal.student_info = {"maSinhVien": "2251120001", "hoTen": "Nguyễn Văn A"}
        fake_portal.student_image = "base64-image"

        profile = await auth_client.get(f"{API}/student")
        image = await auth_client.get(f"{API}/student/image")

        assert profile.json()["data"]["maSinhVien"] == "2251120001"
        assert image.json()["data"] == "base64-image"

    @pytest.mark.asyncio
    async def test_student_profile_requires_session(self, client: AsyncClient):
        response = await client.get(f"{API}/student")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_weekly_timetable_grouped_by_day(self, auth_client: AsyncClient, fake_portal):
        fake_portal.timetable = [
            {"thu": 3, "tuGio": "13:00", "tenMonHoc": "Lý"},
            {"thu": 2, "tuGio": "09:30", "tenMonHoc": "Hóa"},
            {"thu": 2, "tuGio": "07:00", "tenMonHoc": "Toán"},
        ]

        response = await auth_client.get(f"{API}/schedule", params={"date": "2026-01-05"})

        data = response.json()["data"]
        assert data["date"] == "2026-01-05"
        assert len(data["schedule"]) == 3
        assert [row["tenMonHoc"] for row in data["groupedSchedule"]["2"]] == ["Toán", "Hóa"]
        assert fake_portal.timetable_dates == ["2026-01-05"]

    @pytest.mark.asyncio
    async def test_weekly_timetable_defaults_to_today(self, auth_client: AsyncClient, fake_portal):
        response = await auth_client.get(f"{API}/schedule")

        assert response.status_code == 200
        assert fake_portal.timetable_dates == [response.json()["data"]["date"]]

    @pytest.mark.asyncio
    async def test_malformed_date_is_400(self, auth_client: AsyncClient):
        response = await auth_client.get(f"{API}/schedule", params={"date": "05/01/2026"})
        assert response.status_code == 400
