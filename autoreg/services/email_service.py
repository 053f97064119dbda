"""
Email Service with SendGrid Integration
Sends registration outcome notifications to students
"""

import asyncio
import logging
from typing import Dict, Optional

from jinja2 import Template
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from autoreg.config import settings
from autoreg.models.base import utcnow

logger = logging.getLogger(__name__)

BASE_STYLE = """
    body { font-family: Arial, sans-serif; line-height: 1.6; }
    .container { max-width: 600px; margin: 0 auto; padding: 20px; }
    .content { padding: 20px; background: #f4f4f4; }
    .footer { text-align: center; padding: 20px; color: #666; font-size: 12px; }
"""


class EmailService:
    """Service for handling email operations"""

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        api_key = settings.SENDGRID_API_KEY if api_key is None else api_key
        self.client = SendGridAPIClient(api_key) if api_key else None
        self.from_email = from_email or settings.FROM_EMAIL
        self.templates = self._load_templates()

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def _load_templates(self) -> Dict[str, Template]:
        """Load email templates"""
        return {
            "registration_success": Template("""
                <!DOCTYPE html>
                <html>
                <head><style>{{ style }} .header { background: #16a34a; color: white; padding: 20px; text-align: center; }</style></head>
                <body>
                    <div class="container">
                        <div class="header"><h1>Đăng ký thành công</h1></div>
                        <div class="content">
                            <p>Hệ thống đã đăng ký tự động thành công lớp học phần:</p>
                            <p><strong>Môn học:</strong> {{ course_name }}</p>
                            <p><strong>Mã lớp:</strong> {{ class_code }}</p>
                            <p><strong>Thời gian:</strong> {{ timestamp }}</p>
                        </div>
                        <div class="footer"><p>Email tự động từ {{ app_name }}</p></div>
                    </div>
                </body>
                </html>
            """),

            "registration_failed": Template("""
                <!DOCTYPE html>
                <html>
                <head><style>{{ style }} .header { background: #dc2626; color: white; padding: 20px; text-align: center; }</style></head>
                <body>
                    <div class="container">
                        <div class="header"><h1>Đăng ký thất bại</h1></div>
                        <div class="content">
                            <p>Đăng ký tự động không thành công sau {{ attempts }}/{{ max_retries }} lần thử.</p>
                            <p><strong>Môn học:</strong> {{ course_name }}</p>
                            <p><strong>Mã lớp:</strong> {{ class_code }}</p>
                            <p><strong>Lỗi:</strong> {{ error }}</p>
                            <p>Vui lòng đăng nhập và thử đăng ký thủ công.</p>
                        </div>
                        <div class="footer"><p>Email tự động từ {{ app_name }}</p></div>
                    </div>
                </body>
                </html>
            """),
        }

    async def send_email(self, to_email: str, subject: str, html: str) -> bool:
        """Send an email using SendGrid; returns False when unconfigured or on error"""
        if not self.is_configured:
            logger.info(f"Email not configured, skipping '{subject}'")
            return False

        try:
            message = Mail(
                from_email=self.from_email,
                to_emails=to_email,
                subject=subject,
                html_content=html
            )
            # SendGrid's client is blocking
            response = await asyncio.to_thread(self.client.send, message)

            logger.info(f"Email sent: {subject} ({response.status_code})")
            return response.status_code in [200, 201, 202]

        except Exception as e:
            logger.error(f"Error sending email: {str(e)}")
            return False

    async def send_template(self, to_email: str, subject: str, template_name: str, context: Dict) -> bool:
        template = self.templates.get(template_name)
        if not template:
            logger.error(f"Template {template_name} not found")
            return False

        html = template.render(style=BASE_STYLE, app_name=settings.APP_NAME, **context)
        return await self.send_email(to_email, subject, html)

    async def send_registration_success(self, to_email: str, course_name: str, class_code: str) -> bool:
        return await self.send_template(
            to_email,
            f"✅ Đăng ký thành công: {course_name}",
            "registration_success",
            {
                "course_name": course_name,
                "class_code": class_code,
                "timestamp": utcnow().strftime("%Y-%m-%d %H:%M UTC"),
            }
        )

    async def send_registration_failed(
        self,
        to_email: str,
        course_name: str,
        class_code: str,
        error: str,
        attempts: int,
        max_retries: int
    ) -> bool:
        return await self.send_template(
            to_email,
            f"❌ Đăng ký thất bại: {course_name}",
            "registration_failed",
            {
                "course_name": course_name,
                "class_code": class_code,
                "error": error,
                "attempts": attempts,
                "max_retries": max_retries,
            }
        )


# Initialize global email service
email_service = EmailService()


def get_email_service() -> EmailService:
    return email_service
