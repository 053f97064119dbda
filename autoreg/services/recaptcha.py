"""
Server-side reCAPTCHA v2 verification
"""

import logging
from typing import Optional

import httpx

from autoreg.config import settings

logger = logging.getLogger(__name__)


class RecaptchaService:
    def __init__(
        self,
        secret_key: Optional[str] = None,
        verify_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = settings.RECAPTCHA_SECRET_KEY if secret_key is None else secret_key
        self.verify_url = verify_url or settings.RECAPTCHA_VERIFY_URL
        self.transport = transport

    @property
    def is_enabled(self) -> bool:
        return bool(self.secret_key)

    async def verify(self, token: str, remote_ip: Optional[str] = None) -> bool:
        """
        True when the token verifies, or when no secret is configured.
        Network failures count as a failed verification.
        """
        if not self.is_enabled:
            return True

        data = {"secret": self.secret_key, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip

        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self.transport) as client:
                response = await client.post(self.verify_url, data=data)
                response.raise_for_status()
                result = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"reCAPTCHA verification failed: {e}")
            return False

        if not result.get("success"):
            logger.info(f"reCAPTCHA rejected: {result.get('error-codes')}")
            return False
        return True


recaptcha_service = RecaptchaService()


def get_recaptcha_service() -> RecaptchaService:
    return recaptcha_service
