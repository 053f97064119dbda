"""
Custom application exceptions
"""

from typing import Optional, Dict, Any


class AutoRegException(Exception):
    """Base exception for the auto-registration service"""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(AutoRegException):
    """Missing or invalid session"""

    def __init__(self, message: str = "Chưa đăng nhập", details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code="AUTH_ERROR",
            status_code=401,
            details=details
        )


class NotFoundError(AutoRegException):
    """Resource not found, or not owned by the requesting session"""

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id {identifier} not found"
        super().__init__(
            message=message,
            code="NOT_FOUND",
            status_code=404
        )


class ValidationError(AutoRegException):
    """Validation errors"""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            details=details
        )


class ConflictError(AutoRegException):
    """Resource conflict errors"""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(
            message=message,
            code="CONFLICT",
            status_code=409,
            details=details
        )


class PortalError(AutoRegException):
    """The student portal failed, timed out or answered with a failure envelope"""

    def __init__(self, message: str = "Lỗi kết nối tới server UTH", status_code: Optional[int] = None):
        super().__init__(
            message=message,
            code="UPSTREAM_UNAVAILABLE",
            status_code=502,
            details={"upstream_status": status_code} if status_code else {}
        )
        self.upstream_status = status_code
