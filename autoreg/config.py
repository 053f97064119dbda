"""
Application configuration management
"""

from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "UTH AutoReg"
    APP_VERSION: str = "1.0.0"
    APP_ENV: str = "development"
    DEBUG: bool = False  # Default to production-safe
    SECRET_KEY: str  # Must be provided via environment
    API_PREFIX: str = "/api/v1"

    @field_validator('SECRET_KEY')
    @classmethod
    def validate_secret_key(cls, v: str) -> str:
        if not v or v == "your-secret-key-change-this-in-production":
            raise ValueError("SECRET_KEY must be set to a secure value in production")
        if len(v) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters long")
        return v

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str  # Must be provided via environment

    @field_validator('DATABASE_URL')
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if v.startswith('postgresql://'):
            v = v.replace('postgresql://', 'postgresql+asyncpg://', 1)
        return v
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 3600
    DB_ECHO: bool = False

    # Student portal
    PORTAL_BASE_URL: str = "https://portal.ut.edu.vn/api/v1"
    PORTAL_ORIGIN: str = "https://portal.ut.edu.vn"
    PORTAL_PERIOD_ID: int = 75  # Registration period (idDot)
    PORTAL_TIMEOUT_SECONDS: float = 15.0
    PORTAL_RETRY_ATTEMPTS: int = 3
    PORTAL_RETRY_DELAY_SECONDS: float = 1.0

    # Session
    SESSION_COOKIE_NAME: str = "user-session"
    SESSION_EXPIRE_HOURS: int = 24
    JWT_ALGORITHM: str = "HS256"

    # reCAPTCHA (verification is skipped when no secret is configured)
    RECAPTCHA_SECRET_KEY: Optional[str] = None
    RECAPTCHA_VERIFY_URL: str = "https://www.google.com/recaptcha/api/siteverify"

    # Cron trigger shared secret (bearer token); open when unset
    CRON_SECRET: Optional[str] = None

    # Email
    SENDGRID_API_KEY: str = ""
    FROM_EMAIL: str = "noreply@uth-autoreg.local"

    # Waitlist / scheduler defaults
    WAITLIST_DEFAULT_PRIORITY: int = 1
    WAITLIST_DEFAULT_CHECK_INTERVAL: int = 30
    SCHEDULER_DEFAULT_MAX_RETRIES: int = 5
    SCHEDULER_LOG_LIMIT: int = 20

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Monitoring
    PROMETHEUS_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    @field_validator("CORS_ORIGINS", mode="before")
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    @property
    def is_testing(self) -> bool:
        return self.APP_ENV == "testing"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Create global settings instance
settings = Settings()
