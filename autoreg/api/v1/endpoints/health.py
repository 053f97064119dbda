"""
Health check endpoints
"""

import logging
from typing import Any
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text

from autoreg.core.database import get_session
from autoreg.config import settings
from autoreg.schemas.response import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/live", response_model=HealthResponse)
async def liveness() -> Any:
    """
    Liveness probe
    """
    return HealthResponse(status="alive", version=settings.APP_VERSION)


@router.get("/ready", response_model=HealthResponse)
async def readiness(
    db: AsyncSession = Depends(get_session)
) -> Any:
    """
    Readiness probe: the database must answer
    """
    checks = {"database": False, "api": True}

    try:
        result = await db.execute(text("SELECT 1"))
        checks["database"] = result.scalar() == 1
    except Exception as e:
        logger.warning(f"Readiness database check failed: {e}")

    return HealthResponse(
        status="ready" if all(checks.values()) else "not ready",
        checks=checks,
        version=settings.APP_VERSION,
    )
