"""
Student profile endpoints
"""

from typing import Any

from fastapi import APIRouter, Depends

from autoreg.core.security import get_current_portal_session
from autoreg.schemas.response import ApiResponse
from autoreg.services.portal_client import PortalClientFactory, PortalSession, get_portal_client_factory

router = APIRouter()


@router.get("", response_model=ApiResponse)
async def get_student_info(
    portal_session: PortalSession = Depends(get_current_portal_session),
    portal_factory: PortalClientFactory = Depends(get_portal_client_factory),
) -> Any:
    """
    Summary profile from the portal. ``data`` is null when the portal
    could not provide it.
    """
    async with portal_factory(portal_session) as portal:
        profile = await portal.get_student_info()
    return ApiResponse(data=profile)


@router.get("/image", response_model=ApiResponse)
async def get_student_image(
    portal_session: PortalSession = Depends(get_current_portal_session),
    portal_factory: PortalClientFactory = Depends(get_portal_client_factory),
) -> Any:
    async with portal_factory(portal_session) as portal:
        image = await portal.get_student_image()
    return ApiResponse(data=image)
