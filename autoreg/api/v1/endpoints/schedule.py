"""
Weekly timetable and timetable conflict check
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from autoreg.core.security import get_current_portal_session, get_current_session
from autoreg.models.base import utcnow
from autoreg.schemas.response import ApiResponse
from autoreg.schemas.schedule import ConflictCheckRequest, ConflictCheckResponse, ConflictResult, ConflictSlot
from autoreg.services.schedule_conflicts import (
    class_to_schedule,
    find_schedule_conflicts,
    format_conflict_message,
    group_timetable_by_day,
)
from autoreg.services.portal_client import PortalClientFactory, PortalSession, get_portal_client_factory

router = APIRouter()


@router.post("/conflicts", response_model=ApiResponse)
async def check_conflicts(
    request: ConflictCheckRequest,
    user_session: str = Depends(get_current_session),
) -> Any:
    """
    Compare a candidate section's timetable against the sections already held.

    Schedule text the parser cannot read yields no slots and so no conflicts.
    """
    candidate = class_to_schedule(
        request.candidate.class_code, request.candidate.course_name, request.candidate.schedule
    )
    existing = [class_to_schedule(c.class_code, c.course_name, c.schedule) for c in request.existing]

    conflicts = [
        ConflictResult(
            class_code=conflict.class2.class_code,
            course_name=conflict.class2.course_name,
            conflicting_slots=[ConflictSlot(**group.to_dict()) for group in conflict.conflicting_slots],
            message=format_conflict_message(conflict),
        )
        for conflict in find_schedule_conflicts(candidate, existing)
    ]

    return ApiResponse(data=ConflictCheckResponse(has_conflict=bool(conflicts), conflicts=conflicts))


@router.get("", response_model=ApiResponse)
async def get_weekly_timetable(
    date: Optional[str] = Query(None, pattern=r"^\d{4}-\d{2}-\d{2}$"),
    portal_session: PortalSession = Depends(get_current_portal_session),
    portal_factory: PortalClientFactory = Depends(get_portal_client_factory),
) -> Any:
    """
    The student's timetable for the week containing ``date`` (default: today, UTC)
    """
    date = date or utcnow().date().isoformat()
    async with portal_factory(portal_session) as portal:
        rows = await portal.get_lich_hoc(date)

    return ApiResponse(data={
        "schedule": rows,
        "groupedSchedule": group_timetable_by_day(rows),
        "date": date,
    })
