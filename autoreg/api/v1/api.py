"""
Main API Router
Aggregates all API endpoints for v1
"""

from fastapi import APIRouter
from autoreg.api.v1.endpoints import (
    auth,
    waitlist,
    cron,
    scheduler,
    courses,
    schedule,
    preferences,
    student,
    health
)

api_router = APIRouter()

# Include all routers
api_router.include_router(auth.router, prefix="/auth", tags=["authentication"])
api_router.include_router(waitlist.router, prefix="/waitlist", tags=["waitlist"])
api_router.include_router(cron.router, prefix="/cron", tags=["cron"])
api_router.include_router(scheduler.router, prefix="/scheduler", tags=["scheduler"])
api_router.include_router(courses.router, prefix="/courses", tags=["courses"])
api_router.include_router(schedule.router, prefix="/schedule", tags=["schedule"])
api_router.include_router(preferences.router, prefix="/settings", tags=["settings"])
api_router.include_router(student.router, prefix="/student", tags=["student"])
api_router.include_router(health.router, prefix="/health", tags=["health"])
