"""
API v1 Router

All endpoints act on behalf of the authenticated caller.
"""

from fastapi import APIRouter
from . import alerts, events, tasks, users

router = APIRouter()

router.include_router(alerts.router, prefix="/alerts", tags=["Alerts"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(events.router, prefix="/events", tags=["Events"])
router.include_router(users.router, prefix="/users", tags=["Users"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/alerts",
            "/tasks",
            "/events",
            "/users",
        ],
    }
