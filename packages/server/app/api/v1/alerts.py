"""
Alert endpoints.

- GET                   - Aggregated alerts for the caller, with summary counts
- PATCH /{alert_id}/read - Acknowledge an alert
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedUser, get_current_user
from app.core.database import get_session
from app.services.alerts import acknowledge_alert, get_alerts
from taskdesk_shared.schemas.alerts import AlertList
from taskdesk_shared.schemas.common import MessageResponse

log = structlog.get_logger()
router = APIRouter()


@router.get("", response_model=AlertList)
async def list_alerts_endpoint(
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Overdue, due-soon, urgent and new-assignment alerts, most severe first."""
    try:
        return await get_alerts(session, auth.user_id)
    except SQLAlchemyError:
        log.exception("alerts.fetch_failed", user_id=str(auth.user_id))
        raise HTTPException(status_code=500, detail="Server error fetching alerts")


@router.patch("/{alert_id}/read", response_model=MessageResponse)
async def mark_alert_read_endpoint(
    alert_id: str,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Acknowledge an alert. Only new-assignment alerts persist anything."""
    try:
        written = await acknowledge_alert(session, alert_id, auth.user_id)
        await session.commit()
    except SQLAlchemyError:
        log.exception("alerts.mark_read_failed", user_id=str(auth.user_id), alert_id=alert_id)
        raise HTTPException(status_code=500, detail="Server error marking alert as read")

    log.debug("alerts.mark_read", user_id=str(auth.user_id), alert_id=alert_id, written=written)
    return MessageResponse(message="Alert marked as read")
