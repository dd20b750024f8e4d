"""
SSE Event Streaming endpoints.

- GET /stream - The caller's notifications as Server-Sent Events
- GET         - Recent notifications from the database
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select
from sse_starlette.sse import EventSourceResponse

from app.core.auth import AuthenticatedUser, get_current_user
from app.core.database import get_session
from app.core.events import event_generator
from app.models.event import Event

router = APIRouter()


class EventRead(BaseModel):
    sequence_id: int
    type: str
    actor_id: Optional[str] = None
    payload: dict
    timestamp: str


@router.get("/stream")
async def stream_events(
    request: Request,
    last_event_id: Optional[int] = Header(None, alias="Last-Event-ID"),
    auth: AuthenticatedUser = Depends(get_current_user),
):
    """
    Stream the caller's notifications via SSE.

    Supports replay via the Last-Event-ID header from a capped per-user
    buffer. Emits `: heartbeat` comments every 30 seconds when idle.
    """
    return EventSourceResponse(
        event_generator(
            request,
            auth.user_id,
            last_event_id=last_event_id,
            jti=auth.jti,
        )
    )


@router.get("", response_model=list[EventRead])
async def list_events(
    after: Optional[int] = Query(None, ge=0, description="Only events with a greater sequence id"),
    limit: int = Query(50, ge=1, le=200),
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """The caller's most recent notifications, newest first."""
    stmt = select(Event).where(Event.user_id == auth.user_id)
    if after is not None:
        stmt = stmt.where(Event.sequence_id > after)
    stmt = stmt.order_by(Event.sequence_id.desc()).limit(limit)
    result = await session.execute(stmt)
    return [
        EventRead(
            sequence_id=e.sequence_id,
            type=e.type,
            actor_id=str(e.actor_id) if e.actor_id else None,
            payload=e.payload,
            timestamp=e.timestamp.isoformat(),
        )
        for e in result.scalars().all()
    ]
