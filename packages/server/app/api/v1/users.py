"""
User directory endpoints (assignee pickers).
"""

from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import AuthenticatedUser, get_current_user
from app.core.database import get_session
from app.models.user import User
from taskdesk_shared.schemas.users import UserRead

router = APIRouter()


def to_user_read(user: User) -> UserRead:
    return UserRead(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        avatar=user.avatar,
        created_at=user.created_at,
    )


@router.get("", response_model=List[UserRead])
async def list_users_endpoint(
    search: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """List users, optionally filtered by name or email."""
    stmt = select(User)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            )
        )
    stmt = stmt.order_by(User.last_name, User.first_name).limit(limit)
    result = await session.execute(stmt)
    return [to_user_read(u) for u in result.scalars().all()]


@router.get("/{user_id}", response_model=UserRead)
async def get_user_endpoint(
    user_id: uuid.UUID,
    auth: AuthenticatedUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return to_user_read(user)
