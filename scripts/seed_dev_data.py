#!/usr/bin/env python3
"""Seed a development database with two users and tasks covering every alert kind.

Usage:
    python scripts/seed_dev_data.py

Reads TD_DATABASE_URL (or defaults to localhost). Creates tables if missing.
Both users get the password "password123".
"""

import asyncio
from datetime import timedelta

from sqlmodel import select

from app.core.auth import hash_password
from app.core.database import get_session_context, init_db
from app.models.base import utcnow
from app.models.task import Task, TaskTag
from app.models.user import User

USERS = [
    ("alice@taskdesk.dev", "Alice", "Ng"),
    ("bob@taskdesk.dev", "Bob", "Okafor"),
]


async def _get_or_create_user(session, email: str, first: str, last: str) -> User:
    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user:
        return user
    user = User(
        email=email,
        first_name=first,
        last_name=last,
        password_hash=hash_password("password123"),
    )
    session.add(user)
    await session.flush()
    return user


async def seed():
    await init_db()
    now = utcnow()

    async with get_session_context() as session:
        alice, bob = [await _get_or_create_user(session, *u) for u in USERS]

        # (title, priority, status, due offset, created offset, tags)
        tasks = [
            ("Renew TLS certificates", "urgent", "in_progress", timedelta(days=-3), timedelta(days=-10), ["ops"]),
            ("Quarterly budget review", "high", "pending", timedelta(hours=20), timedelta(days=-5), ["finance"]),
            ("Rotate API keys", "urgent", "pending", timedelta(days=6), timedelta(days=-2), ["ops", "security"]),
            ("Draft onboarding guide", "medium", "pending", timedelta(days=9), timedelta(hours=-2), ["docs"]),
            ("Archive old invoices", "low", "completed", timedelta(days=-1), timedelta(days=-8), ["finance"]),
        ]
        for title, priority, status, due, created, tags in tasks:
            task = Task(
                title=title,
                description=f"{title} before the deadline.",
                priority=priority,
                status=status,
                created_by=alice.id,
                assigned_to=bob.id,
                due_date=now + due,
                created_at=now + created,
                updated_at=now + created,
                completed_at=now if status == "completed" else None,
            )
            session.add(task)
            await session.flush()
            for tag in tags:
                session.add(TaskTag(task_id=task.id, tag=tag))

    print(f"Seeded {len(USERS)} users and {len(tasks)} tasks.")


if __name__ == "__main__":
    asyncio.run(seed())
