"""
Test fixtures - in-memory SQLite database, in-memory Redis stand-in,
and an HTTP client bound to the FastAPI app.
"""

from __future__ import annotations

import os

# Must be set before any app module reads settings.
os.environ.setdefault("TD_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("TD_LOG_FORMAT", "text")

import fnmatch
from datetime import timedelta
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401  populate metadata
from app.core.auth import AuthenticatedUser, get_current_user
from app.core.database import get_session
from app.main import app as fastapi_app
from app.models.base import utcnow
from app.models.task import Task, TaskTag
from app.models.user import User


class FakePipeline:
    def __init__(self, redis: "FakeRedis"):
        self._redis = redis
        self._ops: list[tuple] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __getattr__(self, name):
        def queue(*args):
            self._ops.append((name, args))
            return self
        return queue

    async def execute(self):
        results = []
        for name, args in self._ops:
            results.append(await getattr(self._redis, name)(*args))
        self._ops.clear()
        return results


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the event channel and revocation list."""

    def __init__(self):
        self.lists: dict[str, list[str]] = {}
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.published: list[tuple[str, str]] = []

    def pipeline(self):
        return FakePipeline(self)

    async def lpush(self, key, *values):
        lst = self.lists.setdefault(key, [])
        for v in values:
            lst.insert(0, v)
        return len(lst)

    async def ltrim(self, key, start, stop):
        lst = self.lists.get(key, [])
        self.lists[key] = lst[start: None if stop == -1 else stop + 1]
        return True

    async def lrange(self, key, start, stop):
        lst = self.lists.get(key, [])
        return lst[start: None if stop == -1 else stop + 1]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    async def setex(self, key, seconds, value):
        self.values[key] = value
        self.ttls[key] = seconds
        return True

    async def exists(self, *keys):
        return sum(1 for k in keys if k in self.values or k in self.lists)

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 1

    async def ping(self):
        return True

    def keys_matching(self, pattern: str) -> list[str]:
        return [k for k in {**self.lists, **self.values} if fnmatch.fnmatch(k, pattern)]


@pytest.fixture
def fake_redis():
    redis = FakeRedis()

    async def _get_redis():
        return redis

    with patch("app.core.events.get_redis", _get_redis), patch(
        "app.core.auth.get_redis", _get_redis
    ), patch("app.core.redis.get_redis", _get_redis):
        yield redis


@pytest.fixture
async def db_session():
    """Create a fresh in-memory SQLite database for each test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False, poolclass=StaticPool
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
async def users(db_session):
    """Two users: alice creates tasks, bob gets them assigned."""
    alice = User(email="alice@example.com", first_name="Alice", last_name="Ng")
    bob = User(email="bob@example.com", first_name="Bob", last_name="Okafor")
    carol = User(email="carol@example.com", first_name="Carol", last_name="Diaz")
    db_session.add_all([alice, bob, carol])
    await db_session.commit()
    return {"alice": alice, "bob": bob, "carol": carol}


@pytest.fixture
def make_task(db_session, users):
    """Insert a task directly. Offsets are relative to now."""

    async def _make(
        title: str = "Task",
        *,
        due_in: timedelta = timedelta(days=7),
        created_ago: timedelta = timedelta(days=3),
        priority: str = "medium",
        status: str = "pending",
        created_by: User | None = None,
        assigned_to: User | None = None,
        tags: list[str] | None = None,
        project_id=None,
        now=None,
    ) -> Task:
        now = now or utcnow()
        task = Task(
            title=title,
            description=f"{title} description",
            priority=priority,
            status=status,
            created_by=(created_by or users["alice"]).id,
            assigned_to=(assigned_to or users["bob"]).id,
            due_date=now + due_in,
            created_at=now - created_ago,
            updated_at=now - created_ago,
            project_id=project_id,
        )
        db_session.add(task)
        await db_session.flush()
        for tag in tags or []:
            db_session.add(TaskTag(task_id=task.id, tag=tag))
        await db_session.commit()
        return task

    return _make


@pytest.fixture
async def client(db_session, users, fake_redis):
    """httpx AsyncClient bound to the app, authenticated as bob by default.

    Use ``client.act_as(user)`` to switch the caller.
    """

    async def override_get_session():
        yield db_session

    fastapi_app.dependency_overrides[get_session] = override_get_session

    def act_as(user: User) -> None:
        fastapi_app.dependency_overrides[get_current_user] = lambda: AuthenticatedUser(user=user)

    act_as(users["bob"])

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        ac.act_as = act_as
        yield ac

    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def anon_client(db_session, fake_redis):
    """Client with the real auth dependency in place."""

    async def override_get_session():
        yield db_session

    fastapi_app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=fastapi_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    fastapi_app.dependency_overrides.clear()
