from __future__ import annotations

import os
import uuid
from typing import Optional

# Settings are read at import time; point the app at SQLite before importing it.
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DATABASE_URL_SYNC", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.core.security import create_access_token
from app.db.session import get_db

# Ensure Base + models are registered before create_all
from app.db.base import Base
import app.models  # noqa: F401
from app.models.chapter import Chapter
from app.models.chapter_membership import ChapterMembership
from app.models.developer_access import DeveloperAccess
from app.models.user import User


# ---------------------------------------------------------
# Engine + schema lifecycle (fresh in-memory DB per test)
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # ON DELETE CASCADE / SET NULL only fire with foreign keys enabled
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
def sessionmaker(engine):
    return async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


# ---------------------------------------------------------
# DB session for assertions / setup
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def db(sessionmaker):
    """
    Session for test setup & assertions ONLY.
    """
    async with sessionmaker() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------
# FastAPI app + dependency override
# ---------------------------------------------------------
@pytest.fixture()
def app(sessionmaker):
    from app.main import app as fastapi_app

    async def _override_get_db():
        async with sessionmaker() as session:
            yield session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


# ---------------------------------------------------------
# HTTP client
# ---------------------------------------------------------
@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
    ) as ac:
        yield ac


# ---------------------------------------------------------
# Data builders
# ---------------------------------------------------------
class Factory:
    """Flushes rows into the setup session; tests commit before calling the API."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def user(self, email: Optional[str] = None, **kwargs) -> User:
        user = User(
            email=(email or f"user-{uuid.uuid4().hex[:8]}@example.com").lower().strip(),
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        self.db.add(user)
        await self.db.flush()
        return user

    async def chapter(self, name: Optional[str] = None, **kwargs) -> Chapter:
        chapter = Chapter(
            name=name or f"Chapter {uuid.uuid4().hex[:6]}",
            chapter_status=kwargs.pop("chapter_status", "active"),
            feature_flags=kwargs.pop("feature_flags", {}),
            **kwargs,
        )
        self.db.add(chapter)
        await self.db.flush()
        return chapter

    async def membership(
        self,
        chapter: Chapter,
        user: User,
        role: str = "ACTIVE_MEMBER",
        chapter_role: Optional[str] = None,
        member_status: str = "active",
        is_active: bool = True,
        permissions: Optional[list] = None,
    ) -> ChapterMembership:
        m = ChapterMembership(
            chapter_id=chapter.id,
            user_id=user.id,
            role=role,
            chapter_role=chapter_role,
            member_status=member_status,
            permissions=permissions or [],
            is_active=is_active,
        )
        self.db.add(m)
        await self.db.flush()
        return m

    async def member(self, chapter: Chapter, role: str = "ACTIVE_MEMBER", **kwargs) -> User:
        """New user plus an active membership in ``chapter``."""
        user = await self.user(kwargs.pop("email", None), full_name=kwargs.pop("full_name", None))
        await self.membership(chapter, user, role=role, **kwargs)
        return user

    async def developer(self, user: User, access_level: str = "admin") -> DeveloperAccess:
        access = DeveloperAccess(user_id=user.id, access_level=access_level, permissions=[], is_active=True)
        self.db.add(access)
        await self.db.flush()
        return access


@pytest.fixture()
def factory(db) -> Factory:
    return Factory(db)


def auth_headers(user: User, chapter: Optional[Chapter] = None) -> dict:
    headers = {"Authorization": f"Bearer {create_access_token(subject=str(user.id))}"}
    if chapter is not None:
        headers["X-Chapter-Id"] = str(chapter.id)
    return headers


@pytest.fixture()
def headers():
    """headers(user, chapter=None) -> Authorization (+ X-Chapter-Id) headers."""
    return auth_headers
