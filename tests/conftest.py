"""Shared test fixtures.

Each test gets its own SQLite database file. Writers serialize on
``BEGIN IMMEDIATE``, so helpers open short-lived sessions and commit before
the app is called; a session left holding a transaction blocks the API.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timezone
from itertools import count

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from badgeflow.auth.jwt import create_access_token
from badgeflow.auth.password import hash_password
from badgeflow.config import get_settings
from badgeflow.database import close_db, get_engine, get_session_factory, init_db
from badgeflow.db.base import Base
from badgeflow.db.models import Badge, Submission, SubmissionStatus, User, UserRole
from badgeflow.identity.resolver import Actor, get_identity_resolver
from badgeflow.main import create_app

SUPER_ADMIN_EMAIL = "root@school.test"
DEFAULT_PASSWORD = "CorrectHorse1"
_DEFAULT_PASSWORD_HASH = hash_password(DEFAULT_PASSWORD)

_seq = count(1)


@pytest_asyncio.fixture
async def db_engine(tmp_path, monkeypatch) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh schema in a per-test SQLite file."""
    monkeypatch.setenv("BADGEFLOW_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("BADGEFLOW_SUPER_ADMIN_EMAIL", SUPER_ADMIN_EMAIL)
    monkeypatch.setenv("BADGEFLOW_REDIS_ENABLED", "false")
    monkeypatch.setenv("BADGEFLOW_LOG_FORMAT", "console")
    monkeypatch.setenv("BADGEFLOW_JWT_SECRET", "test-secret-with-enough-bytes-for-hs256")
    get_settings.cache_clear()

    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield get_engine()

    await close_db()
    get_settings.cache_clear()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return get_session_factory()


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_engine: AsyncEngine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against a fresh app. Redis stays uninitialized."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(session_factory) -> Callable[..., Awaitable[User]]:
    async def _make(
        role: str = UserRole.STUDENT.value,
        email: str | None = None,
        name: str | None = None,
        password_hash: str | None = _DEFAULT_PASSWORD_HASH,
        require_password_change: bool = False,
    ) -> User:
        n = next(_seq)
        now = datetime.now(timezone.utc)
        user = User(
            email=email if email is not None else f"{role}{n}@school.test",
            name=name or f"{role.title()} {n}",
            role=role,
            password_hash=password_hash,
            require_password_change=require_password_change,
            created_at=now,
            updated_at=now,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make


@pytest.fixture
def make_badge(session_factory) -> Callable[..., Awaitable[Badge]]:
    async def _make(creator: User, name: str | None = None, is_public: bool = True, difficulty: int = 2) -> Badge:
        now = datetime.now(timezone.utc)
        badge = Badge(
            name=name or f"Badge {next(_seq)}",
            description="Shows up consistently",
            criteria="Attend every session",
            difficulty=difficulty,
            category="participation",
            is_public=is_public,
            creator_id=creator.id,
            reactions=[],
            created_at=now,
            updated_at=now,
        )
        async with session_factory() as session:
            session.add(badge)
            await session.commit()
        return badge

    return _make


@pytest.fixture
def make_submission(session_factory) -> Callable[..., Awaitable[Submission]]:
    async def _make(
        student: User,
        badge: Badge,
        teacher: User | None = None,
        status: str = SubmissionStatus.PENDING.value,
        evidence: str = "https://files.school.test/evidence.pdf",
    ) -> Submission:
        now = datetime.now(timezone.utc)
        submission = Submission(
            badge_id=badge.id,
            student_id=student.id,
            teacher_id=teacher.id if teacher else badge.creator_id,
            status=status,
            evidence=evidence,
            created_at=now,
            updated_at=now,
            comments=[],
        )
        async with session_factory() as session:
            session.add(submission)
            await session.commit()
        return submission

    return _make


# ---------------------------------------------------------------------------
# Identity helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def actor_for(db_engine) -> Callable[[User], Actor]:
    """Actor for a stored user, resolved the way the API resolves it."""
    resolver = get_identity_resolver()

    def _actor(user: User) -> Actor:
        identity = resolver.resolve(user.email, user.role)
        return Actor(user_id=user.id, email=identity.normalized_email, tier=identity.tier)

    return _actor


@pytest.fixture
def auth_headers(db_engine) -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id, user.email, user.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def make_super_admin(make_user) -> Callable[..., Awaitable[User]]:
    """User whose email is the configured super-admin email; stored role is irrelevant."""

    async def _make(role: str = UserRole.ADMIN.value) -> User:
        return await make_user(role=role, email=SUPER_ADMIN_EMAIL, name="Root")

    return _make
