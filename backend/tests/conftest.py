"""Pytest configuration and shared fixtures."""

import os

# Settings are read at import time, so the test environment goes first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["VERIFICATION_MODE"] = "strict"
os.environ["CODE_STORE_BACKEND"] = "memory"
os.environ["EXPOSE_DEV_CODE"] = "true"
os.environ["STORAGE_BUCKET"] = "deals"
os.environ["STORAGE_PUBLIC_URL"] = "http://storage.test"

import re
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from localdeals.core.security import create_access_token
from localdeals.db.session import Base
from localdeals.dependencies import (
    get_db,
    get_mailer,
    get_rate_limiter,
    get_storage,
    get_ttl_store,
    get_verification_service,
)
from localdeals.main import app
from localdeals.models import Deal, User
from localdeals.models.deal import STATUS_APPROVED
from localdeals.models.user import ROLE_ADMIN, ROLE_MODERATOR, ROLE_USER
from localdeals.services.rate_limiter import RateLimiter
from localdeals.services.ttl_store import InMemoryTTLStore
from localdeals.services.verification_service import StoredCodeCheck, VerificationCodeService


# ============================================================================
# FAKES
# ============================================================================

class FakeClock:
    """Manually advanced clock for TTL logic."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeMailer:
    """Records every code it is asked to send."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Tuple[str, str]] = []

    async def send_verification_code(self, email: str, code: str) -> None:
        if self.fail:
            raise RuntimeError("email provider unavailable")
        self.sent.append((email, code))

    def last_code(self, email: str) -> Optional[str]:
        codes = [c for e, c in self.sent if e == email]
        return codes[-1] if codes else None


class FakeStorage:
    """In-memory stand-in for the image bucket."""

    bucket = "deals"
    base_url = "http://storage.test"

    def __init__(self, fail_remove: bool = False):
        self.fail_remove = fail_remove
        self.objects: Dict[str, bytes] = {}
        self.removed: List[str] = []

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        self.objects[path] = data
        return f"{self.base_url}/{self.bucket}/{path}"

    async def remove(self, path: str) -> None:
        if self.fail_remove:
            raise ConnectionError("storage unreachable")
        self.objects.pop(path, None)
        self.removed.append(path)

    def path_from_url(self, url: str) -> Optional[str]:
        match = re.search(rf"/{self.bucket}/(images/.+)$", url)
        return match.group(1) if match else None


# ============================================================================
# DATABASE
# ============================================================================

@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


async def create_user(
    db: AsyncSession,
    email: str,
    role: str = ROLE_USER,
    username: Optional[str] = None,
    auto_approve: bool = False,
) -> User:
    user = User(
        email=email,
        username=username,
        role=role,
        auto_approve=auto_approve,
        email_verified=True,
        device_id="device-setup",
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_deal(
    db: AsyncSession,
    submitter: User,
    title: str = "Half-price pizza",
    status: str = STATUS_APPROVED,
    is_archived: bool = False,
    category: str = "food_dining",
    expires_in: timedelta = timedelta(days=7),
    created_at: Optional[datetime] = None,
    image_url: str = "http://storage.test/deals/images/1700000000000-abc123.jpg",
    description: Optional[str] = None,
) -> Deal:
    now = datetime.now(timezone.utc)
    deal = Deal(
        title=title,
        description=description,
        image_url=image_url,
        location="Main Street",
        category=category,
        submitted_by_user_id=submitter.id,
        posted_by=submitter.username or "Anonymous",
        status=status,
        is_archived=is_archived,
        requires_review=status != STATUS_APPROVED,
        expires_at=now + expires_in,
    )
    if created_at is not None:
        deal.created_at = created_at
    db.add(deal)
    await db.commit()
    await db.refresh(deal)
    return deal


@pytest_asyncio.fixture
async def regular_user(test_db: AsyncSession) -> User:
    return await create_user(test_db, "user@example.com", username="dealhunter")


@pytest_asyncio.fixture
async def other_user(test_db: AsyncSession) -> User:
    return await create_user(test_db, "other@example.com", username="bargains")


@pytest_asyncio.fixture
async def moderator(test_db: AsyncSession) -> User:
    return await create_user(test_db, "mod@example.com", role=ROLE_MODERATOR, username="mod_one")


@pytest_asyncio.fixture
async def admin(test_db: AsyncSession) -> User:
    return await create_user(test_db, "admin@example.com", role=ROLE_ADMIN, username="admin_one")


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.email, user.id)}"}


# ============================================================================
# APP
# ============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ttl_store(clock: FakeClock) -> InMemoryTTLStore:
    return InMemoryTTLStore(clock=clock)


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest_asyncio.fixture
async def client(session_factory, ttl_store, mailer, storage, clock):
    """HTTP client wired to the test database and fakes."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def override_verification_service():
        return VerificationCodeService(
            store=ttl_store,
            mailer=mailer,
            code_check=StoredCodeCheck(),
            clock=clock,
        )

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_ttl_store] = lambda: ttl_store
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_verification_service] = override_verification_service
    app.dependency_overrides[get_rate_limiter] = lambda: RateLimiter(ttl_store, enabled=True)

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
